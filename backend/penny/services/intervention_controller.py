"""Intervention controller: the autonomous portfolio check-in loop.

One evaluation cycle for a user:
1. Expire dispatched interventions whose response window has passed
2. Refresh learning state (response rate, per-type effectiveness) from
   resolved interventions, and the trailing 7-day intervention count
3. Compute allocation drift from holdings vs. target allocation
4. Gate: drift above threshold, cooldown elapsed, weekly cap not reached
5. Collect qualifying triggers, drop ignored types when the user rarely
   responds, then pick one type (epsilon-greedy over effective types)
6. Compose the message, persist it as created, and advance cooldown and
   the weekly count
7. Send it, then mark it dispatched (or undelivered) in a second commit

Steps 1-6 read fresh state, compute, and write in a single session and
commit once, before anything reaches the user. AgentState is version-checked;
a concurrent writer makes that commit fail with StaleDataError and the cycle
is rolled back with nothing sent. Once committed, the intervention counts
toward the cooldown and weekly cap whatever happens to delivery. Within this
process, cycles for the same user are mutually exclusive: an overlapping
request returns a skipped_in_flight outcome instead of waiting.

The controller never raises to its callers. Failures are logged, recorded
as `controller.failed` or `notifier.failed` telemetry, and retried on a
later trigger.
"""

import asyncio
import enum
import logging
import random
import uuid
import weakref
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from penny.agents.allocation import compute_drift, current_allocation
from penny.config import settings
from penny.models.agent_state import AgentState
from penny.models.base import ensure_tz
from penny.models.intervention import Intervention, InterventionStatus, InterventionType
from penny.models.portfolio import Holding, PortfolioGoals
from penny.services import profile_service, telemetry_service
from penny.services.notifications import Notification, NotificationBackend, build_notifier
from penny.services.phrasing import MessageComposer, build_composer

logger = logging.getLogger("penny.controller")

DEFAULT_RESPONSE_RATE = 0.5

MILESTONES = tuple(
    Decimal(v) for v in (1_000, 5_000, 10_000, 25_000, 50_000, 100_000, 250_000, 500_000, 1_000_000)
)

# Candidate order when no effective type qualifies.
TYPE_PRIORITY = (
    InterventionType.rebalance_suggestion,
    InterventionType.drift_alert,
    InterventionType.contribution_reminder,
    InterventionType.goal_check,
    InterventionType.milestone,
)


class Outcome(str, enum.Enum):
    dispatched = "dispatched"
    gated = "gated"
    skipped_in_flight = "skipped_in_flight"
    failed = "failed"


@dataclass(frozen=True)
class ControllerConfig:
    drift_threshold: Decimal = Decimal("10")
    rebalance_multiplier: Decimal = Decimal("2")
    cooldown: timedelta = timedelta(hours=12)
    max_weekly_interventions: int = 5
    response_window: timedelta = timedelta(hours=48)
    response_rate_window: int = 20
    effectiveness_threshold: float = 0.4
    low_response_rate: float = 0.2
    exploration_rate: float = 0.1
    default_effective_types: tuple[str, ...] = ("drift_alert", "contribution_reminder")
    require_drift_gate: bool = True
    goal_check_interval: timedelta = timedelta(days=7)
    goal_date_horizon: timedelta = timedelta(days=30)
    missed_contribution: timedelta = timedelta(days=31)

    @classmethod
    def from_settings(cls) -> "ControllerConfig":
        return cls(
            drift_threshold=Decimal(str(settings.drift_threshold_pct)),
            rebalance_multiplier=Decimal(str(settings.rebalance_drift_multiplier)),
            cooldown=timedelta(hours=settings.cooldown_hours),
            max_weekly_interventions=settings.max_weekly_interventions,
            response_window=timedelta(hours=settings.response_window_hours),
            response_rate_window=settings.response_rate_window,
            effectiveness_threshold=settings.effectiveness_threshold,
            low_response_rate=settings.low_response_rate,
            exploration_rate=settings.exploration_rate,
            default_effective_types=tuple(settings.default_effective_types_list),
            require_drift_gate=settings.require_drift_gate,
            goal_check_interval=timedelta(days=settings.goal_check_interval_days),
            goal_date_horizon=timedelta(days=settings.goal_date_horizon_days),
            missed_contribution=timedelta(days=settings.missed_contribution_days),
        )


@dataclass(frozen=True)
class Candidate:
    intervention_type: InterventionType
    context: dict


@dataclass(frozen=True)
class EvaluationResult:
    user_id: uuid.UUID
    trigger: str
    outcome: Outcome
    reason: str | None = None
    drift: float = 0.0
    intervention_id: uuid.UUID | None = None
    intervention_type: InterventionType | None = None
    candidates: list[str] = field(default_factory=list)
    explored: bool = False


# --- Queries ---

async def get_agent_state(db: AsyncSession, user_id: uuid.UUID) -> AgentState | None:
    result = await db.execute(select(AgentState).where(AgentState.user_id == user_id))
    return result.scalar_one_or_none()


async def get_intervention(
    db: AsyncSession,
    *,
    intervention_id: uuid.UUID,
    user_id: uuid.UUID,
) -> Intervention | None:
    result = await db.execute(
        select(Intervention).where(
            Intervention.id == intervention_id,
            Intervention.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def list_interventions(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    limit: int = 50,
    status: InterventionStatus | None = None,
) -> list[Intervention]:
    """Activity log, newest first."""
    stmt = (
        select(Intervention)
        .where(Intervention.user_id == user_id)
        .order_by(Intervention.created_at.desc())
        .limit(limit)
    )
    if status is not None:
        stmt = stmt.where(Intervention.status == status)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def count_interventions_since(db: AsyncSession, user_id: uuid.UUID, since: datetime) -> int:
    """Interventions committed for sending since `since`, delivered or not."""
    result = await db.execute(
        select(func.count(Intervention.id)).where(
            Intervention.user_id == user_id,
            Intervention.created_at >= since,
        )
    )
    return result.scalar_one()


async def _recent_resolved(
    db: AsyncSession,
    user_id: uuid.UUID,
    limit: int,
    intervention_type: InterventionType | None = None,
) -> list[Intervention]:
    stmt = (
        select(Intervention)
        .where(
            Intervention.user_id == user_id,
            Intervention.status.in_([InterventionStatus.responded, InterventionStatus.expired]),
        )
        .order_by(Intervention.dispatched_at.desc())
        .limit(limit)
    )
    if intervention_type is not None:
        stmt = stmt.where(Intervention.intervention_type == intervention_type)
    result = await db.execute(stmt)
    return list(result.scalars().all())


# --- Controller ---

class InterventionController:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        notifier: NotificationBackend | None = None,
        composer: MessageComposer | None = None,
        config: ControllerConfig | None = None,
        clock: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
    ):
        self._session_factory = session_factory
        self.notifier = notifier or build_notifier()
        self.composer = composer or MessageComposer()
        self.config = config or ControllerConfig.from_settings()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._rng = rng or random.Random()
        # Entries vanish once no cycle holds or awaits the lock.
        self._locks: weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, user_id: uuid.UUID) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    def is_in_flight(self, user_id: uuid.UUID) -> bool:
        lock = self._locks.get(user_id)
        return lock is not None and lock.locked()

    @property
    def in_flight_count(self) -> int:
        return sum(1 for lock in self._locks.values() if lock.locked())

    # --- Evaluation ---

    async def evaluate(
        self,
        user_id: uuid.UUID,
        *,
        trigger: str = "manual",
        now: datetime | None = None,
    ) -> EvaluationResult:
        """Run one evaluation cycle for a user. Never raises."""
        lock = self._lock_for(user_id)
        if lock.locked():
            logger.info(
                "cycle skipped user=%s trigger=%s reason=in_flight",
                telemetry_service.hash_user_id(user_id),
                trigger,
            )
            return EvaluationResult(
                user_id=user_id,
                trigger=trigger,
                outcome=Outcome.skipped_in_flight,
                reason="in_flight",
            )

        async with lock:
            now = now or self._clock()
            try:
                async with self._session_factory() as db:
                    try:
                        result, pending = await self._run_cycle(db, user_id, trigger, now)
                        await db.commit()
                    except Exception:
                        await db.rollback()
                        raise
                    if pending is not None:
                        result = await self._deliver(db, result, pending, now)
            except Exception as exc:
                logger.exception(
                    "cycle failed user=%s trigger=%s",
                    telemetry_service.hash_user_id(user_id),
                    trigger,
                )
                await self.record_failure(user_id, "controller.failed", trigger=trigger, error=exc)
                return EvaluationResult(
                    user_id=user_id,
                    trigger=trigger,
                    outcome=Outcome.failed,
                    reason=type(exc).__name__,
                )

        logger.info(
            "cycle done user=%s trigger=%s outcome=%s reason=%s drift=%.1f",
            telemetry_service.hash_user_id(user_id),
            trigger,
            result.outcome.value,
            result.reason or "-",
            result.drift,
        )
        return result

    async def evaluate_all(self, *, trigger: str = "background") -> list[EvaluationResult]:
        """Evaluate every user with portfolio goals, one after another."""
        async with self._session_factory() as db:
            result = await db.execute(select(PortfolioGoals.user_id).order_by(PortfolioGoals.created_at))
            user_ids = list(result.scalars().all())

        results = []
        for user_id in user_ids:
            results.append(await self.evaluate(user_id, trigger=trigger))
        return results

    async def _run_cycle(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        trigger: str,
        now: datetime,
    ) -> tuple[EvaluationResult, Notification | None]:
        """Decide and persist. Returns the notification still to be sent, if any."""
        cfg = self.config
        state = await self._load_state(db, user_id)

        await self._expire_overdue(db, user_id, now)
        await self._refresh_learning(db, user_id, state)
        state.weekly_intervention_count = await count_interventions_since(db, user_id, now - timedelta(days=7))

        goals = await profile_service.get_goals(db, user_id)
        holdings = await profile_service.list_holdings(db, user_id)
        target = goals.target_allocation if goals else {}
        drift = compute_drift(
            current_allocation((h.asset_class.value, h.current_value) for h in holdings),
            {k: Decimal(str(v)) for k, v in target.items()},
        )
        drift_value = float(drift.max_drift)

        def gated(reason: str) -> tuple[EvaluationResult, None]:
            result = EvaluationResult(
                user_id=user_id,
                trigger=trigger,
                outcome=Outcome.gated,
                reason=reason,
                drift=drift_value,
            )
            return result, None

        if not holdings:
            return gated("no_holdings")
        drifted = drift.exceeds(cfg.drift_threshold)
        if cfg.require_drift_gate and not drifted:
            return gated("below_threshold")
        cooldown_until = ensure_tz(state.cooldown_until)
        if cooldown_until is not None and now < cooldown_until:
            return gated("cooldown")
        if state.weekly_intervention_count >= cfg.max_weekly_interventions:
            return gated("weekly_cap")

        candidates = self._collect_candidates(state, goals, holdings, drift, drifted, now)
        if not candidates:
            return gated("no_trigger")

        effective = set(state.effective_intervention_types or [])
        if state.user_response_rate < cfg.low_response_rate:
            candidates = [c for c in candidates if c.intervention_type.value in effective]
            if not candidates:
                return gated("low_response")

        choice, explored = self._select(candidates, effective)
        composed = await self.composer.compose(choice.intervention_type, choice.context)

        intervention = Intervention(
            user_id=user_id,
            intervention_type=choice.intervention_type,
            status=InterventionStatus.created,
            title=composed.title,
            message=composed.message,
            phrasing_source=composed.source,
            trigger={
                "source": trigger,
                "drift": drift_value,
                "details": drift.details(cfg.drift_threshold),
                "candidates": [c.intervention_type.value for c in candidates],
                "explored": explored,
                **{k: _json_safe(v) for k, v in choice.context.items() if k not in ("drift", "details")},
            },
            created_at=now,
        )
        db.add(intervention)

        state.last_intervention_at = now
        state.cooldown_until = now + cfg.cooldown
        state.weekly_intervention_count += 1
        if choice.intervention_type == InterventionType.goal_check:
            state.last_check_at = now
        if choice.intervention_type == InterventionType.milestone:
            state.celebrated_milestones = sorted({*state.celebrated_milestones, *choice.context["passed"]})

        await db.flush()

        result = EvaluationResult(
            user_id=user_id,
            trigger=trigger,
            outcome=Outcome.dispatched,
            drift=drift_value,
            intervention_id=intervention.id,
            intervention_type=choice.intervention_type,
            candidates=[c.intervention_type.value for c in candidates],
            explored=explored,
        )
        notification = Notification(
            user_id=user_id,
            intervention_id=intervention.id,
            intervention_type=choice.intervention_type.value,
            title=composed.title,
            message=composed.message,
        )
        return result, notification

    async def _deliver(
        self,
        db: AsyncSession,
        result: EvaluationResult,
        notification: Notification,
        now: datetime,
    ) -> EvaluationResult:
        """Send a committed intervention and record how delivery went.

        The cooldown and weekly count were committed before sending, so a
        failed delivery only marks the intervention undelivered.
        """
        intervention = await db.get(Intervention, notification.intervention_id)
        delivery_error = None
        try:
            await self.notifier.send(notification)
        except Exception as exc:
            delivery_error = exc
            logger.warning(
                "delivery failed user=%s intervention=%s",
                telemetry_service.hash_user_id(result.user_id),
                intervention.id,
                exc_info=True,
            )

        try:
            if delivery_error is None:
                intervention.status = InterventionStatus.dispatched
                intervention.dispatched_at = now
                intervention.expires_at = now + self.config.response_window
                event_type = "intervention.dispatched"
                detail = {
                    "type": result.intervention_type.value,
                    "trigger": result.trigger,
                    "drift": result.drift,
                    "phrasing": intervention.phrasing_source.value,
                    "explored": result.explored,
                }
            else:
                intervention.status = InterventionStatus.undelivered
                event_type = "notifier.failed"
                detail = {
                    "type": result.intervention_type.value,
                    "trigger": result.trigger,
                    "error": f"{type(delivery_error).__name__}: {delivery_error}"[:500],
                }
            await telemetry_service.record_event(
                db,
                user_id=result.user_id,
                event_type=event_type,
                entity_type="Intervention",
                entity_id=intervention.id,
                detail=detail,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if delivery_error is not None:
            return replace(result, outcome=Outcome.failed, reason=type(delivery_error).__name__)
        return result

    async def _load_state(self, db: AsyncSession, user_id: uuid.UUID) -> AgentState:
        state = await get_agent_state(db, user_id)
        if state is None:
            state = AgentState(
                user_id=user_id,
                weekly_intervention_count=0,
                user_response_rate=DEFAULT_RESPONSE_RATE,
                effectiveness={},
                effective_intervention_types=list(self.config.default_effective_types),
                celebrated_milestones=[],
            )
            db.add(state)
            await db.flush()
        return state

    def _collect_candidates(
        self,
        state: AgentState,
        goals: PortfolioGoals | None,
        holdings: list[Holding],
        drift,
        drifted: bool,
        now: datetime,
    ) -> list[Candidate]:
        cfg = self.config
        found: dict[InterventionType, dict] = {}
        value = profile_service.portfolio_value(holdings)

        if drifted:
            context = {"drift": float(drift.max_drift), "details": drift.details(cfg.drift_threshold)}
            if drift.max_drift >= cfg.drift_threshold * cfg.rebalance_multiplier:
                found[InterventionType.rebalance_suggestion] = context
            else:
                found[InterventionType.drift_alert] = context

        if goals is not None:
            target_date = ensure_tz(goals.target_date)
            last_check = ensure_tz(state.last_check_at)
            days_to_target = None
            if target_date is not None and now <= target_date <= now + cfg.goal_date_horizon:
                days_to_target = (target_date - now).days
            if days_to_target is not None or last_check is None or now - last_check >= cfg.goal_check_interval:
                found[InterventionType.goal_check] = {
                    "portfolio_value": float(value),
                    "days_to_target": days_to_target,
                }

            monthly = goals.monthly_contribution_target or Decimal("0")
            last_contribution = ensure_tz(goals.last_contribution_at)
            missed = last_contribution is not None and now - last_contribution >= cfg.missed_contribution
            due_today = goals.contribution_weekday is not None and now.weekday() == goals.contribution_weekday
            if monthly > 0 and (missed or due_today):
                found[InterventionType.contribution_reminder] = {
                    "monthly_target": float(monthly),
                    "missed": missed,
                }

        passed = self._uncelebrated_milestones(state, goals, value)
        if passed:
            found[InterventionType.milestone] = {
                "milestone": float(passed[0]),
                "portfolio_value": float(value),
                "passed": [float(m) for m in passed],
            }

        return [Candidate(t, found[t]) for t in TYPE_PRIORITY if t in found]

    @staticmethod
    def _uncelebrated_milestones(state: AgentState, goals: PortfolioGoals | None, value: Decimal) -> list[Decimal]:
        """Crossed milestones not yet celebrated, highest first.

        Only the highest is announced; the rest are marked celebrated with it.
        """
        levels = set(MILESTONES)
        if goals is not None and goals.target_value:
            levels.add(Decimal(goals.target_value))
        celebrated = {Decimal(str(m)) for m in state.celebrated_milestones or []}
        return sorted((m for m in levels if value >= m and m not in celebrated), reverse=True)

    def _select(self, candidates: list[Candidate], effective: set[str]) -> tuple[Candidate, bool]:
        """Epsilon-greedy: explore uniformly at `exploration_rate`, else exploit."""
        if len(candidates) > 1 and self._rng.random() < self.config.exploration_rate:
            return self._rng.choice(candidates), True
        preferred = [c for c in candidates if c.intervention_type.value in effective]
        return (preferred or candidates)[0], False

    # --- Learning ---

    async def _expire_overdue(self, db: AsyncSession, user_id: uuid.UUID, now: datetime) -> int:
        result = await db.execute(
            select(Intervention).where(
                Intervention.user_id == user_id,
                Intervention.status == InterventionStatus.dispatched,
            )
        )
        expired = 0
        for intervention in result.scalars().all():
            expires_at = ensure_tz(intervention.expires_at)
            if expires_at is not None and now >= expires_at:
                intervention.status = InterventionStatus.expired
                expired += 1
                await telemetry_service.record_event(
                    db,
                    user_id=user_id,
                    event_type="intervention.expired",
                    entity_type="Intervention",
                    entity_id=intervention.id,
                    detail={"type": intervention.intervention_type.value},
                )
        if expired:
            await db.flush()
        return expired

    async def _refresh_learning(self, db: AsyncSession, user_id: uuid.UUID, state: AgentState) -> None:
        """Recompute response rate and per-type effectiveness from history."""
        cfg = self.config
        recent = await _recent_resolved(db, user_id, cfg.response_rate_window)
        if recent:
            state.user_response_rate = round(sum(1 for i in recent if i.responded) / len(recent), 4)
        else:
            state.user_response_rate = DEFAULT_RESPONSE_RATE

        effectiveness: dict[str, float] = {}
        for intervention_type in InterventionType:
            history = await _recent_resolved(db, user_id, cfg.response_rate_window, intervention_type)
            if history:
                effectiveness[intervention_type.value] = round(
                    sum(1 for i in history if i.responded) / len(history), 4
                )

        defaults = set(cfg.default_effective_types)
        state.effectiveness = effectiveness
        state.effective_intervention_types = [
            t.value
            for t in InterventionType
            if (t.value in effectiveness and effectiveness[t.value] >= cfg.effectiveness_threshold)
            or (t.value not in effectiveness and t.value in defaults)
        ]

    # --- Responses ---

    async def record_response(
        self,
        user_id: uuid.UUID,
        intervention_id: uuid.UUID,
        *,
        channel: str = "notification_tap",
        action_taken: str | None = None,
        now: datetime | None = None,
    ) -> tuple[Intervention, bool] | None:
        """Mark an intervention responded and update learning state.

        Returns (intervention, changed), or None if the intervention does not
        exist for this user. Responding to an expired or already-responded
        intervention changes nothing. Raises on storage failure.
        """
        async with self._lock_for(user_id):
            now = now or self._clock()
            async with self._session_factory() as db:
                try:
                    intervention = await get_intervention(db, intervention_id=intervention_id, user_id=user_id)
                    if intervention is None:
                        return None

                    changed = False
                    state = await self._load_state(db, user_id)
                    await self._expire_overdue(db, user_id, now)
                    if intervention.status == InterventionStatus.dispatched:
                        intervention.status = InterventionStatus.responded
                        intervention.responded = True
                        intervention.responded_at = now
                        intervention.response_channel = channel
                        intervention.action_taken = action_taken
                        await db.flush()
                        await self._refresh_learning(db, user_id, state)
                        await telemetry_service.record_event(
                            db,
                            user_id=user_id,
                            event_type="intervention.responded",
                            entity_type="Intervention",
                            entity_id=intervention.id,
                            detail={
                                "type": intervention.intervention_type.value,
                                "channel": channel,
                                "response_rate": state.user_response_rate,
                            },
                        )
                        changed = True
                    else:
                        logger.info(
                            "response ignored intervention=%s status=%s",
                            intervention.id,
                            intervention.status.value,
                        )
                    await db.commit()
                except Exception:
                    await db.rollback()
                    raise
        return intervention, changed

    async def record_failure(self, user_id: uuid.UUID | None, event_type: str, **detail) -> None:
        error = detail.pop("error", None)
        if error is not None:
            detail["error"] = f"{type(error).__name__}: {error}"[:500]
        try:
            async with self._session_factory() as db:
                await telemetry_service.record_event(
                    db,
                    user_id=user_id,
                    event_type=event_type,
                    detail=detail,
                )
                await db.commit()
        except Exception:
            logger.exception("could not record failure event=%s", event_type)


def _json_safe(value):
    if isinstance(value, Decimal):
        return float(value)
    return value


def build_controller(session_factory: async_sessionmaker[AsyncSession]) -> InterventionController:
    return InterventionController(
        session_factory,
        notifier=build_notifier(),
        composer=build_composer(),
        config=ControllerConfig.from_settings(),
    )
