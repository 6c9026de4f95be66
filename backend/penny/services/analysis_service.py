"""Analysis service: run the agent pipeline for a user and store the result.

Implements:
1. run_analysis: assemble inputs → AgentPipeline → AnalysisSnapshot row
2. get_latest_analysis / get_analysis_history
3. complete_action: flip the completion flag on a weekly action

The pipeline itself is pure; this module owns the persistence boundary.
Agent outputs are stored as JSON (Decimals as strings, enums as values).
"""

import dataclasses
import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from penny.agents import (
    AdaptationAgent,
    AgentPipeline,
    MarketContextAgent,
    PipelineResult,
    StaticVolatilityProvider,
)
from penny.config import settings
from penny.models.analysis import AnalysisSnapshot
from penny.models.base import ensure_tz
from penny.services import profile_service, telemetry_service


def build_pipeline() -> AgentPipeline:
    """Pipeline wired from settings."""
    return AgentPipeline(
        market=MarketContextAgent(
            volatility_provider=StaticVolatilityProvider(settings.market_volatility_level),
        ),
        adaptation_agent=AdaptationAgent(
            max_actions=settings.weekly_action_cap,
            drift_threshold=settings.drift_threshold_pct,
        ),
    )


_pipeline: AgentPipeline | None = None


def get_pipeline() -> AgentPipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = build_pipeline()
    return _pipeline


def set_pipeline(pipeline: AgentPipeline | None) -> None:
    """Override the pipeline (for testing)."""
    global _pipeline
    _pipeline = pipeline


def to_json(value):
    """Convert agent dataclasses into JSON-safe structures."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_json(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(v) for v in value]
    return value


def _same_week(a: datetime, b: datetime) -> bool:
    return a.astimezone(timezone.utc).isocalendar()[:2] == b.astimezone(timezone.utc).isocalendar()[:2]


async def run_analysis(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    now: datetime | None = None,
    pipeline: AgentPipeline | None = None,
) -> AnalysisSnapshot:
    """Run the pipeline on the user's current inputs and store the snapshot.

    Weekly actions keep their completion flag across runs in the same ISO
    week when the same action id is generated again; a new week starts
    every action fresh.
    """
    pipeline = pipeline or get_pipeline()
    inputs = await profile_service.load_inputs(db, user_id)
    result: PipelineResult = pipeline.run(inputs, now=now)

    previous = await get_latest_analysis(db, user_id)
    completed_ids = set()
    if previous is not None and _same_week(ensure_tz(previous.generated_at), result.generated_at):
        completed_ids = {a["id"] for a in previous.weekly_actions if a.get("completed")}

    weekly_actions = to_json(result.weekly_actions)
    for action in weekly_actions:
        if action["id"] in completed_ids:
            action["completed"] = True

    snap = result.snapshot
    record = AnalysisSnapshot(
        user_id=user_id,
        health_score=snap.health_score,
        health_label=snap.health_label.value,
        disposable_income=snap.disposable_income,
        savings_rate=snap.savings_rate,
        months_of_runway=snap.months_of_runway,
        debt_to_income_ratio=snap.debt_to_income_ratio,
        emergency_progress=snap.emergency_progress,
        scenarios=to_json(result.scenarios),
        weekly_actions=weekly_actions,
        insights=to_json(result.insights),
        market_context=to_json(result.market_context),
        failed_agents=list(result.failed_agents),
        inputs=to_json(inputs),
        generated_at=result.generated_at,
    )
    db.add(record)
    await db.flush()

    await telemetry_service.record_event(
        db,
        user_id=user_id,
        event_type="analysis.completed",
        entity_type="AnalysisSnapshot",
        entity_id=record.id,
        detail={
            "health_score": snap.health_score,
            "health_label": snap.health_label.value,
            "actions": len(weekly_actions),
            "failed_agents": list(result.failed_agents),
        },
    )
    for agent_type in result.failed_agents:
        await telemetry_service.record_event(
            db,
            user_id=user_id,
            event_type="agent.failed",
            entity_type="AnalysisSnapshot",
            entity_id=record.id,
            detail={"agent": agent_type},
        )

    return record


async def get_latest_analysis(
    db: AsyncSession,
    user_id: uuid.UUID,
) -> AnalysisSnapshot | None:
    result = await db.execute(
        select(AnalysisSnapshot)
        .where(AnalysisSnapshot.user_id == user_id)
        .order_by(AnalysisSnapshot.generated_at.desc(), AnalysisSnapshot.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_analysis_history(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    limit: int = 10,
) -> list[AnalysisSnapshot]:
    result = await db.execute(
        select(AnalysisSnapshot)
        .where(AnalysisSnapshot.user_id == user_id)
        .order_by(AnalysisSnapshot.generated_at.desc(), AnalysisSnapshot.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def complete_action(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    action_id: str,
) -> AnalysisSnapshot | None:
    """Mark a weekly action on the latest snapshot as completed.

    Returns None if there is no snapshot or the action id is unknown.
    """
    record = await get_latest_analysis(db, user_id)
    if record is None:
        return None

    actions = [dict(a) for a in record.weekly_actions]
    match = next((a for a in actions if a["id"] == action_id), None)
    if match is None:
        return None

    match["completed"] = True
    # Reassign so the JSON column is flagged dirty.
    record.weekly_actions = actions
    await db.flush()

    await telemetry_service.record_event(
        db,
        user_id=user_id,
        event_type="action.completed",
        entity_type="AnalysisSnapshot",
        entity_id=record.id,
        detail={"action_id": action_id},
    )
    return record
