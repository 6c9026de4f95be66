"""Adaptation agent: prioritized weekly actions from a fixed rule set.

Rules are evaluated in order until the cap is reached:
1. Emergency-fund shortfall
2. High-interest debt present
3. Savings rate below target
4. Diversification gap (allocation drift or a single dominant asset class)
5. Generic check-in

Every action's reasoning names the number that triggered it.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from decimal import Decimal

from penny.agents.allocation import compute_drift, largest_share
from penny.agents.types import (
    ZERO,
    ActionCategory,
    ActionPriority,
    AgentInsight,
    FinancialInputs,
    FinancialSnapshot,
    WeeklyAction,
)

logger = logging.getLogger("penny.agents")

AGENT_NAME = "Adaptation"
AGENT_TYPE = "adaptation"

TARGET_SAVINGS_RATE = Decimal("20")
DEFAULT_BUFFER_MONTHS = Decimal("3")
CONCENTRATION_LIMIT = Decimal("70")
BUFFER_SHARE = Decimal("0.3")
WEEKS_PER_MONTH = Decimal("4")


class AdaptationAgent:
    def __init__(
        self,
        *,
        max_actions: int = 3,
        drift_threshold: Decimal | float = Decimal("10"),
        clock: Callable[[], datetime] | None = None,
    ):
        self.max_actions = max(1, max_actions)
        self.drift_threshold = Decimal(str(drift_threshold))
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def generate(self, inputs: FinancialInputs, snapshot: FinancialSnapshot) -> list[WeeklyAction]:
        rules = (
            self._emergency_fund,
            self._high_interest_debt,
            self._savings_rate,
            self._diversification,
        )
        actions: list[WeeklyAction] = []
        for rule in rules:
            if len(actions) >= self.max_actions:
                break
            action = rule(inputs, snapshot)
            if action is not None:
                logger.debug("agent=%s rule=%s matched", AGENT_TYPE, action.id)
                actions.append(action)

        if len(actions) < self.max_actions:
            actions.append(self._check_in(inputs, snapshot))
        return actions

    # --- Rules ---

    def _emergency_fund(self, inputs: FinancialInputs, snapshot: FinancialSnapshot) -> WeeklyAction | None:
        weekly_target = (max(snapshot.disposable_income, ZERO) * BUFFER_SHARE / WEEKS_PER_MONTH).quantize(Decimal("1"))

        if inputs.emergency_fund_goal > 0:
            if snapshot.emergency_progress >= 100:
                return None
            gap = inputs.emergency_fund_goal - inputs.savings
            return WeeklyAction(
                id="focus-buffer",
                title="Build Your Buffer",
                description=(
                    f"Set aside ${weekly_target} this week toward your emergency fund. "
                    f"You're {snapshot.emergency_progress:.0f}% of the way to your goal."
                ),
                priority=ActionPriority.high,
                category=ActionCategory.buffer,
                reasoning=(
                    f"Savings of ${inputs.savings:,.0f} cover {snapshot.emergency_progress:.0f}% of your "
                    f"${inputs.emergency_fund_goal:,.0f} emergency goal, a ${gap:,.0f} shortfall. "
                    "A safety net comes before any other financial move."
                ),
            )

        if inputs.essential_monthly_spend > 0 and snapshot.months_of_runway < DEFAULT_BUFFER_MONTHS:
            return WeeklyAction(
                id="focus-buffer",
                title="Build Your Buffer",
                description=(
                    f"Set aside ${weekly_target} this week. Aim for "
                    f"{DEFAULT_BUFFER_MONTHS} months of essential spending in savings."
                ),
                priority=ActionPriority.high,
                category=ActionCategory.buffer,
                reasoning=(
                    f"Your savings cover {snapshot.months_of_runway:.1f} months of essential spending "
                    f"(${inputs.essential_monthly_spend:,.0f}/month), below the "
                    f"{DEFAULT_BUFFER_MONTHS}-month minimum."
                ),
            )
        return None

    def _high_interest_debt(self, inputs: FinancialInputs, snapshot: FinancialSnapshot) -> WeeklyAction | None:
        if inputs.high_interest_debt <= 0:
            return None
        return WeeklyAction(
            id="focus-debt",
            title="Target High-Interest Debt",
            description="Put any extra payment this week toward your highest-rate balance.",
            priority=ActionPriority.high,
            category=ActionCategory.debt,
            reasoning=(
                f"You carry ${inputs.high_interest_debt:,.0f} of high-interest debt. Interest on it "
                "likely outpaces any return your savings could earn."
            ),
        )

    def _savings_rate(self, inputs: FinancialInputs, snapshot: FinancialSnapshot) -> WeeklyAction | None:
        if snapshot.savings_rate >= TARGET_SAVINGS_RATE:
            return None
        return WeeklyAction(
            id="focus-savings-rate",
            title="Review One Subscription",
            description="Look at one recurring charge and decide if it still serves you well.",
            priority=ActionPriority.medium,
            category=ActionCategory.save,
            reasoning=(
                f"Your savings rate is {snapshot.savings_rate:.1f}%, below the {TARGET_SAVINGS_RATE}% "
                "target. A single $15/month subscription equals $180/year."
            ),
        )

    def _diversification(self, inputs: FinancialInputs, snapshot: FinancialSnapshot) -> WeeklyAction | None:
        current = inputs.current_allocation
        if not current:
            return None

        drift = compute_drift(current, inputs.target_allocation)
        if drift.exceeds(self.drift_threshold):
            worst = drift.assets[0]
            return WeeklyAction(
                id="focus-diversify",
                title="Revisit Your Allocation",
                description="Compare your holdings with your target mix and note what has moved.",
                priority=ActionPriority.medium,
                category=ActionCategory.diversify,
                reasoning=(
                    f"Your allocation has drifted {drift.max_drift:.1f} percentage points from target "
                    f"({worst.describe()}), above the {self.drift_threshold:.0f}-point threshold."
                ),
            )

        asset_class, share = largest_share(current)
        if share >= CONCENTRATION_LIMIT:
            label = asset_class.replace("_", " ")
            return WeeklyAction(
                id="focus-diversify",
                title="Check Your Concentration",
                description=f"Read up on how spreading beyond {label} could smooth your portfolio's ride.",
                priority=ActionPriority.medium,
                category=ActionCategory.diversify,
                reasoning=(
                    f"{share:.0f}% of your portfolio sits in {label}, at or above the "
                    f"{CONCENTRATION_LIMIT}% concentration limit."
                ),
            )
        return None

    def _check_in(self, inputs: FinancialInputs, snapshot: FinancialSnapshot) -> WeeklyAction:
        return WeeklyAction(
            id="focus-check-in",
            title="Track Daily Spending",
            description=(
                "Note your non-essential purchases for 7 days. This builds awareness "
                "without requiring immediate changes."
            ),
            priority=ActionPriority.low,
            category=ActionCategory.learn,
            reasoning=(
                f"With a health score of {snapshot.health_score}/100 and "
                f"${snapshot.disposable_income:,.0f} of monthly disposable income, knowing where "
                "discretionary money goes is the next lever."
            ),
        )

    def insight(
        self,
        inputs: FinancialInputs,
        actions: list[WeeklyAction],
        *,
        now: datetime | None = None,
    ) -> AgentInsight:
        now = now or self._clock()
        completed = sum(1 for a in actions if a.completed)
        top = actions[0] if actions else None
        message = (
            f"This week's top focus: {top.title}. {len(actions)} priorities set."
            if top
            else "No priorities this week."
        )
        return AgentInsight(
            agent_name=AGENT_NAME,
            agent_type=AGENT_TYPE,
            timestamp=now,
            title="Weekly Plan Adjusted",
            message=message,
            reasoning=top.reasoning if top else "No rule matched.",
            confidence=round(0.6 + 0.3 * float(inputs.completeness), 2),
            action_taken=f"Updated weekly focus list ({completed} already completed).",
        )
