"""Scenario & Learning agent: three labeled what-if savings projections.

Each scenario commits a share of disposable income (capped) and grows it at
an assumed annual return with monthly compounding:

    FV = P * (1 + r)^n + C * ((1 + r)^n - 1) / r      (r = annual / 12)

Both the contribution and the return rise from conservative to aggressive, so
for any horizon the projected values are ordered
aggressive >= balanced >= conservative.
"""

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from penny.agents.types import (
    ZERO,
    AgentInsight,
    FinancialInputs,
    FinancialSnapshot,
    Projection,
    RiskLevel,
    Scenario,
    money,
)

logger = logging.getLogger("penny.agents")

AGENT_NAME = "Scenario & Learning"
AGENT_TYPE = "scenario-learning"

HORIZONS_MONTHS = (12, 36, 60)


@dataclass(frozen=True)
class RiskProfile:
    risk: RiskLevel
    name: str
    description: str
    contribution_share: Decimal
    contribution_cap: Decimal
    annual_return: Decimal


RISK_PROFILES = (
    RiskProfile(
        RiskLevel.conservative,
        "Steady & Safe",
        "A comfortable pace that leaves room for life's surprises.",
        Decimal("0.30"),
        Decimal("400"),
        Decimal("0.03"),
    ),
    RiskProfile(
        RiskLevel.balanced,
        "Balanced Growth",
        "A middle path that accelerates progress without major sacrifice.",
        Decimal("0.50"),
        Decimal("600"),
        Decimal("0.05"),
    ),
    RiskProfile(
        RiskLevel.aggressive,
        "Accelerated",
        "Maximum focus on building your safety net quickly.",
        Decimal("0.75"),
        Decimal("900"),
        Decimal("0.07"),
    ),
)

PROFILE_BY_RISK = {p.risk: p for p in RISK_PROFILES}


def future_value(
    principal: Decimal,
    monthly_contribution: Decimal,
    annual_return: Decimal,
    months: int,
) -> Decimal:
    """Future value of a lump sum plus monthly contributions."""
    if months <= 0:
        return money(principal)
    rate = annual_return / 12
    if rate == 0:
        return money(principal + monthly_contribution * months)
    growth = (1 + rate) ** months
    return money(principal * growth + monthly_contribution * (growth - 1) / rate)


def months_to_goal(gap: Decimal, monthly_contribution: Decimal) -> int | None:
    """Whole months of contributions to close the gap; 0 if already closed."""
    if gap <= 0:
        return 0
    if monthly_contribution <= 0:
        return None
    return math.ceil(gap / monthly_contribution)


class ScenarioLearningAgent:
    def __init__(self, clock: Callable[[], datetime] | None = None):
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def generate(self, inputs: FinancialInputs, snapshot: FinancialSnapshot) -> list[Scenario]:
        available = max(snapshot.disposable_income, ZERO)
        gap = inputs.emergency_fund_goal - inputs.savings
        logger.debug("agent=%s available=%s gap=%s", AGENT_TYPE, available, gap)

        scenarios = []
        for profile in RISK_PROFILES:
            contribution = money(min(available * profile.contribution_share, profile.contribution_cap))
            projections = [
                Projection(horizon, future_value(inputs.savings, contribution, profile.annual_return, horizon))
                for horizon in HORIZONS_MONTHS
            ]
            eta = months_to_goal(gap, contribution)
            scenarios.append(
                Scenario(
                    id=profile.risk.value,
                    risk=profile.risk,
                    name=profile.name,
                    description=profile.description,
                    monthly_contribution=contribution,
                    annual_return=profile.annual_return,
                    projections=projections,
                    tradeoff=self._tradeoff(profile, contribution, available, eta),
                    months_to_goal=eta,
                )
            )
        return scenarios

    @staticmethod
    def _tradeoff(
        profile: RiskProfile,
        contribution: Decimal,
        available: Decimal,
        eta: int | None,
    ) -> str:
        if contribution <= 0:
            return (
                "There is no disposable income to commit right now, so this path only "
                "shows how your current savings would grow on their own."
            )
        share = contribution / available * 100 if available > 0 else ZERO
        if eta == 0:
            timeline = "Your emergency fund goal is already covered"
        else:
            timeline = f"You'd reach your emergency fund goal in about {eta} months"
        rate = profile.annual_return * 100
        if profile.risk == RiskLevel.conservative:
            tail = "while keeping flexibility for surprises."
        elif profile.risk == RiskLevel.balanced:
            tail = "You'll feel the commitment but shouldn't feel squeezed."
        else:
            tail = (
                "This leaves little room for unexpected expenses, and the higher assumed "
                "return comes with larger swings."
            )
        return (
            f"Contributing ${contribution:.0f}/month uses about {share:.0f}% of your disposable "
            f"income at an assumed {rate:.0f}% annual return. {timeline} {tail}"
        )

    @staticmethod
    def compare(scenarios: list[Scenario], horizon_months: int = HORIZONS_MONTHS[-1]) -> str:
        if not scenarios:
            return "No scenarios to compare."
        best = max(scenarios, key=lambda s: s.value_at(horizon_months))
        gentlest = min(scenarios, key=lambda s: s.monthly_contribution)
        return (
            f"The \"{best.name}\" path projects the highest outcome at "
            f"${best.value_at(horizon_months):,.0f} after {horizon_months} months, while "
            f"\"{gentlest.name}\" is the most sustainable at ${gentlest.monthly_contribution:.0f}/month."
        )

    def insight(
        self,
        inputs: FinancialInputs,
        scenarios: list[Scenario],
        *,
        now: datetime | None = None,
    ) -> AgentInsight:
        now = now or self._clock()
        baseline = scenarios[0] if scenarios else None
        if baseline is None or baseline.months_to_goal is None:
            message = "Add some disposable income to see how quickly you could reach your emergency fund goal."
        elif baseline.months_to_goal == 0:
            message = "Your emergency fund goal is already covered. Projections show how your savings could grow."
        else:
            message = (
                f"At a steady pace, you'll reach your emergency fund goal in approximately "
                f"{baseline.months_to_goal} months."
            )
        contribution = baseline.monthly_contribution if baseline else ZERO
        reasoning = (
            f"With ${contribution:.0f}/month toward savings and a "
            f"${inputs.emergency_fund_goal:,.0f} goal, simple arithmetic sets the baseline. "
            f"{self.compare(scenarios)}"
        )
        return AgentInsight(
            agent_name=AGENT_NAME,
            agent_type=AGENT_TYPE,
            timestamp=now,
            title="Projections Recalculated",
            message=message,
            reasoning=reasoning,
            confidence=round(0.6 + 0.3 * float(inputs.completeness), 2),
            action_taken=f"Generated {len(scenarios)} scenario comparisons for your review.",
        )
