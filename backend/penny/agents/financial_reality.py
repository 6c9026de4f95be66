"""Financial Reality agent: raw inputs → deterministic health snapshot.

Health score (0-100) is a weighted sum of three normalized sub-scores:
- savings-rate adequacy (35): savings rate / 20%, capped at 1
- runway adequacy (35): months of runway / 6, capped at 1
- debt-to-income inverse (30): 1 - DTI / 50%, floored at 0

Label cut points: >=85 Excellent, >=70 Strong, >=50 Stable,
>=30 NeedsAttention, otherwise Critical.

Total function: never raises for any FinancialInputs.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from penny.agents.types import (
    CENTS,
    TENTHS,
    ZERO,
    AgentInsight,
    FinancialInputs,
    FinancialSnapshot,
    HealthLabel,
    RealityOutput,
    money,
)

logger = logging.getLogger("penny.agents")

AGENT_NAME = "Financial Reality"
AGENT_TYPE = "financial-reality"

SAVINGS_WEIGHT = Decimal("35")
RUNWAY_WEIGHT = Decimal("35")
DEBT_WEIGHT = Decimal("30")

TARGET_SAVINGS_RATE = Decimal("20")
TARGET_RUNWAY_MONTHS = Decimal("6")
MAX_DEBT_TO_INCOME = Decimal("50")
BUFFER_MONTHS = Decimal("3")

LABEL_THRESHOLDS: list[tuple[int, HealthLabel]] = [
    (85, HealthLabel.excellent),
    (70, HealthLabel.strong),
    (50, HealthLabel.stable),
    (30, HealthLabel.needs_attention),
]

ONE = Decimal("1")


def health_label_for(score: int) -> HealthLabel:
    for threshold, label in LABEL_THRESHOLDS:
        if score >= threshold:
            return label
    return HealthLabel.critical


def _ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    if denominator <= 0:
        return ZERO
    return numerator / denominator


def compute_health_score(
    savings_rate: Decimal,
    months_of_runway: Decimal,
    debt_to_income: Decimal,
) -> int:
    savings_part = min(_ratio(savings_rate, TARGET_SAVINGS_RATE), ONE)
    runway_part = min(_ratio(months_of_runway, TARGET_RUNWAY_MONTHS), ONE)
    debt_part = ONE - min(_ratio(debt_to_income, MAX_DEBT_TO_INCOME), ONE)

    raw = SAVINGS_WEIGHT * savings_part + RUNWAY_WEIGHT * runway_part + DEBT_WEIGHT * debt_part
    score = int(raw.quantize(ONE, rounding=ROUND_HALF_UP))
    return max(0, min(100, score))


class FinancialRealityAgent:
    """Computes the financial health snapshot for one set of inputs."""

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def analyze(self, inputs: FinancialInputs, *, now: datetime | None = None) -> RealityOutput:
        now = now or self._clock()
        log: list[str] = []

        def note(message: str) -> None:
            log.append(f"[{now.isoformat()}] {message}")
            logger.debug("agent=%s %s", AGENT_TYPE, message)

        spend = inputs.essential_monthly_spend
        note(f"Essential monthly spend: ${spend:.2f}")

        disposable = inputs.monthly_income - spend
        note(f"Disposable income: ${disposable:.2f}")

        contribution = max(disposable, ZERO)
        savings_rate = _ratio(contribution * 100, inputs.monthly_income)
        note(f"Savings rate: {savings_rate:.1f}%")

        runway = _ratio(inputs.savings, spend)
        note(f"Emergency runway: {runway:.1f} months")

        debt_to_income = _ratio(inputs.total_debt * 100, inputs.monthly_income * 12)
        note(f"Debt-to-income ratio: {debt_to_income:.1f}%")

        emergency_progress = min(_ratio(inputs.savings * 100, inputs.emergency_fund_goal), Decimal("100"))
        note(f"Emergency fund progress: {emergency_progress:.1f}%")

        score = compute_health_score(savings_rate, runway, debt_to_income)
        label = health_label_for(score)
        note(f"Health score {score}/100 ({label.value})")

        snapshot = FinancialSnapshot(
            health_score=score,
            health_label=label,
            disposable_income=money(disposable),
            savings_rate=savings_rate.quantize(TENTHS, rounding=ROUND_HALF_UP),
            months_of_runway=runway.quantize(CENTS, rounding=ROUND_HALF_UP),
            debt_to_income_ratio=debt_to_income.quantize(TENTHS, rounding=ROUND_HALF_UP),
            emergency_progress=emergency_progress.quantize(TENTHS, rounding=ROUND_HALF_UP),
            generated_at=now,
        )

        opportunity = self._main_opportunity(snapshot)
        summary = (
            f"Your financial health score is {score}/100, categorized as "
            f"\"{label.value}\". Your biggest opportunity is {opportunity}."
        )
        buffer_progress = _ratio(runway * 100, BUFFER_MONTHS)
        reasoning = (
            f"I calculated your health score using: savings rate ({snapshot.savings_rate:.0f}%), "
            f"debt-to-income ratio ({snapshot.debt_to_income_ratio:.0f}%), and emergency runway "
            f"({buffer_progress:.0f}% of a 3-month buffer)."
        )

        return RealityOutput(
            snapshot=snapshot,
            summary=summary,
            reasoning=reasoning,
            confidence=self.confidence_for(inputs),
            timestamp=now,
            reasoning_log=log,
        )

    @staticmethod
    def confidence_for(inputs: FinancialInputs) -> float:
        """0.6 with nothing filled in, 0.95 with every core field present."""
        return round(0.6 + 0.35 * float(inputs.completeness), 2)

    @staticmethod
    def _main_opportunity(snapshot: FinancialSnapshot) -> str:
        if snapshot.months_of_runway < BUFFER_MONTHS:
            return "building your emergency buffer"
        if snapshot.debt_to_income_ratio > 20:
            return "reducing debt burden"
        if snapshot.savings_rate < 15:
            return "increasing your savings rate"
        return "maintaining your current progress"

    def insight(self, output: RealityOutput) -> AgentInsight:
        return AgentInsight(
            agent_name=AGENT_NAME,
            agent_type=AGENT_TYPE,
            timestamp=output.timestamp,
            title="Snapshot Updated",
            message=output.summary,
            reasoning=output.reasoning,
            confidence=output.confidence,
            action_taken="Updated dashboard metrics and recalculated weekly priorities.",
        )
