"""Value types shared by the analysis agents.

Every agent is a pure function of these types. Money is carried as Decimal,
rounded to cents at the boundary of each computation; percentages are Decimal
percent points (12.5 means 12.5%).
"""

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

ZERO = Decimal("0")
CENTS = Decimal("0.01")
TENTHS = Decimal("0.1")
# Largest value a Numeric(14, 2) column holds.
MAX_AMOUNT = Decimal("999999999999.99")


def to_amount(value) -> Decimal:
    """Coerce a raw numeric field to a non-negative Decimal.

    None, booleans, unparseable strings, NaN/Infinity and negatives all
    degrade to 0 so that partially completed onboarding data never fails.
    Amounts are rounded to cents and capped at MAX_AMOUNT, which keeps every
    later quantize within the default decimal precision.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        return ZERO
    if not amount.is_finite() or amount < 0:
        return ZERO
    return min(amount, MAX_AMOUNT).quantize(CENTS, rounding=ROUND_HALF_UP)


def to_allocation(value) -> dict[str, Decimal]:
    """Coerce an {asset_class: percent} mapping, dropping unusable entries."""
    if not isinstance(value, Mapping):
        return {}
    allocation: dict[str, Decimal] = {}
    for key, pct in value.items():
        if not isinstance(key, str) or not key:
            continue
        amount = to_amount(pct)
        if amount > 0:
            allocation[key] = amount
    return allocation


def money(value: Decimal) -> Decimal:
    return value.quantize(CENTS)


class HealthLabel(str, enum.Enum):
    excellent = "Excellent"
    strong = "Strong"
    stable = "Stable"
    needs_attention = "NeedsAttention"
    critical = "Critical"


class Sentiment(str, enum.Enum):
    cautious = "cautious"
    neutral = "neutral"
    optimistic = "optimistic"


class VolatilityLevel(str, enum.Enum):
    low = "low"
    moderate = "moderate"
    high = "high"


class RiskLevel(str, enum.Enum):
    conservative = "conservative"
    balanced = "balanced"
    aggressive = "aggressive"


class ActionPriority(str, enum.Enum):
    high = "high"
    medium = "medium"
    low = "low"


class ActionCategory(str, enum.Enum):
    buffer = "buffer"
    debt = "debt"
    save = "save"
    diversify = "diversify"
    learn = "learn"


NUMERIC_FIELDS = (
    "monthly_income",
    "housing_cost",
    "transport_cost",
    "essentials_cost",
    "debt_payments",
    "total_debt",
    "high_interest_debt",
    "savings",
    "emergency_fund_goal",
    "monthly_contribution_target",
)

# Fields a user is expected to fill in during onboarding; drives confidence.
CORE_FIELDS = (
    "monthly_income",
    "housing_cost",
    "transport_cost",
    "essentials_cost",
    "savings",
    "emergency_fund_goal",
)


@dataclass(frozen=True)
class FinancialInputs:
    monthly_income: Decimal = ZERO
    housing_cost: Decimal = ZERO
    transport_cost: Decimal = ZERO
    essentials_cost: Decimal = ZERO
    debt_payments: Decimal = ZERO
    total_debt: Decimal = ZERO
    high_interest_debt: Decimal = ZERO
    savings: Decimal = ZERO
    emergency_fund_goal: Decimal = ZERO
    monthly_contribution_target: Decimal = ZERO
    target_allocation: dict[str, Decimal] = field(default_factory=dict)
    current_allocation: dict[str, Decimal] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping | None) -> "FinancialInputs":
        data = data or {}
        kwargs = {name: to_amount(data.get(name)) for name in NUMERIC_FIELDS}
        return cls(
            **kwargs,
            target_allocation=to_allocation(data.get("target_allocation")),
            current_allocation=to_allocation(data.get("current_allocation")),
        )

    @property
    def essential_monthly_spend(self) -> Decimal:
        return self.housing_cost + self.transport_cost + self.essentials_cost + self.debt_payments

    @property
    def completeness(self) -> Decimal:
        """Fraction of core onboarding fields that carry a value."""
        provided = sum(1 for name in CORE_FIELDS if getattr(self, name) > 0)
        return Decimal(provided) / Decimal(len(CORE_FIELDS))


@dataclass(frozen=True)
class FinancialSnapshot:
    health_score: int
    health_label: HealthLabel
    disposable_income: Decimal
    savings_rate: Decimal
    months_of_runway: Decimal
    debt_to_income_ratio: Decimal
    emergency_progress: Decimal
    generated_at: datetime

    @classmethod
    def empty(cls, generated_at: datetime) -> "FinancialSnapshot":
        """Zero-valued snapshot used when the reality agent could not run."""
        return cls(
            health_score=0,
            health_label=HealthLabel.critical,
            disposable_income=money(ZERO),
            savings_rate=ZERO,
            months_of_runway=ZERO,
            debt_to_income_ratio=ZERO,
            emergency_progress=ZERO,
            generated_at=generated_at,
        )


@dataclass(frozen=True)
class AgentInsight:
    agent_name: str
    agent_type: str
    timestamp: datetime
    title: str
    message: str
    reasoning: str
    confidence: float
    action_taken: str | None = None
    degraded: bool = False


@dataclass(frozen=True)
class RealityOutput:
    snapshot: FinancialSnapshot
    summary: str
    reasoning: str
    confidence: float
    timestamp: datetime
    reasoning_log: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class MarketIndicator:
    name: str
    description: str
    trend: str


@dataclass(frozen=True)
class MarketContextOutput:
    sentiment: Sentiment
    volatility: VolatilityLevel
    indicators: list[MarketIndicator]
    summary: str
    educational_note: str
    reasoning: str
    assumptions: list[str]
    what_would_change: list[str]
    confidence: float
    timestamp: datetime


@dataclass(frozen=True)
class Projection:
    horizon_months: int
    value: Decimal


@dataclass(frozen=True)
class Scenario:
    id: str
    risk: RiskLevel
    name: str
    description: str
    monthly_contribution: Decimal
    annual_return: Decimal
    projections: list[Projection]
    tradeoff: str
    months_to_goal: int | None = None

    def value_at(self, horizon_months: int) -> Decimal:
        for projection in self.projections:
            if projection.horizon_months == horizon_months:
                return projection.value
        raise KeyError(horizon_months)


@dataclass(frozen=True)
class WeeklyAction:
    id: str
    title: str
    description: str
    priority: ActionPriority
    category: ActionCategory
    reasoning: str
    completed: bool = False
