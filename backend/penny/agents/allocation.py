"""Allocation helpers: holdings → current allocation, and drift vs. target."""

from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal

from penny.agents.types import ZERO, to_amount

ASSET_CLASSES = ("equity", "debt", "commodity", "real_asset", "cash")

PCT = Decimal("0.01")


@dataclass(frozen=True)
class AssetDrift:
    asset_class: str
    current: Decimal
    target: Decimal

    @property
    def drift(self) -> Decimal:
        return abs(self.current - self.target)

    @property
    def direction(self) -> str:
        return "overweight" if self.current > self.target else "underweight"

    def describe(self) -> str:
        label = self.asset_class.replace("_", " ")
        return f"{label} is {self.direction} by {self.drift:.1f}%"


@dataclass(frozen=True)
class DriftReport:
    max_drift: Decimal = ZERO
    assets: list[AssetDrift] = field(default_factory=list)

    def exceeds(self, threshold) -> bool:
        return self.max_drift > Decimal(str(threshold))

    def details(self, threshold=0) -> list[str]:
        limit = Decimal(str(threshold))
        return [a.describe() for a in self.assets if a.drift > limit]


def current_allocation(holdings: Iterable[tuple[str, object]]) -> dict[str, Decimal]:
    """Percent of total value per asset class, from (asset_class, value) pairs.

    Returns {} when the portfolio has no value.
    """
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for asset_class, value in holdings:
        totals[asset_class] += to_amount(value)

    grand_total = sum(totals.values(), ZERO)
    if grand_total <= 0:
        return {}
    return {
        asset_class: (amount / grand_total * 100).quantize(PCT)
        for asset_class, amount in sorted(totals.items())
        if amount > 0
    }


def compute_drift(
    current: Mapping[str, Decimal],
    target: Mapping[str, Decimal],
) -> DriftReport:
    """Max absolute percentage-point gap between current and target.

    Without a target or without holdings there is nothing to drift from,
    so the report is empty (drift 0).
    """
    if not current or not target:
        return DriftReport()

    assets = [
        AssetDrift(
            asset_class=asset_class,
            current=current.get(asset_class, ZERO),
            target=target.get(asset_class, ZERO),
        )
        for asset_class in sorted(set(current) | set(target))
    ]
    assets.sort(key=lambda a: a.drift, reverse=True)
    return DriftReport(max_drift=assets[0].drift, assets=assets)


def largest_share(current: Mapping[str, Decimal]) -> tuple[str | None, Decimal]:
    """The most concentrated asset class and its share."""
    if not current:
        return None, ZERO
    asset_class = max(current, key=lambda k: current[k])
    return asset_class, current[asset_class]
