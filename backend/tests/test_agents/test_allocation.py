"""Allocation helpers: holdings → percentages, drift against target."""

from decimal import Decimal

from penny.agents.allocation import compute_drift, current_allocation, largest_share


def test_current_allocation_percentages():
    alloc = current_allocation([("equity", 7000), ("debt", 2000), ("equity", 1000), ("cash", "0")])
    assert alloc == {"debt": Decimal("20.00"), "equity": Decimal("80.00")}


def test_current_allocation_empty_portfolio():
    assert current_allocation([]) == {}
    assert current_allocation([("equity", 0)]) == {}


def test_drift_is_max_absolute_gap():
    report = compute_drift(
        {"equity": Decimal("72"), "debt": Decimal("28")},
        {"equity": Decimal("60"), "debt": Decimal("30"), "cash": Decimal("10")},
    )
    assert report.max_drift == Decimal("12")
    assert report.assets[0].asset_class == "equity"
    assert report.assets[0].direction == "overweight"
    assert report.exceeds(10)
    assert not report.exceeds(12)
    assert report.details(5) == ["equity is overweight by 12.0%", "cash is underweight by 10.0%"]


def test_drift_without_target_or_holdings_is_zero():
    assert compute_drift({"equity": Decimal("100")}, {}).max_drift == 0
    assert compute_drift({}, {"equity": Decimal("100")}).max_drift == 0


def test_largest_share():
    assert largest_share({"equity": Decimal("30"), "debt": Decimal("70")}) == ("debt", Decimal("70"))
    assert largest_share({}) == (None, 0)
