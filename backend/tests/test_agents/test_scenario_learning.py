"""Scenario & Learning agent: contributions, projections, ordering."""

from datetime import datetime, timezone
from decimal import Decimal

from penny.agents.financial_reality import FinancialRealityAgent
from penny.agents.scenario_learning import (
    HORIZONS_MONTHS,
    ScenarioLearningAgent,
    future_value,
    months_to_goal,
)
from penny.agents.types import FinancialInputs, RiskLevel

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

BASELINE = {
    "monthly_income": 5000,
    "housing_cost": 1500,
    "transport_cost": 300,
    "essentials_cost": 700,
    "savings": 3000,
    "emergency_fund_goal": 15000,
}


def _generate(data: dict):
    inputs = FinancialInputs.from_mapping(data)
    snapshot = FinancialRealityAgent().analyze(inputs, now=NOW).snapshot
    return inputs, ScenarioLearningAgent().generate(inputs, snapshot)


def test_three_scenarios_with_capped_contributions():
    _, scenarios = _generate(BASELINE)
    assert [s.risk for s in scenarios] == [RiskLevel.conservative, RiskLevel.balanced, RiskLevel.aggressive]
    # 30/50/75% of 2500 disposable, capped at 400/600/900
    assert [s.monthly_contribution for s in scenarios] == [
        Decimal("400.00"),
        Decimal("600.00"),
        Decimal("900.00"),
    ]
    assert [s.annual_return for s in scenarios] == [Decimal("0.03"), Decimal("0.05"), Decimal("0.07")]


def test_months_to_emergency_goal():
    _, scenarios = _generate(BASELINE)
    # 12000 gap
    assert [s.months_to_goal for s in scenarios] == [30, 20, 14]


def test_projections_ordered_at_every_horizon():
    _, scenarios = _generate(BASELINE)
    conservative, balanced, aggressive = scenarios
    for horizon in HORIZONS_MONTHS:
        assert aggressive.value_at(horizon) >= balanced.value_at(horizon) >= conservative.value_at(horizon)


def test_ordering_holds_at_equal_contribution():
    for horizon in HORIZONS_MONTHS:
        low = future_value(Decimal("1000"), Decimal("300"), Decimal("0.03"), horizon)
        mid = future_value(Decimal("1000"), Decimal("300"), Decimal("0.05"), horizon)
        high = future_value(Decimal("1000"), Decimal("300"), Decimal("0.07"), horizon)
        assert high >= mid >= low


def test_future_value_zero_rate_is_plain_sum():
    assert future_value(Decimal("100"), Decimal("50"), Decimal("0"), 12) == Decimal("700.00")


def test_future_value_exceeds_contributions():
    value = future_value(Decimal("3000"), Decimal("400"), Decimal("0.03"), 12)
    assert value > Decimal("3000") + Decimal("400") * 12


def test_months_to_goal_edges():
    assert months_to_goal(Decimal("0"), Decimal("100")) == 0
    assert months_to_goal(Decimal("-50"), Decimal("0")) == 0
    assert months_to_goal(Decimal("1000"), Decimal("0")) is None
    assert months_to_goal(Decimal("1000"), Decimal("300")) == 4


def test_no_disposable_income():
    _, scenarios = _generate({"monthly_income": 1000, "housing_cost": 1500, "savings": 2000})
    assert all(s.monthly_contribution == 0 for s in scenarios)
    assert all(s.months_to_goal == 0 for s in scenarios)  # no goal set
    assert all(s.value_at(12) >= Decimal("2000") for s in scenarios)


def test_compare_names_highest_path():
    _, scenarios = _generate(BASELINE)
    summary = ScenarioLearningAgent.compare(scenarios)
    assert '"Accelerated" path projects the highest outcome' in summary
    assert ScenarioLearningAgent.compare([]) == "No scenarios to compare."


def test_insight_message():
    inputs, scenarios = _generate(BASELINE)
    insight = ScenarioLearningAgent().insight(inputs, scenarios, now=NOW)
    assert "approximately 30 months" in insight.message
    assert insight.confidence == 0.9
