"""Analysis service tests: stored pipeline runs, history, action completion."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from penny.agents import AgentPipeline, ScenarioLearningAgent
from penny.models.user import User
from penny.services import analysis_service, profile_service, telemetry_service

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class ExplodingScenario(ScenarioLearningAgent):
    def generate(self, inputs, snapshot):
        raise RuntimeError("boom")


async def _create_user_with_inputs(db: AsyncSession) -> User:
    user = User(external_id="analysis-user")
    db.add(user)
    await db.flush()
    await profile_service.upsert_profile(
        db,
        user_id=user.id,
        values={
            "monthly_income": Decimal("5000"),
            "housing_cost": Decimal("1500"),
            "transport_cost": Decimal("300"),
            "essentials_cost": Decimal("700"),
            "savings": Decimal("3000"),
            "emergency_fund_goal": Decimal("15000"),
        },
    )
    return user


@pytest.mark.asyncio
async def test_run_analysis_stores_snapshot(db_session: AsyncSession):
    user = await _create_user_with_inputs(db_session)

    record = await analysis_service.run_analysis(db_session, user.id, now=NOW)
    assert record.health_score == 72
    assert record.health_label == "Strong"
    assert record.disposable_income == Decimal("2500.00")
    assert record.emergency_progress == Decimal("20.0")
    assert len(record.scenarios) == 3
    assert record.scenarios[0]["monthly_contribution"] == "400.00"
    assert record.scenarios[0]["risk"] == "conservative"
    assert [a["id"] for a in record.weekly_actions] == ["focus-buffer", "focus-check-in"]
    assert len(record.insights) == 4
    assert record.market_context["sentiment"] == "neutral"
    assert Decimal(record.inputs["monthly_income"]) == Decimal("5000")
    assert record.failed_agents == []

    events = await telemetry_service.get_events_for_user(db_session, user.id, event_type="analysis.completed")
    assert len(events) == 1
    assert events[0].detail["health_score"] == 72


@pytest.mark.asyncio
async def test_failed_agent_is_recorded(db_session: AsyncSession):
    user = await _create_user_with_inputs(db_session)
    pipeline = AgentPipeline(scenario=ExplodingScenario())

    record = await analysis_service.run_analysis(db_session, user.id, now=NOW, pipeline=pipeline)
    assert record.failed_agents == ["scenario-learning"]
    assert record.scenarios == []
    assert any(i["degraded"] for i in record.insights)

    failures = await telemetry_service.failure_counts(db_session, since=NOW - timedelta(days=1))
    assert failures == {"agent.failed": 1}


@pytest.mark.asyncio
async def test_latest_and_history(db_session: AsyncSession):
    user = await _create_user_with_inputs(db_session)
    assert await analysis_service.get_latest_analysis(db_session, user.id) is None

    await analysis_service.run_analysis(db_session, user.id, now=NOW)
    await profile_service.upsert_profile(db_session, user_id=user.id, values={"savings": Decimal("20000")})
    second = await analysis_service.run_analysis(db_session, user.id, now=NOW + timedelta(hours=1))

    latest = await analysis_service.get_latest_analysis(db_session, user.id)
    assert latest.id == second.id
    history = await analysis_service.get_analysis_history(db_session, user.id, limit=5)
    assert [h.id for h in history][0] == second.id
    assert len(history) == 2


@pytest.mark.asyncio
async def test_complete_action_survives_rerun(db_session: AsyncSession):
    user = await _create_user_with_inputs(db_session)
    await analysis_service.run_analysis(db_session, user.id, now=NOW)

    record = await analysis_service.complete_action(db_session, user_id=user.id, action_id="focus-buffer")
    assert record.weekly_actions[0]["completed"] is True

    rerun = await analysis_service.run_analysis(db_session, user.id, now=NOW + timedelta(hours=1))
    completed = {a["id"]: a["completed"] for a in rerun.weekly_actions}
    assert completed == {"focus-buffer": True, "focus-check-in": False}


@pytest.mark.asyncio
async def test_completion_resets_in_a_new_week(db_session: AsyncSession):
    user = await _create_user_with_inputs(db_session)
    await analysis_service.run_analysis(db_session, user.id, now=NOW)
    await analysis_service.complete_action(db_session, user_id=user.id, action_id="focus-buffer")

    # NOW is a Monday; Sunday night is still the same ISO week.
    sunday = await analysis_service.run_analysis(db_session, user.id, now=NOW + timedelta(days=6, hours=14))
    assert {a["id"]: a["completed"] for a in sunday.weekly_actions}["focus-buffer"] is True

    monday = await analysis_service.run_analysis(db_session, user.id, now=NOW + timedelta(days=7))
    assert {a["id"]: a["completed"] for a in monday.weekly_actions} == {
        "focus-buffer": False,
        "focus-check-in": False,
    }

    later = await analysis_service.run_analysis(db_session, user.id, now=NOW + timedelta(days=70))
    assert not any(a["completed"] for a in later.weekly_actions)


@pytest.mark.asyncio
async def test_complete_unknown_action(db_session: AsyncSession):
    user = await _create_user_with_inputs(db_session)
    assert await analysis_service.complete_action(db_session, user_id=user.id, action_id="focus-buffer") is None
    await analysis_service.run_analysis(db_session, user.id, now=NOW)
    assert await analysis_service.complete_action(db_session, user_id=user.id, action_id="nope") is None


def test_to_json_converts_values():
    payload = analysis_service.to_json({"a": Decimal("1.50"), "when": NOW, "items": (1, 2)})
    assert payload == {"a": "1.50", "when": NOW.isoformat(), "items": [1, 2]}
