"""Agent router tests: manual run, state, intervention log, responses, health."""

import uuid

import pytest
from httpx import AsyncClient

HEADERS = {"X-User-ID": "user-1"}


async def _setup_drifted_portfolio(client: AsyncClient) -> None:
    await client.put(
        "/profile/goals",
        json={"target_allocation": {"equity": 60, "debt": 30, "cash": 10}},
        headers=HEADERS,
    )
    await client.post(
        "/profile/holdings",
        json={"asset_class": "equity", "name": "Index Fund", "current_value": 7200},
        headers=HEADERS,
    )
    await client.post(
        "/profile/holdings",
        json={"asset_class": "debt", "name": "Bond Fund", "current_value": 2800},
        headers=HEADERS,
    )


@pytest.mark.asyncio
async def test_run_without_holdings_is_gated(client: AsyncClient):
    resp = await client.post("/agent/run", headers=HEADERS)
    assert resp.status_code == 200
    data = resp.json()
    assert data["outcome"] == "gated"
    assert data["reason"] == "no_holdings"
    assert data["intervention_id"] is None


@pytest.mark.asyncio
async def test_run_dispatches_then_cools_down(client: AsyncClient, notifier):
    await _setup_drifted_portfolio(client)

    resp = await client.post("/agent/run", headers=HEADERS)
    data = resp.json()
    assert data["outcome"] == "dispatched"
    assert data["intervention_type"] == "drift_alert"
    assert data["drift"] == pytest.approx(12.0)
    assert data["trigger"] == "manual"

    resp = await client.post("/agent/run", headers=HEADERS)
    assert resp.json()["reason"] == "cooldown"
    assert len(notifier.sent) == 1


@pytest.mark.asyncio
async def test_respond_and_learning_state(client: AsyncClient):
    await _setup_drifted_portfolio(client)
    run = (await client.post("/agent/run", headers=HEADERS)).json()

    resp = await client.post(
        f"/agent/interventions/{run['intervention_id']}/respond",
        json={"channel": "in_app", "action_taken": "opened_portfolio"},
        headers=HEADERS,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "responded"
    assert data["responded"] is True
    assert data["response_channel"] == "in_app"

    log = (await client.get("/agent/interventions", headers=HEADERS)).json()
    assert [i["id"] for i in log] == [run["intervention_id"]]
    assert log[0]["status"] == "responded"

    state = (await client.get("/agent/state", headers=HEADERS)).json()
    assert state["user_response_rate"] == 1.0
    assert state["effectiveness"] == {"drift_alert": 1.0}
    assert state["weekly_intervention_count"] == 1
    assert state["version"] >= 1


@pytest.mark.asyncio
async def test_respond_without_body(client: AsyncClient):
    await _setup_drifted_portfolio(client)
    run = (await client.post("/agent/run", headers=HEADERS)).json()

    resp = await client.post(f"/agent/interventions/{run['intervention_id']}/respond", headers=HEADERS)
    assert resp.status_code == 200
    assert resp.json()["response_channel"] == "notification_tap"


@pytest.mark.asyncio
async def test_respond_errors(client: AsyncClient):
    resp = await client.post("/agent/interventions/not-a-uuid/respond", headers=HEADERS)
    assert resp.status_code == 400

    resp = await client.post(f"/agent/interventions/{uuid.uuid4()}/respond", headers=HEADERS)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_intervention_list_filters(client: AsyncClient):
    resp = await client.get("/agent/interventions", params={"status": "bogus"}, headers=HEADERS)
    assert resp.status_code == 400
    resp = await client.get("/agent/interventions", params={"limit": 0}, headers=HEADERS)
    assert resp.status_code == 400

    await _setup_drifted_portfolio(client)
    await client.post("/agent/run", headers=HEADERS)
    resp = await client.get("/agent/interventions", params={"status": "responded"}, headers=HEADERS)
    assert resp.json() == []
    resp = await client.get("/agent/interventions", params={"status": "dispatched"}, headers=HEADERS)
    assert len(resp.json()) == 1


@pytest.mark.asyncio
async def test_default_state_for_new_user(client: AsyncClient):
    resp = await client.get("/agent/state", headers=HEADERS)
    assert resp.status_code == 200
    data = resp.json()
    assert data["version"] == 0
    assert data["user_response_rate"] == 0.5
    assert data["effective_intervention_types"] == ["drift_alert", "contribution_reminder"]


@pytest.mark.asyncio
async def test_health_reports_failures(client: AsyncClient, notifier):
    resp = await client.get("/agent/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.json()["failures"] == {}
    assert resp.json()["scheduler_running"] is False

    await _setup_drifted_portfolio(client)
    notifier.fail = True
    run = (await client.post("/agent/run", headers=HEADERS)).json()
    assert run["outcome"] == "failed"

    resp = await client.get("/agent/health")
    assert resp.json()["status"] == "degraded"
    assert resp.json()["failures"] == {"notifier.failed": 1}
