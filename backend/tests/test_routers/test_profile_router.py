"""Profile router tests: inputs, goals and holdings over HTTP."""

import uuid
from decimal import Decimal

import pytest
from httpx import AsyncClient

from penny.dependencies import get_scheduler
from penny.main import app

HEADERS = {"X-User-ID": "user-1"}

INPUTS = {
    "monthly_income": 5000,
    "housing_cost": 1500,
    "transport_cost": 300,
    "essentials_cost": 700,
    "savings": 3000,
    "emergency_fund_goal": 15000,
}


class RecordingScheduler:
    def __init__(self):
        self.followups: list[uuid.UUID] = []

    def schedule_followup(self, user_id: uuid.UUID):
        self.followups.append(user_id)


@pytest.mark.asyncio
async def test_inputs_roundtrip_runs_analysis(client: AsyncClient):
    resp = await client.get("/profile/inputs", headers=HEADERS)
    assert resp.status_code == 404

    resp = await client.put("/profile/inputs", json=INPUTS, headers=HEADERS)
    assert resp.status_code == 200
    assert Decimal(resp.json()["monthly_income"]) == Decimal("5000")
    assert Decimal(resp.json()["debt_payments"]) == 0

    resp = await client.get("/profile/inputs", headers=HEADERS)
    assert resp.status_code == 200
    assert Decimal(resp.json()["savings"]) == Decimal("3000")

    resp = await client.get("/analysis/latest", headers=HEADERS)
    assert resp.status_code == 200
    assert resp.json()["health_score"] == 72
    assert resp.json()["health_label"] == "Strong"


@pytest.mark.asyncio
async def test_partial_inputs_update(client: AsyncClient):
    await client.put("/profile/inputs", json=INPUTS, headers=HEADERS)
    resp = await client.put("/profile/inputs", json={"savings": 20000}, headers=HEADERS)
    assert Decimal(resp.json()["savings"]) == Decimal("20000")
    assert Decimal(resp.json()["monthly_income"]) == Decimal("5000")

    history = await client.get("/analysis/history", headers=HEADERS)
    assert len(history.json()) == 2


@pytest.mark.asyncio
async def test_negative_input_rejected(client: AsyncClient):
    resp = await client.put("/profile/inputs", json={"monthly_income": -1}, headers=HEADERS)
    assert resp.status_code == 422
    assert resp.json()["error"] is True


@pytest.mark.asyncio
async def test_goals(client: AsyncClient):
    resp = await client.get("/profile/goals", headers=HEADERS)
    assert resp.status_code == 404

    resp = await client.put(
        "/profile/goals",
        json={
            "target_allocation": {"equity": 60, "debt": 30, "cash": 10},
            "monthly_contribution_target": 500,
            "contribution_weekday": 0,
        },
        headers=HEADERS,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["target_allocation"] == {"equity": 60.0, "debt": 30.0, "cash": 10.0}
    assert data["contribution_weekday"] == 0

    resp = await client.get("/profile/goals", headers=HEADERS)
    assert Decimal(resp.json()["monthly_contribution_target"]) == Decimal("500")


@pytest.mark.asyncio
async def test_invalid_goals(client: AsyncClient):
    resp = await client.put(
        "/profile/goals", json={"target_allocation": {"crypto": 100}}, headers=HEADERS
    )
    assert resp.status_code == 400
    assert "crypto" in resp.json()["detail"]

    resp = await client.put("/profile/goals", json={"contribution_weekday": 7}, headers=HEADERS)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_holdings_lifecycle(client: AsyncClient):
    resp = await client.post(
        "/profile/holdings",
        json={"asset_class": "equity", "name": "Index Fund", "current_value": 7200},
        headers=HEADERS,
    )
    assert resp.status_code == 201
    holding_id = resp.json()["id"]

    resp = await client.get("/profile/holdings", headers=HEADERS)
    assert [h["name"] for h in resp.json()] == ["Index Fund"]

    resp = await client.delete(f"/profile/holdings/{holding_id}", headers=HEADERS)
    assert resp.status_code == 200
    assert resp.json() == {"status": "deleted"}

    resp = await client.delete(f"/profile/holdings/{holding_id}", headers=HEADERS)
    assert resp.status_code == 404

    resp = await client.delete("/profile/holdings/not-a-uuid", headers=HEADERS)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_unknown_asset_class_rejected(client: AsyncClient):
    resp = await client.post(
        "/profile/holdings",
        json={"asset_class": "crypto", "name": "Coin", "current_value": 10},
        headers=HEADERS,
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_holdings_are_per_user(client: AsyncClient):
    resp = await client.post(
        "/profile/holdings",
        json={"asset_class": "cash", "name": "Savings", "current_value": 100},
        headers=HEADERS,
    )
    holding_id = resp.json()["id"]

    other = {"X-User-ID": "user-2"}
    assert (await client.get("/profile/holdings", headers=other)).json() == []
    resp = await client.delete(f"/profile/holdings/{holding_id}", headers=other)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_writes_arm_followup(client: AsyncClient):
    scheduler = RecordingScheduler()
    app.dependency_overrides[get_scheduler] = lambda: scheduler

    await client.put("/profile/inputs", json=INPUTS, headers=HEADERS)
    await client.post(
        "/profile/holdings",
        json={"asset_class": "equity", "name": "Index Fund", "current_value": 100},
        headers=HEADERS,
    )

    assert len(scheduler.followups) == 2
    assert scheduler.followups[0] == scheduler.followups[1]
