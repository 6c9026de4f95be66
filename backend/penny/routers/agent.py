"""Agent routes: manual trigger, learning state, intervention log, responses, health."""

import uuid as uuid_mod
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from penny.core.auth import get_current_user
from penny.dependencies import get_controller, get_db, get_scheduler
from penny.models.intervention import InterventionStatus
from penny.models.user import User
from penny.schemas.agent import (
    AgentHealthRead,
    AgentStateRead,
    EvaluationRead,
    InterventionRead,
    InterventionResponse,
)
from penny.services import intervention_controller, telemetry_service
from penny.services.intervention_controller import DEFAULT_RESPONSE_RATE, InterventionController
from penny.services.scheduler import InterventionScheduler

router = APIRouter(prefix="/agent", tags=["agent"])

HEALTH_WINDOW_HOURS = 24


def _parse_intervention_id(value: str) -> uuid_mod.UUID:
    try:
        return uuid_mod.UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid intervention_id")


@router.post("/run", response_model=EvaluationRead)
async def run_now(
    current_user: User = Depends(get_current_user),
    controller: InterventionController = Depends(get_controller),
):
    """Manual "run now": one evaluation cycle, or skipped if one is in flight."""
    result = await controller.evaluate(current_user.id, trigger="manual")
    return EvaluationRead.model_validate(result)


@router.get("/state", response_model=AgentStateRead)
async def get_state(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    controller: InterventionController = Depends(get_controller),
):
    state = await intervention_controller.get_agent_state(db, current_user.id)
    if state is None:
        return AgentStateRead(
            weekly_intervention_count=0,
            user_response_rate=DEFAULT_RESPONSE_RATE,
            effectiveness={},
            effective_intervention_types=list(controller.config.default_effective_types),
            celebrated_milestones=[],
            version=0,
        )
    return state


@router.get("/interventions", response_model=list[InterventionRead])
async def list_interventions(
    limit: int = 50,
    status: str | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if limit < 1 or limit > 100:
        raise HTTPException(status_code=400, detail="Limit must be between 1 and 100")
    status_filter = None
    if status is not None:
        try:
            status_filter = InterventionStatus(status)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid status: {status}")
    return await intervention_controller.list_interventions(
        db, current_user.id, limit=limit, status=status_filter
    )


@router.post("/interventions/{intervention_id}/respond", response_model=InterventionRead)
async def respond(
    intervention_id: str,
    body: InterventionResponse | None = None,
    current_user: User = Depends(get_current_user),
    controller: InterventionController = Depends(get_controller),
):
    """Record a user response (e.g. notification tapped).

    Expired or already-answered interventions are returned unchanged.
    """
    iid = _parse_intervention_id(intervention_id)
    body = body or InterventionResponse()
    outcome = await controller.record_response(
        current_user.id,
        iid,
        channel=body.channel,
        action_taken=body.action_taken,
    )
    if outcome is None:
        raise HTTPException(status_code=404, detail="Intervention not found")
    intervention, _changed = outcome
    return intervention


@router.get("/health", response_model=AgentHealthRead)
async def agent_health(
    db: AsyncSession = Depends(get_db),
    controller: InterventionController = Depends(get_controller),
    scheduler: InterventionScheduler | None = Depends(get_scheduler),
):
    """Failure counts over the last day plus scheduler status."""
    since = datetime.now(timezone.utc) - timedelta(hours=HEALTH_WINDOW_HOURS)
    failures = await telemetry_service.failure_counts(db, since=since)
    return AgentHealthRead(
        status="degraded" if failures else "ok",
        window_hours=HEALTH_WINDOW_HOURS,
        failures=failures,
        in_flight=controller.in_flight_count,
        scheduler_running=scheduler.running if scheduler is not None else False,
        pending_followups=scheduler.pending_followups if scheduler is not None else 0,
    )
