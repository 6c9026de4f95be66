import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from penny.models.intervention import InterventionStatus, InterventionType, PhrasingSource
from penny.services.intervention_controller import Outcome


class AgentStateRead(BaseModel):
    weekly_intervention_count: int
    user_response_rate: float
    effectiveness: dict[str, float]
    effective_intervention_types: list[str]
    celebrated_milestones: list[float]
    last_intervention_at: datetime | None = None
    cooldown_until: datetime | None = None
    last_check_at: datetime | None = None
    version: int

    model_config = {"from_attributes": True}


class InterventionRead(BaseModel):
    id: uuid.UUID
    intervention_type: InterventionType
    status: InterventionStatus
    title: str
    message: str
    phrasing_source: PhrasingSource
    trigger: dict
    created_at: datetime
    dispatched_at: datetime | None = None
    expires_at: datetime | None = None
    responded: bool
    responded_at: datetime | None = None
    response_channel: str | None = None
    action_taken: str | None = None

    model_config = {"from_attributes": True}


class InterventionResponse(BaseModel):
    channel: str = Field("notification_tap", min_length=1, max_length=50)
    action_taken: str | None = Field(None, max_length=255)


class EvaluationRead(BaseModel):
    trigger: str
    outcome: Outcome
    reason: str | None = None
    drift: float
    intervention_id: uuid.UUID | None = None
    intervention_type: InterventionType | None = None
    candidates: list[str]
    explored: bool

    model_config = {"from_attributes": True}


class AgentHealthRead(BaseModel):
    status: str
    window_hours: int
    failures: dict[str, int]
    in_flight: int
    scheduler_running: bool
    pending_followups: int
