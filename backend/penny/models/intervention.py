"""Intervention model: one proactive contact initiated by the agent.

Lifecycle: created → dispatched → responded | expired, or created →
undelivered when the notifier fails. A created row already counts toward
the weekly cap. Only the response fields (and the expiry transition) ever
change after dispatch; title, message and type are immutable.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from penny.models.base import Base, generate_uuid, utcnow


class InterventionType(str, enum.Enum):
    drift_alert = "drift_alert"
    contribution_reminder = "contribution_reminder"
    milestone = "milestone"
    rebalance_suggestion = "rebalance_suggestion"
    goal_check = "goal_check"


class InterventionStatus(str, enum.Enum):
    created = "created"
    dispatched = "dispatched"
    responded = "responded"
    expired = "expired"
    undelivered = "undelivered"


class PhrasingSource(str, enum.Enum):
    template = "template"
    generated = "generated"


class Intervention(Base):
    __tablename__ = "interventions"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )
    intervention_type: Mapped[InterventionType] = mapped_column(
        Enum(InterventionType, native_enum=False), nullable=False
    )
    status: Mapped[InterventionStatus] = mapped_column(
        Enum(InterventionStatus, native_enum=False),
        nullable=False,
        default=InterventionStatus.created,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(String(1000), nullable=False)
    phrasing_source: Mapped[PhrasingSource] = mapped_column(
        Enum(PhrasingSource, native_enum=False),
        nullable=False,
        default=PhrasingSource.template,
    )
    # What fired: {"drift": 12.0, "details": [...], "candidates": [...], "explored": false}
    trigger: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )
    dispatched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    responded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    response_channel: Mapped[str | None] = mapped_column(String(50), nullable=True)
    action_taken: Mapped[str | None] = mapped_column(String(255), nullable=True)
