"""AgentState model: the intervention controller's learning state.

One row per user, written only by the controller. `version` is an
optimistic-concurrency counter: a write against a stale version raises
StaleDataError instead of silently overwriting another writer.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from penny.models.base import Base, TimestampMixin, generate_uuid


class AgentState(TimestampMixin, Base):
    __tablename__ = "agent_states"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"), nullable=False, unique=True, index=True
    )

    # Dispatched in the trailing 7 days, refreshed every cycle
    weekly_intervention_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    user_response_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)
    # {"drift_alert": 0.75, "goal_check": 0.0}
    effectiveness: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    effective_intervention_types: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    celebrated_milestones: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    last_intervention_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cooldown_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_check_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
