"""AnalysisSnapshot model: one stored run of the agent pipeline.

Stores the derived financial snapshot plus everything the presentation layer
shows next to it:
- scenarios: [{id, risk, name, monthly_contribution, projections, ...}]
- weekly_actions: [{id, title, priority, category, reasoning, completed}]
- insights: one entry per agent, degraded entries flagged
- market_context: sentiment, indicators, educational note
- inputs: the FinancialInputs the run was computed from

Never edited after creation except the completion flag on weekly actions.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from penny.models.base import Base, TimestampMixin, generate_uuid


class AnalysisSnapshot(TimestampMixin, Base):
    __tablename__ = "analysis_snapshots"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )

    health_score: Mapped[int] = mapped_column(Integer, nullable=False)
    health_label: Mapped[str] = mapped_column(String(32), nullable=False)
    disposable_income: Mapped[Decimal] = mapped_column(
        Numeric(precision=14, scale=2), nullable=False
    )
    savings_rate: Mapped[Decimal] = mapped_column(Numeric(precision=7, scale=1), nullable=False)
    months_of_runway: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False)
    debt_to_income_ratio: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=1), nullable=False)
    emergency_progress: Mapped[Decimal] = mapped_column(Numeric(precision=5, scale=1), nullable=False)

    scenarios: Mapped[list] = mapped_column(JSON, nullable=False)
    weekly_actions: Mapped[list] = mapped_column(JSON, nullable=False)
    insights: Mapped[list] = mapped_column(JSON, nullable=False)
    market_context: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    failed_agents: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    inputs: Mapped[dict] = mapped_column(JSON, nullable=False)

    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
