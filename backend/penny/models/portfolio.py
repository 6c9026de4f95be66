"""Portfolio models: allocation goals and holdings.

Current allocation is never stored; it is derived from holdings each time
the pipeline or the intervention controller runs.
"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from penny.models.base import Base, TimestampMixin, generate_uuid


class AssetClass(str, enum.Enum):
    equity = "equity"
    debt = "debt"
    commodity = "commodity"
    real_asset = "real_asset"
    cash = "cash"


class PortfolioGoals(TimestampMixin, Base):
    """Target allocation and contribution plan. One row per user."""

    __tablename__ = "portfolio_goals"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"), nullable=False, unique=True, index=True
    )
    # {"equity": 60, "debt": 30, "cash": 10}
    target_allocation: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    monthly_contribution_target: Mapped[Decimal] = mapped_column(
        Numeric(precision=14, scale=2), nullable=False, default=Decimal("0.00")
    )
    # 0 = Monday ... 6 = Sunday
    contribution_weekday: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_contribution_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    target_value: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=14, scale=2), nullable=True
    )
    target_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class Holding(TimestampMixin, Base):
    __tablename__ = "holdings"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )
    asset_class: Mapped[AssetClass] = mapped_column(
        Enum(AssetClass, native_enum=False), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    current_value: Mapped[Decimal] = mapped_column(
        Numeric(precision=14, scale=2), nullable=False, default=Decimal("0.00")
    )
