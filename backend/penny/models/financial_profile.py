"""FinancialProfile model: the user's raw monthly financial inputs.

One row per user (upsert pattern). Every column defaults to zero so a
partially completed onboarding still produces a valid snapshot.
"""

import uuid
from decimal import Decimal

from sqlalchemy import ForeignKey, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from penny.models.base import Base, TimestampMixin, generate_uuid


def _money_column() -> Mapped[Decimal]:
    return mapped_column(Numeric(precision=14, scale=2), nullable=False, default=Decimal("0.00"))


class FinancialProfile(TimestampMixin, Base):
    __tablename__ = "financial_profiles"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"), nullable=False, unique=True, index=True
    )

    monthly_income: Mapped[Decimal] = _money_column()
    housing_cost: Mapped[Decimal] = _money_column()
    transport_cost: Mapped[Decimal] = _money_column()
    essentials_cost: Mapped[Decimal] = _money_column()
    debt_payments: Mapped[Decimal] = _money_column()
    total_debt: Mapped[Decimal] = _money_column()
    high_interest_debt: Mapped[Decimal] = _money_column()
    savings: Mapped[Decimal] = _money_column()
    emergency_fund_goal: Mapped[Decimal] = _money_column()
