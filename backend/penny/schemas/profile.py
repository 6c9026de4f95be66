"""Profile schemas: financial inputs, portfolio goals, holdings."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from penny.models.portfolio import AssetClass


class FinancialInputsUpdate(BaseModel):
    """Partial update: only fields that are sent are changed."""
    monthly_income: Decimal | None = Field(None, ge=0)
    housing_cost: Decimal | None = Field(None, ge=0)
    transport_cost: Decimal | None = Field(None, ge=0)
    essentials_cost: Decimal | None = Field(None, ge=0)
    debt_payments: Decimal | None = Field(None, ge=0)
    total_debt: Decimal | None = Field(None, ge=0)
    high_interest_debt: Decimal | None = Field(None, ge=0)
    savings: Decimal | None = Field(None, ge=0)
    emergency_fund_goal: Decimal | None = Field(None, ge=0)


class FinancialInputsRead(BaseModel):
    id: uuid.UUID
    monthly_income: Decimal
    housing_cost: Decimal
    transport_cost: Decimal
    essentials_cost: Decimal
    debt_payments: Decimal
    total_debt: Decimal
    high_interest_debt: Decimal
    savings: Decimal
    emergency_fund_goal: Decimal
    updated_at: datetime

    model_config = {"from_attributes": True}


class PortfolioGoalsUpdate(BaseModel):
    target_allocation: dict[str, Decimal] | None = None
    monthly_contribution_target: Decimal | None = Field(None, ge=0)
    contribution_weekday: int | None = Field(None, ge=0, le=6)
    last_contribution_at: datetime | None = None
    target_value: Decimal | None = Field(None, ge=0)
    target_date: datetime | None = None


class PortfolioGoalsRead(BaseModel):
    id: uuid.UUID
    target_allocation: dict[str, float]
    monthly_contribution_target: Decimal
    contribution_weekday: int | None = None
    last_contribution_at: datetime | None = None
    target_value: Decimal | None = None
    target_date: datetime | None = None

    model_config = {"from_attributes": True}


class HoldingCreate(BaseModel):
    asset_class: AssetClass
    name: str = Field(..., min_length=1, max_length=255)
    current_value: Decimal = Field(..., ge=0)


class HoldingRead(BaseModel):
    id: uuid.UUID
    asset_class: AssetClass
    name: str
    current_value: Decimal
    created_at: datetime

    model_config = {"from_attributes": True}
