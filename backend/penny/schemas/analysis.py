"""Analysis schemas: stored pipeline runs."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class AnalysisRead(BaseModel):
    id: uuid.UUID
    health_score: int
    health_label: str
    disposable_income: Decimal
    savings_rate: Decimal
    months_of_runway: Decimal
    debt_to_income_ratio: Decimal
    emergency_progress: Decimal
    scenarios: list[dict]
    weekly_actions: list[dict]
    insights: list[dict]
    market_context: dict | None = None
    failed_agents: list[str]
    generated_at: datetime

    model_config = {"from_attributes": True}


class AnalysisSummaryRead(BaseModel):
    """Lightweight snapshot for history lists."""
    id: uuid.UUID
    health_score: int
    health_label: str
    disposable_income: Decimal
    savings_rate: Decimal
    months_of_runway: Decimal
    generated_at: datetime

    model_config = {"from_attributes": True}
