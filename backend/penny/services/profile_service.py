"""Profile service: financial inputs, portfolio goals and holdings.

All writes are recorded as telemetry events. Callers re-run the analysis
pipeline after any write (every write is an input change).
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from penny.agents.allocation import current_allocation
from penny.agents.types import NUMERIC_FIELDS, FinancialInputs
from penny.models.financial_profile import FinancialProfile
from penny.models.portfolio import AssetClass, Holding, PortfolioGoals
from penny.services import telemetry_service

PROFILE_FIELDS = tuple(f for f in NUMERIC_FIELDS if f != "monthly_contribution_target")


# --- Financial inputs ---

async def get_profile(db: AsyncSession, user_id: uuid.UUID) -> FinancialProfile | None:
    result = await db.execute(
        select(FinancialProfile).where(FinancialProfile.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def upsert_profile(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    values: dict,
) -> FinancialProfile:
    """Create or update the user's financial inputs.

    Only keys present in `values` are changed; None means "clear to 0".
    """
    profile = await get_profile(db, user_id)
    action = "update"
    if profile is None:
        profile = FinancialProfile(user_id=user_id)
        for name in PROFILE_FIELDS:
            setattr(profile, name, Decimal("0.00"))
        db.add(profile)
        action = "create"

    changed = []
    for name in PROFILE_FIELDS:
        if name in values:
            value = values[name]
            setattr(profile, name, Decimal("0.00") if value is None else value)
            changed.append(name)

    await db.flush()

    await telemetry_service.record_event(
        db,
        user_id=user_id,
        event_type=f"profile.{action}",
        entity_type="FinancialProfile",
        entity_id=profile.id,
        detail={"fields": changed},
    )
    return profile


# --- Portfolio goals ---

async def get_goals(db: AsyncSession, user_id: uuid.UUID) -> PortfolioGoals | None:
    result = await db.execute(
        select(PortfolioGoals).where(PortfolioGoals.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def upsert_goals(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    target_allocation: dict[str, Decimal] | None = None,
    monthly_contribution_target: Decimal | None = None,
    contribution_weekday: int | None = None,
    last_contribution_at: datetime | None = None,
    target_value: Decimal | None = None,
    target_date: datetime | None = None,
) -> PortfolioGoals:
    """Create or update portfolio goals. None leaves a field unchanged.

    Raises ValueError if the target allocation uses an unknown asset class
    or sums to more than 100%.
    """
    if target_allocation is not None:
        _validate_allocation(target_allocation)

    goals = await get_goals(db, user_id)
    action = "update"
    if goals is None:
        goals = PortfolioGoals(
            user_id=user_id,
            target_allocation={},
            monthly_contribution_target=Decimal("0.00"),
        )
        db.add(goals)
        action = "create"

    if target_allocation is not None:
        goals.target_allocation = {k: float(v) for k, v in target_allocation.items()}
    if monthly_contribution_target is not None:
        goals.monthly_contribution_target = monthly_contribution_target
    if contribution_weekday is not None:
        goals.contribution_weekday = contribution_weekday
    if last_contribution_at is not None:
        goals.last_contribution_at = last_contribution_at
    if target_value is not None:
        goals.target_value = target_value
    if target_date is not None:
        goals.target_date = target_date

    await db.flush()

    await telemetry_service.record_event(
        db,
        user_id=user_id,
        event_type=f"goals.{action}",
        entity_type="PortfolioGoals",
        entity_id=goals.id,
        detail={"target_allocation": goals.target_allocation},
    )
    return goals


def _validate_allocation(allocation: dict[str, Decimal]) -> None:
    valid = {a.value for a in AssetClass}
    unknown = sorted(set(allocation) - valid)
    if unknown:
        raise ValueError(f"Unknown asset class: {', '.join(unknown)}")
    if any(Decimal(str(v)) < 0 for v in allocation.values()):
        raise ValueError("Target allocation percentages must be non-negative")
    total = sum((Decimal(str(v)) for v in allocation.values()), Decimal("0"))
    if total > 100:
        raise ValueError(f"Target allocation sums to {total}%, more than 100%")


# --- Holdings ---

async def list_holdings(db: AsyncSession, user_id: uuid.UUID) -> list[Holding]:
    result = await db.execute(
        select(Holding)
        .where(Holding.user_id == user_id)
        .order_by(Holding.created_at.asc())
    )
    return list(result.scalars().all())


async def add_holding(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    asset_class: AssetClass,
    name: str,
    current_value: Decimal,
) -> Holding:
    holding = Holding(
        user_id=user_id,
        asset_class=asset_class,
        name=name,
        current_value=current_value,
    )
    db.add(holding)
    await db.flush()

    await telemetry_service.record_event(
        db,
        user_id=user_id,
        event_type="holding.created",
        entity_type="Holding",
        entity_id=holding.id,
        detail={"asset_class": asset_class.value, "current_value": str(current_value)},
    )
    return holding


async def delete_holding(
    db: AsyncSession,
    *,
    holding_id: uuid.UUID,
    user_id: uuid.UUID,
) -> bool:
    """Delete a holding. Returns False if it does not belong to the user."""
    result = await db.execute(
        select(Holding).where(Holding.id == holding_id, Holding.user_id == user_id)
    )
    holding = result.scalar_one_or_none()
    if holding is None:
        return False

    await telemetry_service.record_event(
        db,
        user_id=user_id,
        event_type="holding.deleted",
        entity_type="Holding",
        entity_id=holding.id,
    )
    await db.delete(holding)
    await db.flush()
    return True


# --- Assembly ---

def portfolio_value(holdings: list[Holding]) -> Decimal:
    return sum((h.current_value for h in holdings), Decimal("0.00"))


async def load_inputs(db: AsyncSession, user_id: uuid.UUID) -> FinancialInputs:
    """Assemble FinancialInputs from the profile, goals and holdings.

    Missing rows degrade to zero-valued fields.
    """
    profile = await get_profile(db, user_id)
    goals = await get_goals(db, user_id)
    holdings = await list_holdings(db, user_id)

    data: dict = {}
    if profile is not None:
        data.update({name: getattr(profile, name) for name in PROFILE_FIELDS})
    if goals is not None:
        data["target_allocation"] = goals.target_allocation
        data["monthly_contribution_target"] = goals.monthly_contribution_target
    data["current_allocation"] = current_allocation(
        (h.asset_class.value, h.current_value) for h in holdings
    )
    return FinancialInputs.from_mapping(data)
