"""Profile routes: financial inputs, portfolio goals, holdings.

Every write re-runs the analysis pipeline and arms the foreground
intervention check for the user.
"""

import uuid as uuid_mod

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from penny.core.auth import get_current_user
from penny.dependencies import get_db, get_scheduler
from penny.models.user import User
from penny.schemas.profile import (
    FinancialInputsRead,
    FinancialInputsUpdate,
    HoldingCreate,
    HoldingRead,
    PortfolioGoalsRead,
    PortfolioGoalsUpdate,
)
from penny.services import analysis_service, profile_service
from penny.services.scheduler import InterventionScheduler

router = APIRouter(prefix="/profile", tags=["profile"])


async def _after_input_change(
    db: AsyncSession,
    user_id: uuid_mod.UUID,
    scheduler: InterventionScheduler | None,
) -> None:
    await analysis_service.run_analysis(db, user_id)
    await db.commit()
    if scheduler is not None:
        scheduler.schedule_followup(user_id)


@router.put("/inputs", response_model=FinancialInputsRead)
async def update_inputs(
    body: FinancialInputsUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    scheduler: InterventionScheduler | None = Depends(get_scheduler),
):
    profile = await profile_service.upsert_profile(
        db,
        user_id=current_user.id,
        values=body.model_dump(exclude_unset=True),
    )
    await db.commit()
    await _after_input_change(db, current_user.id, scheduler)
    return profile


@router.get("/inputs", response_model=FinancialInputsRead)
async def get_inputs(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    profile = await profile_service.get_profile(db, current_user.id)
    if profile is None:
        raise HTTPException(status_code=404, detail="No financial inputs yet")
    return profile


@router.put("/goals", response_model=PortfolioGoalsRead)
async def update_goals(
    body: PortfolioGoalsUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    scheduler: InterventionScheduler | None = Depends(get_scheduler),
):
    try:
        goals = await profile_service.upsert_goals(
            db,
            user_id=current_user.id,
            **body.model_dump(exclude_unset=True),
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    await db.commit()
    await _after_input_change(db, current_user.id, scheduler)
    return goals


@router.get("/goals", response_model=PortfolioGoalsRead)
async def get_goals(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    goals = await profile_service.get_goals(db, current_user.id)
    if goals is None:
        raise HTTPException(status_code=404, detail="No portfolio goals yet")
    return goals


@router.post("/holdings", status_code=201, response_model=HoldingRead)
async def add_holding(
    body: HoldingCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    scheduler: InterventionScheduler | None = Depends(get_scheduler),
):
    holding = await profile_service.add_holding(
        db,
        user_id=current_user.id,
        asset_class=body.asset_class,
        name=body.name,
        current_value=body.current_value,
    )
    await db.commit()
    await _after_input_change(db, current_user.id, scheduler)
    return holding


@router.get("/holdings", response_model=list[HoldingRead])
async def list_holdings(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await profile_service.list_holdings(db, current_user.id)


@router.delete("/holdings/{holding_id}")
async def delete_holding(
    holding_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    scheduler: InterventionScheduler | None = Depends(get_scheduler),
):
    try:
        hid = uuid_mod.UUID(holding_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid holding_id")

    deleted = await profile_service.delete_holding(db, holding_id=hid, user_id=current_user.id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Holding not found")
    await db.commit()
    await _after_input_change(db, current_user.id, scheduler)
    return {"status": "deleted"}
