"""Analysis routes: run the agent pipeline and read stored snapshots.

Endpoints:
- POST /analysis/run: Run the pipeline on current inputs
- GET /analysis/latest: Most recent snapshot
- GET /analysis/history: Recent snapshot summaries
- POST /analysis/actions/{action_id}/complete: Mark a weekly action done
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from penny.core.auth import get_current_user
from penny.dependencies import get_db, get_scheduler
from penny.models.user import User
from penny.schemas.analysis import AnalysisRead, AnalysisSummaryRead
from penny.services import analysis_service
from penny.services.scheduler import InterventionScheduler

router = APIRouter(prefix="/analysis", tags=["analysis"])


@router.post("/run", response_model=AnalysisRead, status_code=201)
async def run_analysis(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    scheduler: InterventionScheduler | None = Depends(get_scheduler),
):
    """Run Reality → Market Context → Scenario → Adaptation and store the result."""
    snapshot = await analysis_service.run_analysis(db, current_user.id)
    await db.commit()
    if scheduler is not None:
        scheduler.schedule_followup(current_user.id)
    return snapshot


@router.get("/latest", response_model=AnalysisRead)
async def get_latest(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    snapshot = await analysis_service.get_latest_analysis(db, current_user.id)
    if not snapshot:
        raise HTTPException(status_code=404, detail="No analysis found. Run one first.")
    return snapshot


@router.get("/history", response_model=list[AnalysisSummaryRead])
async def get_history(
    limit: int = 10,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if limit < 1 or limit > 50:
        raise HTTPException(status_code=400, detail="Limit must be between 1 and 50")
    return await analysis_service.get_analysis_history(db, current_user.id, limit=limit)


@router.post("/actions/{action_id}/complete", response_model=AnalysisRead)
async def complete_action(
    action_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    snapshot = await analysis_service.complete_action(
        db, user_id=current_user.id, action_id=action_id
    )
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Weekly action not found")
    await db.commit()
    return snapshot
