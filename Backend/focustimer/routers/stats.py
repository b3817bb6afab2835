from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from focustimer.database import get_db
from focustimer.dependencies import get_current_user
from focustimer.models.user import User
from focustimer.schemas.stats import StatsResponse, StreakData, SummaryStats, WeeklyHeatmap
from focustimer.services import stats_service

router = APIRouter(prefix="/stats", tags=["stats"])


def request_timezone(
    tz: str | None = Query(default=None, description="IANA timezone name"),
):
    try:
        return stats_service.timezone_for(tz)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


@router.get("", response_model=StatsResponse)
async def get_stats(
    week_offset: int = Query(default=0, le=0),
    tz=Depends(request_timezone),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await stats_service.get_stats(db, user.id, week_offset=week_offset, tz=tz)


@router.get("/heatmap", response_model=WeeklyHeatmap)
async def get_heatmap(
    week_offset: int = Query(default=0, le=0),
    tz=Depends(request_timezone),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await stats_service.get_heatmap(db, user.id, week_offset=week_offset, tz=tz)


@router.get("/streak", response_model=StreakData)
async def get_streak(
    tz=Depends(request_timezone),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await stats_service.get_streak(db, user.id, tz=tz)


@router.get("/summary", response_model=SummaryStats)
async def get_summary(
    tz=Depends(request_timezone),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await stats_service.get_summary(db, user.id, tz=tz)
