import uuid
from datetime import datetime, timezone, tzinfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from focustimer.config import settings
from focustimer.models.session import Session
from focustimer.models.task import Task
from focustimer.schemas.stats import StatsResponse, StreakData, SummaryStats, WeeklyHeatmap
from focustimer.services import analytics
from focustimer.utils.datetime_helper import resolve_timezone


def timezone_for(name: str | None) -> tzinfo | None:
    """Request timezone, falling back to the configured one."""
    return resolve_timezone(name or settings.TIMEZONE)


async def _load_sessions(db: AsyncSession, user_id: uuid.UUID) -> list[Session]:
    result = await db.execute(
        select(Session)
        .where(Session.user_id == user_id)
        .order_by(Session.completed_at.desc())
    )
    return list(result.scalars().all())


async def _load_completed_tasks(db: AsyncSession, user_id: uuid.UUID) -> list[Task]:
    result = await db.execute(
        select(Task).where(Task.user_id == user_id, Task.is_completed == True)  # noqa: E712
    )
    return list(result.scalars().all())


async def get_heatmap(
    db: AsyncSession,
    user_id: uuid.UUID,
    week_offset: int = 0,
    tz: tzinfo | None = None,
    now: datetime | None = None,
) -> WeeklyHeatmap:
    sessions = await _load_sessions(db, user_id)
    return analytics.build_weekly_heatmap(sessions, week_offset, now=now, tz=tz)


async def get_streak(
    db: AsyncSession,
    user_id: uuid.UUID,
    tz: tzinfo | None = None,
    now: datetime | None = None,
) -> StreakData:
    sessions = await _load_sessions(db, user_id)
    return analytics.compute_streak(sessions, now=now, tz=tz)


async def get_summary(
    db: AsyncSession,
    user_id: uuid.UUID,
    tz: tzinfo | None = None,
    now: datetime | None = None,
) -> SummaryStats:
    sessions = await _load_sessions(db, user_id)
    tasks = await _load_completed_tasks(db, user_id)
    return analytics.compute_summary_stats(sessions, tasks, now=now, tz=tz)


async def get_stats(
    db: AsyncSession,
    user_id: uuid.UUID,
    week_offset: int = 0,
    tz: tzinfo | None = None,
    now: datetime | None = None,
) -> StatsResponse:
    """Heatmap, streak and summary computed from one read of the history."""
    if now is None:
        now = datetime.now(timezone.utc)
    sessions = await _load_sessions(db, user_id)
    tasks = await _load_completed_tasks(db, user_id)
    return StatsResponse(
        heatmap=analytics.build_weekly_heatmap(sessions, week_offset, now=now, tz=tz),
        streak=analytics.compute_streak(sessions, now=now, tz=tz),
        summary=analytics.compute_summary_stats(sessions, tasks, now=now, tz=tz),
    )
