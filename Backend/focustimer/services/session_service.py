import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from focustimer.models.session import Session
from focustimer.models.task import Task
from focustimer.timer.modes import TimerMode
from focustimer.utils.datetime_helper import as_aware


async def get_sessions(
    db: AsyncSession,
    user_id: uuid.UUID,
    limit: int | None = None,
    offset: int = 0,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> list[Session]:
    query = select(Session).where(Session.user_id == user_id)
    if start_date:
        query = query.where(Session.completed_at >= start_date)
    if end_date:
        query = query.where(Session.completed_at <= end_date)
    query = query.order_by(Session.completed_at.desc()).offset(offset)
    if limit is not None:
        query = query.limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_session(
    db: AsyncSession, user_id: uuid.UUID, session_id: uuid.UUID
) -> Session | None:
    result = await db.execute(
        select(Session).where(Session.id == session_id, Session.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def _check_task_owner(
    db: AsyncSession, user_id: uuid.UUID, task_id: uuid.UUID | None
) -> None:
    if task_id is None:
        return
    result = await db.execute(
        select(Task.id).where(Task.id == task_id, Task.user_id == user_id)
    )
    if result.scalar_one_or_none() is None:
        raise ValueError(f"Task {task_id} not found")


async def create_session(db: AsyncSession, user_id: uuid.UUID, data: dict) -> Session:
    """Append one session record.

    Missing timestamps default to "just finished now"; all timestamps are
    stored in UTC.
    """
    data = dict(data)
    data["mode"] = TimerMode(data["mode"]).value
    duration = data.get("duration_seconds") or 0

    completed_at = data.get("completed_at") or datetime.now(timezone.utc)
    data["completed_at"] = as_aware(completed_at).astimezone(timezone.utc)
    started_at = data.get("started_at") or data["completed_at"] - timedelta(seconds=duration)
    data["started_at"] = as_aware(started_at).astimezone(timezone.utc)

    await _check_task_owner(db, user_id, data.get("task_id"))

    session = Session(user_id=user_id, **data)
    db.add(session)
    await db.flush()
    await db.refresh(session)
    return session


async def reassign_task(
    db: AsyncSession,
    user_id: uuid.UUID,
    session_id: uuid.UUID,
    task_id: uuid.UUID | None,
) -> Session | None:
    """Point a session at another task (or none). Nothing else changes."""
    session = await get_session(db, user_id, session_id)
    if session is None:
        return None

    await _check_task_owner(db, user_id, task_id)
    session.task_id = task_id
    session.updated_at = datetime.now(timezone.utc)

    await db.flush()
    await db.refresh(session)
    return session


async def delete_session(
    db: AsyncSession, user_id: uuid.UUID, session_id: uuid.UUID
) -> bool:
    session = await get_session(db, user_id, session_id)
    if session is None:
        return False
    await db.delete(session)
    await db.flush()
    return True


async def delete_all_sessions(db: AsyncSession, user_id: uuid.UUID) -> int:
    count = await db.scalar(
        select(func.count(Session.id)).where(Session.user_id == user_id)
    )
    await db.execute(delete(Session).where(Session.user_id == user_id))
    await db.flush()
    return count or 0
