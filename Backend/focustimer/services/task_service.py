import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from focustimer.models.session import Session
from focustimer.models.task import Task

logger = logging.getLogger(__name__)


async def get_tasks(
    db: AsyncSession,
    user_id: uuid.UUID,
    is_completed: bool | None = None,
) -> list[Task]:
    query = select(Task).where(Task.user_id == user_id)
    if is_completed is not None:
        query = query.where(Task.is_completed == is_completed)
    query = query.order_by(Task.is_completed.asc(), Task.order_index.asc(), Task.created_at.asc())
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_task(db: AsyncSession, user_id: uuid.UUID, task_id: uuid.UUID) -> Task | None:
    result = await db.execute(
        select(Task).where(Task.id == task_id, Task.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def create_task(db: AsyncSession, user_id: uuid.UUID, data: dict) -> Task:
    if data.get("is_completed") and data.get("completed_at") is None:
        data = {**data, "completed_at": datetime.now(timezone.utc)}
    task = Task(user_id=user_id, **data)
    db.add(task)
    await db.flush()
    await db.refresh(task)
    return task


def _apply_completion(task: Task, is_completed: bool) -> None:
    if is_completed == task.is_completed:
        return
    task.is_completed = is_completed
    if is_completed:
        task.completed_at = datetime.now(timezone.utc)
        # Ticking off a task nobody timed counts it as done as estimated
        if task.completed_pomodoros == 0:
            task.completed_pomodoros = task.estimated_pomodoros
    else:
        task.completed_at = None


async def update_task(
    db: AsyncSession, user_id: uuid.UUID, task_id: uuid.UUID, data: dict
) -> Task | None:
    task = await get_task(db, user_id, task_id)
    if task is None:
        return None

    is_completed = data.pop("is_completed", None)
    for key, value in data.items():
        if value is not None:
            setattr(task, key, value)
    if is_completed is not None:
        _apply_completion(task, is_completed)
    task.updated_at = datetime.now(timezone.utc)

    await db.flush()
    await db.refresh(task)
    return task


async def delete_task(db: AsyncSession, user_id: uuid.UUID, task_id: uuid.UUID) -> bool:
    task = await get_task(db, user_id, task_id)
    if task is None:
        return False
    # Sessions keep their history, only the link goes
    await db.execute(
        update(Session).where(Session.task_id == task_id).values(task_id=None)
    )
    await db.delete(task)
    await db.flush()
    return True


async def delete_all_tasks(db: AsyncSession, user_id: uuid.UUID) -> int:
    count = await db.scalar(select(func.count(Task.id)).where(Task.user_id == user_id))
    await db.execute(delete(Task).where(Task.user_id == user_id))
    await db.flush()
    return count or 0


async def increment_pomodoros(
    db: AsyncSession, user_id: uuid.UUID, task_id: uuid.UUID
) -> Task | None:
    """Credit one finished focus session to a task."""
    task = await get_task(db, user_id, task_id)
    if task is None:
        return None
    task.completed_pomodoros += 1
    task.updated_at = datetime.now(timezone.utc)
    await db.flush()
    await db.refresh(task)
    logger.info("Task %s now has %d pomodoros", task_id, task.completed_pomodoros)
    return task


async def add_chrono_duration(
    db: AsyncSession, user_id: uuid.UUID, task_id: uuid.UUID, seconds: int
) -> Task | None:
    task = await get_task(db, user_id, task_id)
    if task is None:
        return None
    task.chrono_duration_seconds += seconds
    task.is_chrono_log = True
    task.updated_at = datetime.now(timezone.utc)
    await db.flush()
    await db.refresh(task)
    return task
