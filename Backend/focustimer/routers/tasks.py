import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from focustimer.database import get_db
from focustimer.dependencies import get_current_user
from focustimer.models.user import User
from focustimer.schemas.task import ChronoDurationAdd, TaskCreate, TaskResponse, TaskUpdate
from focustimer.services import task_service

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")


@router.get("", response_model=list[TaskResponse])
async def list_tasks(
    is_completed: bool | None = Query(default=None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await task_service.get_tasks(db, user.id, is_completed=is_completed)


@router.post("", response_model=TaskResponse, status_code=201)
async def create_task(
    data: TaskCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await task_service.create_task(db, user.id, data.model_dump())


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: uuid.UUID,
    data: TaskUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    task = await task_service.update_task(
        db, user.id, task_id, data.model_dump(exclude_unset=True)
    )
    if task is None:
        raise _not_found()
    return task


@router.delete("/{task_id}", status_code=204)
async def delete_task(
    task_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not await task_service.delete_task(db, user.id, task_id):
        raise _not_found()
    return Response(status_code=204)


@router.post("/{task_id}/pomodoros", response_model=TaskResponse)
async def increment_pomodoros(
    task_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    task = await task_service.increment_pomodoros(db, user.id, task_id)
    if task is None:
        raise _not_found()
    return task


@router.post("/{task_id}/chrono", response_model=TaskResponse)
async def add_chrono_duration(
    task_id: uuid.UUID,
    data: ChronoDurationAdd,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    task = await task_service.add_chrono_duration(db, user.id, task_id, data.seconds)
    if task is None:
        raise _not_found()
    return task
