import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from focustimer.database import get_db
from focustimer.dependencies import get_current_user
from focustimer.models.user import User
from focustimer.schemas.session import (
    SessionClearResponse,
    SessionCreate,
    SessionResponse,
    SessionTaskUpdate,
)
from focustimer.services import session_service

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.get("", response_model=list[SessionResponse])
async def list_sessions(
    limit: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await session_service.get_sessions(db, user.id, limit=limit, offset=offset)


@router.post("", response_model=SessionResponse, status_code=201)
async def create_session(
    data: SessionCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await session_service.create_session(db, user.id, data.model_dump())


@router.patch("/{session_id}", response_model=SessionResponse)
async def reassign_session_task(
    session_id: uuid.UUID,
    data: SessionTaskUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    session = await session_service.reassign_task(db, user.id, session_id, data.task_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Session not found"
        )
    return session


@router.delete("/{session_id}", status_code=204)
async def delete_session(
    session_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not await session_service.delete_session(db, user.id, session_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Session not found"
        )
    return Response(status_code=204)


@router.delete("", response_model=SessionClearResponse)
async def clear_sessions(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    deleted = await session_service.delete_all_sessions(db, user.id)
    return SessionClearResponse(deleted=deleted)
