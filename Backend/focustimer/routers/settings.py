from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from focustimer.database import get_db
from focustimer.dependencies import get_current_user
from focustimer.models.user import User
from focustimer.schemas.settings import TimerSettings
from focustimer.services import settings_service

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/timer", response_model=TimerSettings)
async def get_timer_settings(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await settings_service.get_timer_settings(db, user.id)


@router.put("/timer", response_model=TimerSettings)
async def update_timer_settings(
    data: TimerSettings,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await settings_service.update_timer_settings(db, user.id, data)
