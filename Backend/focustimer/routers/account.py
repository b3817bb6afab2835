from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from focustimer.database import get_db
from focustimer.dependencies import get_current_user
from focustimer.models.user import User
from focustimer.routers.stats import request_timezone
from focustimer.schemas.settings import (
    AccountDataDeleted,
    AccountExport,
    AccountImport,
    AccountImported,
)
from focustimer.services import settings_service

router = APIRouter(prefix="/account", tags=["account"])


@router.get("/export", response_model=AccountExport)
async def export_account(
    tz=Depends(request_timezone),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await settings_service.export_account(db, user.id, tz=tz)


@router.delete("/data", response_model=AccountDataDeleted)
async def delete_account_data(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await settings_service.delete_account_data(db, user.id)


@router.post("/import", response_model=AccountImported)
async def import_account(
    data: AccountImport,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await settings_service.import_account(db, user.id, data)
