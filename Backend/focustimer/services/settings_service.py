import logging
import uuid
from datetime import datetime, timezone, tzinfo

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from focustimer.models.user import User
from focustimer.schemas.session import SessionResponse
from focustimer.schemas.settings import (
    AccountDataDeleted,
    AccountExport,
    AccountImport,
    AccountImported,
    TimerSettings,
)
from focustimer.schemas.task import TaskResponse
from focustimer.services import analytics, session_service, task_service

logger = logging.getLogger(__name__)

TIMER_SETTINGS_KEY = "timer"
_TASK_IDENTITY_FIELDS = {"id", "user_id", "created_at", "updated_at"}
_SESSION_IMPORT_FIELDS = {"mode", "duration_seconds", "started_at", "completed_at", "was_completed"}


async def _load_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise ValueError(f"User {user_id} not found")
    return user


def parse_timer_settings(user: User) -> TimerSettings:
    """Stored timer settings, or defaults when none (or garbage) are stored."""
    raw = (user.settings_json or {}).get(TIMER_SETTINGS_KEY)
    if raw is None:
        return TimerSettings()
    try:
        return TimerSettings.model_validate(raw)
    except ValidationError:
        logger.warning("Stored timer settings for user %s are invalid, using defaults", user.id)
        return TimerSettings()


async def get_timer_settings(db: AsyncSession, user_id: uuid.UUID) -> TimerSettings:
    return parse_timer_settings(await _load_user(db, user_id))


async def update_timer_settings(
    db: AsyncSession, user_id: uuid.UUID, timer_settings: TimerSettings
) -> TimerSettings:
    user = await _load_user(db, user_id)
    # Reassign so the JSON column registers the change
    user.settings_json = {
        **(user.settings_json or {}),
        TIMER_SETTINGS_KEY: timer_settings.model_dump(),
    }
    user.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return timer_settings


async def export_account(
    db: AsyncSession, user_id: uuid.UUID, tz: tzinfo | None = None
) -> AccountExport:
    user = await _load_user(db, user_id)
    sessions = await session_service.get_sessions(db, user_id)
    tasks = await task_service.get_tasks(db, user_id)
    return AccountExport(
        exported_at=datetime.now(timezone.utc),
        settings=parse_timer_settings(user),
        sessions=[SessionResponse.model_validate(s) for s in sessions],
        tasks=[TaskResponse.model_validate(t) for t in tasks],
        summary=analytics.compute_summary_stats(sessions, tasks, tz=tz),
    )


async def delete_account_data(db: AsyncSession, user_id: uuid.UUID) -> AccountDataDeleted:
    """Wipe sessions, tasks and timer settings; the account itself stays."""
    user = await _load_user(db, user_id)
    deleted_sessions = await session_service.delete_all_sessions(db, user_id)
    deleted_tasks = await task_service.delete_all_tasks(db, user_id)

    settings_json = dict(user.settings_json or {})
    settings_reset = settings_json.pop(TIMER_SETTINGS_KEY, None) is not None
    user.settings_json = settings_json
    user.updated_at = datetime.now(timezone.utc)
    await db.flush()

    logger.info(
        "Deleted account data for user %s: %d sessions, %d tasks",
        user_id, deleted_sessions, deleted_tasks,
    )
    return AccountDataDeleted(
        deleted_sessions=deleted_sessions,
        deleted_tasks=deleted_tasks,
        settings_reset=settings_reset,
    )


async def import_account(
    db: AsyncSession, user_id: uuid.UUID, data: AccountImport
) -> AccountImported:
    """Replace the user's sessions, tasks and settings with an export.

    Records whose ids (or any other field) do not validate are skipped.
    Tasks get fresh ids; session task references follow them, and ones
    pointing at no imported task are cleared.
    """
    user = await _load_user(db, user_id)
    await session_service.delete_all_sessions(db, user_id)
    await task_service.delete_all_tasks(db, user_id)

    task_ids: dict[uuid.UUID, uuid.UUID] = {}
    skipped_tasks = 0
    for raw in data.tasks:
        try:
            record = TaskResponse.model_validate(raw)
        except ValidationError:
            skipped_tasks += 1
            continue
        task = await task_service.create_task(
            db, user_id, record.model_dump(exclude=_TASK_IDENTITY_FIELDS)
        )
        task_ids[record.id] = task.id

    imported_sessions = 0
    skipped_sessions = 0
    for raw in data.sessions:
        try:
            record = SessionResponse.model_validate(raw)
        except ValidationError:
            skipped_sessions += 1
            continue
        session_data = record.model_dump(include=_SESSION_IMPORT_FIELDS)
        session_data["task_id"] = task_ids.get(record.task_id) if record.task_id else None
        await session_service.create_session(db, user_id, session_data)
        imported_sessions += 1

    if data.settings is not None:
        user.settings_json = {
            **(user.settings_json or {}),
            TIMER_SETTINGS_KEY: data.settings.model_dump(),
        }
    user.updated_at = datetime.now(timezone.utc)
    await db.flush()

    if skipped_sessions or skipped_tasks:
        logger.warning(
            "Import for user %s skipped %d malformed sessions and %d malformed tasks",
            user_id, skipped_sessions, skipped_tasks,
        )
    logger.info(
        "Imported %d sessions and %d tasks for user %s",
        imported_sessions, len(task_ids), user_id,
    )
    return AccountImported(
        imported_sessions=imported_sessions,
        imported_tasks=len(task_ids),
        skipped_sessions=skipped_sessions,
        skipped_tasks=skipped_tasks,
    )
