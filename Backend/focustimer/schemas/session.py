import uuid
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from focustimer.timer.modes import TimerMode
from focustimer.utils.datetime_helper import as_aware


class SessionCreate(BaseModel):
    mode: TimerMode
    duration_seconds: int = Field(default=0, ge=0)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    was_completed: bool = True
    task_id: uuid.UUID | None = None


class SessionTaskUpdate(BaseModel):
    task_id: uuid.UUID | None = None


class SessionResponse(BaseModel):
    id: uuid.UUID
    mode: TimerMode
    duration_seconds: int
    started_at: datetime
    completed_at: datetime
    was_completed: bool
    task_id: uuid.UUID | None = None
    user_id: uuid.UUID | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}

    @field_validator("started_at", "completed_at", "created_at")
    @classmethod
    def _utc_if_naive(cls, value: datetime | None) -> datetime | None:
        # SQLite returns naive datetimes for timezone-aware columns
        return as_aware(value) if value is not None else None


class SessionClearResponse(BaseModel):
    deleted: int
