import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

TaskPriority = Literal["low", "medium", "high"]


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    description: str | None = None
    estimated_pomodoros: int = Field(default=1, ge=1, le=100)
    completed_pomodoros: int = Field(default=0, ge=0)
    priority: TaskPriority = "medium"
    is_completed: bool = False
    completed_at: datetime | None = None
    is_chrono_log: bool = False
    chrono_duration_seconds: int = Field(default=0, ge=0)
    scheduled_date: datetime | None = None
    order_index: int = 0


class TaskUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    estimated_pomodoros: int | None = Field(default=None, ge=1, le=100)
    completed_pomodoros: int | None = Field(default=None, ge=0)
    priority: TaskPriority | None = None
    is_completed: bool | None = None
    is_chrono_log: bool | None = None
    chrono_duration_seconds: int | None = Field(default=None, ge=0)
    scheduled_date: datetime | None = None
    order_index: int | None = None


class ChronoDurationAdd(BaseModel):
    seconds: int = Field(ge=0)


class TaskResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    title: str
    description: str | None
    estimated_pomodoros: int
    completed_pomodoros: int
    priority: str
    is_completed: bool
    completed_at: datetime | None
    is_chrono_log: bool
    chrono_duration_seconds: int
    scheduled_date: datetime | None
    order_index: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
