from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from focustimer.schemas.session import SessionResponse
from focustimer.schemas.stats import SummaryStats
from focustimer.schemas.task import TaskResponse
from focustimer.timer.modes import AutoStartConfig, TimerDurations


class TimerSettings(AutoStartConfig):
    durations: TimerDurations = Field(default_factory=TimerDurations)

    def auto_start(self) -> AutoStartConfig:
        return AutoStartConfig(
            auto_start_break=self.auto_start_break,
            auto_start_focus=self.auto_start_focus,
            long_break_interval=self.long_break_interval,
        )


class AccountExport(BaseModel):
    exported_at: datetime
    settings: TimerSettings
    sessions: list[SessionResponse]
    tasks: list[TaskResponse]
    summary: SummaryStats


class AccountDataDeleted(BaseModel):
    deleted_sessions: int
    deleted_tasks: int
    settings_reset: bool


class AccountImport(BaseModel):
    """An ``AccountExport`` document being loaded back.

    Records stay raw here so one malformed entry is dropped on its own
    instead of rejecting the whole file.
    """

    settings: TimerSettings | None = None
    sessions: list[dict[str, Any]] = Field(default_factory=list)
    tasks: list[dict[str, Any]] = Field(default_factory=list)


class AccountImported(BaseModel):
    imported_sessions: int
    imported_tasks: int
    skipped_sessions: int
    skipped_tasks: int
