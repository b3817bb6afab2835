from enum import Enum

from pydantic import BaseModel, Field, field_validator

from focustimer.config import settings


class TimerMode(str, Enum):
    FOCUS = "focus"
    SHORT_BREAK = "shortBreak"
    LONG_BREAK = "longBreak"
    CHRONOMETER = "chronometer"

    @property
    def is_countdown(self) -> bool:
        return self is not TimerMode.CHRONOMETER

    @property
    def is_break(self) -> bool:
        return self in (TimerMode.SHORT_BREAK, TimerMode.LONG_BREAK)


class TimerDurations(BaseModel):
    """Configured countdown lengths in seconds.

    Non-positive values are clamped to one second instead of being rejected,
    so a bad settings payload never leaves the timer without a duration.
    """

    focus: int = settings.DEFAULT_FOCUS_SECONDS
    short_break: int = settings.DEFAULT_SHORT_BREAK_SECONDS
    long_break: int = settings.DEFAULT_LONG_BREAK_SECONDS

    @field_validator("focus", "short_break", "long_break", mode="before")
    @classmethod
    def _clamp(cls, value) -> int:
        return max(1, int(value))

    def for_mode(self, mode: TimerMode) -> int:
        """Full countdown for ``mode``; the chronometer has none."""
        if mode is TimerMode.FOCUS:
            return self.focus
        if mode is TimerMode.SHORT_BREAK:
            return self.short_break
        if mode is TimerMode.LONG_BREAK:
            return self.long_break
        return 0


class AutoStartConfig(BaseModel):
    auto_start_break: bool = False
    auto_start_focus: bool = False
    long_break_interval: int = Field(default=settings.DEFAULT_LONG_BREAK_INTERVAL, ge=2)
