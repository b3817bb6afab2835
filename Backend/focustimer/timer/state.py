"""Timer state machine.

One mutable ``TimerState`` per machine. Every mutation goes through the
machine's operations, and every operation notifies the registered listeners
once the state is consistent again (tick loop, auto-start controller,
cross-view sync, views).

Invariants
----------
- ``running`` is True exactly when ``last_tick`` is set.
- ``remaining_seconds`` and ``elapsed_seconds`` never go below zero.
- A countdown reaching zero completes exactly once and leaves the machine
  idle at zero in the same mode; starting it again re-arms the full duration.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Protocol

from pydantic import BaseModel, Field

from focustimer.schemas.session import SessionCreate
from focustimer.timer.clock import Clock, SystemClock
from focustimer.timer.modes import TimerDurations, TimerMode
from focustimer.timer.tasks import TaskCollaborator
from focustimer.utils.numbers import round_half_up

logger = logging.getLogger(__name__)

# Float residue below this after subtracting wall-clock deltas counts as zero.
_EPSILON = 1e-9


class SessionRecorder(Protocol):
    def record(self, draft: SessionCreate) -> None:
        """Accept a finished session; must not block."""
        ...


@dataclass
class TimerState:
    mode: TimerMode = TimerMode.FOCUS
    remaining_seconds: float = 0.0
    elapsed_seconds: float = 0.0
    running: bool = False
    last_tick: float | None = None
    durations: TimerDurations = field(default_factory=TimerDurations)


class TimerSnapshot(BaseModel):
    """Serializable view of a machine, exchanged between open views."""

    mode: TimerMode
    remaining_seconds: float = Field(ge=0)
    elapsed_seconds: float = Field(ge=0)
    running: bool
    durations: TimerDurations
    completed_focus_sessions: int = Field(default=0, ge=0)


Listener = Callable[[TimerState], None]


class TimerStateMachine:
    def __init__(
        self,
        durations: TimerDurations | None = None,
        *,
        clock: Clock | None = None,
        recorder: SessionRecorder | None = None,
        tasks: TaskCollaborator | None = None,
        record_abandoned: bool = False,
    ) -> None:
        durations = durations or TimerDurations()
        self._clock = clock or SystemClock()
        self._recorder = recorder
        self._tasks = tasks
        self._record_abandoned = record_abandoned
        self._listeners: list[Listener] = []

        self.state = TimerState(
            mode=TimerMode.FOCUS,
            remaining_seconds=float(durations.focus),
            durations=durations,
        )
        self.completed_focus_sessions = 0

    # -- observation -------------------------------------------------------

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.state)

    # -- transitions -------------------------------------------------------

    def _stop(self) -> None:
        self.state.running = False
        self.state.last_tick = None

    def toggle_running(self) -> None:
        state = self.state
        if state.running:
            self._stop()
        else:
            if state.mode.is_countdown and state.remaining_seconds <= 0:
                state.remaining_seconds = float(state.durations.for_mode(state.mode))
            state.running = True
            state.last_tick = self._clock.monotonic()
        self._notify()

    def reset(self) -> None:
        state = self.state
        if state.mode is TimerMode.CHRONOMETER:
            state.elapsed_seconds = 0.0
            state.remaining_seconds = 0.0
        else:
            state.remaining_seconds = float(state.durations.for_mode(state.mode))
        self._stop()
        self._notify()

    def switch_mode(self, mode: TimerMode | str) -> None:
        mode = TimerMode(mode)
        if self._record_abandoned:
            self._record_abandoned_progress()

        state = self.state
        state.mode = mode
        state.elapsed_seconds = 0.0
        state.remaining_seconds = float(state.durations.for_mode(mode))
        self._stop()
        self._notify()

    def tick(self) -> None:
        state = self.state
        if not state.running:
            return

        now = self._clock.monotonic()
        delta = max(0.0, now - state.last_tick) if state.last_tick is not None else 0.0

        if state.mode is TimerMode.CHRONOMETER:
            state.elapsed_seconds += delta
            state.last_tick = now
            self._notify()
            return

        if state.remaining_seconds <= 0:
            self._stop()
            self._notify()
            return

        remaining = state.remaining_seconds - delta
        state.remaining_seconds = 0.0 if remaining <= _EPSILON else remaining
        state.last_tick = now

        if state.remaining_seconds == 0:
            self.complete()
        else:
            self._notify()

    def complete(self) -> SessionCreate | None:
        """Finish the current session now and hand it to the recorder.

        Countdown modes are credited with their full configured duration. A
        chronometer whose elapsed time rounds to zero is stopped without
        producing a session.
        """
        state = self.state
        mode = state.mode

        if mode is TimerMode.CHRONOMETER:
            duration = int(round_half_up(state.elapsed_seconds))
            if duration <= 0:
                state.elapsed_seconds = 0.0
                self._stop()
                self._notify()
                return None
        else:
            duration = state.durations.for_mode(mode)

        completed_at = self._clock.now()
        task_id = None
        if mode.is_countdown and self._tasks is not None:
            task_id = self._tasks.active_task_id

        draft = SessionCreate(
            mode=mode,
            duration_seconds=duration,
            started_at=completed_at - timedelta(seconds=duration),
            completed_at=completed_at,
            was_completed=True,
            task_id=task_id,
        )

        if mode is TimerMode.FOCUS:
            self.completed_focus_sessions += 1

        self._stop()
        state.remaining_seconds = 0.0
        state.elapsed_seconds = 0.0
        logger.info("Timer completed %s session (%ss)", mode.value, duration)

        if self._recorder is not None:
            self._recorder.record(draft)
        self._notify()
        return draft

    def _record_abandoned_progress(self) -> None:
        state = self.state
        if state.mode is TimerMode.CHRONOMETER:
            progress = int(round_half_up(state.elapsed_seconds))
        else:
            full = state.durations.for_mode(state.mode)
            if state.remaining_seconds <= 0 or state.remaining_seconds >= full:
                return
            progress = int(round_half_up(full - state.remaining_seconds))
        if progress <= 0 or self._recorder is None:
            return

        completed_at = self._clock.now()
        self._recorder.record(
            SessionCreate(
                mode=state.mode,
                duration_seconds=progress,
                started_at=completed_at - timedelta(seconds=progress),
                completed_at=completed_at,
                was_completed=False,
            )
        )
        logger.info("Recorded abandoned %s session (%ss)", state.mode.value, progress)

    def update_durations(self, durations: TimerDurations) -> None:
        state = self.state
        state.durations = durations
        if not state.running and state.mode.is_countdown:
            state.remaining_seconds = float(durations.for_mode(state.mode))
        self._notify()

    # -- cross-view sync ---------------------------------------------------

    def snapshot(self) -> TimerSnapshot:
        state = self.state
        return TimerSnapshot(
            mode=state.mode,
            remaining_seconds=state.remaining_seconds,
            elapsed_seconds=state.elapsed_seconds,
            running=state.running,
            durations=state.durations,
            completed_focus_sessions=self.completed_focus_sessions,
        )

    def apply_snapshot(self, snapshot: TimerSnapshot) -> bool:
        """Adopt state published by another view.

        Ignored while this machine is running. The adopted state is always
        idle here; only the publishing view keeps counting. A finished
        countdown is adopted re-armed, so whatever follows a completion
        (auto-start included) happens only in the view that completed it.
        """
        if self.state.running:
            logger.debug("Ignoring external timer snapshot while running")
            return False

        state = self.state
        state.mode = snapshot.mode
        state.remaining_seconds = snapshot.remaining_seconds
        if snapshot.mode.is_countdown and snapshot.remaining_seconds <= 0:
            state.remaining_seconds = float(snapshot.durations.for_mode(snapshot.mode))
        state.elapsed_seconds = snapshot.elapsed_seconds
        state.durations = snapshot.durations
        self.completed_focus_sessions = snapshot.completed_focus_sessions
        self._stop()
        self._notify()
        return True


def format_clock(seconds: float) -> str:
    """Render as ``MM:SS``; minutes are not wrapped at the hour."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def format_duration(seconds: float) -> str:
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"
