import asyncio
import logging

from focustimer.config import settings
from focustimer.timer.modes import AutoStartConfig, TimerMode
from focustimer.timer.state import TimerState, TimerStateMachine

logger = logging.getLogger(__name__)


def next_auto_start_mode(
    mode: TimerMode,
    running: bool,
    remaining_seconds: float,
    completed_focus_sessions: int,
    config: AutoStartConfig,
) -> TimerMode | None:
    """Mode to start automatically, or None.

    Only fires in the idle, zero-remaining window a countdown completion
    leaves behind. Every ``long_break_interval``-th focus session earns a
    long break.
    """
    if mode is TimerMode.CHRONOMETER:
        return None
    if running or remaining_seconds > 0:
        return None

    if mode is TimerMode.FOCUS and config.auto_start_break:
        if (
            completed_focus_sessions > 0
            and completed_focus_sessions % config.long_break_interval == 0
        ):
            return TimerMode.LONG_BREAK
        return TimerMode.SHORT_BREAK
    if mode.is_break and config.auto_start_focus:
        return TimerMode.FOCUS
    return None


class AutoStartController:
    """Queue the next mode after a completion, per the auto-start settings.

    Re-evaluated on every machine change; a pending transition is cancelled
    as soon as any of its inputs change before it fires.
    """

    def __init__(
        self,
        machine: TimerStateMachine,
        config: AutoStartConfig | None = None,
        delay: float | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._machine = machine
        self._config = config or AutoStartConfig()
        self._delay = settings.AUTO_START_DELAY_SECONDS if delay is None else delay
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._inputs: tuple | None = None
        self._unsubscribe = machine.add_listener(self._on_change)

    @property
    def config(self) -> AutoStartConfig:
        return self._config

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def update_config(self, config: AutoStartConfig) -> None:
        self._config = config
        self._on_change(self._machine.state)

    def _on_change(self, state: TimerState) -> None:
        inputs = (
            state.mode,
            state.running,
            state.remaining_seconds,
            self._machine.completed_focus_sessions,
            self._config,
        )
        if inputs == self._inputs:
            return
        self._inputs = inputs
        self._cancel()

        next_mode = next_auto_start_mode(
            state.mode,
            state.running,
            state.remaining_seconds,
            self._machine.completed_focus_sessions,
            self._config,
        )
        if next_mode is None:
            return

        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay, self._fire, next_mode)
        logger.info("Auto-starting %s in %ss", next_mode.value, self._delay)

    def _cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, next_mode: TimerMode) -> None:
        self._handle = None
        self._machine.switch_mode(next_mode)
        self._machine.toggle_running()

    def close(self) -> None:
        self._cancel()
        self._unsubscribe()
