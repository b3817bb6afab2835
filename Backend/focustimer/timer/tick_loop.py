import asyncio
import logging

from focustimer.config import settings
from focustimer.timer.state import TimerState, TimerStateMachine

logger = logging.getLogger(__name__)


class TickLoop:
    """Drive ``machine.tick()`` from the event loop while the timer runs.

    The frame interval is only a scheduling hint: ``tick()`` measures the real
    delta since the previous frame, so late or throttled frames never drift
    the clock. At most one frame is pending at any time.
    """

    def __init__(
        self,
        machine: TimerStateMachine,
        interval: float | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._machine = machine
        self._interval = settings.TICK_INTERVAL_SECONDS if interval is None else interval
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._closed = False
        self._unsubscribe = machine.add_listener(self._on_change)
        if machine.state.running:
            self._schedule()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def _on_change(self, state: TimerState) -> None:
        if state.running:
            if self._handle is None:
                self._schedule()
        else:
            self._cancel()

    def _schedule(self) -> None:
        if self._closed:
            return
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self._interval, self._frame)

    def _cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _frame(self) -> None:
        self._handle = None
        self._machine.tick()
        # tick() may have rescheduled through _on_change already
        if self._machine.state.running and self._handle is None:
            self._schedule()

    def close(self) -> None:
        """Cancel the pending frame and stop observing the machine."""
        self._closed = True
        self._cancel()
        self._unsubscribe()
