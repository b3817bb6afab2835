"""Wire one view's timer together: machine, tick loop, auto-start, history, sync."""

import asyncio
import logging
from collections.abc import Callable

import httpx

from focustimer.schemas.settings import TimerSettings
from focustimer.timer.autostart import AutoStartController
from focustimer.timer.clock import Clock
from focustimer.timer.ledger import LedgerError, SessionHistory, SessionLedger
from focustimer.timer.state import TimerStateMachine
from focustimer.timer.sync import RedisSnapshotChannel
from focustimer.timer.tasks import TaskCollaborator
from focustimer.timer.tick_loop import TickLoop

logger = logging.getLogger(__name__)


async def fetch_timer_settings(http_client: httpx.AsyncClient) -> TimerSettings:
    """Operator settings from the store, or defaults when it cannot be reached."""
    try:
        resp = await http_client.get("/settings/timer")
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning("Using default timer settings: %s", exc)
        return TimerSettings()
    return TimerSettings.model_validate(resp.json())


class FocusTimer:
    def __init__(
        self,
        ledger: SessionLedger,
        timer_settings: TimerSettings | None = None,
        *,
        tasks: TaskCollaborator | None = None,
        clock: Clock | None = None,
        redis_client=None,
        on_error: Callable[[LedgerError], None] | None = None,
        record_abandoned: bool = False,
        autostart_delay: float | None = None,
    ) -> None:
        timer_settings = timer_settings or TimerSettings()
        self.history = SessionHistory(ledger, tasks=tasks, on_error=on_error)
        self.machine = TimerStateMachine(
            timer_settings.durations,
            clock=clock,
            recorder=self.history,
            tasks=tasks,
            record_abandoned=record_abandoned,
        )
        self.tick_loop = TickLoop(self.machine)
        self.autostart = AutoStartController(
            self.machine, timer_settings.auto_start(), delay=autostart_delay
        )
        self.sync = (
            RedisSnapshotChannel(redis_client, self.machine)
            if redis_client is not None
            else None
        )
        self._detach_sync: Callable[[], None] | None = None
        self._listener: asyncio.Task | None = None

    async def start(self) -> None:
        """Seed history and the focus counter, then join the sync channel."""
        try:
            self.machine.completed_focus_sessions = await self.history.load()
        except LedgerError as exc:
            logger.warning("Starting with empty session history: %s", exc)

        if self.sync is not None:
            self._detach_sync = self.sync.attach()
            self._listener = asyncio.get_running_loop().create_task(self.sync.listen())

    def apply_settings(self, timer_settings: TimerSettings) -> None:
        self.machine.update_durations(timer_settings.durations)
        self.autostart.update_config(timer_settings.auto_start())

    async def close(self) -> None:
        self.tick_loop.close()
        self.autostart.close()
        if self._detach_sync is not None:
            self._detach_sync()
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
        await self.history.drain()
