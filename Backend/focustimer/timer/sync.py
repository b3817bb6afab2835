import asyncio
import logging
import uuid
from collections.abc import Callable

from pydantic import BaseModel, ValidationError
from redis.exceptions import RedisError

from focustimer.config import settings
from focustimer.timer.state import TimerSnapshot, TimerState, TimerStateMachine

logger = logging.getLogger(__name__)


class SnapshotMessage(BaseModel):
    source: str
    snapshot: TimerSnapshot


class RedisSnapshotChannel:
    """Keep several open views of one timer in step over redis pub/sub.

    Each view publishes its own state after every change except plain ticks
    and applies what other views publish. Incoming snapshots never interrupt
    a running countdown; see ``TimerStateMachine.apply_snapshot``.
    """

    def __init__(
        self,
        redis_client,
        machine: TimerStateMachine,
        channel: str | None = None,
    ) -> None:
        self._redis = redis_client
        self._machine = machine
        self._channel = channel or settings.TIMER_SYNC_CHANNEL
        self.source = uuid.uuid4().hex
        self._applying = False
        self._last_published: tuple | None = None
        self._pending: set[asyncio.Task] = set()

    async def publish(self) -> int:
        message = SnapshotMessage(source=self.source, snapshot=self._machine.snapshot())
        return await self._redis.publish(self._channel, message.model_dump_json())

    async def _publish_quietly(self) -> None:
        try:
            await self.publish()
        except RedisError as exc:
            logger.warning("Timer snapshot publish failed: %s", exc)

    def needs_publish(self, state: TimerState) -> bool:
        """True when ``state`` differs from the last published one beyond ticking."""
        if self._applying:
            return False
        key = (state.mode, state.running, state.durations)
        if state.running and key == self._last_published:
            return False
        self._last_published = key
        return True

    def attach(self) -> Callable[[], None]:
        """Publish on every relevant machine change; returns the detach callable."""

        def on_change(state: TimerState) -> None:
            if not self.needs_publish(state):
                return
            task = asyncio.get_running_loop().create_task(self._publish_quietly())
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

        return self._machine.add_listener(on_change)

    def handle_message(self, data: str | bytes) -> bool:
        """Apply one published payload; returns True if the machine adopted it."""
        try:
            message = SnapshotMessage.model_validate_json(data)
        except ValidationError:
            logger.warning("Ignoring malformed timer snapshot on %s", self._channel)
            return False
        if message.source == self.source:
            return False

        self._applying = True
        try:
            return self._machine.apply_snapshot(message.snapshot)
        finally:
            self._applying = False

    async def listen(self) -> None:
        """Consume the channel until cancelled."""
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self._channel)
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                self.handle_message(message["data"])
        finally:
            await pubsub.unsubscribe(self._channel)
            await pubsub.close()
