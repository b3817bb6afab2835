"""Session ledger boundary and the in-memory session history.

The timer never waits on storage. ``SessionHistory.record`` updates the local
history immediately and persists in the background; storage failures are
reported but never roll the local change back.
"""

import asyncio
import logging
import uuid
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, timezone
from typing import Protocol

import httpx
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from focustimer.schemas.session import SessionCreate, SessionResponse
from focustimer.services import session_service
from focustimer.timer.modes import TimerMode
from focustimer.timer.tasks import TaskCollaborator, TaskUpdateError
from focustimer.utils.datetime_helper import as_aware

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """A session store operation failed."""

    def __init__(self, operation: str, message: str, status_code: int | None = None):
        super().__init__(f"{operation}: {message}")
        self.operation = operation
        self.status_code = status_code


class SessionLedger(Protocol):
    async def append(self, draft: SessionCreate) -> SessionResponse:
        ...

    async def list(self) -> Sequence[SessionResponse]:
        ...

    async def reassign_task(
        self, session_id: uuid.UUID, task_id: uuid.UUID | None
    ) -> SessionResponse:
        ...

    async def remove(self, session_id: uuid.UUID) -> None:
        ...


class DatabaseSessionLedger:
    """Ledger writing straight to the database, for in-process callers."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        user_id: uuid.UUID,
    ) -> None:
        self._session_factory = session_factory
        self._user_id = user_id

    async def append(self, draft: SessionCreate) -> SessionResponse:
        try:
            async with self._session_factory() as db:
                session = await session_service.create_session(
                    db, self._user_id, draft.model_dump()
                )
                record = SessionResponse.model_validate(session)
                await db.commit()
        except (SQLAlchemyError, ValueError) as exc:
            raise LedgerError("append", str(exc)) from exc
        return record

    async def list(self) -> Sequence[SessionResponse]:
        try:
            async with self._session_factory() as db:
                sessions = await session_service.get_sessions(db, self._user_id)
                return [SessionResponse.model_validate(s) for s in sessions]
        except SQLAlchemyError as exc:
            raise LedgerError("list", str(exc)) from exc

    async def reassign_task(
        self, session_id: uuid.UUID, task_id: uuid.UUID | None
    ) -> SessionResponse:
        try:
            async with self._session_factory() as db:
                session = await session_service.reassign_task(
                    db, self._user_id, session_id, task_id
                )
                if session is None:
                    raise LedgerError("reassign_task", "session not found", status_code=404)
                record = SessionResponse.model_validate(session)
                await db.commit()
        except (SQLAlchemyError, ValueError) as exc:
            raise LedgerError("reassign_task", str(exc)) from exc
        return record

    async def remove(self, session_id: uuid.UUID) -> None:
        try:
            async with self._session_factory() as db:
                deleted = await session_service.delete_session(db, self._user_id, session_id)
                await db.commit()
        except SQLAlchemyError as exc:
            raise LedgerError("remove", str(exc)) from exc
        if not deleted:
            raise LedgerError("remove", "session not found", status_code=404)


class HttpSessionLedger:
    """Ledger backed by the ``/sessions`` endpoints."""

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self._http = http_client

    async def _request(self, operation: str, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            resp = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise LedgerError(operation, str(exc)) from exc
        if resp.status_code >= 400:
            raise LedgerError(
                operation, f"store returned {resp.status_code}", status_code=resp.status_code
            )
        return resp

    async def append(self, draft: SessionCreate) -> SessionResponse:
        resp = await self._request(
            "append", "POST", "/sessions", json=draft.model_dump(mode="json")
        )
        return SessionResponse.model_validate(resp.json())

    async def list(self) -> Sequence[SessionResponse]:
        resp = await self._request("list", "GET", "/sessions")
        records = []
        for item in resp.json():
            try:
                records.append(SessionResponse.model_validate(item))
            except ValidationError as exc:
                # One bad record must not hide the rest of the history
                logger.warning(
                    "Dropping malformed session record (%d validation errors)",
                    exc.error_count(),
                )
        return records

    async def reassign_task(
        self, session_id: uuid.UUID, task_id: uuid.UUID | None
    ) -> SessionResponse:
        resp = await self._request(
            "reassign_task",
            "PATCH",
            f"/sessions/{session_id}",
            json={"task_id": str(task_id) if task_id is not None else None},
        )
        return SessionResponse.model_validate(resp.json())

    async def remove(self, session_id: uuid.UUID) -> None:
        await self._request("remove", "DELETE", f"/sessions/{session_id}")


def _parse_id(value: uuid.UUID | str) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class SessionHistory:
    """Newest-first in-memory session history in front of a ledger.

    Implements the state machine's recorder. Changes land locally first; the
    ledger call follows. Failures are logged, passed to ``on_error`` and, for
    awaited operations, re-raised. The local change is kept either way until
    the caller reconciles (for example with ``load()``).
    """

    def __init__(
        self,
        ledger: SessionLedger,
        tasks: TaskCollaborator | None = None,
        on_error: Callable[[LedgerError], None] | None = None,
    ) -> None:
        self._ledger = ledger
        self._tasks = tasks
        self._on_error = on_error
        self._sessions: list[SessionResponse] = []
        self._pending: set[asyncio.Task] = set()

    @property
    def sessions(self) -> tuple[SessionResponse, ...]:
        return tuple(self._sessions)

    def completed_focus_count(self) -> int:
        return sum(
            1 for s in self._sessions if s.mode is TimerMode.FOCUS and s.was_completed
        )

    async def load(self) -> int:
        """Replace local history with the ledger's; returns completed focus sessions."""
        records = await self._ledger.list()
        self._sessions = sorted(
            records, key=lambda s: as_aware(s.completed_at), reverse=True
        )
        return self.completed_focus_count()

    # -- writes ------------------------------------------------------------

    def record(self, draft: SessionCreate) -> SessionResponse:
        """Add ``draft`` locally and persist it without blocking the caller."""
        provisional = self._provisional(draft)
        self._sessions.insert(0, provisional)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._report(LedgerError("append", "no running event loop, session kept locally"))
            return provisional

        task = loop.create_task(self._persist(provisional.id, draft))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return provisional

    async def append(self, draft: SessionCreate) -> SessionResponse:
        """Add ``draft`` (e.g. an interrupted session) and wait for the store."""
        provisional = self._provisional(draft)
        self._sessions.insert(0, provisional)
        try:
            stored = await self._ledger.append(draft)
        except LedgerError as exc:
            self._report(exc)
            raise
        self._replace(provisional.id, stored)
        return stored

    async def reassign_task(
        self, session_id: uuid.UUID | str, task_id: uuid.UUID | str | None
    ) -> SessionResponse | None:
        key = _parse_id(session_id)
        if key is None:
            logger.warning("Dropping session with malformed id %r", session_id)
            self._drop_matching(str(session_id))
            return None
        task_key = None
        if task_id is not None:
            task_key = _parse_id(task_id)
            if task_key is None:
                logger.warning("Ignoring malformed task id %r for session %s", task_id, key)
                return None

        index = self._index(key)
        if index is not None:
            self._sessions[index] = self._sessions[index].model_copy(
                update={"task_id": task_key}
            )

        try:
            stored = await self._ledger.reassign_task(key, task_key)
        except LedgerError as exc:
            self._report(exc)
            raise
        self._replace(key, stored)
        return stored

    async def remove(self, session_id: uuid.UUID | str) -> None:
        key = _parse_id(session_id)
        if key is None:
            logger.warning("Dropping session with malformed id %r", session_id)
            self._drop_matching(str(session_id))
            return

        self._sessions = [s for s in self._sessions if s.id != key]
        try:
            await self._ledger.remove(key)
        except LedgerError as exc:
            self._report(exc)
            raise

    async def clear(self) -> None:
        ids = [s.id for s in self._sessions]
        self._sessions = []

        failures = 0
        for session_id in ids:
            try:
                await self._ledger.remove(session_id)
            except LedgerError as exc:
                logger.warning("Failed to remove session %s: %s", session_id, exc)
                failures += 1
        if failures:
            exc = LedgerError("clear", f"{failures} of {len(ids)} removals failed")
            self._report(exc)
            raise exc

    async def drain(self) -> None:
        """Wait for background writes started by ``record``."""
        if self._pending:
            await asyncio.gather(*list(self._pending))

    # -- internals ---------------------------------------------------------

    async def _persist(self, local_id: uuid.UUID, draft: SessionCreate) -> None:
        try:
            stored = await self._ledger.append(draft)
        except LedgerError as exc:
            self._report(exc)
            return
        except Exception as exc:
            logger.exception("Unexpected failure persisting session")
            self._report(LedgerError("append", str(exc)))
            return

        self._replace(local_id, stored)

        if (
            draft.mode is TimerMode.FOCUS
            and draft.task_id is not None
            and self._tasks is not None
        ):
            try:
                await self._tasks.increment_completed_pomodoros(draft.task_id)
            except TaskUpdateError as exc:
                logger.warning("Could not credit task %s: %s", draft.task_id, exc)
            except Exception:
                logger.exception("Unexpected failure crediting task %s", draft.task_id)

    def _provisional(self, draft: SessionCreate) -> SessionResponse:
        completed_at = draft.completed_at or datetime.now(timezone.utc)
        started_at = draft.started_at or completed_at - timedelta(
            seconds=draft.duration_seconds
        )
        return SessionResponse(
            id=uuid.uuid4(),
            mode=draft.mode,
            duration_seconds=draft.duration_seconds,
            started_at=started_at,
            completed_at=completed_at,
            was_completed=draft.was_completed,
            task_id=draft.task_id,
        )

    def _index(self, session_id: uuid.UUID) -> int | None:
        for i, s in enumerate(self._sessions):
            if s.id == session_id:
                return i
        return None

    def _replace(self, session_id: uuid.UUID, stored: SessionResponse) -> None:
        index = self._index(session_id)
        if index is None:
            logger.debug("Session %s no longer in local history", session_id)
            return
        self._sessions[index] = stored

    def _drop_matching(self, raw_id: str) -> None:
        self._sessions = [s for s in self._sessions if str(s.id) != raw_id]

    def _report(self, exc: LedgerError) -> None:
        logger.warning("Session ledger %s failed: %s", exc.operation, exc)
        if self._on_error is not None:
            self._on_error(exc)
