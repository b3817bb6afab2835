import logging
import uuid
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)


class TaskCollaborator(Protocol):
    """The slice of the task list the timer needs.

    ``active_task_id`` is a weak reference: the timer copies it onto finished
    sessions but never owns or validates the task.
    """

    active_task_id: uuid.UUID | None

    async def increment_completed_pomodoros(self, task_id: uuid.UUID) -> None:
        ...


class TaskUpdateError(Exception):
    pass


class HttpTaskCollaborator:
    """Task collaborator backed by the ``/tasks`` endpoints."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        active_task_id: uuid.UUID | None = None,
    ) -> None:
        self._http = http_client
        self.active_task_id = active_task_id

    async def increment_completed_pomodoros(self, task_id: uuid.UUID) -> None:
        try:
            resp = await self._http.post(f"/tasks/{task_id}/pomodoros")
        except httpx.HTTPError as exc:
            raise TaskUpdateError(f"Pomodoro increment failed: {exc}") from exc
        if resp.status_code != 200:
            logger.warning(
                "Pomodoro increment for task %s returned %d", task_id, resp.status_code
            )
            raise TaskUpdateError(f"Pomodoro increment returned {resp.status_code}")
