"""
Task repository: CRUD over the remote task collection.

The backend owns the data. `tasks` is only an advisory local copy, refreshed
by list() and patched after confirmed mutations.
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Set, Union

from gateway.backend_client import ENDPOINTS, BackendClient
from smart_todo.errors import ConfirmationRequired, ValidationFailed
from smart_todo.models import TASK_STATUSES, Page, Task, TaskCreate, TaskStatus, TaskUpdate

logger = logging.getLogger(__name__)

NO_CATEGORY = "none"

# (title, description, deadline) -> result dict
CalendarNotifier = Callable[[str, str, datetime], Awaitable[dict]]


def _task_path(task_id: str, suffix: str = "") -> str:
    return f"{ENDPOINTS['tasks']}{task_id}/{suffix}"


class TaskRepository:
    def __init__(
        self,
        client: BackendClient,
        calendar_notifier: Optional[CalendarNotifier] = None,
    ):
        self.client = client
        self.calendar_notifier = calendar_notifier
        self.tasks: List[Task] = []
        self.pending_side_effects: Set[asyncio.Task] = set()

    async def create(self, task: Union[TaskCreate, dict]) -> Task:
        if isinstance(task, dict):
            task = TaskCreate(**task)

        if not task.title.strip():
            raise ValidationFailed("Task title is required")
        if not task.description.strip():
            raise ValidationFailed("Task description is required")
        if task.deadline is None:
            raise ValidationFailed("Task deadline is required")

        payload = task.model_dump(mode="json", exclude={"category"})
        if task.category and task.category.strip().lower() != NO_CATEGORY:
            payload["category"] = task.category

        logger.info(f"Creating task '{task.title}'")
        created = Task.model_validate(await self.client.post(ENDPOINTS["tasks"], payload))
        self.tasks.insert(0, created)

        if self.calendar_notifier is not None:
            self._detach(self._notify_calendar(created))

        return created

    def _detach(self, coro) -> None:
        side_effect = asyncio.create_task(coro)
        self.pending_side_effects.add(side_effect)
        side_effect.add_done_callback(self.pending_side_effects.discard)

    async def _notify_calendar(self, task: Task) -> None:
        try:
            result = await self.calendar_notifier(task.title, task.description, task.deadline)
            if result.get("success"):
                logger.info(f"Task '{task.title}' synced to calendar")
            else:
                logger.info(
                    f"Task '{task.title}' not synced to calendar: {result.get('message')}"
                )
        except Exception as e:
            logger.error(f"Could not sync task '{task.title}' to calendar: {e}")

    async def list(self, params: Optional[dict] = None) -> Page[Task]:
        data = await self.client.get(ENDPOINTS["tasks"], params=params)
        page = Page[Task].model_validate(data)
        self.tasks = list(page.results)
        return page

    async def get(self, task_id: str) -> Task:
        return Task.model_validate(await self.client.get(_task_path(task_id)))

    async def update(self, task_id: str, changes: Union[TaskUpdate, dict]) -> Task:
        if isinstance(changes, dict):
            changes = TaskUpdate(**changes)
        payload = changes.model_dump(mode="json", exclude_unset=True)
        if not payload:
            raise ValidationFailed("Nothing to update")

        updated = Task.model_validate(await self.client.patch(_task_path(task_id), payload))
        self._replace_local(updated)
        return updated

    async def update_status(self, task_id: str, status: TaskStatus) -> Task:
        if status not in TASK_STATUSES:
            raise ValidationFailed(f"Unknown status: {status}")
        data = await self.client.patch(
            _task_path(task_id, "update_status/"), {"status": status}
        )

        # Local copy changes only once the backend confirmed the transition
        if isinstance(data, dict) and {"id", "deadline"} <= data.keys():
            confirmed = Task.model_validate(data)
            self._replace_local(confirmed)
            return confirmed

        for i, t in enumerate(self.tasks):
            if t.id == task_id:
                self.tasks[i] = t.model_copy(update={"status": status})
                return self.tasks[i]
        return await self.get(task_id)

    async def delete(self, task_id: str, confirmed: bool = False) -> bool:
        if not confirmed:
            raise ConfirmationRequired("Deleting a task must be confirmed")
        await self.client.delete(_task_path(task_id))
        self.tasks = [t for t in self.tasks if t.id != task_id]
        return True

    def _replace_local(self, task: Task) -> None:
        for i, t in enumerate(self.tasks):
            if t.id == task.id:
                self.tasks[i] = task
                return
