"""Loading and saving the task document that owns stored files."""

from __future__ import annotations

import logging
from collections.abc import Callable

from taskboard.domain.entities import FileRecord, Task, TaskActivity, TaskActivityType, User
from taskboard.infrastructure.repositories import (
    ConcurrentTaskUpdateError,
    TaskNotStoredError,
    TaskRepository,
)
from taskboard.utils import now_in_app_timezone

from .errors import TaskNotFoundError

logger = logging.getLogger(__name__)

MAX_TASK_UPDATE_ATTEMPTS = 3

_ACTIVITY_TEMPLATES = {
    TaskActivityType.FILE_ADDED: 'File "{name}" uploaded',
    TaskActivityType.FILE_DELETED: 'File "{name}" deleted',
}


def get_task(
    repository: TaskRepository, task_id: str, *, allow_trashed: bool = True
) -> Task:
    """Return the task or raise :class:`TaskNotFoundError`."""

    task = repository.get(task_id)
    if task is None:
        raise TaskNotFoundError("Task not found")
    if task.is_trashed and not allow_trashed:
        raise TaskNotFoundError("Task not found")
    return task


def file_activity(
    activity_type: TaskActivityType, record: FileRecord, user: User
) -> TaskActivity:
    return TaskActivity(
        type=activity_type,
        text=_ACTIVITY_TEMPLATES[activity_type].format(name=record.originalname),
        date=now_in_app_timezone(),
        by=user.id,
    )


def save_task_with_retry(
    repository: TaskRepository,
    task: Task,
    mutate: Callable[[Task], None],
    *,
    allow_trashed: bool = True,
) -> Task:
    """Apply ``mutate`` to ``task`` and persist it.

    When another writer saved the task in between, the task is reloaded and
    ``mutate`` applied again, up to :data:`MAX_TASK_UPDATE_ATTEMPTS` times.
    """

    for attempt in range(1, MAX_TASK_UPDATE_ATTEMPTS + 1):
        mutate(task)
        try:
            return repository.save(task)
        except TaskNotStoredError as exc:
            raise TaskNotFoundError("Task not found") from exc
        except ConcurrentTaskUpdateError:
            if attempt == MAX_TASK_UPDATE_ATTEMPTS:
                raise
            logger.info(
                "Task %s was modified concurrently, retrying update (attempt %s)",
                task.id,
                attempt + 1,
            )
            task = get_task(repository, task.id, allow_trashed=allow_trashed)
    raise AssertionError("unreachable")  # pragma: no cover


__all__ = [
    "MAX_TASK_UPDATE_ATTEMPTS",
    "file_activity",
    "get_task",
    "save_task_with_retry",
]
