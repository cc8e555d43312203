"""Use case listing the files attached to a task."""

from sqlalchemy.orm import Session

from taskboard.domain.entities import FileRecord
from taskboard.infrastructure.repositories import TaskRepository

from .task_updates import get_task
from .validators import normalize_identifier


def list_task_files(session: Session, task_id: str | None) -> list[FileRecord]:
    """Return the asset records of ``task_id`` in upload order."""

    task_key = normalize_identifier(task_id, label="TaskId")
    task = get_task(TaskRepository(session), task_key)
    return list(task.assets)


__all__ = ["list_task_files"]
