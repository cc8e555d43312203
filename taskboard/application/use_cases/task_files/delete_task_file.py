"""Use case removing a file from a task and from the chunk store."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from taskboard.domain.entities import FileRecord, Task, TaskActivityType, User
from taskboard.infrastructure.chunk_store import ChunkStore, ChunkStoreError, NoFile
from taskboard.infrastructure.repositories import TaskRepository

from .errors import TaskFileNotFoundError
from .task_updates import file_activity, get_task, save_task_with_retry
from .validators import normalize_identifier

logger = logging.getLogger(__name__)


def delete_task_file(
    session: Session,
    store: ChunkStore,
    *,
    task_id: str | None,
    file_id: str | None,
    user: User,
) -> FileRecord:
    """Detach ``file_id`` from the task and delete its stored bytes.

    Failing to delete the bytes does not stop the task update: the reference
    is removed regardless and the leftover chunks are logged.
    """

    task_key = normalize_identifier(task_id, label="TaskId")
    file_key = normalize_identifier(file_id, label="FileId")

    repository = TaskRepository(session)
    task = get_task(repository, task_key)
    record = task.find_asset(file_key)
    if record is None:
        raise TaskFileNotFoundError("File not found in task assets")

    def _detach(target: Task) -> None:
        removed = target.detach_file(file_key)
        if removed is None:
            raise TaskFileNotFoundError("File not found in task assets")
        target.record_activity(
            file_activity(TaskActivityType.FILE_DELETED, removed, user)
        )

    # Bytes first; the task is saved even when their deletion fails.
    _delete_stored_bytes(store, file_key)
    save_task_with_retry(repository, task, _detach)

    logger.info(
        "User %s deleted file %s (%r) from task %s",
        user.id,
        file_key,
        record.originalname,
        task_key,
    )
    return record


def _delete_stored_bytes(store: ChunkStore, file_id: str) -> None:
    try:
        store.delete(file_id)
    except NoFile:
        logger.warning("File %s had no stored data; removing the task reference only", file_id)
    except ChunkStoreError:
        logger.exception("Could not delete stored data of file %s; continuing", file_id)


__all__ = ["delete_task_file"]
