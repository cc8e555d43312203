"""Use case deleting every stored file of a task before the task goes away."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from taskboard.domain.entities import FileRecord, Task
from taskboard.infrastructure.chunk_store import ChunkStore, ChunkStoreError, NoFile
from taskboard.infrastructure.repositories import TaskRepository

from .task_updates import get_task, save_task_with_retry
from .validators import normalize_identifier

logger = logging.getLogger(__name__)


def purge_task_files(
    session: Session, store: ChunkStore, task_id: str | None
) -> list[FileRecord]:
    """Delete the stored bytes of all assets of ``task_id`` and clear the list.

    Must run before a task document is permanently deleted, otherwise its
    files stay in the store with nothing referencing them.
    """

    task_key = normalize_identifier(task_id, label="TaskId")
    repository = TaskRepository(session)
    task = get_task(repository, task_key)
    purged = list(task.assets)

    for record in purged:
        try:
            store.delete(record.id)
        except NoFile:
            logger.warning("Asset %s of task %s had no stored data", record.id, task_key)
        except ChunkStoreError:
            logger.exception("Could not delete asset %s of task %s", record.id, task_key)

    purged_ids = {record.id for record in purged}

    def _clear(target: Task) -> None:
        target.assets = [asset for asset in target.assets if asset.id not in purged_ids]

    if purged:
        save_task_with_retry(repository, task, _clear)
        logger.info("Purged %s files from task %s", len(purged), task_key)
    return purged


__all__ = ["purge_task_files"]
