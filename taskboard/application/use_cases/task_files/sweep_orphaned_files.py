"""Use case reclaiming stored files that no task references."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta

from sqlalchemy.orm import Session

from taskboard.domain.entities import Task
from taskboard.infrastructure.chunk_store import ChunkStore, ChunkStoreError, NoFile, StoredFile
from taskboard.infrastructure.repositories import TaskRepository
from taskboard.utils import now_in_app_timezone

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    scanned: int = 0
    orphaned: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def sweep_orphaned_files(
    session: Session,
    store: ChunkStore,
    *,
    grace_period: timedelta,
    dry_run: bool = False,
) -> SweepReport:
    """Delete stored files that are not listed in their task's assets.

    Only files older than ``grace_period`` are considered, so an upload that
    finished writing but has not been attached to its task yet is left alone.
    """

    cutoff = now_in_app_timezone() - grace_period
    repository = TaskRepository(session)
    tasks: dict[str, Task | None] = {}
    report = SweepReport()

    for stored in store.iter_files(uploaded_before=cutoff):
        report.scanned += 1
        if not _is_orphan(stored, repository, tasks):
            continue
        report.orphaned.append(stored.id)
        if dry_run:
            logger.info("Orphaned file %s (%r) would be deleted", stored.id, stored.filename)
            continue
        try:
            store.delete(stored.id)
        except NoFile:
            continue
        except ChunkStoreError:
            logger.exception("Could not delete orphaned file %s", stored.id)
            report.failed.append(stored.id)
            continue
        report.deleted.append(stored.id)
        logger.info("Deleted orphaned file %s (%r)", stored.id, stored.filename)

    logger.info(
        "Orphan sweep scanned %s files: %s orphaned, %s deleted, %s failed",
        report.scanned,
        len(report.orphaned),
        len(report.deleted),
        len(report.failed),
    )
    return report


def _is_orphan(
    stored: StoredFile, repository: TaskRepository, tasks: dict[str, Task | None]
) -> bool:
    task_id = stored.metadata.get("taskId")
    if not task_id:
        return True
    task_id = str(task_id)
    if task_id not in tasks:
        tasks[task_id] = repository.get(task_id)
    task = tasks[task_id]
    return task is None or task.find_asset(stored.id) is None


__all__ = ["SweepReport", "sweep_orphaned_files"]
