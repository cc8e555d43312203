"""Use case storing an uploaded file and attaching it to its task."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import BinaryIO

from sqlalchemy.orm import Session

from taskboard.config import get_settings
from taskboard.domain.entities import FileRecord, Task, TaskActivityType, User
from taskboard.infrastructure.chunk_store import ChunkStore, ChunkStoreError
from taskboard.infrastructure.repositories import TaskRepository
from taskboard.utils import now_in_app_timezone, to_epoch_millis

from .errors import FileStorageError, TaskNotFoundError
from .task_updates import file_activity, get_task, save_task_with_retry
from .validators import clean_original_name, ensure_acceptable_file, normalize_identifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileUpload:
    """A file received from a client that has not been stored yet."""

    stream: BinaryIO
    original_name: str | None
    content_type: str | None
    size: int


def upload_task_file(
    session: Session,
    store: ChunkStore,
    *,
    task_id: str | None,
    upload: FileUpload,
    user: User,
    max_bytes: int | None = None,
) -> FileRecord:
    """Store ``upload`` in the chunk store and attach it to the task.

    Everything that can be checked without touching storage is checked first.
    If the task disappears (or is trashed) while the bytes are being written
    the stored file is deleted again before :class:`TaskNotFoundError` is
    raised. A failure to save the task afterwards leaves an orphaned file that
    the orphan sweep reclaims.
    """

    record = store_task_file(
        session, store, task_id=task_id, upload=upload, user=user, max_bytes=max_bytes
    )
    task_key = normalize_identifier(task_id, label="TaskId")
    attach_task_files(session, store, task_id=task_key, records=[record], user=user)
    return record


def store_task_file(
    session: Session,
    store: ChunkStore,
    *,
    task_id: str | None,
    upload: FileUpload,
    user: User,
    max_bytes: int | None = None,
) -> FileRecord:
    """Validate ``upload`` and write its bytes, without touching the task."""

    limit = max_bytes if max_bytes is not None else get_settings().upload_max_bytes
    task_key = normalize_identifier(task_id, label="TaskId")
    original_name = clean_original_name(upload.original_name)
    media_type = ensure_acceptable_file(
        original_name=original_name,
        content_type=upload.content_type,
        size=upload.size,
        max_bytes=limit,
    )

    get_task(TaskRepository(session), task_key, allow_trashed=False)

    upload_date = now_in_app_timezone()
    filename = f"{to_epoch_millis(upload_date)}-{original_name}"
    try:
        stored = store.upload_from_stream(
            filename,
            upload.stream,
            content_type=media_type,
            metadata={
                "originalName": original_name,
                "uploadDate": upload_date.isoformat(),
                "taskId": task_key,
                "uploadedBy": user.id,
            },
        )
    except ChunkStoreError as exc:
        logger.exception("Storing %r for task %s failed", original_name, task_key)
        raise FileStorageError("Error uploading file") from exc

    return FileRecord(
        id=stored.id,
        filename=filename,
        originalname=original_name,
        size=stored.length,
        content_type=media_type,
        upload_date=upload_date,
        uploaded_by=user.id,
    )


def attach_task_files(
    session: Session,
    store: ChunkStore,
    *,
    task_id: str,
    records: Sequence[FileRecord],
    user: User,
) -> None:
    """Attach already stored files to the task with a single save.

    When the task is gone the stored files are deleted again and
    :class:`TaskNotFoundError` propagates.
    """

    if not records:
        return

    def _attach(task: Task) -> None:
        for record in records:
            task.attach_file(record)
            task.record_activity(file_activity(TaskActivityType.FILE_ADDED, record, user))

    repository = TaskRepository(session)
    try:
        task = get_task(repository, task_id, allow_trashed=False)
        save_task_with_retry(repository, task, _attach, allow_trashed=False)
    except TaskNotFoundError:
        for record in records:
            discard_stored_file(store, record.id)
        raise
    except Exception:
        logger.error(
            "Files %s were stored but could not be attached to task %s; they are now orphaned",
            ", ".join(record.id for record in records),
            task_id,
        )
        raise

    for record in records:
        logger.info(
            "User %s attached file %s (%r, %s bytes) to task %s",
            user.id,
            record.id,
            record.originalname,
            record.size,
            task_id,
        )


def discard_stored_file(store: ChunkStore, file_id: str) -> bool:
    """Best-effort removal of a stored file; failures are only logged."""

    try:
        store.delete(file_id)
    except ChunkStoreError:
        logger.exception("Could not remove stored file %s; it is now orphaned", file_id)
        return False
    logger.info("Removed stored file %s whose task no longer exists", file_id)
    return True


__all__ = [
    "FileUpload",
    "attach_task_files",
    "discard_stored_file",
    "store_task_file",
    "upload_task_file",
]
