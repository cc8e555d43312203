"""Use case storing several files of one request concurrently."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from functools import partial

import anyio
from sqlalchemy.orm import Session, sessionmaker

from taskboard.config import get_settings
from taskboard.domain.entities import FileRecord, User
from taskboard.infrastructure.chunk_store import ChunkStore

from .errors import FileValidationError, TaskFileError
from .upload_task_file import FileUpload, attach_task_files, store_task_file
from .validators import normalize_identifier

logger = logging.getLogger(__name__)

GENERIC_UPLOAD_ERROR = "Error uploading file"


@dataclass(frozen=True)
class BatchUploadOutcome:
    """Result of storing one file of a batch."""

    original_name: str
    record: FileRecord | None = None
    error: Exception | None = None

    @property
    def succeeded(self) -> bool:
        return self.record is not None

    @property
    def message(self) -> str:
        if self.error is None:
            return "File uploaded and associated with task successfully"
        if isinstance(self.error, TaskFileError):
            return str(self.error)
        return GENERIC_UPLOAD_ERROR


@dataclass
class BatchUploadResult:
    outcomes: list[BatchUploadOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> list[BatchUploadOutcome]:
        return [outcome for outcome in self.outcomes if outcome.succeeded]

    @property
    def failed(self) -> list[BatchUploadOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.succeeded]

    @property
    def all_succeeded(self) -> bool:
        return bool(self.outcomes) and not self.failed

    @property
    def is_partial(self) -> bool:
        return bool(self.succeeded) and bool(self.failed)


async def upload_task_files(
    session_factory: sessionmaker,
    store: ChunkStore,
    *,
    task_id: str | None,
    uploads: Sequence[FileUpload],
    user: User,
    max_concurrency: int | None = None,
    max_bytes: int | None = None,
) -> BatchUploadResult:
    """Store every upload in parallel threads, then attach them in one save.

    Each file is validated and written with its own database session; a
    failing file is reported in its outcome and never cancels the others.
    The stored files are attached to the task together so the task row is
    updated once per batch.
    """

    if not uploads:
        raise FileValidationError("No file uploaded")

    concurrency = max_concurrency or get_settings().upload_batch_concurrency
    limiter = anyio.CapacityLimiter(concurrency)
    outcomes: list[BatchUploadOutcome | None] = [None] * len(uploads)

    async def _run(index: int, upload: FileUpload) -> None:
        work = partial(
            _store_one,
            session_factory,
            store,
            task_id=task_id,
            upload=upload,
            user=user,
            max_bytes=max_bytes,
        )
        outcomes[index] = await anyio.to_thread.run_sync(work, limiter=limiter)

    async with anyio.create_task_group() as task_group:
        for index, upload in enumerate(uploads):
            task_group.start_soon(_run, index, upload)

    stored = [outcome for outcome in outcomes if outcome and outcome.succeeded]
    if stored:
        work = partial(
            _attach_all,
            session_factory,
            store,
            task_id=task_id,
            records=[outcome.record for outcome in stored],
            user=user,
        )
        error = await anyio.to_thread.run_sync(work)
        if error is not None:
            outcomes = [
                BatchUploadOutcome(original_name=outcome.original_name, error=error)
                if outcome and outcome.succeeded
                else outcome
                for outcome in outcomes
            ]

    result = BatchUploadResult(outcomes=[outcome for outcome in outcomes if outcome])
    logger.info(
        "Batch upload to task %s: %s stored, %s failed",
        task_id,
        len(result.succeeded),
        len(result.failed),
    )
    return result


def _store_one(
    session_factory: sessionmaker,
    store: ChunkStore,
    *,
    task_id: str | None,
    upload: FileUpload,
    user: User,
    max_bytes: int | None,
) -> BatchUploadOutcome:
    name = upload.original_name or ""
    session: Session = session_factory()
    try:
        record = store_task_file(
            session,
            store,
            task_id=task_id,
            upload=upload,
            user=user,
            max_bytes=max_bytes,
        )
    except TaskFileError as exc:
        logger.info("Upload of %r rejected: %s", name, exc)
        return BatchUploadOutcome(original_name=name, error=exc)
    except Exception as exc:
        logger.exception("Upload of %r failed", name)
        return BatchUploadOutcome(original_name=name, error=exc)
    finally:
        session.close()
    return BatchUploadOutcome(original_name=record.originalname, record=record)


def _attach_all(
    session_factory: sessionmaker,
    store: ChunkStore,
    *,
    task_id: str | None,
    records: list[FileRecord],
    user: User,
) -> Exception | None:
    session: Session = session_factory()
    try:
        attach_task_files(
            session,
            store,
            task_id=normalize_identifier(task_id, label="TaskId"),
            records=records,
            user=user,
        )
    except TaskFileError as exc:
        logger.info("Stored files could not be attached to task %s: %s", task_id, exc)
        return exc
    except Exception as exc:
        logger.exception("Attaching %s files to task %s failed", len(records), task_id)
        return exc
    finally:
        session.close()
    return None


__all__ = [
    "BatchUploadOutcome",
    "BatchUploadResult",
    "GENERIC_UPLOAD_ERROR",
    "upload_task_files",
]
