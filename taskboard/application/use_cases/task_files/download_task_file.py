"""Use case resolving a stored file into a (possibly partial) byte stream."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from taskboard.domain.entities import FileRecord
from taskboard.infrastructure.chunk_store import (
    ChunkStore,
    ChunkStoreError,
    DownloadStream,
    NoFile,
    StoredFile,
)
from taskboard.infrastructure.repositories import TaskRepository
from taskboard.utils import ByteRange, parse_range_header

from .errors import FileStorageError, TaskFileNotFoundError
from .validators import DEFAULT_CONTENT_TYPE, normalize_identifier


@dataclass
class FileDownload:
    """An opened download, ready to be written to a response."""

    file: StoredFile
    record: FileRecord
    content_type: str
    byte_range: ByteRange | None
    stream: DownloadStream

    @property
    def is_partial(self) -> bool:
        return self.byte_range is not None

    @property
    def content_length(self) -> int:
        if self.byte_range is not None:
            return self.byte_range.length
        return self.file.length

    @property
    def content_range(self) -> str | None:
        if self.byte_range is None:
            return None
        return self.byte_range.content_range(self.file.length)


def open_task_file_download(
    session: Session,
    store: ChunkStore,
    *,
    file_id: str | None,
    range_header: str | None = None,
) -> FileDownload:
    """Open the stored bytes of ``file_id``.

    The file must still be listed in the assets of the task it was uploaded
    to; a file whose task reference was removed is reported as missing even
    when its chunks are still in the store. ``range_header`` is resolved with
    :func:`parse_range_header` and may raise
    :class:`~taskboard.utils.RangeNotSatisfiableError`.
    """

    file_key = normalize_identifier(file_id, label="FileId")
    try:
        stored = store.find(file_key)
    except ChunkStoreError as exc:
        raise FileStorageError("Error retrieving file") from exc
    if stored is None:
        raise TaskFileNotFoundError("File not found")

    record = _attached_record(session, stored)
    byte_range = parse_range_header(range_header, stored.length)
    start, stop = (byte_range.start, byte_range.stop) if byte_range else (0, None)
    try:
        stream = store.open_download_stream(file_key, start=start, end=stop)
    except NoFile as exc:
        raise TaskFileNotFoundError("File not found") from exc
    except ChunkStoreError as exc:
        raise FileStorageError("Error retrieving file") from exc

    return FileDownload(
        file=stored,
        record=record,
        content_type=stored.content_type or DEFAULT_CONTENT_TYPE,
        byte_range=byte_range,
        stream=stream,
    )


def _attached_record(session: Session, stored: StoredFile) -> FileRecord:
    task_id = stored.metadata.get("taskId")
    task = TaskRepository(session).get(str(task_id)) if task_id else None
    record = task.find_asset(stored.id) if task is not None else None
    if record is None:
        raise TaskFileNotFoundError("File not found")
    return record


__all__ = ["FileDownload", "open_task_file_download"]
