"""Chunked binary file storage on top of the application database.

Files are stored the way a GridFS bucket stores them: the bytes are split into
fixed-size chunks (``uploads_chunks``) and a single root record
(``uploads_files``) describes the whole file. A root record is only written
when an upload stream is closed, in the same transaction as the last chunk, so
readers never observe a partially written file.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, BinaryIO
from uuid import uuid4

from sqlalchemy import and_, delete, inspect, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from taskboard.infrastructure.database import Base
from taskboard.infrastructure.models import FileChunkModel, StoredFileModel
from taskboard.utils import ensure_app_timezone, now_in_app_timezone

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 255 * 1024


class ChunkStoreError(RuntimeError):
    """Base error raised for failures of the chunked file store."""


class NoFile(ChunkStoreError, LookupError):
    """Raised when no root record exists for the requested file id."""

    def __init__(self, file_id: str) -> None:
        super().__init__(f"No file found with id {file_id!r}")
        self.file_id = file_id


class CorruptFile(ChunkStoreError):
    """Raised when the chunk sequence of a file is missing or truncated."""


@dataclass(frozen=True)
class StoredFile:
    """Root record describing a stored file."""

    id: str
    filename: str
    length: int
    chunk_size: int
    upload_date: datetime
    content_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def chunk_count(self) -> int:
        if self.length == 0:
            return 0
        return (self.length + self.chunk_size - 1) // self.chunk_size


class UploadStream:
    """Writable handle returned by :meth:`ChunkStore.open_upload_stream`.

    Bytes are buffered until a full chunk is available; every chunk is flushed
    to the database inside a single transaction that is committed by
    :meth:`close`. Until then neither the chunks nor the root record are
    visible to other sessions.

    That transaction stays open from the first flushed chunk until
    :meth:`close` or :meth:`abort`. On SQLite it holds the database write
    lock for that whole time, so concurrent uploads are written one after
    another and other writers wait up to the connection's busy timeout.
    """

    def __init__(
        self,
        session: Session,
        *,
        file_id: str,
        filename: str,
        chunk_size: int,
        content_type: str | None,
        metadata: Mapping[str, Any] | None,
    ) -> None:
        self._session = session
        self.file_id = file_id
        self.filename = filename
        self.chunk_size = chunk_size
        self.content_type = content_type
        self.metadata = dict(metadata or {})
        self._buffer = bytearray()
        self._position = 0
        self._chunk_number = 0
        self._closed = False
        self._aborted = False

    @property
    def closed(self) -> bool:
        return self._closed or self._aborted

    @property
    def length(self) -> int:
        """Number of bytes written so far."""

        return self._position

    def write(self, data: bytes) -> int:
        if self.closed:
            raise ChunkStoreError("Cannot write to a closed upload stream")
        if not data:
            return 0
        self._buffer.extend(data)
        self._position += len(data)
        while len(self._buffer) >= self.chunk_size:
            self._flush_chunk(bytes(self._buffer[: self.chunk_size]))
            del self._buffer[: self.chunk_size]
        return len(data)

    def close(self) -> StoredFile:
        """Flush pending bytes and publish the root record."""

        if self._aborted:
            raise ChunkStoreError("Cannot close an aborted upload stream")
        if self._closed:
            raise ChunkStoreError("Upload stream already closed")

        try:
            if self._buffer:
                self._flush_chunk(bytes(self._buffer))
                self._buffer.clear()
            upload_date = now_in_app_timezone()
            self._session.add(
                StoredFileModel(
                    id=self.file_id,
                    filename=self.filename,
                    length=self._position,
                    chunk_size=self.chunk_size,
                    upload_date=upload_date,
                    content_type=self.content_type,
                    file_metadata=self.metadata,
                )
            )
            self._session.commit()
        except SQLAlchemyError as exc:
            self._discard()
            raise ChunkStoreError(f"Could not store file {self.filename!r}") from exc
        finally:
            self._session.close()

        self._closed = True
        logger.debug(
            "Stored file %s (%s bytes in %s chunks)",
            self.file_id,
            self._position,
            self._chunk_number,
        )
        return StoredFile(
            id=self.file_id,
            filename=self.filename,
            length=self._position,
            chunk_size=self.chunk_size,
            upload_date=upload_date,
            content_type=self.content_type,
            metadata=dict(self.metadata),
        )

    def abort(self) -> None:
        """Drop every chunk written so far. Nothing becomes visible."""

        if self.closed:
            return
        self._discard()
        self._session.close()
        logger.debug("Aborted upload of %s after %s bytes", self.file_id, self._position)

    def __enter__(self) -> "UploadStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.abort()
        elif not self.closed:
            self.close()

    def _flush_chunk(self, data: bytes) -> None:
        chunk = FileChunkModel(files_id=self.file_id, n=self._chunk_number, data=data)
        try:
            self._session.add(chunk)
            self._session.flush()
        except SQLAlchemyError as exc:
            self.abort()
            raise ChunkStoreError(
                f"Could not write chunk {self._chunk_number} of {self.file_id}"
            ) from exc
        self._session.expunge(chunk)
        self._chunk_number += 1

    def _discard(self) -> None:
        self._aborted = True
        self._buffer.clear()
        try:
            self._session.rollback()
        except SQLAlchemyError:  # pragma: no cover - connection already gone
            logger.exception("Rollback of upload %s failed", self.file_id)


class DownloadStream:
    """Lazy iterator over the bytes ``[start, end)`` of a stored file."""

    def __init__(
        self,
        session: Session,
        stored_file: StoredFile,
        *,
        start: int = 0,
        end: int | None = None,
    ) -> None:
        length = stored_file.length
        end = length if end is None else end
        if start < 0 or end < start or end > length:
            session.close()
            raise ValueError(
                f"Invalid byte interval [{start}, {end}) for a file of {length} bytes"
            )
        self._session = session
        self.file = stored_file
        self.start = start
        self.end = end
        self._position = start
        self._closed = False

    @property
    def remaining(self) -> int:
        return self.end - self._position

    def __iter__(self) -> Iterator[bytes]:
        return self

    def __next__(self) -> bytes:
        if self._closed or self._position >= self.end:
            self.close()
            raise StopIteration

        chunk_size = self.file.chunk_size
        n = self._position // chunk_size
        data = self._read_chunk(n)
        offset = self._position - n * chunk_size
        piece = data[offset : min(len(data), self.end - n * chunk_size)]
        if not piece:
            self.close()
            raise CorruptFile(f"Chunk {n} of file {self.file.id} is truncated")
        self._position += len(piece)
        return piece

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes (everything left when ``size`` < 0)."""

        parts = bytearray()
        while size < 0 or len(parts) < size:
            try:
                piece = next(self)
            except StopIteration:
                break
            if size >= 0 and len(parts) + len(piece) > size:
                keep = size - len(parts)
                parts.extend(piece[:keep])
                self._position -= len(piece) - keep
                break
            parts.extend(piece)
        return bytes(parts)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._session.close()

    def __enter__(self) -> "DownloadStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _read_chunk(self, n: int) -> bytes:
        expected = self._expected_chunk_length(n)
        try:
            data = self._session.execute(
                select(FileChunkModel.data).where(
                    FileChunkModel.files_id == self.file.id,
                    FileChunkModel.n == n,
                )
            ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            self.close()
            raise ChunkStoreError(f"Could not read chunk {n} of {self.file.id}") from exc
        if data is None:
            self.close()
            raise CorruptFile(f"Chunk {n} of file {self.file.id} is missing")
        if len(data) != expected:
            self.close()
            raise CorruptFile(
                f"Chunk {n} of file {self.file.id} has {len(data)} bytes, expected {expected}"
            )
        return bytes(data)

    def _expected_chunk_length(self, n: int) -> int:
        chunk_size = self.file.chunk_size
        if n < self.file.chunk_count - 1:
            return chunk_size
        return self.file.length - chunk_size * (self.file.chunk_count - 1)


class ChunkStore:
    """Store and stream files split into fixed-size chunks.

    The store is constructed explicitly with a session factory and must be
    opened before use; :meth:`open` creates the bucket tables together with
    the unique ``(files_id, n)`` chunk index and the ``filename`` index.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be a positive number of bytes")
        self._session_factory = session_factory
        self.chunk_size = chunk_size
        self._opened = False

    @property
    def is_open(self) -> bool:
        return self._opened

    def open(self) -> "ChunkStore":
        """Create the bucket tables and indexes if missing."""

        bind = self._session_factory.kw.get("bind")
        tables = [StoredFileModel.__table__, FileChunkModel.__table__]
        try:
            Base.metadata.create_all(bind=bind, tables=tables, checkfirst=True)
        except SQLAlchemyError as exc:
            raise ChunkStoreError("Could not initialize the file bucket") from exc
        self._opened = True
        logger.info("File bucket ready (chunk size %s bytes)", self.chunk_size)
        return self

    def close(self) -> None:
        self._opened = False

    def __enter__(self) -> "ChunkStore":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def index_names(self) -> set[str]:
        """Return the names of the indexes defined on the bucket tables."""

        bind = self._session_factory.kw.get("bind")
        inspector = inspect(bind)
        return {
            index["name"]
            for table in (StoredFileModel.__tablename__, FileChunkModel.__tablename__)
            for index in inspector.get_indexes(table)
            if index["name"]
        }

    def open_upload_stream(
        self,
        filename: str,
        *,
        content_type: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> UploadStream:
        self._ensure_open()
        return UploadStream(
            self._session_factory(),
            file_id=uuid4().hex,
            filename=filename,
            chunk_size=self.chunk_size,
            content_type=content_type,
            metadata=metadata,
        )

    def upload_from_stream(
        self,
        filename: str,
        source: BinaryIO,
        *,
        content_type: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> StoredFile:
        """Copy ``source`` into a new file and return its root record."""

        stream = self.open_upload_stream(
            filename, content_type=content_type, metadata=metadata
        )
        try:
            while True:
                data = source.read(self.chunk_size)
                if not data:
                    break
                stream.write(data)
        except BaseException:
            stream.abort()
            raise
        return stream.close()

    def find(self, file_id: str) -> StoredFile | None:
        self._ensure_open()
        with self._session_factory() as session:
            try:
                model = session.get(StoredFileModel, file_id)
            except SQLAlchemyError as exc:
                raise ChunkStoreError(f"Could not look up file {file_id!r}") from exc
            return self._to_stored_file(model) if model else None

    def get(self, file_id: str) -> StoredFile:
        stored_file = self.find(file_id)
        if stored_file is None:
            raise NoFile(file_id)
        return stored_file

    def open_download_stream(
        self,
        file_id: str,
        *,
        start: int = 0,
        end: int | None = None,
    ) -> DownloadStream:
        """Open a reader over ``[start, end)``; ``end`` defaults to the file length."""

        stored_file = self.get(file_id)
        return DownloadStream(self._session_factory(), stored_file, start=start, end=end)

    def delete(self, file_id: str) -> None:
        """Remove the root record and every chunk of ``file_id``."""

        self._ensure_open()
        with self._session_factory() as session:
            try:
                if session.get(StoredFileModel, file_id) is None:
                    raise NoFile(file_id)
                session.execute(
                    delete(StoredFileModel).where(StoredFileModel.id == file_id)
                )
                session.execute(
                    delete(FileChunkModel).where(FileChunkModel.files_id == file_id)
                )
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise ChunkStoreError(f"Could not delete file {file_id!r}") from exc
        logger.debug("Deleted file %s", file_id)

    def iter_files(
        self,
        *,
        uploaded_before: datetime | None = None,
        batch_size: int = 500,
    ) -> Iterator[StoredFile]:
        """Yield root records, oldest first, optionally limited by upload date.

        Records are read in pages of ``batch_size``, each with its own short
        session, so callers may delete files while iterating.
        """

        self._ensure_open()
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")

        after: tuple[datetime, str] | None = None
        while True:
            query = (
                select(StoredFileModel)
                .order_by(StoredFileModel.upload_date, StoredFileModel.id)
                .limit(batch_size)
            )
            if uploaded_before is not None:
                query = query.where(StoredFileModel.upload_date < uploaded_before)
            if after is not None:
                last_date, last_id = after
                query = query.where(
                    or_(
                        StoredFileModel.upload_date > last_date,
                        and_(
                            StoredFileModel.upload_date == last_date,
                            StoredFileModel.id > last_id,
                        ),
                    )
                )
            with self._session_factory() as session:
                try:
                    models = session.execute(query).scalars().all()
                except SQLAlchemyError as exc:
                    raise ChunkStoreError("Could not list stored files") from exc
                page = [self._to_stored_file(model) for model in models]
                if models:
                    after = (models[-1].upload_date, models[-1].id)
            yield from page
            if len(page) < batch_size:
                return

    def _ensure_open(self) -> None:
        if not self._opened:
            raise ChunkStoreError("The file store is not open")

    @staticmethod
    def _to_stored_file(model: StoredFileModel) -> StoredFile:
        return StoredFile(
            id=model.id,
            filename=model.filename,
            length=int(model.length),
            chunk_size=int(model.chunk_size),
            upload_date=ensure_app_timezone(model.upload_date),
            content_type=model.content_type,
            metadata=dict(model.file_metadata or {}),
        )


__all__ = [
    "ChunkStore",
    "ChunkStoreError",
    "CorruptFile",
    "DEFAULT_CHUNK_SIZE",
    "DownloadStream",
    "NoFile",
    "StoredFile",
    "UploadStream",
]
