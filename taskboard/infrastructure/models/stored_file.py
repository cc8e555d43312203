"""SQLAlchemy models backing the chunked file bucket.

The layout mirrors a GridFS bucket: one root record per file in
``uploads_files`` and the file bytes split into fixed-size rows in
``uploads_chunks`` keyed by ``(files_id, n)``.
"""

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Index,
    Integer,
    LargeBinary,
    String,
)
from sqlalchemy.dialects.mssql import JSON as MSSQLJSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import JSON

from taskboard.infrastructure.database import Base
from taskboard.utils import now_in_app_timezone

_metadata_json_type = (
    JSONB().with_variant(JSON(), "sqlite").with_variant(MSSQLJSON(), "mssql")
)


class StoredFileModel(Base):
    """Root record of a stored file."""

    __tablename__ = "uploads_files"

    id = Column(String(32), primary_key=True)
    filename = Column(String(512), nullable=False)
    length = Column(BigInteger, nullable=False)
    chunk_size = Column(Integer, nullable=False)
    upload_date = Column(
        DateTime(timezone=True), nullable=False, default=now_in_app_timezone
    )
    content_type = Column(String(255), nullable=True)
    file_metadata = Column("metadata", _metadata_json_type, nullable=True)

    __table_args__ = (Index("ix_uploads_files_filename", "filename"),)


class FileChunkModel(Base):
    """One fixed-size slice of a stored file."""

    __tablename__ = "uploads_chunks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Chunks are written before their root record exists, so no foreign key.
    files_id = Column(String(32), nullable=False)
    n = Column(Integer, nullable=False)
    data = Column(LargeBinary, nullable=False)

    __table_args__ = (
        Index("uq_uploads_chunks_files_id_n", "files_id", "n", unique=True),
    )


__all__ = ["FileChunkModel", "StoredFileModel"]
