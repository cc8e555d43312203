"""SQLAlchemy model for task documents."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.dialects.mssql import JSON as MSSQLJSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import expression
from sqlalchemy.types import JSON

from taskboard.infrastructure.database import Base
from taskboard.utils import now_in_app_timezone

_document_json_type = (
    JSONB().with_variant(JSON(), "sqlite").with_variant(MSSQLJSON(), "mssql")
)


class TaskModel(Base):
    """Database representation of a task and its embedded asset/activity arrays."""

    __tablename__ = "task"

    id = Column(String(32), primary_key=True)
    title = Column(String(255), nullable=False)
    stage = Column(String(20), nullable=False, default="todo")
    is_trashed = Column(
        Boolean,
        nullable=False,
        default=False,
        server_default=expression.false(),
        index=True,
    )
    assets = Column(_document_json_type, nullable=False, default=list)
    activities = Column(_document_json_type, nullable=False, default=list)
    version = Column(Integer, nullable=False)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=now_in_app_timezone
    )
    updated_at = Column(
        DateTime(timezone=True), nullable=True, onupdate=now_in_app_timezone
    )

    # UPDATEs are conditioned on the version that was read.
    __mapper_args__ = {"version_id_col": version}


__all__ = ["TaskModel"]
