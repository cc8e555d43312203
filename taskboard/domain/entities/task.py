"""Domain entities for tasks and the files attached to them."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class TaskActivityType(str, Enum):
    """Kinds of entries recorded in a task's activity log."""

    ASSIGNED = "assigned"
    STARTED = "started"
    IN_PROGRESS = "in progress"
    BUG = "bug"
    COMPLETED = "completed"
    COMMENTED = "commented"
    TRASHED = "trashed"
    RESTORED = "restored"
    EDITED = "edited"
    DEADLINE_UPDATED = "deadline_updated"
    PRIORITY_CHANGED = "priority_changed"
    STAGE_CHANGED = "stage_changed"
    FILE_ADDED = "file_added"
    FILE_DELETED = "file_deleted"
    MEMBER_ADDED = "member_added"
    MEMBER_REMOVED = "member_removed"


@dataclass(frozen=True)
class FileRecord:
    """Metadata of a stored file attached to a task.

    ``id`` is the identifier assigned by the file store and the only key that
    links the record back to the stored bytes.
    """

    id: str
    filename: str
    originalname: str
    size: int
    content_type: str
    upload_date: datetime
    uploaded_by: int | None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("FileRecord.id is required")
        if not self.filename or not self.originalname:
            raise ValueError("FileRecord requires both a stored and an original name")
        if self.size < 0:
            raise ValueError("FileRecord.size cannot be negative")
        if not self.content_type:
            raise ValueError("FileRecord.content_type is required")


@dataclass(frozen=True)
class TaskActivity:
    """Entry of the append-only task activity log."""

    type: TaskActivityType
    text: str
    date: datetime
    by: int | None

    def __post_init__(self) -> None:
        if not self.text:
            raise ValueError("TaskActivity.text is required")


@dataclass
class Task:
    """The parts of a task document this service reads and mutates."""

    id: str
    title: str
    stage: str = "todo"
    is_trashed: bool = False
    assets: list[FileRecord] = field(default_factory=list)
    activities: list[TaskActivity] = field(default_factory=list)
    version: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def find_asset(self, file_id: str) -> FileRecord | None:
        return next((asset for asset in self.assets if asset.id == file_id), None)

    def attach_file(self, record: FileRecord) -> None:
        if self.find_asset(record.id) is not None:
            raise ValueError(f"File {record.id} is already attached to task {self.id}")
        self.assets = [*self.assets, record]

    def detach_file(self, file_id: str) -> FileRecord | None:
        record = self.find_asset(file_id)
        if record is not None:
            self.assets = [asset for asset in self.assets if asset.id != file_id]
        return record

    def record_activity(self, activity: TaskActivity) -> None:
        self.activities = [*self.activities, activity]


__all__ = ["FileRecord", "Task", "TaskActivity", "TaskActivityType"]
