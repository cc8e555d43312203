"""Persistence helpers for task documents."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from taskboard.domain.entities import FileRecord, Task, TaskActivity, TaskActivityType
from taskboard.infrastructure.models import TaskModel
from taskboard.utils import ensure_app_timezone, now_in_app_timezone, parse_timestamp


class ConcurrentTaskUpdateError(RuntimeError):
    """Raised when a task changed between being read and being saved."""


class TaskNotStoredError(LookupError):
    """Raised when saving a task whose document no longer exists."""


class TaskRepository:
    """Read and write task documents, including their asset and activity arrays."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, task_id: str) -> Task | None:
        model = self.session.get(TaskModel, task_id, populate_existing=True)
        return self._to_entity(model) if model else None

    def create(self, task: Task) -> Task:
        model = TaskModel(id=task.id)
        self._apply_entity_to_model(model, task)
        if task.created_at is not None:
            model.created_at = task.created_at
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def save(self, task: Task) -> Task:
        """Persist ``task`` if nobody else updated it since it was read."""

        model = self.session.get(TaskModel, task.id, populate_existing=True)
        if model is None:
            raise TaskNotStoredError(f"Task with id {task.id} not found")
        if task.version is not None and model.version != task.version:
            raise ConcurrentTaskUpdateError(
                f"Task {task.id} changed (version {model.version}, expected {task.version})"
            )

        self._apply_entity_to_model(model, task)
        model.updated_at = now_in_app_timezone()
        self.session.add(model)
        try:
            self.session.commit()
        except StaleDataError as exc:
            self.session.rollback()
            raise ConcurrentTaskUpdateError(f"Task {task.id} changed while saving") from exc
        except SQLAlchemyError:
            self.session.rollback()
            raise
        self.session.refresh(model)
        return self._to_entity(model)

    def delete(self, task_id: str) -> None:
        model = self.session.get(TaskModel, task_id, populate_existing=True)
        if model is None:
            raise TaskNotStoredError(f"Task with id {task_id} not found")
        self.session.delete(model)
        self.session.commit()

    @staticmethod
    def _to_entity(model: TaskModel) -> Task:
        return Task(
            id=model.id,
            title=model.title,
            stage=model.stage,
            is_trashed=bool(model.is_trashed),
            assets=[asset_from_document(item) for item in model.assets or []],
            activities=[activity_from_document(item) for item in model.activities or []],
            version=model.version,
            created_at=ensure_app_timezone(model.created_at),
            updated_at=ensure_app_timezone(model.updated_at),
        )

    @staticmethod
    def _apply_entity_to_model(model: TaskModel, task: Task) -> None:
        model.title = task.title
        model.stage = task.stage
        model.is_trashed = task.is_trashed
        # New list objects so the JSON columns are flagged as modified.
        model.assets = [asset_to_document(asset) for asset in task.assets]
        model.activities = [activity_to_document(entry) for entry in task.activities]


def asset_to_document(record: FileRecord) -> dict[str, Any]:
    return {
        "_id": record.id,
        "filename": record.filename,
        "originalname": record.originalname,
        "size": record.size,
        "contentType": record.content_type,
        "uploadDate": ensure_app_timezone(record.upload_date).isoformat(),
        "uploadedBy": record.uploaded_by,
    }


def asset_from_document(document: Mapping[str, Any]) -> FileRecord:
    return FileRecord(
        id=str(document["_id"]),
        filename=document["filename"],
        originalname=document["originalname"],
        size=int(document["size"]),
        content_type=document["contentType"],
        upload_date=parse_timestamp(document.get("uploadDate")),
        uploaded_by=document.get("uploadedBy"),
    )


def activity_to_document(activity: TaskActivity) -> dict[str, Any]:
    return {
        "type": activity.type.value,
        "activity": activity.text,
        "date": ensure_app_timezone(activity.date).isoformat(),
        "by": activity.by,
    }


def activity_from_document(document: Mapping[str, Any]) -> TaskActivity:
    return TaskActivity(
        type=TaskActivityType(document["type"]),
        text=document["activity"],
        date=parse_timestamp(document.get("date")),
        by=document.get("by"),
    )


__all__ = [
    "ConcurrentTaskUpdateError",
    "TaskNotStoredError",
    "TaskRepository",
    "activity_from_document",
    "activity_to_document",
    "asset_from_document",
    "asset_to_document",
]
