"""Schemas for task file endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class FileRecordRead(BaseModel):
    """Metadata of a file attached to a task, in the client's wire format."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    filename: str
    originalname: str
    size: int
    content_type: str = Field(serialization_alias="contentType")
    upload_date: datetime = Field(serialization_alias="uploadDate")
    uploaded_by: int | None = Field(default=None, serialization_alias="uploadedBy")


class FileUploadResponse(BaseModel):
    success: bool = True
    message: str
    file: FileRecordRead


class BatchUploadItemRead(BaseModel):
    originalname: str
    success: bool
    message: str
    file: FileRecordRead | None = None


class BatchUploadResponse(BaseModel):
    success: bool
    message: str
    results: list[BatchUploadItemRead]


class TaskFilesResponse(BaseModel):
    success: bool = True
    files: list[FileRecordRead]


class MessageResponse(BaseModel):
    success: bool
    message: str


__all__ = [
    "BatchUploadItemRead",
    "BatchUploadResponse",
    "FileRecordRead",
    "FileUploadResponse",
    "MessageResponse",
    "TaskFilesResponse",
]
