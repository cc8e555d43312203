from .task_file import (
    BatchUploadItemRead,
    BatchUploadResponse,
    FileRecordRead,
    FileUploadResponse,
    MessageResponse,
    TaskFilesResponse,
)

__all__ = [
    "BatchUploadItemRead",
    "BatchUploadResponse",
    "FileRecordRead",
    "FileUploadResponse",
    "MessageResponse",
    "TaskFilesResponse",
]
