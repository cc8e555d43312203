"""Use cases for storing, serving and removing the files attached to tasks."""

from .delete_task_file import delete_task_file
from .download_task_file import FileDownload, open_task_file_download
from .errors import (
    FileStorageError,
    FileValidationError,
    InvalidIdentifierError,
    TaskFileError,
    TaskFileNotFoundError,
    TaskNotFoundError,
)
from .list_task_files import list_task_files
from .purge_task_files import purge_task_files
from .sweep_orphaned_files import SweepReport, sweep_orphaned_files
from .upload_task_file import (
    FileUpload,
    attach_task_files,
    discard_stored_file,
    store_task_file,
    upload_task_file,
)
from .upload_task_files import BatchUploadOutcome, BatchUploadResult, upload_task_files

__all__ = [
    "BatchUploadOutcome",
    "BatchUploadResult",
    "FileDownload",
    "FileStorageError",
    "FileUpload",
    "FileValidationError",
    "InvalidIdentifierError",
    "SweepReport",
    "TaskFileError",
    "TaskFileNotFoundError",
    "TaskNotFoundError",
    "attach_task_files",
    "delete_task_file",
    "discard_stored_file",
    "list_task_files",
    "open_task_file_download",
    "purge_task_files",
    "store_task_file",
    "sweep_orphaned_files",
    "upload_task_file",
    "upload_task_files",
]
