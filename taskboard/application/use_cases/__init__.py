"""Aggregate application use cases."""

from .task_files import (
    delete_task_file,
    list_task_files,
    open_task_file_download,
    upload_task_file,
    upload_task_files,
)

__all__ = [
    "delete_task_file",
    "list_task_files",
    "open_task_file_download",
    "upload_task_file",
    "upload_task_files",
]
