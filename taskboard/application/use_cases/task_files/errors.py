"""Errors raised by the task file use cases."""


class TaskFileError(Exception):
    """Base class for task file failures."""


class FileValidationError(TaskFileError, ValueError):
    """The request is malformed or the file is not acceptable."""


class InvalidIdentifierError(FileValidationError):
    """A task or file identifier is not well formed."""


class TaskNotFoundError(TaskFileError, LookupError):
    """The task does not exist (or is in the trash)."""


class TaskFileNotFoundError(TaskFileError, LookupError):
    """The file does not exist or is not attached to the task."""


class FileStorageError(TaskFileError, RuntimeError):
    """The chunk store failed while reading or writing file data."""


__all__ = [
    "FileStorageError",
    "FileValidationError",
    "InvalidIdentifierError",
    "TaskFileError",
    "TaskFileNotFoundError",
    "TaskNotFoundError",
]
