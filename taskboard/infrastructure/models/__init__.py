"""ORM models used by the application infrastructure."""

from .role import RoleModel
from .stored_file import FileChunkModel, StoredFileModel
from .task import TaskModel
from .user import UserModel

__all__ = [
    "FileChunkModel",
    "RoleModel",
    "StoredFileModel",
    "TaskModel",
    "UserModel",
]
