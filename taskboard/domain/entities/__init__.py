"""Domain entities exposed by the application."""

from .role import ADMIN_ROLE_ALIAS, Role
from .task import FileRecord, Task, TaskActivity, TaskActivityType
from .user import User

__all__ = [
    "ADMIN_ROLE_ALIAS",
    "FileRecord",
    "Role",
    "Task",
    "TaskActivity",
    "TaskActivityType",
    "User",
]
