"""Repository implementations for infrastructure layer."""

from .role_repository import RoleRepository
from .task_repository import (
    ConcurrentTaskUpdateError,
    TaskNotStoredError,
    TaskRepository,
)
from .user_repository import UserRepository

__all__ = [
    "ConcurrentTaskUpdateError",
    "RoleRepository",
    "TaskNotStoredError",
    "TaskRepository",
    "UserRepository",
]
