"""Domain entity representing a user role."""

from dataclasses import dataclass

ADMIN_ROLE_ALIAS = "admin"


@dataclass
class Role:
    """Role assigned to a user; only administrators manage task files."""

    id: int
    name: str
    alias: str


__all__ = ["ADMIN_ROLE_ALIAS", "Role"]
