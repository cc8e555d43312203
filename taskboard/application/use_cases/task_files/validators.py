"""Validation helpers shared by the task file use cases."""

from __future__ import annotations

from pathlib import PurePosixPath
from uuid import UUID

from .errors import FileValidationError, InvalidIdentifierError

ALLOWED_CONTENT_TYPES = frozenset(
    {
        "image/jpeg",
        "image/png",
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    }
)
ALLOWED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".pdf", ".doc", ".docx")
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def normalize_identifier(value: str | None, *, label: str) -> str:
    """Return ``value`` as a 32 character hex identifier or raise."""

    if not value:
        raise InvalidIdentifierError(f"{label} is required")
    try:
        return UUID(str(value).strip()).hex
    except ValueError as exc:
        raise InvalidIdentifierError(f"Invalid {label.lower()} format") from exc


def clean_original_name(filename: str | None) -> str:
    """Strip any client supplied directories from ``filename``."""

    if not filename:
        raise FileValidationError("No file uploaded")
    name = PurePosixPath(filename.replace("\\", "/")).name.strip()
    if not name or name in {".", ".."}:
        raise FileValidationError("Invalid file name")
    return name


def normalize_content_type(content_type: str | None) -> str:
    """Lowercase the media type and drop parameters such as ``charset``."""

    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def ensure_acceptable_file(
    *,
    original_name: str,
    content_type: str | None,
    size: int,
    max_bytes: int,
) -> str:
    """Check size, declared media type and extension; return the media type."""

    if size > max_bytes:
        raise FileValidationError(
            f"File too large. Maximum size is {max_bytes // (1024 * 1024)} MB"
        )

    media_type = normalize_content_type(content_type)
    if media_type not in ALLOWED_CONTENT_TYPES:
        raise FileValidationError(
            f"Invalid file type {media_type or 'unknown'!r}. "
            f"Allowed types: {', '.join(ALLOWED_EXTENSIONS)}"
        )

    extension = PurePosixPath(original_name).suffix.lower()
    if extension not in ALLOWED_EXTENSIONS:
        raise FileValidationError(
            f"Invalid file type. Allowed types: {', '.join(ALLOWED_EXTENSIONS)}"
        )
    return media_type


__all__ = [
    "ALLOWED_CONTENT_TYPES",
    "ALLOWED_EXTENSIONS",
    "DEFAULT_CONTENT_TYPE",
    "clean_original_name",
    "ensure_acceptable_file",
    "normalize_content_type",
    "normalize_identifier",
]
