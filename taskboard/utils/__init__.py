"""Utility helpers for reusable functionality."""

from .datetime import (
    ensure_app_timezone,
    get_app_timezone,
    now_in_app_timezone,
    parse_timestamp,
    to_epoch_millis,
)
from .http_range import ByteRange, RangeNotSatisfiableError, parse_range_header

__all__ = [
    "ByteRange",
    "RangeNotSatisfiableError",
    "ensure_app_timezone",
    "get_app_timezone",
    "now_in_app_timezone",
    "parse_range_header",
    "parse_timestamp",
    "to_epoch_millis",
]
