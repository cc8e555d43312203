"""Parsing of single ``Range: bytes=...`` request headers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final

_RANGE_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^\s*bytes\s*=\s*(?P<start>\d*)\s*-\s*(?P<end>\d*)\s*$",
    re.IGNORECASE,
)


class RangeNotSatisfiableError(ValueError):
    """Raised when a well-formed range does not overlap the resource."""

    def __init__(self, length: int, header: str) -> None:
        super().__init__(f"Requested range not satisfiable: {header!r}")
        self.length = length
        self.header = header

    @property
    def content_range(self) -> str:
        return f"bytes */{self.length}"


@dataclass(frozen=True)
class ByteRange:
    """Inclusive byte interval, as written in HTTP headers."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    @property
    def stop(self) -> int:
        """Exclusive upper bound, as accepted by the file store."""

        return self.end + 1

    def content_range(self, total: int) -> str:
        return f"bytes {self.start}-{self.end}/{total}"


def parse_range_header(header: str | None, length: int) -> ByteRange | None:
    """Resolve ``header`` against a resource of ``length`` bytes.

    Returns ``None`` when the header is absent or cannot be parsed (multiple
    ranges, another unit, garbage), in which case the full content is served.
    Raises :class:`RangeNotSatisfiableError` for ranges that start past the
    end of the resource or are inverted.
    """

    if header is None or length <= 0:
        return None

    match = _RANGE_PATTERN.match(header)
    if match is None:
        return None

    raw_start, raw_end = match.group("start"), match.group("end")
    if not raw_start and not raw_end:
        return None

    if not raw_start:
        # Suffix range: the last N bytes.
        suffix = int(raw_end)
        if suffix == 0:
            raise RangeNotSatisfiableError(length, header)
        return ByteRange(start=max(length - suffix, 0), end=length - 1)

    start = int(raw_start)
    end = int(raw_end) if raw_end else length - 1
    if start >= length or end < start:
        raise RangeNotSatisfiableError(length, header)
    return ByteRange(start=start, end=min(end, length - 1))


__all__ = ["ByteRange", "RangeNotSatisfiableError", "parse_range_header"]
