"""Logging setup for the API process."""

import logging
import sys

_NOISY_LOGGERS = ("sqlalchemy.engine", "multipart", "python_multipart")


def setup_logging(level: str | int = logging.INFO) -> None:
    """Configure the root logger. Call once at startup."""

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - [%(levelname)s] - %(message)s",
        stream=sys.stdout,
    )
    logging.getLogger().setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["setup_logging"]
