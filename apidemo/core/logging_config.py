"""Root logging setup for the apidemo command line.

Standard output carries the JSON event stream, so console logging always
goes to stderr. A log file, when configured, rotates by size.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional, Union

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_MAX_BYTES = 1024 * 1024
LOG_FILE_BACKUPS = 3


def level_from_name(name: str) -> int:
    """Map ``"info"``/``"DEBUG"`` style names to a logging level."""
    level = logging.getLevelName(name.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level '{name}'")
    return level


def _open_log_file(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        path,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )


def configure_logging(
    level: str = "info",
    *,
    console: bool = True,
    log_file: Optional[Union[str, Path]] = None,
) -> List[logging.Handler]:
    """Replace the root handlers; returns the handlers installed."""
    numeric_level = level_from_name(level)
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    handlers: List[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler(sys.stderr))
    if log_file:
        handlers.append(_open_log_file(Path(log_file)))
    if not handlers:
        # keeps logging's last-resort handler from writing warnings to stderr
        handlers.append(logging.NullHandler())

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(numeric_level)
    return handlers


__all__ = ["LOG_DATEFMT", "LOG_FORMAT", "configure_logging", "level_from_name"]
