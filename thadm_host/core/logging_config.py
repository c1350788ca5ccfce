"""Root logging setup for the host process.

The host writes its own records and the recorder's relayed output through
the same handlers. Recorder output goes to the ``thadm_host.Sidecar``
logger, whose level can be set on its own so a chatty recorder does not
drown the host's messages.
"""

from __future__ import annotations

import contextlib
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, List, Optional, Union

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
_DEFAULT_MAX_BYTES = 500 * 1024
_DEFAULT_BACKUP_COUNT = 2

SIDECAR_LOGGER = "thadm_host.Sidecar"

# Chatty third-party loggers that only matter when something is broken.
DEFAULT_SUPPRESSED = ("aiohttp.access", "asyncio")

# Handlers installed by configure_logging; others (pytest, embedding apps) are left alone.
_installed: List[logging.Handler] = []


def _coerce_level(level: Union[int, str]) -> int:
    if isinstance(level, str):
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            raise ValueError(f"Unknown log level '{level}'")
        return numeric
    return int(level)


def _build_handlers(
    console: bool,
    log_file: Optional[Union[str, Path]],
    max_bytes: int,
    backup_count: int,
) -> List[logging.Handler]:
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
    handlers: List[logging.Handler] = []

    if console:
        handlers.append(logging.StreamHandler(sys.stdout))

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_path,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
        )

    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def reset_logging() -> None:
    """Detach and close the handlers installed by ``configure_logging``."""
    root = logging.getLogger()
    while _installed:
        handler = _installed.pop()
        root.removeHandler(handler)
        with contextlib.suppress(Exception):
            handler.close()


def is_configured() -> bool:
    return bool(_installed)


def configure_logging(
    level: Union[int, str] = logging.INFO,
    *,
    force: bool = False,
    console: bool = True,
    log_file: Optional[Union[str, Path]] = None,
    sidecar_level: Optional[Union[int, str]] = None,
    max_bytes: int = _DEFAULT_MAX_BYTES,
    backup_count: int = _DEFAULT_BACKUP_COUNT,
    suppressed_loggers: Iterable[str] = DEFAULT_SUPPRESSED,
) -> None:
    """Configure host logging.

    Args:
        level: Host logging level (int or name such as "info").
        force: Rebuild handlers even if logging was already configured.
        console: Emit records to stdout.
        log_file: Rotating log file; no file logging when None.
        sidecar_level: Level for relayed recorder output, defaults to ``level``.
        max_bytes: Size at which the log file rotates.
        backup_count: Number of rotated files to keep.
        suppressed_loggers: Logger names raised to WARNING.
    """
    numeric_level = _coerce_level(level)
    root = logging.getLogger()
    root.setLevel(numeric_level)

    sidecar = logging.getLogger(SIDECAR_LOGGER)
    sidecar.setLevel(_coerce_level(sidecar_level) if sidecar_level is not None else logging.NOTSET)

    if is_configured() and not force:
        return

    reset_logging()
    handlers = _build_handlers(console, log_file, max_bytes, backup_count)
    if not handlers:
        # Keep warnings visible even with console and file both disabled.
        handlers = [logging.StreamHandler(sys.stderr)]
        handlers[0].setLevel(logging.WARNING)
        handlers[0].setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))

    for handler in handlers:
        root.addHandler(handler)
        _installed.append(handler)

    for name in suppressed_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = [
    "LOG_DATEFMT",
    "LOG_FORMAT",
    "SIDECAR_LOGGER",
    "configure_logging",
    "is_configured",
    "reset_logging",
]
