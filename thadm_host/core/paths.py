"""Centralized path constants for the thadm host."""

from __future__ import annotations

import os
import sys
from pathlib import Path


def _get_base_path() -> Path:
    if getattr(sys, "frozen", False) and hasattr(sys, "_MEIPASS"):
        return Path(sys._MEIPASS)
    return Path(__file__).resolve().parents[2]


PROJECT_ROOT = _get_base_path()

# Host configuration (key = value)
CONFIG_PATH = PROJECT_ROOT / "config.txt"

# Recorder data lives in ~/.screenpipe unless the user overrides dataDir.
DATA_DIR_NAME = ".screenpipe"
DEFAULT_DATA_DIR = Path.home() / DATA_DIR_NAME

# User settings written by the desktop shell; settings live under "settings".
DEFAULT_STORE_PATH = DEFAULT_DATA_DIR / "store.bin"

# User-specific host state (allows running from read-only install dirs)
_USER_STATE_ENV = os.environ.get("THADM_HOST_STATE_DIR")
USER_STATE_DIR = Path(_USER_STATE_ENV).expanduser() if _USER_STATE_ENV else (Path.home() / ".thadm_host")
USER_CONFIG_OVERRIDES_DIR = USER_STATE_DIR / "config_overrides"

LOGS_DIR = USER_STATE_DIR / "logs"
HOST_LOG_FILE = LOGS_DIR / "host.log"

# Worker executable
WORKER_NAME = "thadm-recorder"


def worker_image_name(platform: str = sys.platform) -> str:
    """Process-table name of the worker on ``platform``."""
    if platform == "win32":
        return f"{WORKER_NAME}.exe"
    return WORKER_NAME


def ensure_directories() -> None:
    """Create necessary directories if they don't exist."""
    USER_STATE_DIR.mkdir(parents=True, exist_ok=True)
    USER_CONFIG_OVERRIDES_DIR.mkdir(parents=True, exist_ok=True)
    LOGS_DIR.mkdir(parents=True, exist_ok=True)


__all__ = [
    "PROJECT_ROOT",
    "CONFIG_PATH",
    "DATA_DIR_NAME",
    "DEFAULT_DATA_DIR",
    "DEFAULT_STORE_PATH",
    "USER_STATE_DIR",
    "USER_CONFIG_OVERRIDES_DIR",
    "LOGS_DIR",
    "HOST_LOG_FILE",
    "WORKER_NAME",
    "worker_image_name",
    "ensure_directories",
]
