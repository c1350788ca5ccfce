"""Key/value settings store the desktop shell writes and the host reads.

The shell persists everything as one JSON document; user settings are a
nested object under the ``"settings"`` key. The host only ever reads, and
every read goes back to disk so values written by the shell after startup
(license activation, for example) are visible immediately.
"""

from __future__ import annotations

import asyncio
import copy
import json
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

import aiofiles

from .errors import SettingsStoreError
from .logging_utils import get_module_logger

logger = get_module_logger("SettingsStore")

SETTINGS_KEY = "settings"


class SettingsStore(Protocol):
    async def get(self, key: str) -> Optional[Any]:
        """Return the value stored under ``key`` or None when absent."""
        ...


class JsonFileSettingsStore:
    """Reads a JSON object from ``path`` on every lookup."""

    def __init__(self, path: Path):
        self.path = Path(path)

    async def _load(self) -> Dict[str, Any]:
        if not await asyncio.to_thread(self.path.exists):
            logger.debug("Settings store %s does not exist yet", self.path)
            return {}

        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as fh:
                raw = await fh.read()
        except OSError as exc:
            raise SettingsStoreError(f"cannot read {self.path}: {exc}") from exc

        if not raw.strip():
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise SettingsStoreError(f"{self.path} is not valid JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise SettingsStoreError(f"{self.path} does not hold a JSON object")
        return data

    async def get(self, key: str) -> Optional[Any]:
        data = await self._load()
        return data.get(key)


class MemorySettingsStore:
    """In-process store; handy for embedding and tests."""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(data) if data else {}

    async def get(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self._data.get(key))

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def update_settings(self, **values: Any) -> None:
        settings = self._data.setdefault(SETTINGS_KEY, {})
        settings.update(copy.deepcopy(values))


async def read_settings(store: SettingsStore) -> Dict[str, Any]:
    """Return the nested settings object, ``{}`` when absent or malformed."""
    settings = await store.get(SETTINGS_KEY)
    if settings is None:
        return {}
    if not isinstance(settings, dict):
        logger.warning("Ignoring non-object %r entry in settings store", SETTINGS_KEY)
        return {}
    return settings
