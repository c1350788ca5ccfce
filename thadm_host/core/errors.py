"""Exceptions raised by the sidecar supervisor and its collaborators."""

from __future__ import annotations

from typing import Optional


class SupervisorError(Exception):
    """Base class for host-side sidecar errors."""


class PermissionRequired(SupervisorError):
    """A required OS capability (screen capture) has not been granted.

    The message is meant to be shown to the user as-is.
    """

    def __init__(self, permission: str, message: Optional[str] = None) -> None:
        self.permission = permission
        super().__init__(
            message
            or f"{permission.replace('_', ' ').capitalize()} permission required. "
            "Please grant permission through settings and restart the app."
        )


class SpawnFailure(SupervisorError):
    """The OS could not create the worker process."""


class TerminationTimeout(SupervisorError):
    """The worker was still alive after the last graceful-exit check."""

    def __init__(self, attempts: int, interval: float) -> None:
        self.attempts = attempts
        self.interval = interval
        super().__init__(
            f"worker still alive after {attempts} checks at {interval:.1f}s intervals"
        )


class CollaboratorQueryFailure(SupervisorError):
    """Monitor enumeration or a vision-manager call failed."""


class SettingsStoreError(SupervisorError):
    """The key/value settings store could not be read."""


class MalformedOutput(SupervisorError):
    """The worker wrote bytes that are not valid UTF-8."""

    def __init__(self, stream: str, raw: bytes, cause: UnicodeDecodeError) -> None:
        self.stream = stream
        self.raw = raw
        super().__init__(f"non-UTF-8 output on {stream}: {cause}")


__all__ = [
    "SupervisorError",
    "PermissionRequired",
    "SpawnFailure",
    "TerminationTimeout",
    "CollaboratorQueryFailure",
    "MalformedOutput",
    "SettingsStoreError",
]
