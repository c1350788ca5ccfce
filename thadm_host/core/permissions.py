"""OS capability checks consulted before every spawn."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class PermissionsCheck:
    screen_recording: bool
    microphone: bool


class PermissionChecker(Protocol):
    def check(self) -> PermissionsCheck:
        ...


class GrantedPermissionChecker:
    """Reports every capability as granted.

    Used on platforms without a capture-permission model and when the
    desktop shell has already run its own onboarding checks.
    """

    def check(self) -> PermissionsCheck:
        return PermissionsCheck(screen_recording=True, microphone=True)


__all__ = ["GrantedPermissionChecker", "PermissionChecker", "PermissionsCheck"]
