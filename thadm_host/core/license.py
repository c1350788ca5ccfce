"""License and trial evaluation.

Recording is degraded to read-only mode (no audio, no vision) once the
15-day trial has run out and there is no license validated within the
last 7 days. License fields are always read live from the settings store
because the shell can activate a license while the host is running.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from .errors import SettingsStoreError
from .logging_utils import get_module_logger
from .settings_store import SettingsStore, read_settings

logger = get_module_logger("License")

LICENSE_CACHE_DAYS = 7
TRIAL_DAYS = 15
TRIAL_EXPIRING_AFTER_DAYS = 10

_ONE_DAY = timedelta(days=1)

_RFC3339 = re.compile(
    r"(\d{4}-\d{2}-\d{2})[Tt ](\d{2}:\d{2}:\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})"
)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp; None when absent or malformed.

    An explicit UTC offset is required, so date-only and naive values are
    rejected the same way as garbage. Either ``T`` or a space may separate
    date and time, and sub-microsecond digits are truncated.
    """
    if not value or not isinstance(value, str):
        return None
    match = _RFC3339.fullmatch(value.strip())
    if match is None:
        return None
    date, time, fraction, offset = match.groups()
    text = f"{date}T{time}"
    if fraction:
        text += "." + fraction[:6].ljust(6, "0")
    text += "+00:00" if offset in ("Z", "z") else offset
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def whole_days_since(then: datetime, now: datetime) -> int:
    """Whole days elapsed from ``then`` to ``now``, truncated toward zero."""
    return int((now - then) / _ONE_DAY)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_licensed(
    license_key: Optional[str],
    validated_at: Optional[str],
    now: datetime,
) -> bool:
    if not license_key:
        return False
    validated = parse_timestamp(validated_at)
    if validated is None:
        return False
    return whole_days_since(validated, now) < LICENSE_CACHE_DAYS


def is_trial_expired(first_seen_at: Optional[str], now: datetime) -> bool:
    # A missing first-seen stamp means a fresh install: never expired.
    first_seen = parse_timestamp(first_seen_at)
    if first_seen is None:
        return False
    return whole_days_since(first_seen, now) > TRIAL_DAYS


def evaluate_read_only(
    license_key: Optional[str],
    validated_at: Optional[str],
    first_seen_at: Optional[str],
    now: Optional[datetime] = None,
) -> bool:
    """True when the recorder must run with audio and vision disabled."""
    now = now or _utcnow()
    return not is_licensed(license_key, validated_at, now) and is_trial_expired(first_seen_at, now)


@dataclass(frozen=True)
class LicenseSnapshot:
    license_key: Optional[str] = None
    license_validated_at: Optional[str] = None
    first_seen_at: Optional[str] = None
    license_plan: Optional[str] = None

    def is_read_only_mode(self, now: Optional[datetime] = None) -> bool:
        return evaluate_read_only(
            self.license_key,
            self.license_validated_at,
            self.first_seen_at,
            now,
        )


def _optional_str(value) -> Optional[str]:
    return value if isinstance(value, str) else None


async def read_license_fields(store: SettingsStore) -> LicenseSnapshot:
    """Read the license fields straight from the store, bypassing any cache."""
    try:
        settings = await read_settings(store)
    except SettingsStoreError as exc:
        logger.warning("Failed to read live settings store: %s, defaulting to no license", exc)
        return LicenseSnapshot()

    if not settings:
        logger.debug("No settings in store, defaulting to no license")
        return LicenseSnapshot()

    return LicenseSnapshot(
        license_key=_optional_str(settings.get("licenseKey")),
        license_validated_at=_optional_str(settings.get("licenseValidatedAt")),
        first_seen_at=_optional_str(settings.get("firstSeenAt")),
        license_plan=_optional_str(settings.get("licensePlan")),
    )


class LicenseState(Enum):
    LICENSED = "licensed"
    TRIAL = "trial"
    TRIAL_EXPIRING = "trial_expiring"
    EXPIRED = "expired"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class LicenseStatus:
    state: LicenseState
    days_remaining: Optional[int] = None
    plan: Optional[str] = None

    @property
    def is_recording_allowed(self) -> bool:
        return self.state is not LicenseState.EXPIRED

    def status_text(self) -> str:
        if self.state is LicenseState.LICENSED:
            return f"Licensed ({self.plan})" if self.plan else "Licensed"
        if self.state in (LicenseState.TRIAL, LicenseState.TRIAL_EXPIRING):
            days = self.days_remaining or 0
            unit = "day" if days == 1 else "days"
            return f"Trial: {days} {unit} left"
        if self.state is LicenseState.EXPIRED:
            return "Trial Expired — Buy Thadm"
        return "Trial"

    def to_dict(self) -> dict:
        return {
            "status": self.state.value,
            "days_remaining": self.days_remaining,
            "plan": self.plan,
            "is_recording_allowed": self.is_recording_allowed,
            "status_text": self.status_text(),
        }


def describe_license(snapshot: LicenseSnapshot, now: Optional[datetime] = None) -> LicenseStatus:
    """Classify the license for status display.

    A key whose last validation is stale counts as expired even while the
    trial window is still open.
    """
    now = now or _utcnow()

    if snapshot.license_key:
        if is_licensed(snapshot.license_key, snapshot.license_validated_at, now):
            return LicenseStatus(LicenseState.LICENSED, plan=snapshot.license_plan)
        return LicenseStatus(LicenseState.EXPIRED, days_remaining=0)

    first_seen = parse_timestamp(snapshot.first_seen_at)
    if first_seen is None:
        return LicenseStatus(LicenseState.UNKNOWN)

    age = max(whole_days_since(first_seen, now), 0)
    if age <= TRIAL_EXPIRING_AFTER_DAYS:
        return LicenseStatus(LicenseState.TRIAL, days_remaining=TRIAL_DAYS - age)
    if age <= TRIAL_DAYS:
        return LicenseStatus(LicenseState.TRIAL_EXPIRING, days_remaining=TRIAL_DAYS - age)
    return LicenseStatus(LicenseState.EXPIRED, days_remaining=0)
