"""Online license-key validation against the license vendor."""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
from typing import Optional

import aiohttp

from .logging_utils import get_module_logger

logger = get_module_logger(__name__)

VALIDATE_URL = "https://api.lemonsqueezy.com/v1/licenses/validate"
REQUEST_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validation request.

    ``status`` is one of ``active``, ``expired`` or ``not_found`` and
    ``plan`` one of ``lifetime``, ``annual`` or None.
    """
    valid: bool
    status: str
    plan: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def plan_from_product_name(product_name: str) -> Optional[str]:
    name = (product_name or "").lower()
    if "lifetime" in name:
        return "lifetime"
    if "annual" in name:
        return "annual"
    return None


def _interpret_payload(data) -> ValidationResult:
    if not isinstance(data, dict):
        return ValidationResult(False, "not_found", error="malformed response")

    if not data.get("valid"):
        key_info = data.get("license_key")
        vendor_status = key_info.get("status") if isinstance(key_info, dict) else None
        error = data.get("error")
        return ValidationResult(
            valid=False,
            status="expired" if vendor_status == "expired" else "not_found",
            error=error if isinstance(error, str) else None,
        )

    meta = data.get("meta")
    product_name = meta.get("product_name") if isinstance(meta, dict) else None
    return ValidationResult(
        valid=True,
        status="active",
        plan=plan_from_product_name(product_name if isinstance(product_name, str) else ""),
    )


async def validate_license(
    key: str,
    *,
    session: Optional[aiohttp.ClientSession] = None,
    url: str = VALIDATE_URL,
) -> ValidationResult:
    """Validate ``key`` with the vendor API.

    Args:
        key: License key as entered by the user; surrounding whitespace is ignored.
        session: Optional shared client session. A private one is created
            and closed when omitted.
        url: Validation endpoint.

    Returns:
        A ValidationResult. Network and protocol failures are reported in
        the result instead of being raised.
    """
    trimmed = (key or "").strip()
    if not trimmed:
        return ValidationResult(False, "not_found", error="empty key")

    owns_session = session is None
    if owns_session:
        session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT_SECONDS)
        )

    try:
        async with session.post(url, json={"license_key": trimmed}) as response:
            if not 200 <= response.status < 300:
                logger.debug("License validation returned HTTP %d", response.status)
                return ValidationResult(False, "not_found", error=f"http {response.status}")
            data = await response.json(content_type=None)
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
        logger.debug("License validation failed: %s", exc)
        return ValidationResult(False, "not_found", error="network")
    finally:
        if owns_session:
            await session.close()

    result = _interpret_payload(data)
    logger.info("License validation result: %s (plan=%s)", result.status, result.plan)
    return result


__all__ = [
    "VALIDATE_URL",
    "ValidationResult",
    "plan_from_product_name",
    "validate_license",
]
