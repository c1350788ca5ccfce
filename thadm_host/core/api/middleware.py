"""
API Middleware - Access control and error formatting for the control API.
"""

import traceback
from typing import Callable

from aiohttp import web

from ..errors import CollaboratorQueryFailure, PermissionRequired, SpawnFailure
from ..logging_utils import get_module_logger


logger = get_module_logger("APIMiddleware")

LOCALHOST_IPS = {"127.0.0.1", "::1", "::ffff:127.0.0.1"}

_debug_mode: bool = False


def set_debug_mode(enabled: bool) -> None:
    """Enable or disable tracebacks in 500 responses."""
    global _debug_mode
    _debug_mode = enabled


def is_debug_mode() -> bool:
    return _debug_mode


def create_error_response(code: str, message: str, status: int = 400, details: dict = None) -> web.Response:
    """Create standardized error response."""
    error = {"error": {"code": code, "message": message}, "status": status}
    if details:
        error["error"]["details"] = details
    return web.json_response(error, status=status)


async def parse_json_body(request: web.Request, required: bool = True):
    """Parse JSON body with error handling. Returns (body, error_response)."""
    if not request.can_read_body:
        if required:
            return None, create_error_response("EMPTY_BODY", "Request body must contain data", status=400)
        return {}, None
    try:
        body = await request.json()
    except ValueError:
        return None, create_error_response("INVALID_BODY", "Request body must be valid JSON", status=400)
    if not isinstance(body, dict):
        return None, create_error_response("INVALID_BODY", "Request body must be a JSON object", status=400)
    return body, None


@web.middleware
async def localhost_only_middleware(request: web.Request, handler: Callable) -> web.Response:
    """Reject requests from any address other than loopback."""
    peername = request.transport.get_extra_info("peername") if request.transport else None
    if peername:
        remote_ip = peername[0]
        if remote_ip not in LOCALHOST_IPS:
            logger.warning("Rejected request from non-localhost IP: %s", remote_ip)
            return create_error_response(
                "ACCESS_DENIED",
                "API access is restricted to localhost only",
                status=403,
            )

    return await handler(request)


@web.middleware
async def error_handling_middleware(request: web.Request, handler: Callable) -> web.Response:
    """
    Format every failure as:
    {
        "error": {"code": "ERROR_CODE", "message": "...", "details": {...}},
        "status": 500
    }
    """
    try:
        return await handler(request)
    except web.HTTPException as e:
        return create_error_response(
            e.reason.upper().replace(" ", "_") if e.reason else "HTTP_ERROR",
            e.text or str(e),
            status=e.status,
        )
    except PermissionRequired as e:
        logger.warning("Spawn refused: %s", e)
        return create_error_response(
            "PERMISSION_REQUIRED",
            str(e),
            status=403,
            details={"permission": e.permission},
        )
    except SpawnFailure as e:
        return create_error_response("SPAWN_FAILED", str(e), status=500)
    except CollaboratorQueryFailure as e:
        logger.warning("Collaborator query failed: %s", e)
        return create_error_response("QUERY_FAILED", str(e), status=502)
    except ValueError as e:
        logger.warning("Validation error: %s", e)
        return create_error_response("VALIDATION_ERROR", str(e), status=400)
    except Exception as e:
        tb = traceback.format_exc()
        logger.error("Unexpected error: %s\n%s", e, tb)

        details = {"type": type(e).__name__, "message": str(e)}
        if _debug_mode:
            details["traceback"] = tb.split("\n")
            details["request"] = {"method": request.method, "path": request.path}
        return create_error_response(
            "INTERNAL_ERROR",
            "An unexpected error occurred",
            status=500,
            details=details,
        )
