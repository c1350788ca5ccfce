"""
System Routes - Health and license endpoints.
"""

from aiohttp import web

from ..controller import APIController
from ..middleware import create_error_response, parse_json_body


def setup_system_routes(app: web.Application) -> None:
    """Register system routes."""
    app.router.add_get("/api/v1/health", health_handler)
    app.router.add_get("/api/v1/license", license_handler)
    app.router.add_post("/api/v1/license/validate", validate_license_handler)


async def health_handler(request: web.Request) -> web.Response:
    """GET /api/v1/health - Health check."""
    controller: APIController = request.app["controller"]
    return web.json_response(await controller.health_check())


async def license_handler(request: web.Request) -> web.Response:
    """GET /api/v1/license - Read-only flag and trial/license status."""
    controller: APIController = request.app["controller"]
    return web.json_response(await controller.license_status())


async def validate_license_handler(request: web.Request) -> web.Response:
    """POST /api/v1/license/validate - Check a key with the license vendor.

    Body: {"license_key": "XXXX-XXXX"}
    """
    controller: APIController = request.app["controller"]
    body, error = await parse_json_body(request)
    if error:
        return error

    key = body.get("license_key")
    if not isinstance(key, str):
        return create_error_response(
            "MISSING_LICENSE_KEY",
            "'license_key' must be a string",
            status=400,
        )

    return web.json_response(await controller.validate_license_key(key))
