"""
Sidecar Routes - Recorder lifecycle endpoints.
"""

from aiohttp import web

from ..controller import APIController
from ..middleware import create_error_response, parse_json_body


def setup_sidecar_routes(app: web.Application) -> None:
    """Register sidecar routes."""
    app.router.add_get("/api/v1/sidecar/status", status_handler)
    app.router.add_post("/api/v1/sidecar/spawn", spawn_handler)
    app.router.add_post("/api/v1/sidecar/stop", stop_handler)


async def status_handler(request: web.Request) -> web.Response:
    """GET /api/v1/sidecar/status - Recorder state and pid."""
    controller: APIController = request.app["controller"]
    return web.json_response(await controller.sidecar_status())


async def spawn_handler(request: web.Request) -> web.Response:
    """POST /api/v1/sidecar/spawn - Start the recorder.

    Body (optional): {"override_args": ["--enable-realtime-vision"]}
    """
    controller: APIController = request.app["controller"]
    body, error = await parse_json_body(request, required=False)
    if error:
        return error

    override_args = body.get("override_args")
    if override_args is not None and (
        not isinstance(override_args, list)
        or not all(isinstance(arg, str) for arg in override_args)
    ):
        return create_error_response(
            "INVALID_OVERRIDE_ARGS",
            "'override_args' must be a list of strings",
            status=400,
        )

    return web.json_response(await controller.spawn_sidecar(override_args))


async def stop_handler(request: web.Request) -> web.Response:
    """POST /api/v1/sidecar/stop - Stop every recorder process."""
    controller: APIController = request.app["controller"]
    return web.json_response(await controller.stop_sidecar())
