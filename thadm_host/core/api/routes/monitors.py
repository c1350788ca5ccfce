"""
Monitor Routes - Display listing and reconciler state.
"""

from aiohttp import web

from ..controller import APIController


def setup_monitor_routes(app: web.Application) -> None:
    """Register monitor routes."""
    app.router.add_get("/api/v1/monitors", monitors_handler)
    app.router.add_get("/api/v1/reconciler", reconciler_handler)


async def monitors_handler(request: web.Request) -> web.Response:
    """GET /api/v1/monitors - Displays reported by the recorder."""
    controller: APIController = request.app["controller"]
    monitors = await controller.list_monitors()
    return web.json_response({"monitors": monitors, "count": len(monitors)})


async def reconciler_handler(request: web.Request) -> web.Response:
    """GET /api/v1/reconciler - Monitor watcher state and last pass."""
    controller: APIController = request.app["controller"]
    return web.json_response(await controller.reconciler_status())
