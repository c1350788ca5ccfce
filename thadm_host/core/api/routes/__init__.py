"""
API route modules.

- system: health check, license status and key validation
- sidecar: recorder status, spawn and stop
- monitors: display listing and reconciler state
"""

from aiohttp import web

from .monitors import setup_monitor_routes
from .sidecar import setup_sidecar_routes
from .system import setup_system_routes


def setup_all_routes(app: web.Application) -> None:
    """Register all API routes with the application."""
    setup_system_routes(app)
    setup_sidecar_routes(app)
    setup_monitor_routes(app)
