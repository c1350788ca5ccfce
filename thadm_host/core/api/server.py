"""
API Server - aiohttp REST server for controlling the recorder host.

Runs on the host's asyncio loop, bound to loopback by default.
"""

from typing import Optional

from aiohttp import web

from ..logging_utils import get_module_logger
from .controller import APIController
from .middleware import error_handling_middleware, localhost_only_middleware, set_debug_mode
from .routes import setup_all_routes


logger = get_module_logger("APIServer")

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3035


class APIServer:
    """Control API for the recorder host."""

    def __init__(
        self,
        controller: APIController,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        localhost_only: bool = True,
        debug: bool = False,
    ):
        self.controller = controller
        self.host = host
        self.port = port
        self.localhost_only = localhost_only
        self.debug = debug

        self._app: Optional[web.Application] = None
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None
        self._running = False

        set_debug_mode(debug)

    def create_app(self) -> web.Application:
        middlewares = [error_handling_middleware]
        if self.localhost_only:
            middlewares.insert(0, localhost_only_middleware)

        app = web.Application(middlewares=middlewares)
        app["controller"] = self.controller
        setup_all_routes(app)
        return app

    async def start(self) -> None:
        if self._running:
            logger.warning("API server already running")
            return

        self._app = self.create_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()

        self._running = True
        logger.info("API server started on %s", self.url)

    async def stop(self) -> None:
        if not self._running:
            return

        logger.info("Stopping API server...")

        if self._site:
            await self._site.stop()
            self._site = None

        if self._runner:
            await self._runner.cleanup()
            self._runner = None

        self._app = None
        self._running = False
        logger.info("API server stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"
