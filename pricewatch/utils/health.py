"""
Health Endpoint
===============

Minimal HTTP server exposing GET /health -> {"status": "ok"}.

Runs an aiohttp application on its own event loop in a daemon thread so the
synchronous monitor loop is unaffected.
"""

import asyncio
import logging
import threading
from typing import Optional

from aiohttp import web

from ..config import config

logger = logging.getLogger(__name__)


async def health(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok"})


def build_app() -> web.Application:
    app = web.Application()
    app.router.add_get("/health", health)
    return app


class HealthServer:
    """Background-thread wrapper around the aiohttp app."""

    def __init__(self, host: str = None, port: int = None):
        self.host = host or config.health_host
        self.port = port if port is not None else config.health_port
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._runner: Optional[web.AppRunner] = None
        self._thread: Optional[threading.Thread] = None
        self._started = threading.Event()

    def start(self, wait: float = 5.0):
        """Start serving; returns once the socket is bound (or wait expires)."""
        self._thread = threading.Thread(target=self._serve, daemon=True, name="HealthServer")
        self._thread.start()
        self._started.wait(wait)

    def _serve(self):
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)
        self._runner = web.AppRunner(build_app())
        try:
            self._loop.run_until_complete(self._runner.setup())
            site = web.TCPSite(self._runner, self.host, self.port)
            self._loop.run_until_complete(site.start())
            logger.info(f"Health endpoint listening on {self.host}:{self.port}")
        except OSError as e:
            logger.error(f"Health endpoint failed to start on port {self.port}: {e}")
            self._started.set()
            self._loop.close()
            return

        self._started.set()
        try:
            self._loop.run_forever()
        finally:
            self._loop.run_until_complete(self._runner.cleanup())
            self._loop.close()

    def stop(self):
        """Stop the server and wait for cleanup."""
        if self._loop is not None and self._loop.is_running():
            self._loop.call_soon_threadsafe(self._loop.stop)
        if self._thread is not None:
            self._thread.join(timeout=5.0)
