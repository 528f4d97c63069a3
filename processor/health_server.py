"""HTTP probes for the processor container.

/health is liveness and always answers 200 while the loop is up.
/ready answers 503 when the database is unreachable or the scheduler has
not completed a pass within two intervals.
"""

import asyncio
from typing import Callable, Optional

from aiohttp import web
import structlog

from processor.config import settings

logger = structlog.get_logger()


class HealthServer:
    """Lightweight aiohttp server exposing the scheduler status."""

    def __init__(
        self,
        status_callback: Optional[Callable[[], dict]] = None,
        readiness_callback: Optional[Callable[[], tuple[bool, dict]]] = None,
        port: Optional[int] = None,
    ):
        self.status_callback = status_callback
        self.readiness_callback = readiness_callback
        self.port = port or settings.HEALTH_PORT
        self.app = web.Application()
        self.app.router.add_get("/health", self.health_handler)
        self.app.router.add_get("/ready", self.ready_handler)
        self.runner: Optional[web.AppRunner] = None
        self.running = False

    async def health_handler(self, request: web.Request) -> web.Response:
        body = {"status": "ok"}
        if self.status_callback:
            body["details"] = self.status_callback()
        return web.json_response(body)

    async def ready_handler(self, request: web.Request) -> web.Response:
        if self.readiness_callback is None:
            return web.json_response({"status": "ready"})

        ready, checks = self.readiness_callback()
        if not ready:
            logger.warning("Readiness check failed", checks=checks)
        return web.json_response(
            {"status": "ready" if ready else "not_ready", "checks": checks},
            status=200 if ready else 503,
        )

    async def run(self) -> None:
        """Serve until stopped."""
        self.running = True
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, "0.0.0.0", self.port)
        await site.start()
        logger.info("Health server started", port=self.port)

        while self.running:
            await asyncio.sleep(1)

    async def stop(self) -> None:
        self.running = False
        if self.runner:
            await self.runner.cleanup()
            logger.info("Health server stopped")
