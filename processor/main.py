"""Main entry point for the processor service.

Run with: python -m processor.main
"""

import asyncio
import logging
import signal
import sys
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError

from api.config.database import Database
from api.integrations.ses import SESService
from processor.config import settings
from processor.health_server import HealthServer
from processor.heartbeat import HeartbeatWriter
from processor.scheduler import Scheduler


def configure_logging() -> None:
    """stdlib logging plus structlog, JSON or console output per LOG_FORMAT."""
    # Configure stdlib logging level (required for structlog.stdlib.filter_by_level)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if settings.LOG_FORMAT == "json" else structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger()


class ProcessorService:
    """Main processor service orchestrating scheduler, heartbeat and health server."""

    def __init__(self, database: Optional[Database] = None, email: Optional[SESService] = None):
        self.database = database or Database(settings.DATABASE_URL)
        self.scheduler = Scheduler(self.database, email=email)
        self.heartbeat = HeartbeatWriter(status_callback=self._get_status)
        self.health_server = HealthServer(
            status_callback=self._get_status,
            readiness_callback=self._check_ready,
        )
        self.running = False
        self.tasks: List[asyncio.Task] = []

    def _get_status(self) -> dict:
        """Get combined status for heartbeat and health checks."""
        return {
            "scheduler": self.scheduler.get_status(),
        }

    def _check_ready(self) -> tuple[bool, dict]:
        """Database reachable and, when enabled, the scheduler not stalled."""
        checks = {}
        try:
            self.database.check_connection()
            checks["database"] = "ok"
        except SQLAlchemyError as e:
            checks["database"] = f"error: {e}"

        if settings.SCHEDULER_ENABLED:
            last_run = self.scheduler.last_run
            max_age = timedelta(seconds=self.scheduler.interval * 2)
            if last_run is None or datetime.now(timezone.utc) - last_run > max_age:
                checks["scheduler"] = "stale"
            else:
                checks["scheduler"] = "ok"

        return all(v == "ok" for v in checks.values()), checks

    async def start(self) -> None:
        """Start all processor components."""
        self.running = True
        logger.info("Starting processor service")

        self.database.check_connection()

        # Start components as tasks
        self.tasks = [
            asyncio.create_task(self.heartbeat.run(), name="heartbeat"),
            asyncio.create_task(self.health_server.run(), name="health_server"),
        ]

        # Only start scheduler if enabled
        if settings.SCHEDULER_ENABLED:
            self.tasks.append(
                asyncio.create_task(self.scheduler.run(), name="scheduler")
            )
        else:
            logger.info("Scheduler disabled by configuration")

        logger.info(
            "Processor service started",
            components=[t.get_name() for t in self.tasks],
        )

        # Wait for all tasks
        try:
            await asyncio.gather(*self.tasks)
        except asyncio.CancelledError:
            logger.info("Tasks cancelled")

    async def stop(self) -> None:
        """Stop all processor components gracefully."""
        logger.info("Stopping processor service")
        self.running = False

        # Stop all components
        await asyncio.gather(
            self.scheduler.stop(),
            self.heartbeat.stop(),
            self.health_server.stop(),
        )

        # Cancel any remaining tasks
        for task in self.tasks:
            if not task.done():
                task.cancel()

        # Release pooled connections
        self.database.dispose()

        logger.info("Processor service stopped")


async def main() -> None:
    """Main entry point."""
    configure_logging()
    service = ProcessorService()

    # Setup signal handlers for graceful shutdown
    loop = asyncio.get_running_loop()

    def shutdown_handler():
        logger.info("Shutdown signal received")
        asyncio.create_task(service.stop())

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown_handler)

    try:
        await service.start()
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        await service.stop()
    except Exception as e:
        logger.error("Processor service error", error=str(e), exc_info=True)
        await service.stop()
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
