"""Heartbeat writer for health monitoring."""

import asyncio
import json
import os
from datetime import datetime, timezone
from typing import Optional, Callable

import structlog

from processor.config import settings

logger = structlog.get_logger()


class HeartbeatWriter:
    """Writes the processor status to a file for external monitoring."""

    def __init__(
        self,
        status_callback: Optional[Callable[[], dict]] = None,
        file_path: Optional[str] = None,
        interval: Optional[int] = None,
    ):
        self.file_path = file_path or settings.HEARTBEAT_FILE
        self.interval = interval or settings.HEARTBEAT_INTERVAL
        self.status_callback = status_callback
        self.running = False
        self.pid = os.getpid()

    async def run(self) -> None:
        """Main heartbeat loop."""
        self.running = True
        logger.info("Heartbeat writer started", file=self.file_path, interval=self.interval)

        while self.running:
            try:
                self.write()
            except OSError as e:
                logger.error("Heartbeat write failed", error=str(e))

            await asyncio.sleep(self.interval)

        logger.info("Heartbeat writer stopped")

    async def stop(self) -> None:
        """Stop the heartbeat writer."""
        self.running = False

    def write(self) -> dict:
        """Write heartbeat data to file and return it."""
        data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "pid": self.pid,
            "status": "running",
        }
        if self.status_callback:
            data.update(self.status_callback())

        # Write atomically (write to temp, then rename)
        temp_path = f"{self.file_path}.tmp"
        with open(temp_path, "w") as f:
            json.dump(data, f, default=str)

        os.replace(temp_path, self.file_path)
        return data
