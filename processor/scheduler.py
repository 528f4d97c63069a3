"""Scheduler that runs check-in, protection-expiry and payment-reminder passes on a fixed interval."""

import asyncio
from datetime import datetime, timezone
from typing import Optional

import structlog

from api.config.database import Database
from api.integrations.ses import SESService
from api.services.check_in_scheduler import CheckInScheduler, SchedulerResult
from api.services.introduction_expiry import ExpiryResult, IntroductionExpiryJob
from api.services.placements import ReminderResult, send_remaining_payment_reminders
from processor.config import settings

logger = structlog.get_logger()


class Scheduler:
    """Periodically sends due check-ins, expires lapsed introductions and reminds employers of payments."""

    def __init__(
        self,
        database: Database,
        email: Optional[SESService] = None,
        interval: Optional[int] = None,
    ):
        """Initialize scheduler.

        Args:
            database: Database that each pass opens a fresh session on
            email: Email dispatcher (built from settings when omitted)
            interval: Seconds between passes
        """
        self.database = database
        self.email = email or SESService()
        self.running = False
        self.interval = interval or settings.SCHEDULER_INTERVAL
        self.last_run: Optional[datetime] = None
        self.last_result: Optional[SchedulerResult] = None
        self.last_expiry_result: Optional[ExpiryResult] = None
        self.last_reminder_result: Optional[ReminderResult] = None

    async def run(self) -> None:
        """Main scheduler loop."""
        self.running = True
        logger.info(
            "Scheduler started",
            interval=self.interval,
        )

        while self.running:
            try:
                await self.check_for_work()
            except Exception as e:
                # A failed pass is retried on the next tick
                logger.error("Scheduler error", error=str(e), exc_info=True)

            await asyncio.sleep(self.interval)

        logger.info("Scheduler stopped")

    async def stop(self) -> None:
        """Stop the scheduler."""
        self.running = False

    async def check_for_work(self) -> SchedulerResult:
        """Run one pass of each job in its own session.

        Check-ins go first so a check-in due on the last protected day is
        sent before the expiry pass looks at the introduction.
        """
        db = self.database.session()
        try:
            result = await CheckInScheduler(db, self.email).run()
            self.last_result = result
            self.last_expiry_result = await IntroductionExpiryJob(db, self.email).run()
            self.last_reminder_result = await send_remaining_payment_reminders(db, self.email)
        finally:
            db.close()

        self.last_run = datetime.now(timezone.utc)
        logger.info(
            "Scheduler pass completed",
            created=result.created,
            sent=result.sent,
            expired=result.expired,
            introductions_processed=result.introductions_processed,
            errors=len(result.errors),
            introductions_expired=self.last_expiry_result.expired_marked,
            payment_reminders_sent=self.last_reminder_result.sent,
        )
        return result

    def get_status(self) -> dict:
        """Get scheduler status."""
        return {
            "running": self.running,
            "interval": self.interval,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "last_result": self.last_result.to_dict() if self.last_result else None,
            "last_expiry_result": self.last_expiry_result.to_dict() if self.last_expiry_result else None,
            "last_reminder_result": self.last_reminder_result.to_dict() if self.last_reminder_result else None,
        }
