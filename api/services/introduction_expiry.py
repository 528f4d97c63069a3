"""Introduction protection-period expiry.

Each run:
1. emails the admin mailbox once about introductions whose protection period
   ends within INTRODUCTION_EXPIRY_ALERT_DAYS
2. moves INTRODUCED introductions whose ``protection_ends_at`` has passed to
   EXPIRED

An introduction is held back while a check-in that falls due inside its
protection period has not gone out yet, so the final check-in is still sent.
A check-in already sent stays answerable after expiry.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional, Sequence

import structlog
from sqlalchemy.orm import Session

from api.config.settings import settings
from api.integrations.ses import SESError, SESService
from api.models import CheckIn, CheckInStatus, Introduction, IntroductionStatus, utcnow
from api.services.check_in_scheduler import CheckInScheduler
from api.services.introductions import change_introduction_status
from api.services.notifications import log_email

logger = structlog.get_logger()


@dataclass
class ExpiryResult:
    """Summary of one expiry run."""

    expiring_soon: int = 0
    expired_marked: int = 0
    held: int = 0
    alerts_sent: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result = {
            "expiringSoon": self.expiring_soon,
            "expiredMarked": self.expired_marked,
            "held": self.held,
            "alertsSent": self.alerts_sent,
        }
        if self.errors:
            result["errors"] = self.errors
        return result


def latest_check_in(db: Session, introduction: Introduction) -> Optional[CheckIn]:
    return (
        db.query(CheckIn)
        .filter(CheckIn.introduction_id == introduction.id)
        .order_by(CheckIn.check_in_number.desc())
        .first()
    )


def summarize_check_in(check_in: Optional[CheckIn]) -> str:
    """One-line description of the last check-in for admin emails."""
    if check_in is None or check_in.sent_at is None:
        return "No check-ins sent"
    if check_in.status != CheckInStatus.RESPONDED:
        return "No response"
    parsed = check_in.parsed or {}
    summary = parsed.get("status") or check_in.response_type or "Response received"
    return f"{check_in.responded_at:%b %d, %Y} - {summary}"


class IntroductionExpiryJob:
    """Alerts on and expires introductions at the end of their protection period."""

    def __init__(
        self,
        db: Session,
        email: SESService,
        schedule_days: Optional[Sequence[int]] = None,
        alert_days: Optional[int] = None,
    ):
        self.db = db
        self.email = email
        self.alert_days = alert_days or settings.INTRODUCTION_EXPIRY_ALERT_DAYS
        # Used only to work out when the next check-in falls due
        self.check_ins = CheckInScheduler(db, email, schedule_days=schedule_days)

    async def run(self, now: Optional[datetime] = None) -> ExpiryResult:
        now = now or utcnow()
        result = ExpiryResult()

        await self._send_alert(now, result)
        self._expire(now, result)

        logger.info(
            "Introduction expiry run finished",
            expiring_soon=result.expiring_soon,
            expired_marked=result.expired_marked,
            held=result.held,
            alerts_sent=result.alerts_sent,
            errors=len(result.errors),
        )
        return result

    def has_pending_check_in(self, introduction: Introduction) -> bool:
        """True while a check-in due inside the protection period is unsent."""
        latest = latest_check_in(self.db, introduction)
        if latest is not None and latest.status == CheckInStatus.SCHEDULED:
            return True

        number = latest.check_in_number + 1 if latest is not None else 1
        due_at = self.check_ins.next_due_at(introduction, number)
        return due_at is not None and due_at <= introduction.protection_ends_at

    async def _send_alert(self, now: datetime, result: ExpiryResult) -> None:
        """One digest email per run; each introduction is announced once."""
        expiring = (
            self.db.query(Introduction)
            .filter(
                Introduction.status == IntroductionStatus.INTRODUCED.value,
                Introduction.protection_ends_at >= now,
                Introduction.protection_ends_at <= now + timedelta(days=self.alert_days),
                Introduction.expiry_alert_sent_at.is_(None),
            )
            .order_by(Introduction.protection_ends_at)
            .all()
        )
        result.expiring_soon = len(expiring)
        if not expiring:
            return

        entries = [
            {
                "candidate_name": intro.candidate.name,
                "employer_company_name": intro.employer.company_name,
                "job_title": intro.job.title if intro.job else None,
                "introduced_at": intro.introduced_at,
                "protection_ends_at": intro.protection_ends_at,
                "last_check_in": summarize_check_in(latest_check_in(self.db, intro)),
            }
            for intro in expiring
        ]

        try:
            message_id = await self.email.send_expiry_alert(entries, days_until_expiry=self.alert_days)
        except SESError as e:
            logger.error("Expiry alert failed", error=str(e), introductions=len(expiring))
            log_email(self.db, "expiry_alert", to_email=settings.ADMIN_EMAIL, error=str(e))
            self.db.commit()
            result.errors.append({"error": f"Failed to send admin alert: {e}"})
            return

        for intro in expiring:
            intro.expiry_alert_sent_at = now
        log_email(self.db, "expiry_alert", to_email=settings.ADMIN_EMAIL, message_id=message_id)
        self.db.commit()
        result.alerts_sent += 1

    def _expire(self, now: datetime, result: ExpiryResult) -> None:
        lapsed = (
            self.db.query(Introduction)
            .filter(
                Introduction.status == IntroductionStatus.INTRODUCED.value,
                Introduction.protection_ends_at.isnot(None),
                Introduction.protection_ends_at < now,
            )
            .order_by(Introduction.id)
            .all()
        )

        for introduction in lapsed:
            introduction_id = introduction.id
            try:
                if self.has_pending_check_in(introduction):
                    result.held += 1
                    continue
                change_introduction_status(
                    self.db,
                    introduction,
                    IntroductionStatus.EXPIRED,
                    reason="protection period ended",
                    now=now,
                )
                self.db.commit()
                result.expired_marked += 1
            except Exception as e:
                self.db.rollback()
                logger.error("Introduction expiry failed", introduction_id=introduction_id, error=str(e))
                result.errors.append({"introductionId": introduction_id, "error": str(e)})


async def run_introduction_expiry(
    db: Session,
    email: SESService,
    now: Optional[datetime] = None,
) -> ExpiryResult:
    """Functional wrapper around ``IntroductionExpiryJob.run``."""
    return await IntroductionExpiryJob(db, email).run(now)
