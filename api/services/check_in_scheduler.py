"""Check-in scheduling and dispatch.

Each run:
1. closes sent check-ins whose response token expired (no_response, LOW)
2. for every INTRODUCED introduction, creates the next check-in once its
   day offset from ``introduced_at`` has arrived, and emails it

Only one check-in per introduction is ever outstanding. The unique
(introduction_id, check_in_number) constraint makes overlapping runs safe:
the loser of a race gets an IntegrityError and skips that introduction.
Sending is guarded by a dispatch claim on the row, so a SCHEDULED check-in
is emailed by one run only.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional, Sequence

import structlog
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from api.config.settings import settings
from api.integrations.ses import SESError, SESService
from api.middleware.error_handler import DownstreamError, NotFoundError, ValidationAPIError
from api.models import (
    Activity,
    CheckIn,
    CheckInStatus,
    Introduction,
    IntroductionStatus,
    utcnow,
)
from api.services.notifications import log_email
from api.services.response_tokens import (
    build_response_url,
    generate_introduction_token,
    generate_token_expiry,
)
from api.services.risk_classifier import expire_stale_check_ins
from api.services.transitions import ensure_transition

logger = structlog.get_logger()

# How long a dispatch claim blocks other runs
DISPATCH_LEASE = timedelta(minutes=10)


@dataclass
class SchedulerResult:
    """Summary of one scheduler run."""

    created: int = 0
    sent: int = 0
    expired: int = 0
    introductions_processed: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result = {
            "created": self.created,
            "sent": self.sent,
            "expired": self.expired,
            "introductionsProcessed": self.introductions_processed,
        }
        if self.errors:
            result["errors"] = self.errors
        return result


class CheckInScheduler:
    """Creates and sends due check-ins."""

    def __init__(
        self,
        db: Session,
        email: SESService,
        schedule_days: Optional[Sequence[int]] = None,
        response_days: Optional[int] = None,
    ):
        """
        Args:
            db: Database session
            email: Email dispatcher
            schedule_days: Day offsets from introduction, one per check-in
            response_days: How long a response link stays valid
        """
        self.db = db
        self.email = email
        self.schedule_days = list(schedule_days or settings.CHECK_IN_SCHEDULE_DAYS)
        self.response_days = response_days or settings.CHECK_IN_RESPONSE_DAYS

    def next_due_at(self, introduction: Introduction, check_in_number: int) -> Optional[datetime]:
        """When check-in ``check_in_number`` falls due, or None past the end of the schedule."""
        if introduction.introduced_at is None or check_in_number > len(self.schedule_days):
            return None
        return introduction.introduced_at + timedelta(days=self.schedule_days[check_in_number - 1])

    async def run(self, now: Optional[datetime] = None) -> SchedulerResult:
        """
        Run one scheduling pass.

        Per-introduction failures are collected in ``errors``; a failure to
        load the eligible introductions propagates.
        """
        now = now or utcnow()
        result = SchedulerResult()

        result.expired = len(expire_stale_check_ins(self.db, now))

        introductions = (
            self.db.query(Introduction)
            .filter(
                Introduction.status == IntroductionStatus.INTRODUCED.value,
                Introduction.introduced_at.isnot(None),
            )
            .order_by(Introduction.id)
            .all()
        )

        logger.info("Check-in scheduler started", eligible=len(introductions))

        for introduction in introductions:
            result.introductions_processed += 1
            introduction_id = introduction.id
            try:
                await self._process_introduction(introduction, now, result)
            except IntegrityError:
                # Another run created this check-in first
                self.db.rollback()
                logger.info("Check-in already created by concurrent run", introduction_id=introduction_id)
            except Exception as e:
                self.db.rollback()
                logger.error(
                    "Check-in scheduling failed",
                    introduction_id=introduction_id,
                    error=str(e),
                )
                result.errors.append({"introductionId": introduction_id, "error": str(e)})

        logger.info(
            "Check-in scheduler finished",
            created=result.created,
            sent=result.sent,
            expired=result.expired,
            errors=len(result.errors),
        )
        return result

    async def _process_introduction(
        self,
        introduction: Introduction,
        now: datetime,
        result: SchedulerResult,
    ) -> None:
        latest = (
            self.db.query(CheckIn)
            .filter(CheckIn.introduction_id == introduction.id)
            .order_by(CheckIn.check_in_number.desc())
            .first()
        )

        if latest is not None and latest.status == CheckInStatus.SENT:
            # Pending; expired ones were closed by the sweep
            return

        if latest is not None and latest.status == CheckInStatus.SCHEDULED:
            # Created on an earlier run whose email failed, or one still sending
            check_in = latest
        else:
            number = latest.check_in_number + 1 if latest is not None else 1
            due_at = self.next_due_at(introduction, number)
            if due_at is None or due_at > now:
                return

            check_in = CheckIn(
                introduction_id=introduction.id,
                check_in_number=number,
                status=CheckInStatus.SCHEDULED.value,
                scheduled_for=due_at,
            )
            self.db.add(check_in)
            self.db.commit()
            result.created += 1

            logger.info(
                "Check-in created",
                introduction_id=introduction.id,
                check_in_id=check_in.id,
                check_in_number=number,
            )

        if not self.claim(check_in, now):
            logger.info(
                "Check-in dispatch claimed by another run",
                introduction_id=introduction.id,
                check_in_id=check_in.id,
            )
            return

        try:
            await self.dispatch(check_in, now)
        except Exception:
            self.db.rollback()
            self.release(check_in)
            raise
        result.sent += 1

    def claim(self, check_in: CheckIn, now: datetime) -> bool:
        """
        Mark a SCHEDULED check-in as being sent by this run.

        A conditional UPDATE, so of two overlapping runs only one emails the
        candidate. Claims older than DISPATCH_LEASE are treated as abandoned.
        """
        claimed = (
            self.db.query(CheckIn)
            .filter(
                CheckIn.id == check_in.id,
                CheckIn.status == CheckInStatus.SCHEDULED.value,
                or_(
                    CheckIn.dispatch_claimed_at.is_(None),
                    CheckIn.dispatch_claimed_at < now - DISPATCH_LEASE,
                ),
            )
            .update({CheckIn.dispatch_claimed_at: now}, synchronize_session="fetch")
        )
        self.db.commit()
        return claimed == 1

    def release(self, check_in: CheckIn) -> None:
        """Drop this run's claim after a failed send so the next run retries."""
        self.db.query(CheckIn).filter(
            CheckIn.id == check_in.id,
            CheckIn.status == CheckInStatus.SCHEDULED.value,
        ).update({CheckIn.dispatch_claimed_at: None}, synchronize_session="fetch")
        self.db.commit()

    async def dispatch(self, check_in: CheckIn, now: Optional[datetime] = None) -> CheckIn:
        """
        Issue a fresh token and email the check-in.

        ``sent_at``, the token and its expiry are written in one commit after
        the email succeeds, so a half-sent check-in is never visible.

        Raises:
            DownstreamError: if the email could not be sent
        """
        now = now or utcnow()
        introduction = check_in.introduction
        candidate_email = introduction.candidate.email
        if not candidate_email:
            raise ValidationAPIError("Candidate has no email address")

        token = generate_introduction_token()
        expiry = generate_token_expiry(self.response_days, now)

        try:
            message_id = await self.email.send_check_in_email(
                candidate_email=candidate_email,
                candidate_name=introduction.candidate.name,
                employer_company_name=introduction.employer.company_name,
                job_title=introduction.job.title if introduction.job else None,
                check_in_number=check_in.check_in_number,
                response_url=build_response_url(token),
                introduction_date=introduction.introduced_at,
                expires_in_days=self.response_days,
            )
        except SESError as e:
            log_email(
                self.db,
                "check_in",
                to_email=candidate_email,
                introduction_id=introduction.id,
                check_in_id=check_in.id,
                error=str(e),
            )
            self.db.commit()
            raise DownstreamError(str(e), service="email") from e

        resend = check_in.sent_at is not None
        check_in.status = ensure_transition("CheckIn", check_in.status, CheckInStatus.SENT)
        check_in.sent_at = now
        check_in.dispatch_claimed_at = None
        check_in.response_token = token
        check_in.response_token_expiry = expiry

        log_email(
            self.db,
            "check_in",
            to_email=candidate_email,
            introduction_id=introduction.id,
            check_in_id=check_in.id,
            message_id=message_id,
        )
        self.db.add(Activity(
            action="check_in_resent" if resend else "check_in_sent",
            introduction_id=introduction.id,
            details=json.dumps({
                "check_in_id": check_in.id,
                "check_in_number": check_in.check_in_number,
            }),
        ))
        self.db.commit()

        logger.info(
            "Check-in sent",
            check_in_id=check_in.id,
            introduction_id=introduction.id,
            check_in_number=check_in.check_in_number,
            resend=resend,
        )
        return check_in

    async def resend(self, check_in_id: int, now: Optional[datetime] = None) -> CheckIn:
        """
        Re-send a check-in with a new token; the old link stops working.

        Raises:
            NotFoundError: unknown check-in
            ValidationAPIError: already answered, or introduction not INTRODUCED
            DownstreamError: email failure
        """
        check_in = self.db.get(CheckIn, check_in_id)
        if check_in is None:
            raise NotFoundError("Check-in", check_in_id)

        if check_in.status == CheckInStatus.NO_RESPONSE:
            raise ValidationAPIError("Check-in expired without a response")
        if check_in.responded_at is not None:
            raise ValidationAPIError("Check-in has already been responded to")

        introduction = check_in.introduction
        if introduction.status != IntroductionStatus.INTRODUCED:
            raise ValidationAPIError(
                f"Cannot resend check-in for introduction with status {introduction.status}"
            )

        return await self.dispatch(check_in, now)


async def resend_check_in(
    db: Session,
    email: SESService,
    check_in_id: int,
    now: Optional[datetime] = None,
) -> CheckIn:
    """Functional wrapper around ``CheckInScheduler.resend``."""
    return await CheckInScheduler(db, email).resend(check_in_id, now)
