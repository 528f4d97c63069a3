"""Introduction lifecycle: creation and status changes."""

import json
from datetime import datetime, timedelta
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from api.config.settings import settings
from api.middleware.error_handler import NotFoundError
from api.models import (
    Activity,
    Candidate,
    Employer,
    Introduction,
    IntroductionStatus,
    JobPosting,
    utcnow,
)
from api.services.transitions import ensure_transition

logger = structlog.get_logger()


def start_protection(introduction: Introduction, introduced_at: datetime) -> None:
    """Stamp the introduction time and the end of the protection period."""
    introduction.introduced_at = introduced_at
    introduction.protection_ends_at = introduced_at + timedelta(days=settings.INTRODUCTION_PROTECTION_DAYS)


def change_introduction_status(
    db: Session,
    introduction: Introduction,
    target: IntroductionStatus | str,
    user_id: Optional[int] = None,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Introduction:
    """
    Move an introduction to a new status and record it in the audit trail.

    Does not commit; the caller owns the transaction.
    """
    from_status = introduction.status
    introduction.status = ensure_transition("Introduction", from_status, target)

    # First activation stamps the clock that check-ins and protection run from
    if introduction.status == IntroductionStatus.INTRODUCED and introduction.introduced_at is None:
        start_protection(introduction, now or utcnow())

    db.add(Activity(
        action="status_changed",
        introduction_id=introduction.id,
        user_id=user_id,
        details=json.dumps({
            "from_status": from_status,
            "to_status": introduction.status,
            "reason": reason,
            "by": "system" if user_id is None else "user",
        }),
    ))

    logger.info(
        "Introduction status changed",
        introduction_id=introduction.id,
        from_status=from_status,
        to_status=introduction.status,
    )
    return introduction


def create_introduction(
    db: Session,
    candidate_id: int,
    employer_id: int,
    job_id: Optional[int] = None,
    status: IntroductionStatus = IntroductionStatus.AWAITING_RESPONSE,
    introduced_at: Optional[datetime] = None,
    user_id: Optional[int] = None,
) -> Introduction:
    """Create an introduction in AWAITING_RESPONSE or INTRODUCED."""
    if not db.get(Candidate, candidate_id):
        raise NotFoundError("Candidate", candidate_id)
    if not db.get(Employer, employer_id):
        raise NotFoundError("Employer", employer_id)
    if job_id is not None and not db.get(JobPosting, job_id):
        raise NotFoundError("Job", job_id)

    introduction = Introduction(
        candidate_id=candidate_id,
        employer_id=employer_id,
        job_id=job_id,
        status=IntroductionStatus.AWAITING_RESPONSE.value,
    )
    db.add(introduction)
    db.flush()

    if status != IntroductionStatus.AWAITING_RESPONSE:
        change_introduction_status(db, introduction, status, user_id=user_id, reason="created")
        if introduced_at is not None and introduction.introduced_at is not None:
            start_protection(introduction, introduced_at)

    db.commit()

    logger.info(
        "Introduction created",
        introduction_id=introduction.id,
        candidate_id=candidate_id,
        employer_id=employer_id,
        status=introduction.status,
    )
    return introduction
