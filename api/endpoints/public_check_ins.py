"""Public check-in response endpoints (token in the URL, no login)."""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.config.database import get_db
from api.integrations.ses import SESService
from api.middleware.error_handler import NotFoundError
from api.models import CheckIn, CheckInStatus, utcnow
from api.schemas.check_ins import (
    CheckInSubmission,
    CheckInSubmissionResult,
    PublicCheckIn,
    PublicCheckInResponse,
)
from api.services.notifications import get_email_service
from api.services.response_tokens import is_token_expired
from api.services.risk_classifier import CheckInResponseService

logger = structlog.get_logger()
router = APIRouter()


def get_check_in_by_token(token: str, db: Session) -> CheckIn:
    """Get check-in by token or raise 404."""
    check_in = db.query(CheckIn).filter(CheckIn.response_token == token).first()
    if not check_in:
        raise NotFoundError("Check-in", "token")
    return check_in


def public_status(check_in: CheckIn) -> str:
    if check_in.status == CheckInStatus.RESPONDED:
        return "responded"
    if check_in.status == CheckInStatus.NO_RESPONSE or is_token_expired(check_in.response_token_expiry):
        return "expired"
    return "pending"


@router.get("/{token}", response_model=PublicCheckInResponse)
async def get_public_check_in(
    token: str,
    db: Session = Depends(get_db),
):
    """Check-in details for the candidate's response page."""
    check_in = get_check_in_by_token(token, db)
    introduction = check_in.introduction

    name: Optional[str] = introduction.candidate.name
    days_since: Optional[int] = None
    if introduction.introduced_at:
        days_since = (utcnow() - introduction.introduced_at).days

    parsed = check_in.parsed or {}

    return PublicCheckInResponse(
        check_in=PublicCheckIn(
            id=check_in.id,
            candidate_name=name.split()[0] if name else None,  # First name only
            employer_company_name=introduction.employer.company_name,
            job_title=introduction.job.title if introduction.job else "the position",
            introduction_date=introduction.introduced_at,
            days_since_intro=days_since,
            check_in_number=check_in.check_in_number,
            status=public_status(check_in),
            previous_response=parsed.get("status") if check_in.status == CheckInStatus.RESPONDED else None,
        )
    )


@router.post("/{token}", response_model=CheckInSubmissionResult)
async def submit_check_in_response(
    token: str,
    data: CheckInSubmission,
    db: Session = Depends(get_db),
    email: SESService = Depends(get_email_service),
):
    """Record the candidate's answer. Each token accepts one response."""
    check_in = get_check_in_by_token(token, db)

    payload = {"status": data.status, "message": data.message}
    if data.start_date:
        payload["startDate"] = data.start_date
    if data.role_title:
        payload["roleTitle"] = data.role_title

    result = await CheckInResponseService(db, email=email).record_response(check_in, payload)

    return CheckInSubmissionResult(status=result.status, risk_level=result.risk_level.value)
