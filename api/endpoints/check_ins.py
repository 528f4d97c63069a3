"""Admin check-in endpoints: list, review, resend, scheduler trigger."""

from datetime import timedelta
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy import case, func
from sqlalchemy.orm import Session, joinedload

from api.config.database import get_db
from api.config.settings import settings
from api.integrations.claude import ClaudeReplyParser
from api.integrations.ses import SESService
from api.middleware.error_handler import NotFoundError
from api.models import CheckIn, CheckInStatus, RiskLevel, utcnow
from api.schemas.base import PaginatedResponse, PaginationMeta
from api.schemas.check_ins import (
    CheckInListItem,
    CheckInResponse,
    CheckInStats,
    CheckInUpdate,
    EmployerSummary,
    IntroductionSummary,
    JobSummary,
    ParseReplyRequest,
    ParseReplyResponse,
    PersonSummary,
    ResendResponse,
    ResentCheckIn,
    SchedulerRunResponse,
)
from api.services.check_in_scheduler import CheckInScheduler
from api.services.notifications import get_email_service, get_reply_parser
from api.services.rbac import get_user_id, require_admin
from api.services.response_tokens import is_token_expired
from api.services.risk_classifier import CheckInResponseService

logger = structlog.get_logger()
router = APIRouter()

CHECK_IN_LABELS = {1: "30-day", 2: "60-day", 3: "90-day", 4: "180-day", 5: "365-day"}

RISK_ORDER = {RiskLevel.HIGH.value: 0, RiskLevel.MEDIUM.value: 1, RiskLevel.LOW.value: 2}


def get_check_in(db: Session, check_in_id: int) -> CheckIn:
    """Load a check-in with its introduction graph or raise 404."""
    check_in = (
        db.query(CheckIn)
        .options(joinedload(CheckIn.introduction))
        .filter(CheckIn.id == check_in_id)
        .first()
    )
    if not check_in:
        raise NotFoundError("Check-in", check_in_id)
    return check_in


def to_list_item(check_in: CheckIn) -> CheckInListItem:
    introduction = check_in.introduction
    return CheckInListItem(
        id=check_in.id,
        introduction_id=check_in.introduction_id,
        check_in_number=check_in.check_in_number,
        status=check_in.status,
        scheduled_for=check_in.scheduled_for,
        sent_at=check_in.sent_at,
        responded_at=check_in.responded_at,
        response_type=check_in.response_type,
        risk_level=check_in.risk_level,
        risk_reason=check_in.risk_reason,
        flagged_for_review=check_in.flagged_for_review,
        reviewed_at=check_in.reviewed_at,
        candidate_name=introduction.candidate.name,
        candidate_email=introduction.candidate.email,
        employer_company_name=introduction.employer.company_name,
        job_title=introduction.job.title if introduction.job else None,
        created_at=check_in.created_at,
    )


def to_response(check_in: CheckIn) -> CheckInResponse:
    """Full detail view."""
    introduction = check_in.introduction
    candidate = introduction.candidate
    employer = introduction.employer
    job = introduction.job

    return CheckInResponse(
        id=check_in.id,
        introduction_id=check_in.introduction_id,
        check_in_number=check_in.check_in_number,
        status=check_in.status,
        scheduled_for=check_in.scheduled_for,
        sent_at=check_in.sent_at,
        response_token_expiry=check_in.response_token_expiry,
        token_expired=(
            check_in.responded_at is None
            and check_in.sent_at is not None
            and is_token_expired(check_in.response_token_expiry)
        ),
        responded_at=check_in.responded_at,
        response_type=check_in.response_type,
        response_raw=check_in.response_raw,
        response_parsed=check_in.parsed,
        risk_level=check_in.risk_level,
        risk_reason=check_in.risk_reason,
        flagged_for_review=check_in.flagged_for_review,
        reviewed_at=check_in.reviewed_at,
        reviewed_by=check_in.reviewed_by,
        review_notes=check_in.review_notes,
        created_at=check_in.created_at,
        introduction=IntroductionSummary(
            id=introduction.id,
            status=introduction.status,
            introduced_at=introduction.introduced_at,
            created_at=introduction.created_at,
        ),
        candidate=PersonSummary(id=candidate.id, name=candidate.name, email=candidate.email),
        employer=EmployerSummary(
            id=employer.id,
            company_name=employer.company_name,
            contact_name=employer.contact_name,
            contact_email=employer.billing_email,
        ),
        job=JobSummary(
            id=job.id,
            title=job.title,
            salary_min=job.salary_min,
            salary_max=job.salary_max,
            experience_level=job.experience_level,
        ) if job else None,
    )


@router.get("", response_model=PaginatedResponse[CheckInListItem])
async def list_check_ins(
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    risk_level: Optional[RiskLevel] = Query(None, alias="riskLevel"),
    flagged_only: bool = Query(False, alias="flaggedOnly"),
    responded: Optional[bool] = Query(None),
    user: dict = Depends(require_admin),
):
    """List check-ins, flagged and high-risk first."""
    query = db.query(CheckIn)

    # Filters
    if risk_level:
        query = query.filter(CheckIn.risk_level == risk_level.value)
    if flagged_only:
        query = query.filter(CheckIn.flagged_for_review.is_(True))
    if responded is True:
        query = query.filter(CheckIn.responded_at.isnot(None))
    elif responded is False:
        query = query.filter(CheckIn.responded_at.is_(None))

    # Count total
    total = query.count()

    # Risk level is a string column, so order it explicitly
    risk_rank = case(RISK_ORDER, value=CheckIn.risk_level, else_=len(RISK_ORDER))
    check_ins = (
        query.options(joinedload(CheckIn.introduction))
        .order_by(CheckIn.flagged_for_review.desc(), risk_rank.asc(), CheckIn.scheduled_for.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )

    return PaginatedResponse(
        data=[to_list_item(c) for c in check_ins],
        meta=PaginationMeta(
            page=page,
            per_page=per_page,
            total=total,
            total_pages=(total + per_page - 1) // per_page,
        ),
    )


@router.get("/stats", response_model=CheckInStats)
async def get_check_in_stats(
    db: Session = Depends(get_db),
    user: dict = Depends(require_admin),
):
    """Counters for the check-in dashboard."""
    now = utcnow()
    thirty_days_ago = now - timedelta(days=30)
    seven_days_ago = now - timedelta(days=7)

    def count(*criteria) -> int:
        return db.query(func.count(CheckIn.id)).filter(*criteria).scalar() or 0

    sent = count(CheckIn.sent_at.isnot(None))
    responded = count(CheckIn.status == CheckInStatus.RESPONDED.value)
    flagged = count(CheckIn.flagged_for_review.is_(True))
    sent_30 = count(CheckIn.sent_at >= thirty_days_ago)
    responded_30 = count(
        CheckIn.status == CheckInStatus.RESPONDED.value,
        CheckIn.responded_at >= thirty_days_ago,
    )

    sent_by_number = dict(
        db.query(CheckIn.check_in_number, func.count(CheckIn.id))
        .filter(CheckIn.sent_at.isnot(None))
        .group_by(CheckIn.check_in_number)
        .all()
    )
    responded_by_number = dict(
        db.query(CheckIn.check_in_number, func.count(CheckIn.id))
        .filter(CheckIn.status == CheckInStatus.RESPONDED.value)
        .group_by(CheckIn.check_in_number)
        .all()
    )

    def rate(part: int, whole: int) -> int:
        return round(part / whole * 100) if whole else 0

    by_number = []
    for number in range(1, len(settings.CHECK_IN_SCHEDULE_DAYS) + 1):
        number_sent = sent_by_number.get(number, 0)
        number_responded = responded_by_number.get(number, 0)
        by_number.append({
            "checkInNumber": number,
            "label": CHECK_IN_LABELS.get(number, f"{settings.CHECK_IN_SCHEDULE_DAYS[number - 1]}-day"),
            "sent": number_sent,
            "responded": number_responded,
            "responseRate": rate(number_responded, number_sent),
        })

    return CheckInStats(
        overview={
            "sent": sent,
            "responded": responded,
            "pending": count(CheckIn.status == CheckInStatus.SENT.value),
            "noReply": count(CheckIn.status == CheckInStatus.NO_RESPONSE.value),
            "flagged": flagged,
        },
        last_30_days={
            "sent": sent_30,
            "responded": responded_30,
            "responseRate": rate(responded_30, sent_30),
        },
        risk={
            "high": count(CheckIn.risk_level == RiskLevel.HIGH.value),
            "medium": count(CheckIn.risk_level == RiskLevel.MEDIUM.value),
            "low": count(CheckIn.risk_level == RiskLevel.LOW.value),
        },
        needs_attention={
            "pendingOlderThan7Days": count(
                CheckIn.status == CheckInStatus.SENT.value,
                CheckIn.sent_at <= seven_days_ago,
            ),
            "flaggedForReview": count(
                CheckIn.flagged_for_review.is_(True),
                CheckIn.reviewed_at.is_(None),
            ),
            "upcoming": count(
                CheckIn.status == CheckInStatus.SCHEDULED.value,
                CheckIn.scheduled_for <= now + timedelta(days=7),
            ),
        },
        by_check_in_number=by_number,
        response_rate={
            "overall": rate(responded, sent),
            "last30Days": rate(responded_30, sent_30),
        },
    )


@router.post("/run-scheduler", response_model=SchedulerRunResponse, response_model_exclude_none=True)
async def run_scheduler(
    db: Session = Depends(get_db),
    email: SESService = Depends(get_email_service),
    user: dict = Depends(require_admin),
):
    """Run one scheduling pass now."""
    logger.info("Manual scheduler run", user_id=user.get("sub"))
    result = await CheckInScheduler(db, email).run()
    return SchedulerRunResponse(
        created=result.created,
        sent=result.sent,
        expired=result.expired,
        introductions_processed=result.introductions_processed,
        errors=result.errors or None,
    )


@router.get("/{check_in_id}", response_model=CheckInResponse)
async def get_check_in_detail(
    check_in_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(require_admin),
):
    """Get a check-in with its introduction, candidate, employer and job."""
    return to_response(get_check_in(db, check_in_id))


@router.patch("/{check_in_id}", response_model=CheckInResponse)
async def update_check_in(
    check_in_id: int,
    data: CheckInUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(require_admin),
):
    """Admin review: notes, flags, risk and response-type overrides."""
    check_in = get_check_in(db, check_in_id)
    CheckInResponseService(db).apply_review(
        check_in,
        data.model_dump(exclude_unset=True),
        reviewer_id=get_user_id(user),
    )
    return to_response(check_in)


@router.post("/{check_in_id}/resend", response_model=ResendResponse)
async def resend_check_in(
    check_in_id: int,
    db: Session = Depends(get_db),
    email: SESService = Depends(get_email_service),
    user: dict = Depends(require_admin),
):
    """Re-send with a fresh token; the previous link stops working."""
    check_in = await CheckInScheduler(db, email).resend(check_in_id)

    return ResendResponse(
        message="Check-in email resent successfully",
        check_in=ResentCheckIn(
            id=check_in.id,
            check_in_number=check_in.check_in_number,
            sent_to=check_in.introduction.candidate.email,
            sent_at=check_in.sent_at,
        ),
    )


@router.post("/{check_in_id}/parse-reply", response_model=ParseReplyResponse)
async def parse_reply(
    check_in_id: int,
    data: ParseReplyRequest,
    db: Session = Depends(get_db),
    email: SESService = Depends(get_email_service),
    reply_parser: Optional[ClaudeReplyParser] = Depends(get_reply_parser),
    user: dict = Depends(require_admin),
):
    """Classify a candidate's emailed reply and apply it to the check-in."""
    check_in = get_check_in(db, check_in_id)
    service = CheckInResponseService(db, email=email, reply_parser=reply_parser)
    result, flag = await service.record_email_reply(check_in, data.email_content)

    return ParseReplyResponse(
        parsed=result.response_parsed,
        risk_level=result.risk_level.value,
        risk_reason=result.risk_reason,
        flag_created=flag is not None,
        flag_id=flag.id if flag else None,
    )
