"""Introduction endpoints (admin): lifecycle and protection-period views."""

from datetime import datetime, timedelta

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from api.config.database import get_db
from api.integrations.ses import SESService
from api.middleware.error_handler import NotFoundError
from api.models import CheckIn, Introduction, IntroductionStatus, utcnow
from api.schemas.base import PaginationMeta
from api.schemas.introductions import (
    CheckInCounts,
    ExpiredCounts,
    ExpiredIntroductionsResponse,
    ExpiringCounts,
    ExpiringIntroductionsResponse,
    ExpiryRunResponse,
    IntroductionCreate,
    IntroductionResponse,
    IntroductionStatusUpdate,
    ProtectionListItem,
)
from api.services.introduction_expiry import latest_check_in, run_introduction_expiry, summarize_check_in
from api.services.introductions import change_introduction_status, create_introduction
from api.services.notifications import get_email_service
from api.services.rbac import get_user_id, require_admin
from .check_ins import to_list_item

logger = structlog.get_logger()
router = APIRouter()


def get_introduction(db: Session, introduction_id: int) -> Introduction:
    introduction = db.get(Introduction, introduction_id)
    if not introduction:
        raise NotFoundError("Introduction", introduction_id)
    return introduction


def to_response(introduction: Introduction) -> IntroductionResponse:
    return IntroductionResponse(
        id=introduction.id,
        candidate_id=introduction.candidate_id,
        employer_id=introduction.employer_id,
        job_id=introduction.job_id,
        status=introduction.status,
        introduced_at=introduction.introduced_at,
        protection_ends_at=introduction.protection_ends_at,
        candidate_name=introduction.candidate.name,
        employer_company_name=introduction.employer.company_name,
        job_title=introduction.job.title if introduction.job else None,
        placement_id=introduction.placement.id if introduction.placement else None,
        check_ins=[to_list_item(c) for c in introduction.check_ins],
        created_at=introduction.created_at,
    )


@router.post("", response_model=IntroductionResponse, status_code=201)
async def create_introduction_endpoint(
    data: IntroductionCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(require_admin),
):
    """Introduce a candidate to an employer."""
    introduction = create_introduction(
        db,
        candidate_id=data.candidate_id,
        employer_id=data.employer_id,
        job_id=data.job_id,
        status=IntroductionStatus(data.status),
        introduced_at=data.introduced_at,
        user_id=get_user_id(user),
    )
    return to_response(introduction)


def to_protection_item(db: Session, introduction: Introduction, now: datetime) -> ProtectionListItem:
    counts = (
        db.query(
            func.count(CheckIn.sent_at),
            func.count(CheckIn.responded_at),
        )
        .filter(CheckIn.introduction_id == introduction.id)
        .one()
    )
    ends = introduction.protection_ends_at
    return ProtectionListItem(
        id=introduction.id,
        status=introduction.status,
        candidate_name=introduction.candidate.name,
        candidate_email=introduction.candidate.email,
        employer_company_name=introduction.employer.company_name,
        job_title=introduction.job.title if introduction.job else None,
        introduced_at=introduction.introduced_at,
        protection_ends_at=ends,
        days_until_expiry=max((ends - now).days, 0) if ends and ends >= now else None,
        days_since_expiry=(now - ends).days if ends and ends < now else None,
        last_check_in=summarize_check_in(latest_check_in(db, introduction)),
        check_ins=CheckInCounts(sent=counts[0], responded=counts[1]),
        expiry_alert_sent_at=introduction.expiry_alert_sent_at,
    )


def paginate(query, page: int, per_page: int) -> tuple[list, PaginationMeta]:
    total = query.count()
    rows = query.offset((page - 1) * per_page).limit(per_page).all()
    return rows, PaginationMeta(
        page=page,
        per_page=per_page,
        total=total,
        total_pages=(total + per_page - 1) // per_page,
    )


@router.get("/expiring", response_model=ExpiringIntroductionsResponse)
async def list_expiring_introductions(
    db: Session = Depends(get_db),
    within_days: int = Query(7, ge=1, le=365, alias="withinDays"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: dict = Depends(require_admin),
):
    """INTRODUCED introductions whose protection period ends soon, soonest first."""
    now = utcnow()

    def upcoming(days: int):
        return db.query(Introduction).filter(
            Introduction.status == IntroductionStatus.INTRODUCED.value,
            Introduction.protection_ends_at >= now,
            Introduction.protection_ends_at <= now + timedelta(days=days),
        )

    introductions, meta = paginate(
        upcoming(within_days).order_by(Introduction.protection_ends_at.asc()), page, per_page
    )
    return ExpiringIntroductionsResponse(
        data=[to_protection_item(db, i, now) for i in introductions],
        meta=meta,
        counts=ExpiringCounts(
            in_7_days=upcoming(7).count(),
            in_30_days=upcoming(30).count(),
            in_90_days=upcoming(90).count(),
        ),
    )


@router.get("/expired", response_model=ExpiredIntroductionsResponse)
async def list_expired_introductions(
    db: Session = Depends(get_db),
    since_days: int = Query(30, ge=1, le=365, alias="sinceDays"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: dict = Depends(require_admin),
):
    """EXPIRED introductions whose protection period ended recently, latest first."""
    now = utcnow()

    def recent(days: int):
        return db.query(Introduction).filter(
            Introduction.status == IntroductionStatus.EXPIRED.value,
            Introduction.protection_ends_at < now,
            Introduction.protection_ends_at >= now - timedelta(days=days),
        )

    introductions, meta = paginate(
        recent(since_days).order_by(Introduction.protection_ends_at.desc()), page, per_page
    )
    return ExpiredIntroductionsResponse(
        data=[to_protection_item(db, i, now) for i in introductions],
        meta=meta,
        counts=ExpiredCounts(
            last_30_days=recent(30).count(),
            last_60_days=recent(60).count(),
            last_90_days=recent(90).count(),
        ),
    )


@router.post("/run-expiry-check", response_model=ExpiryRunResponse, response_model_exclude_none=True)
async def run_expiry_check(
    db: Session = Depends(get_db),
    email: SESService = Depends(get_email_service),
    user: dict = Depends(require_admin),
):
    """Run the protection-period alert and expiry pass now."""
    result = await run_introduction_expiry(db, email)
    logger.info(
        "Manual expiry check completed",
        expired_marked=result.expired_marked,
        alerts_sent=result.alerts_sent,
        user_id=get_user_id(user),
    )
    return ExpiryRunResponse(
        expiring_soon=result.expiring_soon,
        expired_marked=result.expired_marked,
        held=result.held,
        alerts_sent=result.alerts_sent,
        errors=result.errors or None,
    )


@router.get("/{introduction_id}", response_model=IntroductionResponse)
async def get_introduction_detail(
    introduction_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(require_admin),
):
    """Get an introduction with its check-ins."""
    return to_response(get_introduction(db, introduction_id))


@router.post("/{introduction_id}/status", response_model=IntroductionResponse)
async def update_introduction_status(
    introduction_id: int,
    data: IntroductionStatusUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(require_admin),
):
    """
    Move an introduction along its lifecycle.

    PLACED is only reachable by creating a placement.
    """
    introduction = get_introduction(db, introduction_id)
    change_introduction_status(
        db,
        introduction,
        data.status,
        user_id=get_user_id(user),
        reason=data.reason,
    )
    db.commit()
    return to_response(introduction)
