"""Circumvention flag endpoints (admin)."""

import json
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.config.database import get_db
from api.integrations.ses import SESService
from api.middleware.error_handler import NotFoundError
from api.models import CircumventionFlag, FlagStatus
from api.schemas.base import PaginatedResponse, PaginationMeta
from api.schemas.circumvention import (
    FlagCreate,
    FlagEmployer,
    FlagIntroduction,
    FlagResponse,
    FlagStats,
    FlagUpdate,
    SendInvoiceRequest,
    SendInvoiceResponse,
)
from api.services import circumvention_ledger as ledger
from api.services.notifications import get_email_service
from api.services.rbac import get_user_id, require_admin

logger = structlog.get_logger()
router = APIRouter()


def get_flag(db: Session, flag_id: int) -> CircumventionFlag:
    flag = db.get(CircumventionFlag, flag_id)
    if not flag:
        raise NotFoundError("Circumvention flag", flag_id)
    return flag


def to_response(flag: CircumventionFlag) -> FlagResponse:
    employer = flag.employer
    introduction = flag.introduction

    return FlagResponse(
        id=flag.id,
        introduction_id=flag.introduction_id,
        employer_id=flag.employer_id,
        detection_method=flag.detection_method,
        evidence=json.loads(flag.evidence) if flag.evidence else None,
        estimated_salary=flag.estimated_salary,
        fee_percentage=float(flag.fee_percentage) if flag.fee_percentage is not None else None,
        estimated_fee_owed=flag.estimated_fee_owed,
        status=flag.status,
        invoice_number=flag.invoice_number,
        invoice_amount=flag.invoice_amount,
        invoice_sent_at=flag.invoice_sent_at,
        invoice_due_at=flag.invoice_due_at,
        invoice_paid_at=flag.invoice_paid_at,
        resolved_at=flag.resolved_at,
        resolution=flag.resolution,
        resolution_notes=flag.resolution_notes,
        detected_at=flag.detected_at,
        created_at=flag.created_at,
        employer=FlagEmployer(
            id=employer.id,
            company_name=employer.company_name,
            contact_name=employer.contact_name,
            contact_email=employer.billing_email,
        ) if employer else None,
        introduction=FlagIntroduction(
            id=introduction.id,
            status=introduction.status,
            introduced_at=introduction.introduced_at,
            candidate_name=introduction.candidate.name,
            candidate_email=introduction.candidate.email,
            job_title=introduction.job.title if introduction.job else None,
        ) if introduction else None,
    )


@router.get("", response_model=PaginatedResponse[FlagResponse])
async def list_flags(
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    status: Optional[FlagStatus] = Query(None),
    employer_id: Optional[int] = Query(None, alias="employerId"),
    user: dict = Depends(require_admin),
):
    """List flags, newest first."""
    query = db.query(CircumventionFlag)

    if status:
        query = query.filter(CircumventionFlag.status == status.value)
    if employer_id:
        query = query.filter(CircumventionFlag.employer_id == employer_id)

    total = query.count()
    flags = (
        query.order_by(CircumventionFlag.detected_at.desc(), CircumventionFlag.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )

    return PaginatedResponse(
        data=[to_response(f) for f in flags],
        meta=PaginationMeta(
            page=page,
            per_page=per_page,
            total=total,
            total_pages=(total + per_page - 1) // per_page,
        ),
    )


@router.post("", response_model=FlagResponse, status_code=201)
async def create_flag(
    data: FlagCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(require_admin),
):
    """Record a suspected circumvention by hand."""
    flag = ledger.create_flag(
        db,
        employer_id=data.employer_id,
        introduction_id=data.introduction_id,
        detection_method=data.detection_method,
        evidence=data.evidence,
        estimated_salary=data.estimated_salary,
        fee_percentage=data.fee_percentage,
        user_id=get_user_id(user),
    )
    return to_response(flag)


@router.get("/stats", response_model=FlagStats)
async def get_flag_stats(
    db: Session = Depends(get_db),
    user: dict = Depends(require_admin),
):
    """Ledger statistics. Revenue figures are cent strings."""
    return FlagStats(**ledger.get_stats(db))


@router.get("/{flag_id}", response_model=FlagResponse)
async def get_flag_detail(
    flag_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(require_admin),
):
    """Get a flag by ID."""
    return to_response(get_flag(db, flag_id))


@router.patch("/{flag_id}", response_model=FlagResponse)
async def update_flag(
    flag_id: int,
    data: FlagUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(require_admin),
):
    """Move a flag through its workflow or correct its estimate."""
    flag = get_flag(db, flag_id)
    ledger.update_flag(db, flag, data.model_dump(exclude_unset=True), user_id=get_user_id(user))
    return to_response(flag)


@router.post("/{flag_id}/send-invoice", response_model=SendInvoiceResponse)
async def send_invoice(
    flag_id: int,
    data: Optional[SendInvoiceRequest] = None,
    db: Session = Depends(get_db),
    email: SESService = Depends(get_email_service),
    user: dict = Depends(require_admin),
):
    """Invoice the employer and mark the flag INVOICE_SENT."""
    data = data or SendInvoiceRequest()
    flag = get_flag(db, flag_id)
    await ledger.send_invoice(
        db,
        email,
        flag,
        amount=data.amount,
        due_date=data.due_date,
        custom_message=data.custom_message,
        user_id=get_user_id(user),
    )
    return SendInvoiceResponse(
        message=f"Invoice {flag.invoice_number} sent to {flag.employer.billing_email}",
        flag=to_response(flag),
    )


@router.delete("/{flag_id}")
async def delete_flag(
    flag_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(require_admin),
):
    """Delete a false-positive flag."""
    flag = get_flag(db, flag_id)
    ledger.delete_flag(db, flag, user_id=get_user_id(user))
    return {"success": True, "message": "Flag deleted"}
