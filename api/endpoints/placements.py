"""Placement endpoints: create, list, stats, payment milestones, cancellation."""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session, joinedload

from api.config.database import get_db
from api.middleware.error_handler import ForbiddenError, NotFoundError
from api.models import Employer, Introduction, PaymentStatus, Placement, PlacementStatus, UserRole
from api.schemas.base import PaginatedResponse, PaginationMeta
from api.schemas.placements import (
    CancelPlacementRequest,
    PlacementCreate,
    PlacementListItem,
    PlacementResponse,
    PlacementStats,
    RecordPaymentRequest,
)
from api.services import placements as placement_service
from api.services.rbac import get_user_id, require_admin, require_role

logger = structlog.get_logger()
router = APIRouter()


def get_placement(db: Session, placement_id: int) -> Placement:
    placement = db.get(Placement, placement_id)
    if not placement:
        raise NotFoundError("Placement", placement_id)
    return placement


def to_response(placement: Placement) -> PlacementResponse:
    return PlacementResponse.model_validate(placement)


def to_list_item(placement: Placement) -> PlacementListItem:
    item = PlacementListItem.model_validate(placement)
    item.candidate_name = placement.introduction.candidate.name
    item.employer_company_name = placement.introduction.employer.company_name
    return item


def ensure_can_place(db: Session, user: dict, introduction_id: int) -> None:
    """Employers may only convert their own introductions."""
    if user.get("role") == UserRole.ADMIN:
        return

    introduction = db.get(Introduction, introduction_id)
    if introduction is None:
        raise NotFoundError("Introduction", introduction_id)

    employer = db.query(Employer).filter(Employer.user_id == get_user_id(user)).first()
    if employer is None or employer.id != introduction.employer_id:
        raise ForbiddenError("You can only record placements for your own introductions")


@router.post("", response_model=PlacementResponse, status_code=201)
async def create_placement(
    data: PlacementCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(require_role(["ADMIN", "EMPLOYER"])),
):
    """Record a hire and compute the placement fee."""
    ensure_can_place(db, user, data.introduction_id)

    placement = placement_service.create_placement(
        db,
        introduction_id=data.introduction_id,
        salary=data.salary,
        start_date=data.start_date,
        experience_level=data.experience_level,
        job_title=data.job_title,
        notes=data.notes,
        user_id=get_user_id(user),
    )
    return to_response(placement)


@router.get("", response_model=PaginatedResponse[PlacementListItem])
async def list_placements(
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    status: Optional[PlacementStatus] = Query(None),
    payment_status: Optional[PaymentStatus] = Query(None, alias="paymentStatus"),
    user: dict = Depends(require_admin),
):
    """List placements, newest first."""
    query = db.query(Placement)

    if status:
        query = query.filter(Placement.status == status.value)
    if payment_status:
        query = query.filter(Placement.payment_status == payment_status.value)

    total = query.count()

    placements = (
        query.options(joinedload(Placement.introduction))
        .order_by(Placement.created_at.desc(), Placement.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )

    return PaginatedResponse(
        data=[to_list_item(p) for p in placements],
        meta=PaginationMeta(
            page=page,
            per_page=per_page,
            total=total,
            total_pages=(total + per_page - 1) // per_page,
        ),
    )


@router.get("/stats", response_model=PlacementStats)
async def get_placement_stats(
    db: Session = Depends(get_db),
    user: dict = Depends(require_admin),
):
    """Fees, collections and outstanding balances for the billing dashboard."""
    return PlacementStats.model_validate(placement_service.get_stats(db))


@router.get("/{placement_id}", response_model=PlacementResponse)
async def get_placement_detail(
    placement_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(require_admin),
):
    """Get a placement by ID."""
    return to_response(get_placement(db, placement_id))


@router.post("/{placement_id}/record-payment", response_model=PlacementResponse)
async def record_payment(
    placement_id: int,
    data: RecordPaymentRequest,
    db: Session = Depends(get_db),
    user: dict = Depends(require_admin),
):
    """Record an upfront, remaining, or full payment."""
    placement = get_placement(db, placement_id)
    placement_service.record_payment(
        db,
        placement,
        payment_type=data.payment_type,
        payment_method=data.payment_method,
        transaction_id=data.transaction_id,
        user_id=get_user_id(user),
    )
    return to_response(placement)


@router.post("/{placement_id}/cancel", response_model=PlacementResponse)
async def cancel_placement(
    placement_id: int,
    data: Optional[CancelPlacementRequest] = None,
    db: Session = Depends(get_db),
    user: dict = Depends(require_admin),
):
    """Cancel a placement that has not completed."""
    placement = get_placement(db, placement_id)
    placement_service.cancel_placement(
        db,
        placement,
        reason=data.reason if data else None,
        user_id=get_user_id(user),
    )
    return to_response(placement)
