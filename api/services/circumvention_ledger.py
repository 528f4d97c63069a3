"""Circumvention flag ledger: statistics, manual flags, status updates, invoicing."""

import json
import secrets
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Mapping, Optional

import structlog
from sqlalchemy import func
from sqlalchemy.orm import Session

from api.config.settings import settings
from api.integrations.ses import SESError, SESService
from api.middleware.error_handler import DownstreamError, NotFoundError, ValidationAPIError
from api.models import (
    Activity,
    CircumventionFlag,
    DetectionMethod,
    Employer,
    FlagStatus,
    Introduction,
    utcnow,
)
from api.services.fees import calculate_fee_percentage, estimate_salary, fee_from_percentage
from api.services.notifications import log_email
from api.services.transitions import ensure_transition

logger = structlog.get_logger()

RESOLVED_STATUSES = {FlagStatus.PAID.value, FlagStatus.FALSE_POSITIVE.value, FlagStatus.WROTE_OFF.value}
ACTION_REQUIRED_STATUSES = [FlagStatus.OPEN.value, FlagStatus.INVESTIGATING.value]
POTENTIAL_STATUSES = [FlagStatus.OPEN.value, FlagStatus.INVESTIGATING.value, FlagStatus.INVOICE_SENT.value]
RECENT_DAYS = 30


def _sum(db: Session, column, statuses: list[str]) -> str:
    """Sum a money column over flags in ``statuses``; nulls and empty sets count as 0."""
    total = (
        db.query(func.coalesce(func.sum(func.coalesce(column, 0)), 0))
        .filter(CircumventionFlag.status.in_(statuses))
        .scalar()
    )
    return str(int(total or 0))


def get_stats(db: Session, now: Optional[datetime] = None) -> dict[str, Any]:
    """
    Aggregate ledger statistics.

    Revenue figures are integer cents rendered as strings ("0" when empty).
    """
    now = now or utcnow()

    counts = dict(
        db.query(CircumventionFlag.status, func.count(CircumventionFlag.id))
        .group_by(CircumventionFlag.status)
        .all()
    )
    by_status = {status.value: int(counts.get(status.value, 0)) for status in FlagStatus}

    recent_flags = (
        db.query(func.count(CircumventionFlag.id))
        .filter(CircumventionFlag.detected_at >= now - timedelta(days=RECENT_DAYS))
        .scalar()
    )

    methods = (
        db.query(CircumventionFlag.detection_method, func.count(CircumventionFlag.id))
        .group_by(CircumventionFlag.detection_method)
        .order_by(func.count(CircumventionFlag.id).desc())
        .all()
    )

    return {
        "by_status": by_status,
        "total": sum(by_status.values()),
        "action_required": sum(by_status[s] for s in ACTION_REQUIRED_STATUSES),
        "recent_flags": int(recent_flags or 0),
        "revenue": {
            "potential": _sum(db, CircumventionFlag.estimated_fee_owed, POTENTIAL_STATUSES),
            "collected": _sum(db, CircumventionFlag.invoice_amount, [FlagStatus.PAID.value]),
            "pending": _sum(db, CircumventionFlag.invoice_amount, [FlagStatus.INVOICE_SENT.value]),
        },
        "detection_methods": [
            {"method": method, "count": int(count)} for method, count in methods
        ],
    }


def _log(db: Session, action: str, flag: CircumventionFlag, user_id: Optional[int], **details) -> None:
    db.add(Activity(
        action=action,
        introduction_id=flag.introduction_id,
        user_id=user_id,
        details=json.dumps({"flag_id": flag.id, **details}, default=str),
    ))


def create_flag(
    db: Session,
    employer_id: int,
    introduction_id: Optional[int] = None,
    detection_method: DetectionMethod | str = DetectionMethod.MANUAL,
    evidence: Optional[Mapping[str, Any]] = None,
    estimated_salary: Optional[int] = None,
    fee_percentage: Optional[Decimal | float] = None,
    user_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> CircumventionFlag:
    """Record a suspected circumvention raised by an admin or an outside signal."""
    if not db.get(Employer, employer_id):
        raise NotFoundError("Employer", employer_id)

    introduction = None
    if introduction_id is not None:
        introduction = db.get(Introduction, introduction_id)
        if introduction is None:
            raise NotFoundError("Introduction", introduction_id)
        if introduction.employer_id != employer_id:
            raise ValidationAPIError("Introduction belongs to a different employer", field="introductionId")

    job = introduction.job if introduction else None
    if estimated_salary is None and job is not None:
        estimated_salary = estimate_salary(job.salary_min, job.salary_max)
    if fee_percentage is None:
        fee_percentage = round(calculate_fee_percentage(job.experience_level if job else None) * 100, 2)

    flag = CircumventionFlag(
        employer_id=employer_id,
        introduction_id=introduction_id,
        detection_method=DetectionMethod(detection_method).value,
        evidence=json.dumps(dict(evidence or {})),
        estimated_salary=estimated_salary,
        fee_percentage=fee_percentage,
        estimated_fee_owed=fee_from_percentage(estimated_salary, fee_percentage) if estimated_salary else None,
        status=FlagStatus.OPEN.value,
        detected_at=now or utcnow(),
    )
    db.add(flag)
    db.flush()
    _log(db, "flag_created", flag, user_id, detection_method=flag.detection_method)
    db.commit()

    logger.info(
        "Circumvention flag created",
        flag_id=flag.id,
        employer_id=employer_id,
        detection_method=flag.detection_method,
    )
    return flag


def update_flag(
    db: Session,
    flag: CircumventionFlag,
    changes: Mapping[str, Any],
    user_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> CircumventionFlag:
    """
    Apply an admin update.

    ``changes`` keys: status, estimated_salary, fee_percentage, resolution,
    resolution_notes. Status moves through the flag transition table; the
    estimated fee is recomputed whenever salary or rate changes.
    """
    now = now or utcnow()
    from_status = flag.status

    status = changes.get("status")
    if status is not None and status != flag.status:
        # INVOICE_SENT is only reachable through send_invoice
        if status == FlagStatus.INVOICE_SENT:
            raise ValidationAPIError("Use send-invoice to invoice a flag", field="status")
        flag.status = ensure_transition("CircumventionFlag", flag.status, status)
        if flag.status in RESOLVED_STATUSES:
            flag.resolved_at = now
        if flag.status == FlagStatus.PAID:
            flag.invoice_paid_at = now

    if changes.get("estimated_salary") is not None:
        flag.estimated_salary = changes["estimated_salary"]
    if changes.get("fee_percentage") is not None:
        flag.fee_percentage = changes["fee_percentage"]
    if changes.get("estimated_salary") is not None or changes.get("fee_percentage") is not None:
        if flag.estimated_salary and flag.fee_percentage is not None:
            flag.estimated_fee_owed = fee_from_percentage(flag.estimated_salary, flag.fee_percentage)

    if changes.get("resolution") is not None:
        flag.resolution = changes["resolution"]
    if changes.get("resolution_notes") is not None:
        flag.resolution_notes = changes["resolution_notes"]

    _log(db, "flag_updated", flag, user_id, from_status=from_status, to_status=flag.status)
    db.commit()

    logger.info("Circumvention flag updated", flag_id=flag.id, from_status=from_status, to_status=flag.status)
    return flag


def generate_invoice_number(now: Optional[datetime] = None) -> str:
    """INV-YYYYMMDD-XXXXXX"""
    now = now or utcnow()
    return f"INV-{now:%Y%m%d}-{secrets.token_hex(3).upper()}"


async def send_invoice(
    db: Session,
    email: SESService,
    flag: CircumventionFlag,
    amount: Optional[int] = None,
    due_date: Optional[datetime] = None,
    custom_message: Optional[str] = None,
    user_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> CircumventionFlag:
    """
    Invoice the employer for a flag and move it to INVOICE_SENT.

    Raises:
        ValidationAPIError: disallowed transition, no amount, or no billing email
        DownstreamError: email failure (flag is left unchanged)
    """
    now = now or utcnow()
    target = ensure_transition("CircumventionFlag", flag.status, FlagStatus.INVOICE_SENT)

    amount = amount if amount is not None else flag.estimated_fee_owed
    if not amount or amount <= 0:
        raise ValidationAPIError("Invoice amount must be greater than zero", field="amount")

    employer = flag.employer
    to = employer.billing_email
    if not to:
        raise ValidationAPIError("Employer has no billing email address")

    due_date = due_date or now + timedelta(days=settings.INVOICE_DUE_DAYS)
    invoice_number = generate_invoice_number(now)
    introduction = flag.introduction

    try:
        message_id = await email.send_invoice(
            to=to,
            invoice_number=invoice_number,
            amount=amount,
            due_date=due_date,
            employer_company_name=employer.company_name,
            contact_name=employer.contact_name,
            candidate_name=introduction.candidate.name if introduction else None,
            job_title=introduction.job.title if introduction and introduction.job else None,
            custom_message=custom_message,
        )
    except SESError as e:
        log_email(db, "invoice", to_email=to, introduction_id=flag.introduction_id, error=str(e))
        db.commit()
        raise DownstreamError(str(e), service="email") from e

    flag.status = target
    flag.invoice_number = invoice_number
    flag.invoice_amount = amount
    flag.invoice_sent_at = now
    flag.invoice_due_at = due_date

    log_email(db, "invoice", to_email=to, introduction_id=flag.introduction_id, message_id=message_id)
    _log(db, "invoice_sent", flag, user_id, invoice_number=invoice_number, amount=amount)
    db.commit()

    logger.info("Invoice sent", flag_id=flag.id, invoice_number=invoice_number, amount=amount)
    return flag


def delete_flag(db: Session, flag: CircumventionFlag, user_id: Optional[int] = None) -> None:
    """Delete a flag. Only false positives may be removed."""
    if flag.status != FlagStatus.FALSE_POSITIVE:
        raise ValidationAPIError("Only flags marked FALSE_POSITIVE can be deleted", field="status")

    _log(db, "flag_deleted", flag, user_id)
    db.delete(flag)
    db.commit()

    logger.info("Circumvention flag deleted", flag_id=flag.id)
