"""Placement creation, payment milestones, financial stats and payment reminders."""

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

import structlog
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from api.config.settings import settings
from api.integrations.ses import SESError, SESService
from api.middleware.error_handler import NotFoundError, ValidationAPIError
from api.models import (
    Activity,
    Introduction,
    IntroductionStatus,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
    Placement,
    PlacementStatus,
    utcnow,
)
from api.services.fees import calculate_placement_fee
from api.services.introductions import change_introduction_status
from api.services.notifications import log_email
from api.services.transitions import ensure_transition, is_terminal

logger = structlog.get_logger()


def create_placement(
    db: Session,
    introduction_id: int,
    salary: int,
    start_date: datetime,
    experience_level: Optional[str] = None,
    job_title: Optional[str] = None,
    notes: Optional[str] = None,
    user_id: Optional[int] = None,
) -> Placement:
    """
    Convert an introduction into a placement and compute its fee.

    The experience level defaults to the job posting's. The remaining
    installment falls due REMAINING_PAYMENT_DUE_DAYS after the start date.
    """
    introduction = db.get(Introduction, introduction_id)
    if introduction is None:
        raise NotFoundError("Introduction", introduction_id)
    if salary is None or salary <= 0:
        raise ValidationAPIError("Salary must be greater than zero", field="salary")
    if introduction.placement is not None:
        raise ValidationAPIError("Introduction already has a placement", field="introductionId")

    job = introduction.job
    level = experience_level or (job.experience_level if job else None)
    fee = calculate_placement_fee(salary, level)

    placement = Placement(
        introduction=introduction,
        job_title=job_title or (job.title if job else None),
        salary=salary,
        experience_level=level,
        fee_percentage=fee.fee_percentage,
        placement_fee=fee.placement_fee,
        upfront_amount=fee.upfront_amount,
        remaining_amount=fee.remaining_amount,
        start_date=start_date,
        remaining_due_date=start_date + timedelta(days=settings.REMAINING_PAYMENT_DUE_DAYS),
        status=PlacementStatus.PENDING.value,
        payment_status=PaymentStatus.PENDING.value,
        notes=notes,
    )
    db.add(placement)
    change_introduction_status(
        db, introduction, IntroductionStatus.PLACED, user_id=user_id, reason="placement created"
    )
    db.flush()

    db.add(Activity(
        action="placement_created",
        introduction_id=introduction.id,
        user_id=user_id,
        details=json.dumps({
            "placement_id": placement.id,
            "salary": salary,
            "placement_fee": fee.placement_fee,
            "fee_percentage": fee.fee_percentage,
        }),
    ))
    db.commit()

    logger.info(
        "Placement created",
        placement_id=placement.id,
        introduction_id=introduction.id,
        placement_fee=fee.placement_fee,
    )
    return placement


def record_payment(
    db: Session,
    placement: Placement,
    payment_type: PaymentType | str,
    payment_method: PaymentMethod | str = PaymentMethod.BANK_TRANSFER,
    transaction_id: Optional[str] = None,
    user_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Placement:
    """
    Record an installment.

    upfront: first half, once. remaining: second half, only after upfront.
    full: both halves at once.
    """
    now = now or utcnow()
    payment_type = PaymentType(payment_type)
    payment_method = PaymentMethod(payment_method).value

    if placement.status == PlacementStatus.CANCELLED:
        raise ValidationAPIError("Cannot record payment on a cancelled placement")

    if payment_type == PaymentType.UPFRONT:
        if placement.upfront_paid_at is not None:
            raise ValidationAPIError("Upfront payment already recorded", field="paymentType")
        placement.payment_status = ensure_transition(
            "Payment", placement.payment_status, PaymentStatus.UPFRONT_PAID
        )
        placement.upfront_paid_at = now
        placement.upfront_payment_method = payment_method
        placement.upfront_transaction_id = transaction_id
        target = PlacementStatus.CONFIRMED

    elif payment_type == PaymentType.REMAINING:
        if placement.upfront_paid_at is None:
            raise ValidationAPIError("Upfront payment must be recorded first", field="paymentType")
        if placement.remaining_paid_at is not None:
            raise ValidationAPIError("Remaining payment already recorded", field="paymentType")
        placement.payment_status = ensure_transition(
            "Payment", placement.payment_status, PaymentStatus.FULLY_PAID
        )
        placement.remaining_paid_at = now
        placement.remaining_payment_method = payment_method
        placement.remaining_transaction_id = transaction_id
        target = PlacementStatus.COMPLETED

    else:
        if placement.payment_status == PaymentStatus.FULLY_PAID:
            raise ValidationAPIError("Placement is already fully paid", field="paymentType")
        placement.payment_status = ensure_transition(
            "Payment", placement.payment_status, PaymentStatus.FULLY_PAID
        )
        if placement.upfront_paid_at is None:
            placement.upfront_paid_at = now
            placement.upfront_payment_method = payment_method
            placement.upfront_transaction_id = transaction_id
        placement.remaining_paid_at = now
        placement.remaining_payment_method = payment_method
        placement.remaining_transaction_id = transaction_id
        target = PlacementStatus.COMPLETED

    if placement.status != target:
        placement.status = ensure_transition("Placement", placement.status, target)

    db.add(Activity(
        action="payment_recorded",
        introduction_id=placement.introduction_id,
        user_id=user_id,
        details=json.dumps({
            "placement_id": placement.id,
            "payment_type": payment_type.value,
            "payment_method": payment_method,
            "payment_status": placement.payment_status,
        }),
    ))
    db.commit()

    logger.info(
        "Placement payment recorded",
        placement_id=placement.id,
        payment_type=payment_type.value,
        payment_status=placement.payment_status,
    )
    return placement


def cancel_placement(
    db: Session,
    placement: Placement,
    reason: Optional[str] = None,
    user_id: Optional[int] = None,
) -> Placement:
    """Cancel a placement that has not completed."""
    if is_terminal("Placement", placement.status):
        raise ValidationAPIError(f"Placement is already {placement.status}")

    placement.status = ensure_transition("Placement", placement.status, PlacementStatus.CANCELLED)
    if reason:
        placement.notes = f"{placement.notes}\n{reason}" if placement.notes else reason

    db.add(Activity(
        action="placement_cancelled",
        introduction_id=placement.introduction_id,
        user_id=user_id,
        details=json.dumps({"placement_id": placement.id, "reason": reason}),
    ))
    db.commit()

    logger.info("Placement cancelled", placement_id=placement.id)
    return placement


OPEN_STATUSES = [PlacementStatus.PENDING.value, PlacementStatus.CONFIRMED.value]


def _sum(db: Session, column, *criteria) -> int:
    """Sum a money column; nulls and empty sets count as 0."""
    total = db.query(func.coalesce(func.sum(func.coalesce(column, 0)), 0)).filter(*criteria).scalar()
    return int(total or 0)


def get_stats(db: Session, now: Optional[datetime] = None) -> dict[str, Any]:
    """
    Financial summary of placements, in integer cents.

    Cancelled placements count toward ``by_status`` and ``by_payment_status``
    and toward money already collected, but not toward fees or outstanding.
    """
    now = now or utcnow()
    active = Placement.status != PlacementStatus.CANCELLED.value

    status_counts = dict(
        db.query(Placement.status, func.count(Placement.id)).group_by(Placement.status).all()
    )
    by_status = {status.value: int(status_counts.get(status.value, 0)) for status in PlacementStatus}

    payment_rows = {
        row[0]: row[1:]
        for row in db.query(
            Placement.payment_status,
            func.count(Placement.id),
            func.coalesce(func.sum(func.coalesce(Placement.placement_fee, 0)), 0),
            func.coalesce(func.sum(func.coalesce(Placement.upfront_amount, 0)), 0),
            func.coalesce(func.sum(func.coalesce(Placement.remaining_amount, 0)), 0),
        )
        .group_by(Placement.payment_status)
        .all()
    }
    by_payment_status = {}
    for status in PaymentStatus:
        count, fees, upfront, remaining = payment_rows.get(status.value, (0, 0, 0, 0))
        by_payment_status[status.value] = {
            "count": int(count),
            "placement_fees": int(fees),
            "upfront_amount": int(upfront),
            "remaining_amount": int(remaining),
        }

    active_count = db.query(func.count(Placement.id)).filter(active).scalar() or 0
    total_fees = _sum(db, Placement.placement_fee, active)
    upfront_collected = _sum(db, Placement.upfront_amount, Placement.upfront_paid_at.isnot(None))
    remaining_collected = _sum(db, Placement.remaining_amount, Placement.remaining_paid_at.isnot(None))
    outstanding = (
        _sum(db, Placement.upfront_amount, active, Placement.upfront_paid_at.is_(None))
        + _sum(db, Placement.remaining_amount, active, Placement.remaining_paid_at.is_(None))
    )

    overdue = (
        active,
        Placement.upfront_paid_at.isnot(None),
        Placement.remaining_paid_at.is_(None),
        Placement.remaining_due_date < now,
    )

    return {
        "total_placements": sum(by_status.values()),
        "total_fees": total_fees,
        "average_fee": round(total_fees / active_count) if active_count else 0,
        "upfront_collected": upfront_collected,
        "remaining_collected": remaining_collected,
        "collected": upfront_collected + remaining_collected,
        "outstanding": outstanding,
        "overdue": {
            "count": int(db.query(func.count(Placement.id)).filter(*overdue).scalar() or 0),
            "amount": _sum(db, Placement.remaining_amount, *overdue),
        },
        "by_status": by_status,
        "by_payment_status": by_payment_status,
    }


@dataclass
class ReminderResult:
    """Summary of one remaining-payment reminder run."""

    due: int = 0
    sent: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result = {"due": self.due, "sent": self.sent}
        if self.errors:
            result["errors"] = self.errors
        return result


async def send_remaining_payment_reminders(
    db: Session,
    email: SESService,
    now: Optional[datetime] = None,
) -> ReminderResult:
    """
    Email employers whose remaining installment is due or overdue.

    A placement is reminded at most once per PAYMENT_REMINDER_INTERVAL_DAYS.
    Send failures are collected in ``errors`` and retried on the next run.
    """
    now = now or utcnow()
    interval = timedelta(days=settings.PAYMENT_REMINDER_INTERVAL_DAYS)

    due = (
        db.query(Placement)
        .filter(
            Placement.status.in_(OPEN_STATUSES),
            Placement.payment_status == PaymentStatus.UPFRONT_PAID.value,
            Placement.remaining_paid_at.is_(None),
            Placement.remaining_due_date <= now,
            or_(
                Placement.remaining_reminder_sent_at.is_(None),
                Placement.remaining_reminder_sent_at <= now - interval,
            ),
        )
        .order_by(Placement.remaining_due_date)
        .all()
    )
    result = ReminderResult(due=len(due))

    for placement in due:
        introduction = placement.introduction
        employer = introduction.employer
        to_email = employer.billing_email
        if not to_email:
            result.errors.append({"placementId": placement.id, "error": "Employer has no billing email"})
            continue

        try:
            message_id = await email.send_payment_reminder(
                to=to_email,
                employer_company_name=employer.company_name,
                contact_name=employer.contact_name,
                candidate_name=introduction.candidate.name,
                job_title=placement.job_title,
                amount=placement.remaining_amount,
                due_date=placement.remaining_due_date,
                days_overdue=max((now - placement.remaining_due_date).days, 0),
            )
        except SESError as e:
            logger.error("Payment reminder failed", placement_id=placement.id, error=str(e))
            log_email(
                db,
                "remaining_payment_reminder",
                to_email=to_email,
                introduction_id=introduction.id,
                error=str(e),
            )
            db.commit()
            result.errors.append({"placementId": placement.id, "error": str(e)})
            continue

        placement.remaining_reminder_sent_at = now
        log_email(
            db,
            "remaining_payment_reminder",
            to_email=to_email,
            introduction_id=introduction.id,
            message_id=message_id,
        )
        db.commit()
        result.sent += 1

    logger.info("Payment reminders finished", due=result.due, sent=result.sent, errors=len(result.errors))
    return result
