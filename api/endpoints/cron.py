"""Timer-triggered jobs, authenticated with the shared cron secret."""

import secrets

import structlog
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from api.config.database import get_db
from api.config.settings import settings
from api.integrations.ses import SESService
from api.middleware.error_handler import AuthenticationError
from api.schemas.check_ins import SchedulerRunResponse
from api.schemas.introductions import ExpiryRunResponse
from api.schemas.placements import ReminderRunResponse
from api.services.check_in_scheduler import CheckInScheduler
from api.services.introduction_expiry import run_introduction_expiry
from api.services.notifications import get_email_service
from api.services.placements import send_remaining_payment_reminders

logger = structlog.get_logger()
router = APIRouter()


def verify_cron_secret(request: Request) -> None:
    """Require ``Authorization: Bearer <CRON_SECRET>``. An unset secret rejects every call."""
    expected = settings.CRON_SECRET
    auth_header = request.headers.get("Authorization", "")

    if not expected:
        logger.warning("Cron call rejected, CRON_SECRET is not configured")
        raise AuthenticationError("Cron secret not configured")

    if not secrets.compare_digest(auth_header.encode(), f"Bearer {expected}".encode()):
        logger.warning("Cron call rejected, bad authorization header")
        raise AuthenticationError("Unauthorized")


@router.post(
    "/check-ins",
    response_model=SchedulerRunResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(verify_cron_secret)],
)
async def cron_check_ins(
    db: Session = Depends(get_db),
    email: SESService = Depends(get_email_service),
):
    """Scheduled check-in pass."""
    result = await CheckInScheduler(db, email).run()

    logger.info(
        "Cron check-in run completed",
        created=result.created,
        sent=result.sent,
        expired=result.expired,
        introductions_processed=result.introductions_processed,
        errors=len(result.errors),
    )

    return SchedulerRunResponse(
        created=result.created,
        sent=result.sent,
        expired=result.expired,
        introductions_processed=result.introductions_processed,
        errors=result.errors or None,
    )


@router.post(
    "/introduction-expiry",
    response_model=ExpiryRunResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(verify_cron_secret)],
)
async def cron_introduction_expiry(
    db: Session = Depends(get_db),
    email: SESService = Depends(get_email_service),
):
    """Alert on and expire introductions at the end of their protection period."""
    result = await run_introduction_expiry(db, email)
    return ExpiryRunResponse(
        expiring_soon=result.expiring_soon,
        expired_marked=result.expired_marked,
        held=result.held,
        alerts_sent=result.alerts_sent,
        errors=result.errors or None,
    )


@router.post(
    "/remaining-payment-due",
    response_model=ReminderRunResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(verify_cron_secret)],
)
async def cron_remaining_payment_due(
    db: Session = Depends(get_db),
    email: SESService = Depends(get_email_service),
):
    """Remind employers about remaining installments that are due."""
    result = await send_remaining_payment_reminders(db, email)
    return ReminderRunResponse(due=result.due, sent=result.sent, errors=result.errors or None)
