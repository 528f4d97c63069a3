"""Outbound email collaborators and their audit log."""

from functools import lru_cache
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from api.config.settings import settings
from api.integrations.claude import ClaudeReplyParser
from api.integrations.ses import SESService
from api.models import EmailLog

logger = structlog.get_logger()


@lru_cache
def _ses_service() -> SESService:
    return SESService()


def get_email_service() -> SESService:
    """
    Dependency returning the email dispatcher.

    Tests replace it through ``app.dependency_overrides``.
    """
    return _ses_service()


def get_reply_parser() -> Optional[ClaudeReplyParser]:
    """Dependency returning the AI reply parser, or None when no API key is set."""
    if not settings.ANTHROPIC_API_KEY:
        return None
    return ClaudeReplyParser()


def log_email(
    db: Session,
    email_type: str,
    to_email: str,
    subject: Optional[str] = None,
    introduction_id: Optional[int] = None,
    check_in_id: Optional[int] = None,
    message_id: Optional[str] = None,
    error: Optional[str] = None,
) -> EmailLog:
    """Add an email_log row. Does not commit."""
    entry = EmailLog(
        email_type=email_type,
        to_email=to_email,
        subject=subject,
        introduction_id=introduction_id,
        check_in_id=check_in_id,
        message_id=message_id,
        status="failed" if error else "sent",
        error=error,
    )
    db.add(entry)
    return entry
