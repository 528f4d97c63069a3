"""Opaque single-use tokens for check-in response links."""

import secrets
from datetime import datetime, timedelta
from typing import Optional

from api.config.settings import settings
from api.models.base import utcnow


def generate_introduction_token() -> str:
    """32 random bytes, URL-safe base64."""
    return secrets.token_urlsafe(32)


def generate_token_expiry(days: int = None, now: Optional[datetime] = None) -> datetime:
    """Expiry timestamp ``days`` from now (defaults to the check-in response window)."""
    if days is None:
        days = settings.CHECK_IN_RESPONSE_DAYS
    return (now or utcnow()) + timedelta(days=days)


def is_token_expired(expiry: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """A missing expiry counts as expired."""
    if expiry is None:
        return True
    return expiry <= (now or utcnow())


def build_response_url(token: str) -> str:
    """Candidate-facing link for a check-in token."""
    return f"{settings.FRONTEND_URL.rstrip('/')}/check-in/{token}"
