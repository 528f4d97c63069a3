"""Health check endpoints for monitoring."""

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api.config.settings import settings
from api.config.database import get_db

logger = structlog.get_logger()
router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    timestamp: str
    database: str
    email: str
    reply_parser: str


def check_database(db: Session) -> tuple[str, str | None]:
    """Check database connectivity."""
    try:
        db.execute(text("SELECT 1")).fetchone()
        return "connected", None
    except SQLAlchemyError as e:
        logger.error("Database health check failed", error=str(e))
        return "disconnected", str(e)


def check_email() -> str:
    return "configured" if settings.SES_FROM_EMAIL else "not_configured"


def check_reply_parser() -> str:
    return "configured" if settings.ANTHROPIC_API_KEY else "keyword_fallback"


@router.get("", response_model=HealthResponse)
@router.get("/", response_model=HealthResponse)
async def health_check(
    db: Session = Depends(get_db),
) -> HealthResponse:
    """
    Basic health check endpoint.

    Returns overall status and component health.
    """
    db_status, _ = check_database(db)

    return HealthResponse(
        status="healthy" if db_status == "connected" else "unhealthy",
        version=settings.APP_VERSION,
        timestamp=datetime.now(timezone.utc).isoformat(),
        database=db_status,
        email=check_email(),
        reply_parser=check_reply_parser(),
    )


@router.get("/ready")
async def readiness_check(
    db: Session = Depends(get_db),
) -> dict:
    """Readiness probe: 200 once the database answers."""
    db_status, _ = check_database(db)

    if db_status != "connected":
        return {"ready": False, "reason": "Database not connected"}

    return {"ready": True}


@router.get("/live")
async def liveness_check() -> dict:
    """Liveness probe."""
    return {"alive": True}
