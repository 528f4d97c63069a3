"""API endpoints for the placement ledger."""

from fastapi import APIRouter

from .health import router as health_router
from .check_ins import router as check_ins_router
from .public_check_ins import router as public_check_ins_router
from .circumvention import router as circumvention_router
from .introductions import router as introductions_router
from .placements import router as placements_router
from .cron import router as cron_router

# Create main API router
api_router = APIRouter()

# Include all routers
api_router.include_router(health_router, prefix="/health", tags=["Health"])
api_router.include_router(check_ins_router, prefix="/checkins", tags=["Check-ins"])
api_router.include_router(public_check_ins_router, prefix="/check-in/respond", tags=["Public Check-ins"])
api_router.include_router(circumvention_router, prefix="/circumvention", tags=["Circumvention"])
api_router.include_router(introductions_router, prefix="/introductions", tags=["Introductions"])
api_router.include_router(placements_router, prefix="/placements", tags=["Placements"])
api_router.include_router(cron_router, prefix="/cron", tags=["Cron"])

__all__ = ["api_router"]
