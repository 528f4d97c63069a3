"""SQLAlchemy ORM models for the placement ledger.

All models are imported here to ensure they're registered with Base.metadata
before any database operations.
"""

# Import base first
from api.config.database import Base
from .base import utcnow

# Identity models
from .users import User, Employer, Candidate
from .jobs import JobPosting

# Workflow models
from .introductions import Introduction
from .check_ins import CheckIn
from .circumvention_flags import CircumventionFlag
from .placements import Placement

# Audit models
from .activities import Activity
from .email_log import EmailLog

from .enums import (
    UserRole,
    ExperienceLevel,
    IntroductionStatus,
    CheckInStatus,
    RiskLevel,
    ResponseStatus,
    ResponseType,
    DetectionMethod,
    FlagStatus,
    PlacementStatus,
    PaymentStatus,
    PaymentType,
    PaymentMethod,
)

__all__ = [
    "Base",
    "utcnow",
    # Identity
    "User",
    "Employer",
    "Candidate",
    "JobPosting",
    # Workflow
    "Introduction",
    "CheckIn",
    "CircumventionFlag",
    "Placement",
    # Audit
    "Activity",
    "EmailLog",
    # Enums
    "UserRole",
    "ExperienceLevel",
    "IntroductionStatus",
    "CheckInStatus",
    "RiskLevel",
    "ResponseStatus",
    "ResponseType",
    "DetectionMethod",
    "FlagStatus",
    "PlacementStatus",
    "PaymentStatus",
    "PaymentType",
    "PaymentMethod",
]
