"""Pydantic schemas for API request/response validation.

All schemas use CamelCase for JSON field names (via alias_generator).
"""

from .base import CamelModel, PaginatedResponse, PaginationMeta, ErrorResponse

# Re-export all schemas
from .check_ins import (
    CheckInListItem,
    CheckInResponse,
    CheckInUpdate,
    CheckInStats,
    ParseReplyRequest,
    ParseReplyResponse,
    ResendResponse,
    SchedulerRunResponse,
    PublicCheckInResponse,
    CheckInSubmission,
    CheckInSubmissionResult,
)
from .circumvention import (
    FlagCreate,
    FlagUpdate,
    FlagResponse,
    FlagStats,
    SendInvoiceRequest,
    SendInvoiceResponse,
)
from .introductions import (
    IntroductionCreate,
    IntroductionStatusUpdate,
    IntroductionResponse,
)
from .placements import (
    PlacementCreate,
    PlacementResponse,
    RecordPaymentRequest,
    CancelPlacementRequest,
)

__all__ = [
    # Base
    "CamelModel",
    "PaginatedResponse",
    "PaginationMeta",
    "ErrorResponse",
    # Check-ins
    "CheckInListItem",
    "CheckInResponse",
    "CheckInUpdate",
    "CheckInStats",
    "ParseReplyRequest",
    "ParseReplyResponse",
    "ResendResponse",
    "SchedulerRunResponse",
    "PublicCheckInResponse",
    "CheckInSubmission",
    "CheckInSubmissionResult",
    # Circumvention
    "FlagCreate",
    "FlagUpdate",
    "FlagResponse",
    "FlagStats",
    "SendInvoiceRequest",
    "SendInvoiceResponse",
    # Introductions
    "IntroductionCreate",
    "IntroductionStatusUpdate",
    "IntroductionResponse",
    # Placements
    "PlacementCreate",
    "PlacementResponse",
    "RecordPaymentRequest",
    "CancelPlacementRequest",
]
