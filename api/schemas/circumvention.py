"""Pydantic schemas for circumvention flag endpoints."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import Field

from .base import CamelModel, UTCDateTime

FlagStatusValue = Literal[
    "OPEN",
    "INVESTIGATING",
    "INVOICE_SENT",
    "PAID",
    "DISPUTED",
    "FALSE_POSITIVE",
    "WROTE_OFF",
]
DetectionMethodValue = Literal["LINKEDIN_MATCH", "CHECKIN_RESPONSE", "EMAIL_REPLY", "MANUAL"]


class FlagEmployer(CamelModel):
    id: int
    company_name: str
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None


class FlagIntroduction(CamelModel):
    id: int
    status: str
    introduced_at: Optional[datetime] = None
    candidate_name: Optional[str] = None
    candidate_email: Optional[str] = None
    job_title: Optional[str] = None


class FlagResponse(CamelModel):
    """Circumvention flag. Money is integer cents."""

    id: int
    introduction_id: Optional[int] = None
    employer_id: int
    detection_method: str
    evidence: Optional[dict[str, Any]] = None
    estimated_salary: Optional[int] = None
    fee_percentage: Optional[float] = None
    estimated_fee_owed: Optional[int] = None
    status: str
    invoice_number: Optional[str] = None
    invoice_amount: Optional[int] = None
    invoice_sent_at: Optional[datetime] = None
    invoice_due_at: Optional[datetime] = None
    invoice_paid_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    resolution: Optional[str] = None
    resolution_notes: Optional[str] = None
    detected_at: datetime
    created_at: datetime

    employer: Optional[FlagEmployer] = None
    introduction: Optional[FlagIntroduction] = None


class FlagCreate(CamelModel):
    employer_id: int
    introduction_id: Optional[int] = None
    detection_method: DetectionMethodValue = "MANUAL"
    evidence: Optional[dict[str, Any]] = None
    estimated_salary: Optional[int] = Field(None, ge=0)
    fee_percentage: Optional[Decimal] = Field(None, ge=0, le=100)


class FlagUpdate(CamelModel):
    status: Optional[FlagStatusValue] = None
    estimated_salary: Optional[int] = Field(None, ge=0)
    fee_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    resolution: Optional[str] = None
    resolution_notes: Optional[str] = None


class SendInvoiceRequest(CamelModel):
    """Invoice overrides; amount defaults to the estimated fee owed."""

    amount: Optional[int] = Field(None, gt=0)
    due_date: Optional[UTCDateTime] = None
    custom_message: Optional[str] = None


class SendInvoiceResponse(CamelModel):
    success: bool = True
    message: str
    flag: FlagResponse


class RevenueStats(CamelModel):
    potential: str
    collected: str
    pending: str


class DetectionMethodCount(CamelModel):
    method: str
    count: int


class FlagStats(CamelModel):
    by_status: dict[str, int]
    total: int
    action_required: int
    recent_flags: int
    revenue: RevenueStats
    detection_methods: list[DetectionMethodCount]
