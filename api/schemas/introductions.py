"""Pydantic schemas for introduction endpoints."""

from datetime import datetime
from typing import Any, Literal, Optional

from .base import CamelModel, PaginationMeta, UTCDateTime
from .check_ins import CheckInListItem


class IntroductionCreate(CamelModel):
    candidate_id: int
    employer_id: int
    job_id: Optional[int] = None
    status: Literal["AWAITING_RESPONSE", "INTRODUCED"] = "AWAITING_RESPONSE"
    introduced_at: Optional[UTCDateTime] = None


class IntroductionStatusUpdate(CamelModel):
    status: Literal["INTRODUCED", "CONFIRMED", "DECLINED", "EXPIRED"]
    reason: Optional[str] = None


class IntroductionResponse(CamelModel):
    id: int
    candidate_id: int
    employer_id: int
    job_id: Optional[int] = None
    status: str
    introduced_at: Optional[datetime] = None
    protection_ends_at: Optional[datetime] = None
    candidate_name: Optional[str] = None
    employer_company_name: Optional[str] = None
    job_title: Optional[str] = None
    placement_id: Optional[int] = None
    check_ins: list[CheckInListItem] = []
    created_at: datetime


class CheckInCounts(CamelModel):
    sent: int
    responded: int


class ProtectionListItem(CamelModel):
    """An introduction near or past the end of its protection period."""

    id: int
    status: str
    candidate_name: Optional[str] = None
    candidate_email: Optional[str] = None
    employer_company_name: str
    job_title: Optional[str] = None
    introduced_at: Optional[datetime] = None
    protection_ends_at: Optional[datetime] = None
    days_until_expiry: Optional[int] = None
    days_since_expiry: Optional[int] = None
    last_check_in: str
    check_ins: CheckInCounts
    expiry_alert_sent_at: Optional[datetime] = None


class ExpiringCounts(CamelModel):
    in_7_days: int
    in_30_days: int
    in_90_days: int


class ExpiredCounts(CamelModel):
    last_30_days: int
    last_60_days: int
    last_90_days: int


class ExpiringIntroductionsResponse(CamelModel):
    data: list[ProtectionListItem]
    meta: PaginationMeta
    counts: ExpiringCounts


class ExpiredIntroductionsResponse(CamelModel):
    data: list[ProtectionListItem]
    meta: PaginationMeta
    counts: ExpiredCounts


class ExpiryRunResponse(CamelModel):
    expiring_soon: int
    expired_marked: int
    held: int = 0
    alerts_sent: int
    errors: Optional[list[dict[str, Any]]] = None
