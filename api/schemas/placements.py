"""Pydantic schemas for placement endpoints."""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import Field

from .base import CamelModel, UTCDateTime

ExperienceLevelValue = Literal["ENTRY_LEVEL", "MID_LEVEL", "SENIOR_LEVEL", "EXECUTIVE"]


class PlacementCreate(CamelModel):
    """Salary is annual, in cents."""

    introduction_id: int
    salary: int = Field(..., gt=0)
    start_date: UTCDateTime
    experience_level: Optional[ExperienceLevelValue] = None
    job_title: Optional[str] = None
    notes: Optional[str] = None


class PlacementResponse(CamelModel):
    id: int
    introduction_id: int
    job_title: Optional[str] = None
    salary: int
    experience_level: Optional[str] = None
    fee_percentage: float
    placement_fee: int
    upfront_amount: int
    remaining_amount: int
    start_date: datetime
    remaining_due_date: datetime
    status: str
    payment_status: str
    upfront_paid_at: Optional[datetime] = None
    upfront_payment_method: Optional[str] = None
    upfront_transaction_id: Optional[str] = None
    remaining_paid_at: Optional[datetime] = None
    remaining_payment_method: Optional[str] = None
    remaining_transaction_id: Optional[str] = None
    remaining_reminder_sent_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime


class RecordPaymentRequest(CamelModel):
    payment_type: Literal["upfront", "remaining", "full"]
    payment_method: Literal["bank_transfer", "wire", "check", "stripe", "other"] = "bank_transfer"
    transaction_id: Optional[str] = None


class CancelPlacementRequest(CamelModel):
    reason: Optional[str] = None


class PlacementListItem(PlacementResponse):
    candidate_name: Optional[str] = None
    employer_company_name: Optional[str] = None


class PaymentStatusTotals(CamelModel):
    count: int
    placement_fees: int
    upfront_amount: int
    remaining_amount: int


class OverdueTotals(CamelModel):
    count: int
    amount: int


class PlacementStats(CamelModel):
    """Money fields are integer cents."""

    total_placements: int
    total_fees: int
    average_fee: int
    upfront_collected: int
    remaining_collected: int
    collected: int
    outstanding: int
    overdue: OverdueTotals
    by_status: dict[str, int]
    by_payment_status: dict[str, PaymentStatusTotals]


class ReminderRunResponse(CamelModel):
    due: int
    sent: int
    errors: Optional[list[dict[str, Any]]] = None
