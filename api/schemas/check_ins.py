"""Pydantic schemas for check-in endpoints."""

from datetime import datetime
from typing import Any, Literal, Optional

from .base import CamelModel

RiskLevelValue = Literal["LOW", "MEDIUM", "HIGH"]


class PersonSummary(CamelModel):
    id: int
    name: Optional[str] = None
    email: Optional[str] = None


class EmployerSummary(CamelModel):
    id: int
    company_name: str
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None


class JobSummary(CamelModel):
    id: int
    title: str
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    experience_level: Optional[str] = None


class IntroductionSummary(CamelModel):
    id: int
    status: str
    introduced_at: Optional[datetime] = None
    created_at: datetime


class CheckInListItem(CamelModel):
    """Check-in row in the admin list."""

    id: int
    introduction_id: int
    check_in_number: int
    status: str
    scheduled_for: datetime
    sent_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    response_type: Optional[str] = None
    risk_level: Optional[str] = None
    risk_reason: Optional[str] = None
    flagged_for_review: bool = False
    reviewed_at: Optional[datetime] = None
    candidate_name: Optional[str] = None
    candidate_email: Optional[str] = None
    employer_company_name: Optional[str] = None
    job_title: Optional[str] = None
    created_at: datetime


class CheckInResponse(CamelModel):
    """Full check-in with its introduction, candidate, employer and job."""

    id: int
    introduction_id: int
    check_in_number: int
    status: str
    scheduled_for: datetime
    sent_at: Optional[datetime] = None
    response_token_expiry: Optional[datetime] = None
    token_expired: bool = False
    responded_at: Optional[datetime] = None
    response_type: Optional[str] = None
    response_raw: Optional[str] = None
    response_parsed: Optional[dict[str, Any]] = None
    risk_level: Optional[str] = None
    risk_reason: Optional[str] = None
    flagged_for_review: bool = False
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[int] = None
    review_notes: Optional[str] = None
    created_at: datetime

    introduction: IntroductionSummary
    candidate: PersonSummary
    employer: EmployerSummary
    job: Optional[JobSummary] = None


class CheckInUpdate(CamelModel):
    """Admin review fields. Every field is optional."""

    review_notes: Optional[str] = None
    mark_reviewed: Optional[bool] = None
    flagged_for_review: Optional[bool] = None
    risk_level: Optional[RiskLevelValue] = None
    response_type: Optional[Literal["button_click", "free_text", "no_response"]] = None


class ResentCheckIn(CamelModel):
    id: int
    check_in_number: int
    sent_to: str
    sent_at: datetime


class ResendResponse(CamelModel):
    success: bool = True
    message: str
    check_in: ResentCheckIn


class SchedulerRunResponse(CamelModel):
    created: int
    sent: int
    expired: int = 0
    introductions_processed: int
    errors: Optional[list[dict[str, Any]]] = None


class ParseReplyRequest(CamelModel):
    email_content: str


class ParseReplyResponse(CamelModel):
    success: bool = True
    parsed: dict[str, Any]
    risk_level: str
    risk_reason: str
    flag_created: bool = False
    flag_id: Optional[int] = None


class CheckInStats(CamelModel):
    """Dashboard counters. Inner dict keys are already camelCase."""

    overview: dict[str, int]
    last_30_days: dict[str, int]
    risk: dict[str, int]
    needs_attention: dict[str, int]
    by_check_in_number: list[dict[str, Any]]
    response_rate: dict[str, int]


class PublicCheckIn(CamelModel):
    """What the candidate sees on the response page."""

    id: int
    candidate_name: Optional[str] = None
    employer_company_name: str
    job_title: str
    introduction_date: Optional[datetime] = None
    days_since_intro: Optional[int] = None
    check_in_number: int
    status: Literal["pending", "responded", "expired"]
    previous_response: Optional[str] = None


class PublicCheckInResponse(CamelModel):
    success: bool = True
    check_in: PublicCheckIn


class CheckInSubmission(CamelModel):
    """Candidate's button-click response."""

    status: str  # checked by the classifier, whose 400 lists the valid statuses
    message: Optional[str] = None
    start_date: Optional[str] = None
    role_title: Optional[str] = None


class CheckInSubmissionResult(CamelModel):
    success: bool = True
    message: str = "Thank you for your response!"
    status: str
    risk_level: str
