"""String enumerations stored in status columns."""

from enum import Enum


class UserRole(str, Enum):
    CANDIDATE = "CANDIDATE"
    EMPLOYER = "EMPLOYER"
    ADMIN = "ADMIN"


class ExperienceLevel(str, Enum):
    ENTRY_LEVEL = "ENTRY_LEVEL"
    MID_LEVEL = "MID_LEVEL"
    SENIOR_LEVEL = "SENIOR_LEVEL"
    EXECUTIVE = "EXECUTIVE"


class IntroductionStatus(str, Enum):
    INTRODUCED = "INTRODUCED"
    AWAITING_RESPONSE = "AWAITING_RESPONSE"
    CONFIRMED = "CONFIRMED"
    DECLINED = "DECLINED"
    PLACED = "PLACED"
    EXPIRED = "EXPIRED"


class CheckInStatus(str, Enum):
    SCHEDULED = "SCHEDULED"  # row exists, email not yet delivered
    SENT = "SENT"
    RESPONDED = "RESPONDED"
    NO_RESPONSE = "NO_RESPONSE"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class ResponseStatus(str, Enum):
    """What the candidate reported (check-in buttons)."""

    INTERVIEWING = "interviewing"
    OFFER = "offer"
    HIRED_THERE = "hired_there"
    HIRED_ELSEWHERE = "hired_elsewhere"
    REJECTED = "rejected"
    WITHDREW = "withdrew"
    NO_RESPONSE = "no_response"
    STILL_LOOKING = "still_looking"


class ResponseType(str, Enum):
    """How the response arrived."""

    BUTTON_CLICK = "button_click"
    FREE_TEXT = "free_text"
    NO_RESPONSE = "no_response"


class DetectionMethod(str, Enum):
    LINKEDIN_MATCH = "LINKEDIN_MATCH"
    CHECKIN_RESPONSE = "CHECKIN_RESPONSE"
    EMAIL_REPLY = "EMAIL_REPLY"
    MANUAL = "MANUAL"


class FlagStatus(str, Enum):
    OPEN = "OPEN"
    INVESTIGATING = "INVESTIGATING"
    INVOICE_SENT = "INVOICE_SENT"
    PAID = "PAID"
    DISPUTED = "DISPUTED"
    FALSE_POSITIVE = "FALSE_POSITIVE"
    WROTE_OFF = "WROTE_OFF"


class PlacementStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    UPFRONT_PAID = "UPFRONT_PAID"
    FULLY_PAID = "FULLY_PAID"
    FAILED = "FAILED"


class PaymentType(str, Enum):
    UPFRONT = "upfront"
    REMAINING = "remaining"
    FULL = "full"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    WIRE = "wire"
    CHECK = "check"
    STRIPE = "stripe"
    OTHER = "other"
