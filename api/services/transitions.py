"""Allowed status transitions, one table per entity.

Every status change in the services goes through ``ensure_transition`` so
an edge that is not listed here cannot happen anywhere.
"""

from enum import Enum
from typing import Mapping

import structlog

from api.middleware.error_handler import ValidationAPIError
from api.models.enums import (
    CheckInStatus,
    FlagStatus,
    IntroductionStatus,
    PaymentStatus,
    PlacementStatus,
)

logger = structlog.get_logger()


INTRODUCTION_TRANSITIONS: Mapping[str, frozenset[str]] = {
    IntroductionStatus.AWAITING_RESPONSE: frozenset({
        IntroductionStatus.INTRODUCED,
        IntroductionStatus.DECLINED,
        IntroductionStatus.EXPIRED,
    }),
    IntroductionStatus.INTRODUCED: frozenset({
        IntroductionStatus.CONFIRMED,
        IntroductionStatus.PLACED,
        IntroductionStatus.DECLINED,
        IntroductionStatus.EXPIRED,
    }),
    IntroductionStatus.CONFIRMED: frozenset({
        IntroductionStatus.PLACED,
        IntroductionStatus.DECLINED,
        IntroductionStatus.EXPIRED,
    }),
    IntroductionStatus.PLACED: frozenset(),
    IntroductionStatus.DECLINED: frozenset(),
    IntroductionStatus.EXPIRED: frozenset(),
}

CHECK_IN_TRANSITIONS: Mapping[str, frozenset[str]] = {
    CheckInStatus.SCHEDULED: frozenset({CheckInStatus.SENT, CheckInStatus.NO_RESPONSE}),
    # SENT -> SENT is a resend with a fresh token
    CheckInStatus.SENT: frozenset({
        CheckInStatus.SENT,
        CheckInStatus.RESPONDED,
        CheckInStatus.NO_RESPONSE,
    }),
    CheckInStatus.RESPONDED: frozenset(),
    CheckInStatus.NO_RESPONSE: frozenset(),
}

FLAG_TRANSITIONS: Mapping[str, frozenset[str]] = {
    FlagStatus.OPEN: frozenset({FlagStatus.INVESTIGATING, FlagStatus.FALSE_POSITIVE}),
    FlagStatus.INVESTIGATING: frozenset({FlagStatus.INVOICE_SENT, FlagStatus.FALSE_POSITIVE}),
    FlagStatus.INVOICE_SENT: frozenset({
        FlagStatus.PAID,
        FlagStatus.DISPUTED,
        FlagStatus.WROTE_OFF,
    }),
    FlagStatus.PAID: frozenset(),
    FlagStatus.DISPUTED: frozenset(),
    FlagStatus.FALSE_POSITIVE: frozenset(),
    FlagStatus.WROTE_OFF: frozenset(),
}

PLACEMENT_TRANSITIONS: Mapping[str, frozenset[str]] = {
    PlacementStatus.PENDING: frozenset({
        PlacementStatus.CONFIRMED,
        PlacementStatus.COMPLETED,
        PlacementStatus.CANCELLED,
    }),
    PlacementStatus.CONFIRMED: frozenset({PlacementStatus.COMPLETED, PlacementStatus.CANCELLED}),
    PlacementStatus.COMPLETED: frozenset(),
    PlacementStatus.CANCELLED: frozenset(),
}

PAYMENT_TRANSITIONS: Mapping[str, frozenset[str]] = {
    PaymentStatus.PENDING: frozenset({
        PaymentStatus.UPFRONT_PAID,
        PaymentStatus.FULLY_PAID,
        PaymentStatus.FAILED,
    }),
    PaymentStatus.UPFRONT_PAID: frozenset({PaymentStatus.FULLY_PAID, PaymentStatus.FAILED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PENDING}),
    PaymentStatus.FULLY_PAID: frozenset(),
}

TABLES: dict[str, Mapping[str, frozenset[str]]] = {
    "Introduction": INTRODUCTION_TRANSITIONS,
    "CheckIn": CHECK_IN_TRANSITIONS,
    "CircumventionFlag": FLAG_TRANSITIONS,
    "Placement": PLACEMENT_TRANSITIONS,
    "Payment": PAYMENT_TRANSITIONS,
}


class InvalidTransitionError(ValidationAPIError):
    """Raised when a status change is not in the entity's table."""

    def __init__(self, entity: str, current: str, target: str):
        super().__init__(
            message=f"Cannot move {entity} from {current} to {target}",
            field="status",
            details={"entity": entity, "from": current, "to": target},
        )
        self.entity = entity
        self.current = current
        self.target = target


def _value(status: str | Enum) -> str:
    return status.value if isinstance(status, Enum) else str(status)


def _normalized(entity: str) -> dict[str, set[str]]:
    return {_value(k): {_value(s) for s in v} for k, v in TABLES[entity].items()}


def can_transition(entity: str, current: str | Enum, target: str | Enum) -> bool:
    """Whether ``current -> target`` is a declared edge for the entity."""
    allowed = _normalized(entity).get(_value(current))
    if allowed is None:
        return False
    return _value(target) in allowed


def is_terminal(entity: str, status: str | Enum) -> bool:
    allowed = _normalized(entity).get(_value(status))
    return allowed is not None and not allowed


def ensure_transition(entity: str, current: str | Enum, target: str | Enum) -> str:
    """
    Validate a status change and return the target value to store.

    Raises:
        InvalidTransitionError: if the edge is not declared
    """
    current_value, target_value = _value(current), _value(target)
    if not can_transition(entity, current_value, target_value):
        logger.warning(
            "Rejected status transition",
            entity=entity,
            from_status=current_value,
            to_status=target_value,
        )
        raise InvalidTransitionError(entity, current_value, target_value)
    return target_value
