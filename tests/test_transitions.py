"""Tests for the status transition tables."""

import pytest

from api.models import (
    CheckInStatus,
    FlagStatus,
    IntroductionStatus,
    PaymentStatus,
    PlacementStatus,
)
from api.services.transitions import (
    InvalidTransitionError,
    can_transition,
    ensure_transition,
    is_terminal,
)


class TestIntroductionTransitions:
    def test_activation_path(self):
        assert can_transition("Introduction", IntroductionStatus.AWAITING_RESPONSE, IntroductionStatus.INTRODUCED)
        assert can_transition("Introduction", IntroductionStatus.INTRODUCED, IntroductionStatus.CONFIRMED)
        assert can_transition("Introduction", IntroductionStatus.CONFIRMED, IntroductionStatus.PLACED)

    def test_cannot_skip_activation(self):
        assert not can_transition("Introduction", IntroductionStatus.AWAITING_RESPONSE, IntroductionStatus.PLACED)

    @pytest.mark.parametrize(
        "status",
        [IntroductionStatus.PLACED, IntroductionStatus.DECLINED, IntroductionStatus.EXPIRED],
    )
    def test_terminal_statuses(self, status):
        assert is_terminal("Introduction", status)
        assert not can_transition("Introduction", status, IntroductionStatus.INTRODUCED)


class TestCheckInTransitions:
    def test_resend_is_a_self_edge(self):
        assert can_transition("CheckIn", CheckInStatus.SENT, CheckInStatus.SENT)

    def test_answered_check_in_is_final(self):
        assert is_terminal("CheckIn", CheckInStatus.RESPONDED)
        assert is_terminal("CheckIn", CheckInStatus.NO_RESPONSE)
        assert not can_transition("CheckIn", CheckInStatus.RESPONDED, CheckInStatus.SENT)


class TestFlagTransitions:
    def test_invoice_requires_investigation(self):
        assert not can_transition("CircumventionFlag", FlagStatus.OPEN, FlagStatus.INVOICE_SENT)
        assert can_transition("CircumventionFlag", FlagStatus.INVESTIGATING, FlagStatus.INVOICE_SENT)

    @pytest.mark.parametrize(
        "status",
        [FlagStatus.PAID, FlagStatus.DISPUTED, FlagStatus.FALSE_POSITIVE, FlagStatus.WROTE_OFF],
    )
    def test_resolved_flags_are_closed(self, status):
        assert is_terminal("CircumventionFlag", status)
        assert not can_transition("CircumventionFlag", status, FlagStatus.OPEN)


class TestPlacementAndPayment:
    def test_completed_placement_cannot_be_cancelled(self):
        assert not can_transition("Placement", PlacementStatus.COMPLETED, PlacementStatus.CANCELLED)

    def test_failed_payment_can_be_retried(self):
        assert can_transition("Payment", PaymentStatus.FAILED, PaymentStatus.PENDING)
        assert is_terminal("Payment", PaymentStatus.FULLY_PAID)


class TestEnsureTransition:
    def test_returns_stored_value(self):
        assert ensure_transition("CheckIn", "SCHEDULED", CheckInStatus.SENT) == "SENT"

    def test_rejection_carries_both_ends(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            ensure_transition("CircumventionFlag", FlagStatus.PAID, FlagStatus.OPEN)

        error = exc_info.value
        assert error.status_code == 400
        assert error.details["from"] == "PAID"
        assert error.details["to"] == "OPEN"

    def test_unknown_current_status_is_rejected(self):
        with pytest.raises(InvalidTransitionError):
            ensure_transition("Introduction", "ARCHIVED", IntroductionStatus.INTRODUCED)
