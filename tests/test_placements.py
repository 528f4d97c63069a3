"""Tests for placement creation, payment milestones, stats and payment reminders."""

from datetime import timedelta

import pytest

from api.middleware.error_handler import NotFoundError, ValidationAPIError
from api.models import (
    EmailLog,
    IntroductionStatus,
    PaymentStatus,
    PlacementStatus,
)
from api.services.placements import (
    cancel_placement,
    create_placement,
    get_stats,
    record_payment,
    send_remaining_payment_reminders,
)
from api.services.transitions import InvalidTransitionError
from tests.conftest import NOW


@pytest.fixture
def placement(db_session, introduction):
    return create_placement(db_session, introduction.id, salary=10_000_000, start_date=NOW)


class TestCreatePlacement:
    def test_fee_from_job_level(self, placement, introduction):
        assert placement.experience_level == "SENIOR_LEVEL"
        assert float(placement.fee_percentage) == 18
        assert placement.placement_fee == 1_800_000
        assert placement.upfront_amount == 900_000
        assert placement.remaining_amount == 900_000
        assert placement.remaining_due_date == NOW + timedelta(days=30)
        assert placement.job_title == "Senior Controls Engineer"
        assert placement.status == PlacementStatus.PENDING.value
        assert introduction.status == IntroductionStatus.PLACED.value

    def test_explicit_level_overrides_job(self, db_session, introduction):
        placement = create_placement(
            db_session, introduction.id, salary=30_000_000, start_date=NOW, experience_level="EXECUTIVE"
        )

        assert placement.placement_fee == 6_000_000

    def test_one_placement_per_introduction(self, db_session, placement, introduction):
        with pytest.raises(ValidationAPIError, match="already has a placement"):
            create_placement(db_session, introduction.id, salary=10_000_000, start_date=NOW)

    def test_salary_must_be_positive(self, db_session, introduction):
        with pytest.raises(ValidationAPIError):
            create_placement(db_session, introduction.id, salary=0, start_date=NOW)

    def test_unknown_introduction(self, db_session):
        with pytest.raises(NotFoundError):
            create_placement(db_session, 404, salary=10_000_000, start_date=NOW)

    def test_declined_introduction_cannot_be_placed(self, db_session, make_introduction):
        introduction = make_introduction(status=IntroductionStatus.DECLINED)

        with pytest.raises(InvalidTransitionError):
            create_placement(db_session, introduction.id, salary=10_000_000, start_date=NOW)


class TestRecordPayment:
    def test_upfront_then_remaining(self, db_session, placement):
        record_payment(db_session, placement, "upfront", transaction_id="tx-1", now=NOW)

        assert placement.payment_status == PaymentStatus.UPFRONT_PAID.value
        assert placement.status == PlacementStatus.CONFIRMED.value
        assert placement.upfront_paid_at == NOW
        assert placement.upfront_transaction_id == "tx-1"

        record_payment(db_session, placement, "remaining", payment_method="check", now=NOW + timedelta(days=30))

        assert placement.payment_status == PaymentStatus.FULLY_PAID.value
        assert placement.status == PlacementStatus.COMPLETED.value
        assert placement.remaining_payment_method == "check"

    def test_remaining_requires_upfront(self, db_session, placement):
        with pytest.raises(ValidationAPIError, match="Upfront payment must be recorded first"):
            record_payment(db_session, placement, "remaining")

    def test_upfront_only_once(self, db_session, placement):
        record_payment(db_session, placement, "upfront")

        with pytest.raises(ValidationAPIError, match="already recorded"):
            record_payment(db_session, placement, "upfront")

    def test_full_payment(self, db_session, placement):
        record_payment(db_session, placement, "full", payment_method="wire", now=NOW)

        assert placement.payment_status == PaymentStatus.FULLY_PAID.value
        assert placement.status == PlacementStatus.COMPLETED.value
        assert placement.upfront_paid_at == NOW
        assert placement.remaining_paid_at == NOW

    def test_cancelled_placement(self, db_session, placement):
        cancel_placement(db_session, placement, reason="Offer rescinded")

        with pytest.raises(ValidationAPIError, match="cancelled"):
            record_payment(db_session, placement, "upfront")


class TestCancelPlacement:
    def test_reason_is_noted(self, db_session, placement):
        cancel_placement(db_session, placement, reason="Offer rescinded")

        assert placement.status == PlacementStatus.CANCELLED.value
        assert placement.notes == "Offer rescinded"

    def test_completed_placement(self, db_session, placement):
        record_payment(db_session, placement, "full")

        with pytest.raises(ValidationAPIError, match="already COMPLETED"):
            cancel_placement(db_session, placement)


@pytest.fixture
def ledger(db_session, make_introduction):
    """One pending, one upfront-paid and overdue, one cancelled placement."""
    pending = create_placement(db_session, make_introduction().id, salary=10_000_000, start_date=NOW)
    overdue = create_placement(
        db_session, make_introduction().id, salary=20_000_000, start_date=NOW - timedelta(days=60)
    )
    record_payment(db_session, overdue, "upfront", now=NOW - timedelta(days=55))
    cancelled = create_placement(db_session, make_introduction().id, salary=10_000_000, start_date=NOW)
    cancel_placement(db_session, cancelled)
    return pending, overdue, cancelled


class TestStats:
    def test_totals(self, db_session, ledger):
        stats = get_stats(db_session, now=NOW)

        assert stats["total_placements"] == 3
        assert stats["by_status"] == {"PENDING": 1, "CONFIRMED": 1, "COMPLETED": 0, "CANCELLED": 1}
        assert stats["total_fees"] == 5_400_000
        assert stats["average_fee"] == 2_700_000
        assert stats["upfront_collected"] == 1_800_000
        assert stats["remaining_collected"] == 0
        assert stats["collected"] == 1_800_000
        assert stats["outstanding"] == 900_000 + 900_000 + 1_800_000
        assert stats["overdue"] == {"count": 1, "amount": 1_800_000}

    def test_by_payment_status(self, db_session, ledger):
        by_payment = get_stats(db_session, now=NOW)["by_payment_status"]

        assert by_payment["UPFRONT_PAID"] == {
            "count": 1,
            "placement_fees": 3_600_000,
            "upfront_amount": 1_800_000,
            "remaining_amount": 1_800_000,
        }
        assert by_payment["PENDING"]["count"] == 2
        assert by_payment["PENDING"]["placement_fees"] == 3_600_000
        assert by_payment["FULLY_PAID"] == {
            "count": 0,
            "placement_fees": 0,
            "upfront_amount": 0,
            "remaining_amount": 0,
        }

    def test_empty(self, db_session):
        stats = get_stats(db_session, now=NOW)

        assert stats["total_placements"] == 0
        assert stats["total_fees"] == 0
        assert stats["average_fee"] == 0
        assert stats["overdue"] == {"count": 0, "amount": 0}
        assert set(stats["by_payment_status"]) == {s.value for s in PaymentStatus}


class TestRemainingPaymentReminders:
    @pytest.mark.asyncio
    async def test_overdue_placement_is_reminded(self, db_session, email_service, ledger):
        _, overdue, _ = ledger

        result = await send_remaining_payment_reminders(db_session, email_service, now=NOW)

        assert (result.due, result.sent, result.errors) == (1, 1, [])
        kwargs = email_service.send_payment_reminder.await_args.kwargs
        assert kwargs["to"] == "billing@acme.example"
        assert kwargs["amount"] == 1_800_000
        assert kwargs["days_overdue"] == 30
        assert overdue.remaining_reminder_sent_at == NOW
        log = db_session.query(EmailLog).filter(EmailLog.email_type == "remaining_payment_reminder").one()
        assert log.introduction_id == overdue.introduction_id

    @pytest.mark.asyncio
    async def test_reminded_once_per_interval(self, db_session, email_service, ledger):
        await send_remaining_payment_reminders(db_session, email_service, now=NOW)

        later_today = await send_remaining_payment_reminders(db_session, email_service, now=NOW + timedelta(hours=6))
        next_day = await send_remaining_payment_reminders(db_session, email_service, now=NOW + timedelta(days=1))

        assert later_today.due == 0
        assert next_day.sent == 1
        assert email_service.send_payment_reminder.await_count == 2

    @pytest.mark.asyncio
    async def test_not_due_or_unpaid_upfront_skipped(self, db_session, email_service, introduction):
        placement = create_placement(db_session, introduction.id, salary=10_000_000, start_date=NOW)
        record_payment(db_session, placement, "upfront", now=NOW)

        result = await send_remaining_payment_reminders(db_session, email_service, now=NOW)

        assert result.due == 0
        email_service.send_payment_reminder.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_send_failure_is_retried(self, db_session, email_service, ledger):
        _, overdue, _ = ledger
        email_service.fail_all()

        result = await send_remaining_payment_reminders(db_session, email_service, now=NOW)

        assert result.sent == 0
        assert result.errors == [{"placementId": overdue.id, "error": "SES unavailable"}]
        assert overdue.remaining_reminder_sent_at is None
        assert db_session.query(EmailLog).filter(EmailLog.status == "failed").count() == 1

        email_service.send_payment_reminder.side_effect = None
        retry = await send_remaining_payment_reminders(db_session, email_service, now=NOW + timedelta(hours=1))

        assert retry.sent == 1
