"""Tests for check-in response classification."""

import json
from datetime import timedelta

import pytest

from api.middleware.error_handler import ValidationAPIError
from api.models import (
    Activity,
    CheckIn,
    CheckInStatus,
    CircumventionFlag,
    DetectionMethod,
    FlagStatus,
    IntroductionStatus,
    ResponseType,
    RiskLevel,
)
from api.services.risk_classifier import (
    CheckInResponseService,
    classify_expired,
    classify_response,
    classify_status,
    expire_stale_check_ins,
    interpret_free_text,
)
from tests.conftest import NOW


class TestClassifyStatus:
    """Risk policy per reported status."""

    @pytest.mark.parametrize(
        "status,expected",
        [
            ("hired_there", RiskLevel.HIGH),
            ("offer", RiskLevel.MEDIUM),
            ("interviewing", RiskLevel.MEDIUM),
            ("hired_elsewhere", RiskLevel.LOW),
            ("rejected", RiskLevel.LOW),
            ("withdrew", RiskLevel.LOW),
            ("no_response", RiskLevel.LOW),
            ("still_looking", RiskLevel.LOW),
            ("unclear", RiskLevel.MEDIUM),
        ],
    )
    def test_levels(self, status, expected):
        level, reason = classify_status(status, "Acme Robotics")
        assert level == expected
        assert reason

    def test_reason_names_employer(self):
        _, reason = classify_status("hired_there", "Acme Robotics")
        assert "Acme Robotics" in reason

    def test_hire_with_placement_on_record_is_low(self):
        level, _ = classify_status("hired_there", "Acme Robotics", has_placement=True)
        assert level == RiskLevel.LOW


class TestInterpretFreeText:
    """Keyword reading of email replies."""

    def test_hired_at_introduced_employer(self):
        reply = interpret_free_text("Great news, I got hired at Acme Robotics last week!", "Acme Robotics")
        assert reply.status == "hired_there"
        assert reply.is_introduced_company is True

    def test_short_company_name_matches(self):
        reply = interpret_free_text("I started at Acme on Monday, I'm now working there", "Acme Robotics")
        assert reply.status == "hired_there"

    def test_hired_elsewhere(self):
        reply = interpret_free_text("I accepted an offer at another company.", "Acme Robotics")
        assert reply.status == "hired_elsewhere"

    def test_hire_without_company_is_unclear(self):
        assert interpret_free_text("I got hired!", "Acme Robotics").status == "unclear"

    def test_rejection(self):
        reply = interpret_free_text("They went with another candidate, sadly.", "Acme Robotics")
        assert reply.status == "rejected"

    def test_interviewing(self):
        reply = interpret_free_text("I have a second interview next Tuesday.", "Acme Robotics")
        assert reply.status == "interviewing"

    def test_unrecognized_text(self):
        reply = interpret_free_text("Thanks for checking in, talk soon.", "Acme Robotics")
        assert reply.status == "unclear"
        assert reply.confidence == "low"


class TestClassifyResponse:
    def test_button_payload(self, sent_check_in):
        result = classify_response(
            sent_check_in,
            {"status": "hired_there", "startDate": "2026-04-01", "roleTitle": "Controls Lead"},
            now=NOW,
        )

        assert result.response_type == ResponseType.BUTTON_CLICK.value
        assert result.risk_level == RiskLevel.HIGH
        assert result.flagged_for_review
        assert result.response_parsed["startDate"] == "2026-04-01"
        assert result.response_parsed["roleTitle"] == "Controls Lead"
        assert result.response_parsed["submittedAt"] == NOW.isoformat()

    def test_hire_details_kept_only_for_hires(self, sent_check_in):
        result = classify_response(sent_check_in, {"status": "offer", "startDate": "2026-04-01"}, now=NOW)

        assert "startDate" not in result.response_parsed
        assert result.risk_level == RiskLevel.MEDIUM

    def test_invalid_status(self, sent_check_in):
        with pytest.raises(ValidationAPIError) as exc_info:
            classify_response(sent_check_in, {"status": "promoted"})

        assert exc_info.value.message == "Invalid status"
        assert "hired_there" in exc_info.value.details["validStatuses"]

    def test_free_text(self, sent_check_in):
        result = classify_response(sent_check_in, "They never heard back from me and I never heard back from them")

        assert result.response_type == ResponseType.FREE_TEXT.value
        assert result.status == "no_response"
        assert result.risk_level == RiskLevel.LOW
        assert not result.flagged_for_review

    def test_expired_is_low(self, sent_check_in):
        result = classify_expired(sent_check_in)

        assert result.risk_level == RiskLevel.LOW
        assert result.response_type == ResponseType.NO_RESPONSE.value


class TestRecordResponse:
    """Token path: button click from the check-in email."""

    @pytest.mark.asyncio
    async def test_low_risk_response(self, db_session, email_service, sent_check_in):
        service = CheckInResponseService(db_session, email_service)

        result = await service.record_response(sent_check_in, {"status": "still_looking"}, now=NOW)

        assert result.risk_level == RiskLevel.LOW
        assert sent_check_in.status == CheckInStatus.RESPONDED.value
        assert sent_check_in.responded_at == NOW
        assert sent_check_in.flagged_for_review is False
        assert db_session.query(CircumventionFlag).count() == 0
        email_service.send_circumvention_alert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_hire_raises_flag_and_confirms_introduction(
        self, db_session, email_service, sent_check_in, introduction
    ):
        service = CheckInResponseService(db_session, email_service)

        await service.record_response(sent_check_in, {"status": "hired_there"}, now=NOW)

        flag = db_session.query(CircumventionFlag).one()
        assert flag.status == FlagStatus.OPEN.value
        assert flag.detection_method == DetectionMethod.CHECKIN_RESPONSE.value
        assert flag.employer_id == introduction.employer_id
        assert flag.estimated_salary == 10_000_000
        assert flag.estimated_fee_owed == 1_800_000
        assert json.loads(flag.evidence)["checkInId"] == sent_check_in.id
        assert introduction.status == IntroductionStatus.CONFIRMED.value
        assert sent_check_in.flagged_for_review is True
        email_service.send_circumvention_alert.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_hire_without_job_flags_unknown_fee(self, db_session, email_service, make_introduction):
        introduction = make_introduction(with_job=False)
        check_in = CheckIn(
            introduction_id=introduction.id,
            check_in_number=1,
            status=CheckInStatus.SENT.value,
            scheduled_for=NOW - timedelta(days=1),
            sent_at=NOW - timedelta(days=1),
            response_token="no-job-token",
            response_token_expiry=NOW + timedelta(days=13),
        )
        db_session.add(check_in)
        db_session.commit()
        service = CheckInResponseService(db_session, email_service)

        result = await service.record_response(check_in, {"status": "hired_there"}, now=NOW)

        assert result.risk_level == RiskLevel.HIGH
        assert check_in.flagged_for_review is True
        flag = db_session.query(CircumventionFlag).one()
        assert flag.detection_method == DetectionMethod.CHECKIN_RESPONSE.value
        assert flag.estimated_fee_owed is None
        assert email_service.send_circumvention_alert.await_args.kwargs["estimated_fee_owed"] is None

    @pytest.mark.asyncio
    async def test_hire_with_unpriced_job_flags_unknown_fee(self, db_session, email_service, sent_check_in, job):
        job.salary_min = None
        job.salary_max = None
        db_session.commit()
        service = CheckInResponseService(db_session, email_service)

        result = await service.record_response(sent_check_in, {"status": "hired_there"}, now=NOW)

        assert result.risk_level == RiskLevel.HIGH
        assert sent_check_in.flagged_for_review is True
        flag = db_session.query(CircumventionFlag).one()
        assert flag.detection_method == DetectionMethod.CHECKIN_RESPONSE.value
        assert flag.estimated_salary is None
        assert flag.estimated_fee_owed is None

    @pytest.mark.asyncio
    async def test_alert_failure_keeps_response(self, db_session, email_service, sent_check_in):
        email_service.fail_all()
        service = CheckInResponseService(db_session, email_service)

        result = await service.record_response(sent_check_in, {"status": "hired_there"}, now=NOW)

        assert result.risk_level == RiskLevel.HIGH
        assert sent_check_in.status == CheckInStatus.RESPONDED.value
        assert db_session.query(CircumventionFlag).count() == 1

    @pytest.mark.asyncio
    async def test_second_response_rejected(self, db_session, email_service, sent_check_in):
        service = CheckInResponseService(db_session, email_service)
        await service.record_response(sent_check_in, {"status": "rejected"}, now=NOW)

        with pytest.raises(ValidationAPIError, match="already submitted"):
            await service.record_response(sent_check_in, {"status": "hired_there"}, now=NOW)

        assert db_session.query(CircumventionFlag).count() == 0

    @pytest.mark.asyncio
    async def test_expired_token_rejected(self, db_session, email_service, sent_check_in):
        service = CheckInResponseService(db_session, email_service)

        with pytest.raises(ValidationAPIError, match="Token expired"):
            await service.record_response(
                sent_check_in, {"status": "offer"}, now=NOW + timedelta(days=14)
            )

        assert sent_check_in.status == CheckInStatus.SENT.value


class TestRecordEmailReply:
    """Admin-pasted free-text replies."""

    @pytest.mark.asyncio
    async def test_hire_reply_flags_with_email_method(self, db_session, email_service, sent_check_in):
        service = CheckInResponseService(db_session, email_service)

        result, flag = await service.record_email_reply(
            sent_check_in, "Quick update: I got hired at Acme Robotics, starting next month.", now=NOW
        )

        assert result.risk_level == RiskLevel.HIGH
        assert flag is not None
        assert flag.detection_method == DetectionMethod.EMAIL_REPLY.value
        assert sent_check_in.response_type == ResponseType.FREE_TEXT.value

    @pytest.mark.asyncio
    async def test_repeat_hire_reply_updates_open_flag(self, db_session, email_service, sent_check_in):
        service = CheckInResponseService(db_session, email_service)
        text = "I got hired at Acme Robotics, starting next month."

        _, first = await service.record_email_reply(sent_check_in, text, now=NOW)
        _, second = await service.record_email_reply(sent_check_in, text, now=NOW + timedelta(hours=1))

        assert first.id == second.id
        assert db_session.query(CircumventionFlag).count() == 1

    @pytest.mark.asyncio
    async def test_too_short(self, db_session, sent_check_in):
        service = CheckInResponseService(db_session)

        with pytest.raises(ValidationAPIError, match="too short"):
            await service.record_email_reply(sent_check_in, "ok")


class TestApplyReview:
    def test_notes_are_appended(self, db_session, sent_check_in, admin_user):
        service = CheckInResponseService(db_session)

        service.apply_review(sent_check_in, {"review_notes": "Called candidate"}, admin_user.id, now=NOW)
        service.apply_review(
            sent_check_in,
            {"review_notes": "Left voicemail", "mark_reviewed": True},
            admin_user.id,
            now=NOW + timedelta(hours=2),
        )

        lines = sent_check_in.review_notes.splitlines()
        assert len(lines) == 2
        assert lines[0].endswith("Called candidate")
        assert lines[1].endswith("Left voicemail")
        assert sent_check_in.reviewed_by == admin_user.id
        assert db_session.query(Activity).filter(Activity.action == "check_in_reviewed").count() == 2

    def test_marking_no_response_closes_check_in(self, db_session, sent_check_in):
        service = CheckInResponseService(db_session)

        service.apply_review(sent_check_in, {"response_type": "no_response"}, now=NOW)

        assert sent_check_in.status == CheckInStatus.NO_RESPONSE.value
        assert sent_check_in.responded_at == NOW
        assert sent_check_in.risk_level == RiskLevel.LOW.value

    def test_risk_override(self, db_session, sent_check_in):
        service = CheckInResponseService(db_session)

        service.apply_review(sent_check_in, {"risk_level": "HIGH", "flagged_for_review": True}, now=NOW)

        assert sent_check_in.risk_level == RiskLevel.HIGH.value
        assert sent_check_in.flagged_for_review is True


class TestExpiry:
    def test_sweep_closes_only_expired(self, db_session, sent_check_in):
        assert expire_stale_check_ins(db_session, NOW) == []

        expired = expire_stale_check_ins(db_session, NOW + timedelta(days=13))

        assert expired == [sent_check_in]
        assert sent_check_in.status == CheckInStatus.NO_RESPONSE.value
        assert sent_check_in.risk_level == RiskLevel.LOW.value
        assert sent_check_in.flagged_for_review is False
