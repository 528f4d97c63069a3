"""Tests for the public check-in response page and the cron trigger."""

from datetime import timedelta

from api.config.settings import settings
from api.models import CheckIn, CheckInStatus, CircumventionFlag, IntroductionStatus, Introduction
from api.services.placements import create_placement, record_payment
from tests.conftest import NOW

RESPOND = "/api/v1/check-in/respond"
CRON = "/api/v1/cron/check-ins"


class TestPublicCheckIn:
    def test_pending_check_in(self, test_client, sent_check_in):
        response = test_client.get(f"{RESPOND}/live-token")

        assert response.status_code == 200
        check_in = response.json()["checkIn"]
        assert check_in["candidateName"] == "Jordan"
        assert check_in["employerCompanyName"] == "Acme Robotics"
        assert check_in["jobTitle"] == "Senior Controls Engineer"
        assert check_in["status"] == "pending"
        assert check_in["daysSinceIntro"] == 31
        assert check_in["previousResponse"] is None

    def test_unknown_token(self, test_client):
        response = test_client.get(f"{RESPOND}/no-such-token")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_expired_token_reported(self, test_client, db_session, sent_check_in):
        sent_check_in.response_token_expiry = NOW - timedelta(minutes=1)
        db_session.commit()

        check_in = test_client.get(f"{RESPOND}/live-token").json()["checkIn"]

        assert check_in["status"] == "expired"


class TestSubmitResponse:
    def test_low_risk_answer(self, test_client, db_session, sent_check_in, email_service):
        response = test_client.post(f"{RESPOND}/live-token", json={"status": "still_looking"})

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Thank you for your response!",
            "status": "still_looking",
            "riskLevel": "LOW",
        }
        db_session.expire_all()
        check_in = db_session.get(CheckIn, sent_check_in.id)
        assert check_in.status == CheckInStatus.RESPONDED.value
        assert check_in.response_type == "button_click"
        email_service.send_circumvention_alert.assert_not_awaited()

    def test_hire_answer_flags_employer(self, test_client, db_session, sent_check_in, introduction, email_service):
        response = test_client.post(
            f"{RESPOND}/live-token",
            json={"status": "hired_there", "startDate": "2026-11-01", "roleTitle": "Controls Lead"},
        )

        assert response.json()["riskLevel"] == "HIGH"
        db_session.expire_all()
        flag = db_session.query(CircumventionFlag).one()
        assert flag.estimated_fee_owed == 1_800_000
        assert db_session.get(Introduction, introduction.id).status == IntroductionStatus.CONFIRMED.value
        parsed = db_session.get(CheckIn, sent_check_in.id).parsed
        assert parsed["startDate"] == "2026-11-01"
        assert parsed["roleTitle"] == "Controls Lead"
        email_service.send_circumvention_alert.assert_awaited_once()

    def test_single_use(self, test_client, sent_check_in):
        test_client.post(f"{RESPOND}/live-token", json={"status": "rejected"})

        response = test_client.post(f"{RESPOND}/live-token", json={"status": "hired_there"})

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "You have already submitted a response for this check-in"

        page = test_client.get(f"{RESPOND}/live-token").json()["checkIn"]
        assert page["status"] == "responded"
        assert page["previousResponse"] == "rejected"

    def test_expired_token(self, test_client, db_session, sent_check_in):
        sent_check_in.response_token_expiry = NOW - timedelta(minutes=1)
        db_session.commit()

        response = test_client.post(f"{RESPOND}/live-token", json={"status": "offer"})

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Token expired"

    def test_invalid_status(self, test_client, sent_check_in):
        response = test_client.post(f"{RESPOND}/live-token", json={"status": "promoted"})

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Invalid status"


class TestCronTrigger:
    def test_missing_secret(self, test_client, introduction):
        assert test_client.post(CRON).status_code == 401

    def test_wrong_secret(self, test_client, introduction):
        response = test_client.post(CRON, headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    def test_non_ascii_secret_is_unauthorized(self, test_client, introduction):
        response = test_client.post(CRON, headers={"Authorization": "Bearer café".encode("utf-8")})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    def test_unconfigured_secret_rejects(self, test_client, monkeypatch):
        monkeypatch.setattr(settings, "CRON_SECRET", "")

        response = test_client.post(CRON, headers={"Authorization": "Bearer "})

        assert response.status_code == 401

    def test_runs_scheduler(self, test_client, email_service, introduction):
        response = test_client.post(CRON, headers={"Authorization": "Bearer test-cron-secret"})

        assert response.status_code == 200
        assert response.json() == {"created": 1, "sent": 1, "expired": 0, "introductionsProcessed": 1}
        email_service.send_check_in_email.assert_awaited_once()

    def test_repeat_runs_send_once(self, test_client, email_service, introduction):
        headers = {"Authorization": "Bearer test-cron-secret"}
        test_client.post(CRON, headers=headers)
        second = test_client.post(CRON, headers=headers)

        assert second.json()["sent"] == 0

        assert email_service.send_check_in_email.await_count == 1

    def test_introduction_expiry_job(self, test_client, email_service, make_introduction):
        make_introduction(days_ago=360)

        response = test_client.post(
            "/api/v1/cron/introduction-expiry", headers={"Authorization": "Bearer test-cron-secret"}
        )

        assert response.status_code == 200
        assert response.json() == {"expiringSoon": 1, "expiredMarked": 0, "held": 0, "alertsSent": 1}
        email_service.send_expiry_alert.assert_awaited_once()

    def test_remaining_payment_job(self, test_client, db_session, email_service, introduction):
        placement = create_placement(
            db_session, introduction.id, salary=10_000_000, start_date=NOW - timedelta(days=45)
        )
        record_payment(db_session, placement, "upfront", now=NOW - timedelta(days=40))

        response = test_client.post(
            "/api/v1/cron/remaining-payment-due", headers={"Authorization": "Bearer test-cron-secret"}
        )

        assert response.status_code == 200
        assert response.json() == {"due": 1, "sent": 1}
        assert email_service.send_payment_reminder.await_args.kwargs["days_overdue"] >= 15

    def test_new_jobs_require_secret(self, test_client):
        for path in ("/api/v1/cron/introduction-expiry", "/api/v1/cron/remaining-payment-due"):
            assert test_client.post(path, headers={"Authorization": "Bearer nope"}).status_code == 401
