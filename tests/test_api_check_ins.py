"""Tests for the admin check-in endpoints."""

from datetime import timedelta

from api.models import CheckIn, CheckInStatus, CircumventionFlag, RiskLevel
from tests.conftest import NOW

BASE = "/api/v1/checkins"


def add_check_in(db_session, introduction, number, **fields):
    check_in = CheckIn(
        introduction_id=introduction.id,
        check_in_number=number,
        scheduled_for=NOW - timedelta(days=number),
        **fields,
    )
    db_session.add(check_in)
    db_session.commit()
    return check_in


class TestAuth:
    def test_requires_login(self, test_client):
        response = test_client.get(BASE)

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    def test_requires_admin(self, test_client, employer_headers):
        response = test_client.get(BASE, headers=employer_headers)

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"


class TestListCheckIns:
    def test_flagged_and_risky_first(self, test_client, admin_headers, db_session, make_introduction):
        low = add_check_in(db_session, make_introduction(), 1, status="RESPONDED", risk_level="LOW", responded_at=NOW)
        high = add_check_in(
            db_session, make_introduction(), 1,
            status="RESPONDED", risk_level="HIGH", flagged_for_review=True, responded_at=NOW,
        )
        medium = add_check_in(
            db_session, make_introduction(), 1,
            status="RESPONDED", risk_level="MEDIUM", flagged_for_review=True, responded_at=NOW,
        )

        response = test_client.get(BASE, headers=admin_headers)

        assert response.status_code == 200
        body = response.json()
        assert [item["id"] for item in body["data"]] == [high.id, medium.id, low.id]
        assert body["meta"] == {"page": 1, "perPage": 20, "total": 3, "totalPages": 1}
        assert body["data"][0]["candidateName"] == "Jordan Rivera"
        assert body["data"][0]["employerCompanyName"] == "Acme Robotics"

    def test_filters(self, test_client, admin_headers, db_session, introduction):
        add_check_in(db_session, introduction, 1, status="RESPONDED", risk_level="HIGH", responded_at=NOW)
        add_check_in(db_session, introduction, 2, status="SENT", sent_at=NOW)

        high = test_client.get(BASE, params={"riskLevel": "HIGH"}, headers=admin_headers).json()
        pending = test_client.get(BASE, params={"responded": "false"}, headers=admin_headers).json()

        assert [item["checkInNumber"] for item in high["data"]] == [1]
        assert [item["checkInNumber"] for item in pending["data"]] == [2]


class TestStats:
    def test_counters(self, test_client, admin_headers, db_session, introduction):
        add_check_in(db_session, introduction, 1, status="RESPONDED", sent_at=NOW - timedelta(days=40),
                     responded_at=NOW - timedelta(days=35), risk_level="LOW")
        add_check_in(db_session, introduction, 2, status="SENT", sent_at=NOW - timedelta(days=8))

        response = test_client.get(f"{BASE}/stats", headers=admin_headers)

        assert response.status_code == 200
        stats = response.json()
        assert stats["overview"] == {"sent": 2, "responded": 1, "pending": 1, "noReply": 0, "flagged": 0}
        assert stats["needsAttention"]["pendingOlderThan7Days"] == 1
        assert stats["risk"]["low"] == 1
        assert stats["responseRate"]["overall"] == 50
        assert stats["byCheckInNumber"][0]["label"]
        assert stats["byCheckInNumber"][0]["responseRate"] == 100


class TestRunScheduler:
    def test_sends_due_check_in(self, test_client, admin_headers, email_service, introduction):
        response = test_client.post(f"{BASE}/run-scheduler", headers=admin_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["created"] == 1
        assert body["sent"] == 1
        assert "errors" not in body
        email_service.send_check_in_email.assert_awaited_once()

    def test_reports_email_errors(self, test_client, admin_headers, email_service, introduction):
        email_service.fail_all()

        body = test_client.post(f"{BASE}/run-scheduler", headers=admin_headers).json()

        assert body["sent"] == 0
        assert body["errors"][0]["introductionId"] == introduction.id


class TestCheckInDetail:
    def test_detail(self, test_client, admin_headers, sent_check_in):
        response = test_client.get(f"{BASE}/{sent_check_in.id}", headers=admin_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "SENT"
        assert body["tokenExpired"] is False
        assert body["employer"]["companyName"] == "Acme Robotics"
        assert body["job"]["title"] == "Senior Controls Engineer"

    def test_not_found(self, test_client, admin_headers):
        response = test_client.get(f"{BASE}/999", headers=admin_headers)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_review(self, test_client, admin_headers, db_session, sent_check_in, admin_user):
        response = test_client.patch(
            f"{BASE}/{sent_check_in.id}",
            json={"reviewNotes": "Candidate confirmed by phone", "markReviewed": True, "riskLevel": "MEDIUM"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        db_session.expire_all()
        check_in = db_session.get(CheckIn, sent_check_in.id)
        assert check_in.review_notes.endswith("Candidate confirmed by phone")
        assert check_in.reviewed_by == admin_user.id
        assert check_in.risk_level == RiskLevel.MEDIUM.value

    def test_review_rejects_unknown_risk(self, test_client, admin_headers, sent_check_in):
        response = test_client.patch(
            f"{BASE}/{sent_check_in.id}", json={"riskLevel": "SEVERE"}, headers=admin_headers
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestResend:
    def test_old_link_stops_working(self, test_client, admin_headers, email_service, sent_check_in):
        response = test_client.post(f"{BASE}/{sent_check_in.id}/resend", headers=admin_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Check-in email resent successfully"
        assert body["checkIn"]["sentTo"] == "jordan@example.com"
        email_service.send_check_in_email.assert_awaited_once()

        old_link = test_client.get("/api/v1/check-in/respond/live-token")
        assert old_link.status_code == 404

    def test_responded_check_in(self, test_client, admin_headers, db_session, sent_check_in):
        sent_check_in.status = CheckInStatus.RESPONDED.value
        sent_check_in.responded_at = NOW
        db_session.commit()

        response = test_client.post(f"{BASE}/{sent_check_in.id}/resend", headers=admin_headers)

        assert response.status_code == 400

    def test_email_failure(self, test_client, admin_headers, email_service, sent_check_in):
        email_service.fail_all()

        response = test_client.post(f"{BASE}/{sent_check_in.id}/resend", headers=admin_headers)

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "DOWNSTREAM_ERROR"


class TestParseReply:
    def test_hire_reply_creates_flag(self, test_client, admin_headers, db_session, sent_check_in):
        response = test_client.post(
            f"{BASE}/{sent_check_in.id}/parse-reply",
            json={"emailContent": "Hi! I got hired at Acme Robotics and start on the 15th."},
            headers=admin_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["riskLevel"] == "HIGH"
        assert body["flagCreated"] is True
        assert body["parsed"]["status"] == "hired_there"
        db_session.expire_all()
        flag = db_session.get(CircumventionFlag, body["flagId"])
        assert flag.detection_method == "EMAIL_REPLY"

    def test_unclear_reply(self, test_client, admin_headers, sent_check_in):
        body = test_client.post(
            f"{BASE}/{sent_check_in.id}/parse-reply",
            json={"emailContent": "Thanks for reaching out, I appreciate it."},
            headers=admin_headers,
        ).json()

        assert body["riskLevel"] == "MEDIUM"
        assert body["flagCreated"] is False
        assert body.get("flagId") is None
