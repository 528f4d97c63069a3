"""Pytest configuration and shared fixtures."""

import os

# Settings are read at import time; configure before importing the app
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ANTHROPIC_API_KEY", "")
os.environ.setdefault("ADMIN_EMAIL", "alerts@example.com")
os.environ.setdefault("FRONTEND_URL", "https://app.example.com")

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from api.config.database import Base, Database
from api.config.settings import settings
from api.integrations.ses import SESError
from api.main import create_app
from api.models import (
    Candidate,
    CheckIn,
    CheckInStatus,
    Employer,
    ExperienceLevel,
    Introduction,
    IntroductionStatus,
    JobPosting,
    User,
    UserRole,
    utcnow,
)
from api.services.notifications import get_email_service, get_reply_parser
from api.services.token import create_user_token

# Fixtures are anchored to wall-clock time because the API stamps utcnow()
NOW = utcnow().replace(microsecond=0)


class FakeEmailService:
    """Stands in for SESService; every send is an AsyncMock returning a message id."""

    def __init__(self):
        self.send_check_in_email = AsyncMock(return_value="msg-check-in")
        self.send_circumvention_alert = AsyncMock(return_value="msg-alert")
        self.send_invoice = AsyncMock(return_value="msg-invoice")
        self.send_expiry_alert = AsyncMock(return_value="msg-expiry")
        self.send_payment_reminder = AsyncMock(return_value="msg-reminder")

    def fail_all(self, message: str = "SES unavailable") -> None:
        for send in (
            self.send_check_in_email,
            self.send_circumvention_alert,
            self.send_invoice,
            self.send_expiry_alert,
            self.send_payment_reminder,
        ):
            send.side_effect = SESError(message)


@pytest.fixture
def database():
    """Fresh in-memory database per test."""
    db = Database("sqlite://")
    db.create_all()
    yield db
    Base.metadata.drop_all(bind=db.engine)
    db.dispose()


@pytest.fixture
def db_session(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def email_service() -> FakeEmailService:
    return FakeEmailService()


@pytest.fixture
def app(database, email_service):
    application = create_app(database)
    application.dependency_overrides[get_email_service] = lambda: email_service
    application.dependency_overrides[get_reply_parser] = lambda: None
    yield application
    application.dependency_overrides = {}


@pytest.fixture
def test_client(app) -> TestClient:
    """Create FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def admin_user(db_session) -> User:
    user = User(email="admin@example.com", name="Admin User", role=UserRole.ADMIN.value)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def admin_headers(admin_user) -> dict:
    token = create_user_token(admin_user.id, admin_user.email, admin_user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def employer(db_session) -> Employer:
    user = User(email="hiring@acme.example", name="Pat Lee", role=UserRole.EMPLOYER.value)
    db_session.add(user)
    db_session.flush()
    employer = Employer(
        user_id=user.id,
        company_name="Acme Robotics",
        contact_name="Pat Lee",
        contact_email="billing@acme.example",
    )
    db_session.add(employer)
    db_session.commit()
    return employer


@pytest.fixture
def employer_headers(employer) -> dict:
    token = create_user_token(employer.user_id, "hiring@acme.example", UserRole.EMPLOYER.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def candidate(db_session) -> Candidate:
    user = User(email="jordan@example.com", name="Jordan Rivera", role=UserRole.CANDIDATE.value)
    db_session.add(user)
    db_session.flush()
    candidate = Candidate(user_id=user.id)
    db_session.add(candidate)
    db_session.commit()
    return candidate


@pytest.fixture
def job(db_session, employer) -> JobPosting:
    job = JobPosting(
        employer_id=employer.id,
        title="Senior Controls Engineer",
        salary_min=9_000_000,
        salary_max=11_000_000,
        experience_level=ExperienceLevel.SENIOR_LEVEL.value,
    )
    db_session.add(job)
    db_session.commit()
    return job


@pytest.fixture
def make_introduction(db_session, candidate, employer, job):
    """Factory for introductions; defaults to an active one introduced ``days_ago`` days before NOW."""

    def _make(
        status: IntroductionStatus = IntroductionStatus.INTRODUCED,
        days_ago: int = 31,
        with_job: bool = True,
    ) -> Introduction:
        introduced_at = NOW - timedelta(days=days_ago) if status != IntroductionStatus.AWAITING_RESPONSE else None
        introduction = Introduction(
            candidate_id=candidate.id,
            employer_id=employer.id,
            job_id=job.id if with_job else None,
            status=status.value,
            introduced_at=introduced_at,
            protection_ends_at=(
                introduced_at + timedelta(days=settings.INTRODUCTION_PROTECTION_DAYS) if introduced_at else None
            ),
        )
        db_session.add(introduction)
        db_session.commit()
        return introduction

    return _make


@pytest.fixture
def introduction(make_introduction) -> Introduction:
    return make_introduction()


@pytest.fixture
def sent_check_in(db_session, introduction) -> CheckIn:
    """Check-in #1, sent a day before NOW with a live token."""
    check_in = CheckIn(
        introduction_id=introduction.id,
        check_in_number=1,
        status=CheckInStatus.SENT.value,
        scheduled_for=NOW - timedelta(days=1),
        sent_at=NOW - timedelta(days=1),
        response_token="live-token",
        response_token_expiry=NOW + timedelta(days=13),
    )
    db_session.add(check_in)
    db_session.commit()
    return check_in
