#!/usr/bin/env python3
"""Seed a local database with demo users, a job and an active introduction.

Usage:
    python scripts/seed_test_data.py [--introduced-days-ago N]

Prints an admin token for calling the API, e.g.:
    curl -X POST -H "Authorization: Bearer <token>" localhost:8000/api/v1/checkins/run-scheduler
"""

import argparse
import sys
from datetime import timedelta
from pathlib import Path

# Add parent directory to path so we can import from api
sys.path.insert(0, str(Path(__file__).parent.parent))

from api.config.database import Database
from api.config.settings import settings
from api.models import (
    Candidate,
    Employer,
    ExperienceLevel,
    Introduction,
    IntroductionStatus,
    JobPosting,
    User,
    UserRole,
    utcnow,
)
from api.services.introductions import create_introduction
from api.services.token import create_user_token


def get_or_create_user(db, email: str, name: str, role: UserRole) -> User:
    """Create or get a user by email."""
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        print(f"  User {email} already exists (id={existing.id})")
        return existing

    user = User(email=email, name=name, role=role.value)
    db.add(user)
    db.commit()
    print(f"  Created user: {email} (id={user.id}, role={role.value})")
    return user


def create_employer(db, user: User) -> Employer:
    if user.employer:
        return user.employer

    employer = Employer(
        user_id=user.id,
        company_name="Acme Robotics",
        contact_name="Pat Lee",
        contact_email="billing@acme.example",
    )
    db.add(employer)
    db.commit()
    print(f"  Created employer: {employer.company_name} (id={employer.id})")
    return employer


def create_candidate(db, user: User) -> Candidate:
    if user.candidate:
        return user.candidate

    candidate = Candidate(user_id=user.id)
    db.add(candidate)
    db.commit()
    print(f"  Created candidate (id={candidate.id})")
    return candidate


def create_job(db, employer: Employer) -> JobPosting:
    existing = db.query(JobPosting).filter(JobPosting.employer_id == employer.id).first()
    if existing:
        return existing

    job = JobPosting(
        employer_id=employer.id,
        title="Senior Controls Engineer",
        salary_min=14_000_000,
        salary_max=16_000_000,
        experience_level=ExperienceLevel.SENIOR_LEVEL.value,
    )
    db.add(job)
    db.commit()
    print(f"  Created job: {job.title} (id={job.id})")
    return job


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--introduced-days-ago",
        type=int,
        default=settings.CHECK_IN_SCHEDULE_DAYS[0] + 1,
        help="Backdate the introduction so the first check-in is already due",
    )
    args = parser.parse_args()

    database = Database(settings.DATABASE_URL)
    database.create_all()
    db = database.session()

    try:
        print("Seeding users...")
        admin = get_or_create_user(db, "admin@example.com", "Admin User", UserRole.ADMIN)
        employer_user = get_or_create_user(db, "hiring@acme.example", "Pat Lee", UserRole.EMPLOYER)
        candidate_user = get_or_create_user(db, "jordan@example.com", "Jordan Rivera", UserRole.CANDIDATE)

        print("Seeding employer, candidate and job...")
        employer = create_employer(db, employer_user)
        candidate = create_candidate(db, candidate_user)
        job = create_job(db, employer)

        print("Seeding introduction...")
        introduction = (
            db.query(Introduction)
            .filter(Introduction.candidate_id == candidate.id, Introduction.employer_id == employer.id)
            .first()
        )
        if introduction:
            print(f"  Introduction already exists (id={introduction.id}, status={introduction.status})")
        else:
            introduction = create_introduction(
                db,
                candidate_id=candidate.id,
                employer_id=employer.id,
                job_id=job.id,
                status=IntroductionStatus.INTRODUCED,
                introduced_at=utcnow() - timedelta(days=args.introduced_days_ago),
                user_id=admin.id,
            )
            print(f"  Created introduction (id={introduction.id}, introduced_at={introduction.introduced_at})")

        print("\nAdmin token:")
        print(create_user_token(admin.id, admin.email, admin.role))
    finally:
        db.close()
        database.dispose()


if __name__ == "__main__":
    main()
