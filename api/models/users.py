"""User, employer and candidate models (identity layer)."""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey
from sqlalchemy.orm import relationship

from .base import BaseModel


class User(BaseModel):
    """
    Login identity.

    Roles:
    - CANDIDATE: job seeker, receives check-ins
    - EMPLOYER: hiring company account
    - ADMIN: marketplace operator
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, default="CANDIDATE")
    is_active = Column(Boolean, default=True)

    employer = relationship("Employer", back_populates="user", uselist=False)
    candidate = relationship("Candidate", back_populates="user", uselist=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"


class Employer(BaseModel):
    """Hiring company."""

    __tablename__ = "employers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    company_name = Column(String(255), nullable=False)
    contact_name = Column(String(255), nullable=True)
    # Billing contact; falls back to the account email
    contact_email = Column(String(255), nullable=True)

    user = relationship("User", back_populates="employer")
    jobs = relationship("JobPosting", back_populates="employer")
    introductions = relationship("Introduction", back_populates="employer")

    @property
    def billing_email(self) -> str | None:
        if self.contact_email:
            return self.contact_email
        return self.user.email if self.user else None

    def __repr__(self) -> str:
        return f"<Employer(id={self.id}, company={self.company_name})>"


class Candidate(BaseModel):
    """Job seeker profile."""

    __tablename__ = "candidates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    user = relationship("User", back_populates="candidate")
    introductions = relationship("Introduction", back_populates="candidate")

    @property
    def email(self) -> str | None:
        return self.user.email if self.user else None

    @property
    def name(self) -> str | None:
        return self.user.name if self.user else None

    def __repr__(self) -> str:
        return f"<Candidate(id={self.id}, user_id={self.user_id})>"
