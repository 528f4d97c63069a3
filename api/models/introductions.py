"""Introduction model: a candidate introduced to an employer for a job."""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from .base import BaseModel


class Introduction(BaseModel):
    """
    Candidate-to-employer match that may lead to a hire.

    Status Values:
    - AWAITING_RESPONSE: sent to employer, not yet accepted
    - INTRODUCED: active; receives scheduled check-ins
    - CONFIRMED: candidate reported being hired, pending placement
    - PLACED: placement recorded (terminal)
    - DECLINED: employer or candidate passed (terminal)
    - EXPIRED: protection period ended, or closed by an admin (terminal)
    """

    __tablename__ = "introductions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id"), nullable=False)
    employer_id = Column(Integer, ForeignKey("employers.id"), nullable=False)
    job_id = Column(Integer, ForeignKey("job_postings.id"), nullable=True)

    status = Column(String(30), nullable=False, default="AWAITING_RESPONSE")
    introduced_at = Column(DateTime, nullable=True)
    protection_ends_at = Column(DateTime, nullable=True)  # introduced_at + protection period
    expiry_alert_sent_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_introductions_status", "status"),
        Index("idx_introductions_protection", "status", "protection_ends_at"),
    )

    candidate = relationship("Candidate", back_populates="introductions")
    employer = relationship("Employer", back_populates="introductions")
    job = relationship("JobPosting")
    check_ins = relationship(
        "CheckIn",
        back_populates="introduction",
        cascade="all, delete-orphan",
        order_by="CheckIn.check_in_number",
    )
    placement = relationship("Placement", back_populates="introduction", uselist=False)
    circumvention_flags = relationship("CircumventionFlag", back_populates="introduction")

    def __repr__(self) -> str:
        return f"<Introduction(id={self.id}, status={self.status})>"
