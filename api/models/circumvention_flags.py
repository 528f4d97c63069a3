"""CircumventionFlag model for suspected fee avoidance."""

from sqlalchemy import Column, Integer, String, DateTime, Text, Numeric, ForeignKey, Index
from sqlalchemy.orm import relationship

from .base import BaseModel, utcnow


class CircumventionFlag(BaseModel):
    """
    Suspected case of an employer hiring an introduced candidate without paying.

    Status flow:
    OPEN -> INVESTIGATING -> INVOICE_SENT -> PAID | DISPUTED | WROTE_OFF
    FALSE_POSITIVE is reachable from OPEN and INVESTIGATING.

    Money columns are integer cents. fee_percentage is in percent points (18.00).
    """

    __tablename__ = "circumvention_flags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    introduction_id = Column(Integer, ForeignKey("introductions.id"), nullable=True)
    employer_id = Column(Integer, ForeignKey("employers.id"), nullable=False)

    # LINKEDIN_MATCH, CHECKIN_RESPONSE, EMAIL_REPLY, MANUAL
    detection_method = Column(String(30), nullable=False)
    evidence = Column(Text, nullable=True)  # JSON

    estimated_salary = Column(Integer, nullable=True)
    fee_percentage = Column(Numeric(5, 2), nullable=True)
    estimated_fee_owed = Column(Integer, nullable=True)

    status = Column(String(20), nullable=False, default="OPEN")

    # Invoicing
    invoice_number = Column(String(50), nullable=True)
    invoice_amount = Column(Integer, nullable=True)
    invoice_sent_at = Column(DateTime, nullable=True)
    invoice_due_at = Column(DateTime, nullable=True)
    invoice_paid_at = Column(DateTime, nullable=True)

    # Resolution
    resolved_at = Column(DateTime, nullable=True)
    resolution = Column(String(255), nullable=True)
    resolution_notes = Column(Text, nullable=True)

    detected_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_flags_status", "status"),
        Index("idx_flags_detected", "detected_at"),
    )

    introduction = relationship("Introduction", back_populates="circumvention_flags")
    employer = relationship("Employer")

    def __repr__(self) -> str:
        return f"<CircumventionFlag(id={self.id}, status={self.status}, method={self.detection_method})>"
