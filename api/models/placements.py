"""Placement model: a hire with a two-installment fee."""

from sqlalchemy import Column, Integer, String, DateTime, Text, Numeric, ForeignKey
from sqlalchemy.orm import relationship

from .base import BaseModel


class Placement(BaseModel):
    """
    Finalized hire.

    Amounts are integer cents and always satisfy
    upfront_amount + remaining_amount == placement_fee.

    Status: PENDING, CONFIRMED, COMPLETED, CANCELLED
    Payment status: PENDING, UPFRONT_PAID, FULLY_PAID, FAILED
    """

    __tablename__ = "placements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    introduction_id = Column(Integer, ForeignKey("introductions.id"), unique=True, nullable=False)

    job_title = Column(String(255), nullable=True)
    salary = Column(Integer, nullable=False)
    experience_level = Column(String(20), nullable=True)
    fee_percentage = Column(Numeric(5, 2), nullable=False)

    placement_fee = Column(Integer, nullable=False)
    upfront_amount = Column(Integer, nullable=False)
    remaining_amount = Column(Integer, nullable=False)

    start_date = Column(DateTime, nullable=False)
    remaining_due_date = Column(DateTime, nullable=False)

    status = Column(String(20), nullable=False, default="PENDING")
    payment_status = Column(String(20), nullable=False, default="PENDING")

    # Payment milestones
    upfront_paid_at = Column(DateTime, nullable=True)
    upfront_payment_method = Column(String(30), nullable=True)
    upfront_transaction_id = Column(String(255), nullable=True)
    remaining_paid_at = Column(DateTime, nullable=True)
    remaining_payment_method = Column(String(30), nullable=True)
    remaining_transaction_id = Column(String(255), nullable=True)
    remaining_reminder_sent_at = Column(DateTime, nullable=True)

    notes = Column(Text, nullable=True)

    introduction = relationship("Introduction", back_populates="placement")

    def __repr__(self) -> str:
        return f"<Placement(id={self.id}, status={self.status}, payment={self.payment_status})>"
