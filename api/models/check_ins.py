"""CheckIn model for scheduled candidate status probes."""

import json
from typing import Any, Optional

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, ForeignKey, Index, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel


class CheckIn(BaseModel):
    """
    Status probe sent to a candidate N days after an introduction.

    Status Values:
    - SCHEDULED: row created, email not yet delivered
    - SENT: email delivered, token live
    - RESPONDED: candidate answered (token spent)
    - NO_RESPONSE: token expired or admin closed it
    """

    __tablename__ = "check_ins"

    id = Column(Integer, primary_key=True, autoincrement=True)
    introduction_id = Column(
        Integer,
        ForeignKey("introductions.id", ondelete="CASCADE"),
        nullable=False,
    )
    check_in_number = Column(Integer, nullable=False)  # 1-based
    status = Column(String(20), nullable=False, default="SCHEDULED")

    scheduled_for = Column(DateTime, nullable=False)
    sent_at = Column(DateTime, nullable=True)
    # Set by the run that is emailing a SCHEDULED row; stale claims lapse
    dispatch_claimed_at = Column(DateTime, nullable=True)

    # Single-use link credential
    response_token = Column(String(64), unique=True, nullable=True)
    response_token_expiry = Column(DateTime, nullable=True)

    # Response
    responded_at = Column(DateTime, nullable=True)
    response_type = Column(String(20), nullable=True)  # button_click, free_text, no_response
    response_raw = Column(Text, nullable=True)
    response_parsed = Column(Text, nullable=True)  # JSON

    # Classification
    risk_level = Column(String(10), nullable=True)  # LOW, MEDIUM, HIGH
    risk_reason = Column(Text, nullable=True)
    flagged_for_review = Column(Boolean, nullable=False, default=False)

    # Admin review
    reviewed_at = Column(DateTime, nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    review_notes = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("introduction_id", "check_in_number", name="uq_check_ins_intro_number"),
        Index("idx_check_ins_flagged", "flagged_for_review"),
    )

    introduction = relationship("Introduction", back_populates="check_ins")
    reviewer = relationship("User")

    @property
    def parsed(self) -> Optional[dict[str, Any]]:
        return json.loads(self.response_parsed) if self.response_parsed else None

    def __repr__(self) -> str:
        return f"<CheckIn(id={self.id}, number={self.check_in_number}, status={self.status})>"
