"""EmailLog model for email send tracking."""

from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey

from .base import utcnow
from api.config.database import Base


class EmailLog(Base):
    """
    Log of outbound emails for tracking and debugging.
    """

    __tablename__ = "email_log"

    id = Column(Integer, primary_key=True, autoincrement=True)

    to_email = Column(String(255), nullable=False)

    # check_in, circumvention_alert, invoice
    email_type = Column(String(50), nullable=False)
    subject = Column(String(500), nullable=True)

    # Context
    introduction_id = Column(Integer, ForeignKey("introductions.id", ondelete="SET NULL"), nullable=True)
    check_in_id = Column(Integer, ForeignKey("check_ins.id", ondelete="SET NULL"), nullable=True)

    # Status: sent, failed
    status = Column(String(50), default="sent")
    error = Column(Text, nullable=True)
    message_id = Column(String(255), nullable=True)

    sent_at = Column(DateTime, default=utcnow)

    def __repr__(self) -> str:
        return f"<EmailLog(id={self.id}, to={self.to_email}, status={self.status})>"
