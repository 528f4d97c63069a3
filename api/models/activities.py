"""Activity model for business audit trail."""

from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, Index
from sqlalchemy.orm import relationship

from .base import utcnow
from api.config.database import Base


class Activity(Base):
    """
    Business audit trail.

    Records significant workflow events (operational logs go to structlog).
    """

    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # check_in_sent, check_in_responded, flag_created, invoice_sent,
    # placement_created, payment_recorded, status_changed, ...
    action = Column(String(100), nullable=False)

    # Context
    introduction_id = Column(
        Integer,
        ForeignKey("introductions.id", ondelete="CASCADE"),
        nullable=True,
    )
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Details (JSON)
    # {"from_status": "INTRODUCED", "to_status": "CONFIRMED", "by": "system"}
    details = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        Index("idx_activities_introduction", "introduction_id"),
        Index("idx_activities_created", "created_at"),
    )

    introduction = relationship("Introduction")

    def __repr__(self) -> str:
        return f"<Activity(id={self.id}, action={self.action})>"
