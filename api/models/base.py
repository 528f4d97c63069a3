"""Base model with common fields and utilities."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, DateTime
from sqlalchemy.orm import declared_attr

from api.config.database import Base


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (all stored timestamps are naive UTC)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimestampMixin:
    """Mixin that adds created_at and updated_at columns."""

    @declared_attr
    def created_at(cls):
        return Column(
            DateTime,
            default=utcnow,
            nullable=False,
        )

    @declared_attr
    def updated_at(cls):
        return Column(
            DateTime,
            onupdate=utcnow,
            nullable=True,
        )


class BaseModel(Base, TimestampMixin):
    """
    Abstract base class for all models.

    Provides:
    - created_at: Timestamp when record was created
    - updated_at: Timestamp when record was last updated
    - to_dict(): Convert model to dictionary
    """

    __abstract__ = True

    def to_dict(self) -> dict[str, Any]:
        """Convert model instance to dictionary."""
        return {
            column.name: getattr(self, column.name)
            for column in self.__table__.columns
        }

    def __repr__(self) -> str:
        """String representation of model."""
        pk = getattr(self, "id", None)
        return f"<{self.__class__.__name__}(id={pk})>"
