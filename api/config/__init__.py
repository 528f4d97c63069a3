"""Configuration module for the placement ledger API."""

from .settings import settings
from .database import Base, Database, get_db

__all__ = ["settings", "Base", "Database", "get_db"]
