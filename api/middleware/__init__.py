"""Middleware for the placement ledger API."""

from .auth import AuthMiddleware
from .error_handler import setup_exception_handlers
from .logging import LoggingMiddleware

__all__ = ["AuthMiddleware", "setup_exception_handlers", "LoggingMiddleware"]
