"""Business logic services for the placement ledger API."""

from .token import create_token, create_user_token, decode_token
from .rbac import require_role, require_admin, get_current_user

__all__ = [
    "create_token",
    "create_user_token",
    "decode_token",
    "require_role",
    "require_admin",
    "get_current_user",
]
