"""Role-based access control for API endpoints."""

from typing import Any, Callable

from fastapi import Request
import structlog

from api.middleware.error_handler import AuthenticationError, ForbiddenError
from api.models.enums import UserRole

logger = structlog.get_logger()


def get_current_user(request: Request) -> dict[str, Any]:
    """
    Get current user from request state.

    The auth middleware decodes the token; a missing or invalid token leaves
    no user on the request.

    Usage:
        @router.get("/me")
        def get_me(user: dict = Depends(get_current_user)):
            return user
    """
    user = getattr(request.state, "user", None)
    if not user:
        error = getattr(request.state, "auth_error", None)
        raise AuthenticationError(error or "Not authenticated")
    return user


def get_user_id(user: dict[str, Any]) -> int | None:
    """Numeric user id from token claims."""
    sub = user.get("sub")
    try:
        return int(sub) if sub is not None else None
    except (TypeError, ValueError):
        return None


def require_role(allowed_roles: list[str]) -> Callable:
    """
    Dependency that requires user to have one of the specified roles.

    Usage:
        @router.post("/admin-only")
        def admin_endpoint(user: dict = Depends(require_role(["ADMIN"]))):
            return {"message": "Admin access granted"}
    """
    allowed = {UserRole(role).value for role in allowed_roles}

    def check_role(request: Request) -> dict[str, Any]:
        user = get_current_user(request)
        role = user.get("role")

        if role in allowed:
            logger.debug("Role check passed", user=user.get("sub"), required=sorted(allowed), role=role)
            return user

        logger.warning(
            "Role check failed",
            user=user.get("sub"),
            required=sorted(allowed),
            role=role,
        )
        raise ForbiddenError()

    return check_role


def require_admin(request: Request) -> dict[str, Any]:
    """
    Dependency that requires admin role.

    Usage:
        @router.delete("/dangerous")
        def delete_all(user: dict = Depends(require_admin)):
            ...
    """
    return require_role([UserRole.ADMIN])(request)
