"""Authentication middleware for JWT decoding."""

from typing import Optional

import structlog
from fastapi import Request
from jose import JWTError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from api.config.settings import settings
from api.services.token import decode_token

logger = structlog.get_logger()


def get_token_from_request(request: Request) -> Optional[str]:
    """Extract JWT token from request (cookie or Authorization header)."""
    token = request.cookies.get(settings.COOKIE_NAME)
    if token:
        return token

    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:]

    return None


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Decodes the session token, if any, into ``request.state.user``.

    Rejection happens in the ``get_current_user`` / ``require_role``
    dependencies so public routes need no allow-list here.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request.state.user = None
        request.state.auth_error = None

        token = get_token_from_request(request)
        if token:
            try:
                payload = decode_token(token)
            except JWTError as e:
                request.state.auth_error = str(e)
            else:
                request.state.user = payload
                request.state.user_id = payload.get("sub")
                request.state.user_role = payload.get("role")

        return await call_next(request)
