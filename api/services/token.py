"""HS256 JWT token creation and validation."""

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import jwt, JWTError

from api.config.settings import settings


def create_token(data: dict[str, Any], expires_delta: timedelta = None) -> str:
    """
    Create an HS256-signed JWT token.

    Args:
        data: Claims to include (sub, email, role)
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()
    if "sub" in to_encode:
        to_encode["sub"] = str(to_encode["sub"])

    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))

    to_encode.update({
        "exp": expire,
        "iat": now,
    })

    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_user_token(user_id: int, email: str, role: str, expires_delta: timedelta = None) -> str:
    """Token for a user row."""
    return create_token({"sub": user_id, "email": email, "role": role}, expires_delta)


def decode_token(token: str) -> dict[str, Any]:
    """
    Decode and validate an HS256-signed JWT token.

    Raises:
        JWTError: If token is invalid or expired
    """
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
        )
    except jwt.ExpiredSignatureError:
        raise JWTError("Token has expired")
    except jwt.JWTClaimsError as e:
        raise JWTError(f"Invalid token claims: {e}")
    except JWTError as e:
        raise JWTError(f"Invalid token: {e}")
