"""
JWT Token Utilities

Verify bearer tokens issued by the identity provider. ``create_access_token``
mints compatible tokens for local tooling and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError

from config.settings import settings


class TokenError(Exception):
    """Token validation error."""
    pass


def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Payload data (should include 'sub' for user ID, optionally 'role')
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes)

    to_encode.update({
        "exp": expire,
        "iat": datetime.now(timezone.utc),
    })

    return jwt.encode(
        to_encode,
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm
    )


def decode_token(token: str) -> dict:
    """
    Decode and validate a JWT token.

    Raises:
        TokenError: If token is invalid or expired
    """
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm]
        )
    except JWTError as e:
        raise TokenError(f"Invalid token: {str(e)}")


def verify_token(token: str) -> dict:
    """
    Verify a JWT token and require a subject.

    Raises:
        TokenError: If token is invalid, expired, or has no subject
    """
    payload = decode_token(token)

    if not payload.get("sub"):
        raise TokenError("Invalid token payload: missing subject")

    return payload
