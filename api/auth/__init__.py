"""
Authentication Package

Bearer JWT verification and actor resolution.
"""

from api.auth.jwt import (
    create_access_token,
    verify_token,
    decode_token,
    TokenError,
)
from api.auth.dependencies import (
    get_current_actor,
    require_admin,
)

__all__ = [
    # JWT
    "create_access_token",
    "verify_token",
    "decode_token",
    "TokenError",
    # Dependencies
    "get_current_actor",
    "require_admin",
]
