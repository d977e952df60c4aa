"""
Authentication Dependencies

FastAPI dependencies resolving the calling actor.
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api.auth.jwt import verify_token, TokenError
from api.middleware.error_handler import AuthenticationError, AuthorizationError
from schemas.usage import Actor, Administrator, Tenant


ADMIN_ROLE = "ADMIN"

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_actor(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Actor:
    """
    Resolve the actor from the bearer token.

    A ``role`` claim of ``ADMIN`` yields an Administrator, anything else a Tenant.
    """
    if credentials is None:
        raise AuthenticationError()

    try:
        payload = verify_token(credentials.credentials)
    except TokenError as e:
        raise AuthenticationError(str(e))

    user_id = str(payload["sub"])
    request.state.user_id = user_id

    if payload.get("role") == ADMIN_ROLE:
        return Administrator(user_id=user_id)
    return Tenant(user_id=user_id)


async def require_admin(actor: Actor = Depends(get_current_actor)) -> Administrator:
    """Allow only administrators."""
    if not isinstance(actor, Administrator):
        raise AuthorizationError("Administrator access required")
    return actor
