"""
Rate Limiting Middleware

Protect the analysis service quota with rate limiting.
"""

from fastapi import FastAPI, Request
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware


def get_identifier(request: Request) -> str:
    """
    Get rate limit identifier from request.

    Uses authenticated user ID if available, otherwise client IP.
    """
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return f"user:{user_id}"
    return get_remote_address(request)


limiter = Limiter(key_func=get_identifier)


def setup_rate_limiting(app: FastAPI):
    """
    Set up rate limiting for the application.

    Args:
        app: FastAPI application instance
    """
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)


# Usage: @limiter.limit(LIMIT_AUDIT)
LIMIT_AUDIT = "10/minute"  # Each audit is an expensive LLM call
