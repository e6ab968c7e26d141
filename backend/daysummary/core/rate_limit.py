"""Rate limiting configuration using SlowAPI."""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address


def get_request_identifier(request: Request) -> str:
    """Get identifier for rate limiting.

    Uses the bearer token when present so that one scheduler token is limited
    as one client, and the IP address otherwise.
    """
    authorization = request.headers.get("authorization")
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:]
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_request_identifier,
    default_limits=["100/minute"],
)


async def rate_limit_exceeded_handler(
    request: Request,
    exc: RateLimitExceeded,
) -> JSONResponse:
    """Custom handler for rate limit exceeded errors."""
    return JSONResponse(
        status_code=429,
        content={
            "error": f"Rate limit exceeded: {exc.detail}",
            "code": "RATE_LIMIT_ERROR",
            "details": {
                "retry_after": getattr(exc, "retry_after", None),
            },
        },
    )
