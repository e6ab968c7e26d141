"""Middleware for request logging, tracing and CORS."""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
import structlog

logger = structlog.get_logger(__name__)

CORS_ALLOW_HEADERS = "authorization, x-client-info, apikey, content-type, x-user-tz, x-no-text"
CORS_ALLOW_METHODS = "GET, POST, OPTIONS"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware that logs all HTTP requests with timing and context."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())[:8]

        # Clear and bind request context for structured logging
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else None,
        )

        start_time = time.perf_counter()

        # Skip health checks to reduce noise
        if not request.url.path.startswith("/health"):
            logger.info("request_started")

        try:
            response = await call_next(request)
            process_time = time.perf_counter() - start_time

            if not request.url.path.startswith("/health"):
                logger.info(
                    "request_completed",
                    status_code=response.status_code,
                    duration_ms=round(process_time * 1000, 2),
                )

            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as e:
            process_time = time.perf_counter() - start_time
            logger.exception(
                "request_failed",
                duration_ms=round(process_time * 1000, 2),
                error=str(e),
            )
            raise


def cors_headers(origin: str | None) -> dict[str, str]:
    """Permissive CORS headers mirroring the caller's origin."""
    headers = {
        "Access-Control-Allow-Origin": origin or "*",
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
        "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
        "Access-Control-Expose-Headers": "X-Request-ID",
    }
    if origin:
        headers["Access-Control-Allow-Credentials"] = "true"
        headers["Vary"] = "Origin"
    return headers


class PermissiveCORSMiddleware(BaseHTTPMiddleware):
    """Answers preflight requests with 204 and decorates every response with CORS headers."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        origin = request.headers.get("origin")

        if request.method == "OPTIONS":
            return Response(status_code=204, headers=cors_headers(origin))

        response = await call_next(request)
        for key, value in cors_headers(origin).items():
            response.headers[key] = value
        return response
