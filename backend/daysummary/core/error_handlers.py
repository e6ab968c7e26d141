"""Global exception handlers for FastAPI application."""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from daysummary.core.exceptions import DaySummaryException

logger = logging.getLogger(__name__)


async def day_summary_exception_handler(
    request: Request, exc: DaySummaryException
) -> JSONResponse:
    """Handle all DaySummaryException subclasses."""
    logger.error(
        "DaySummaryException: %s - %s",
        exc.code,
        exc.message,
        extra={
            "error_code": exc.code,
            "status_code": exc.status_code,
            "details": exc.details,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.message,
            "code": exc.code,
            "details": exc.details,
        },
    )


async def pydantic_validation_handler(
    request: Request, exc: PydanticValidationError | RequestValidationError
) -> JSONResponse:
    """Handle request body validation errors with the same shape as ValidationError."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({"field": field, "message": error["msg"]})

    logger.warning(
        "Validation error: %s",
        errors,
        extra={"path": request.url.path, "method": request.method},
    )

    return JSONResponse(
        status_code=400,
        content={
            "error": "Request validation failed",
            "code": "VALIDATION_ERROR",
            "details": {"errors": errors},
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(
        "Unhandled exception: %s",
        str(exc),
        extra={"path": request.url.path, "method": request.method},
    )
    return JSONResponse(
        status_code=500,
        content={"status": "error", "message": "An unexpected error occurred"},
    )
