"""Custom exception classes for the day summary service."""

from typing import Any, Optional


class DaySummaryException(Exception):
    """Base exception for the day summary service."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class NotFoundError(DaySummaryException):
    """Resource not found error."""

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            code="NOT_FOUND",
            status_code=404,
            details={"resource": resource, "identifier": str(identifier)},
        )


class ValidationError(DaySummaryException):
    """Input validation error."""

    def __init__(self, field: str, message: str):
        super().__init__(
            message=f"Validation error on {field}: {message}",
            code="VALIDATION_ERROR",
            status_code=400,
            details={"field": field},
        )


class ExternalServiceError(DaySummaryException):
    """Base class for external service errors."""

    def __init__(self, service: str, message: str):
        super().__init__(
            message=f"External service error ({service}): {message}",
            code="EXTERNAL_SERVICE_ERROR",
            status_code=502,
            details={"service": service},
        )


class LLMServiceError(ExternalServiceError):
    """LLM call failed or returned an unusable answer."""

    def __init__(self, message: str):
        super().__init__(service="OpenAI", message=message)
        self.code = "LLM_SERVICE_ERROR"


class BillingError(DaySummaryException):
    """Credit deduction failed."""

    def __init__(self, user_id: str, message: str):
        super().__init__(
            message=f"Billing failed for {user_id}: {message}",
            code="BILLING_ERROR",
            status_code=402,
            details={"user_id": user_id},
        )


class AuthenticationError(DaySummaryException):
    """Authentication required or failed."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            message=message,
            code="AUTHENTICATION_ERROR",
            status_code=401,
        )


class AuthorizationError(DaySummaryException):
    """Permission denied error."""

    def __init__(self, message: str = "Permission denied"):
        super().__init__(
            message=message,
            code="AUTHORIZATION_ERROR",
            status_code=403,
        )

