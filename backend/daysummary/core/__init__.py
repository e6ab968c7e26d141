from daysummary.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    BillingError,
    DaySummaryException,
    ExternalServiceError,
    LLMServiceError,
    NotFoundError,
    ValidationError,
)

__all__ = [
    "DaySummaryException",
    "NotFoundError",
    "ValidationError",
    "ExternalServiceError",
    "LLMServiceError",
    "BillingError",
    "AuthenticationError",
    "AuthorizationError",
]
