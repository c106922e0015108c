from enum import Enum
from typing import Any

from fastapi import HTTPException, status


class ErrorType(str, Enum):
    """Categories used when logging and formatting errors."""

    VALIDATION = "VALIDATION"
    AUTHENTICATION = "AUTHENTICATION"
    AUTHORIZATION = "AUTHORIZATION"
    DATABASE = "DATABASE"
    EXTERNAL_API = "EXTERNAL_API"
    RATE_LIMIT = "RATE_LIMIT"
    SECURITY = "SECURITY"
    SYSTEM = "SYSTEM"
    BUSINESS_LOGIC = "BUSINESS_LOGIC"


class ErrorSeverity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class AppError(HTTPException):
    """Base class for errors raised by application code.

    Carries a category, a severity and optional structured context that the
    error handler logs (redacted) but never returns to the client.
    """

    error_type: ErrorType = ErrorType.SYSTEM
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    default_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(
            status_code=status_code or self.default_status,
            detail=message,
            headers=headers,
        )
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        return self.message


class ValidationError(AppError):
    """Raised when request validation fails."""

    error_type = ErrorType.VALIDATION
    severity = ErrorSeverity.LOW
    default_status = status.HTTP_400_BAD_REQUEST


class SignatureInvalidError(AppError):
    """Raised when a webhook payload fails signature verification."""

    error_type = ErrorType.SECURITY
    severity = ErrorSeverity.HIGH
    default_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Invalid webhook signature", **kwargs: Any):
        super().__init__(message, **kwargs)


class AuthenticationError(AppError):
    error_type = ErrorType.AUTHENTICATION
    default_status = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Not authenticated", **kwargs: Any):
        super().__init__(message, **kwargs)


class ForbiddenError(AppError):
    """Raised when user lacks permission to access a resource."""

    error_type = ErrorType.AUTHORIZATION
    default_status = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Not authorized to access this resource", **kwargs: Any):
        super().__init__(message, **kwargs)


class NotFoundError(AppError):
    """Raised when a requested resource is not found."""

    error_type = ErrorType.BUSINESS_LOGIC
    severity = ErrorSeverity.LOW
    default_status = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, **kwargs: Any):
        super().__init__(f"{resource} not found", **kwargs)


class RateLimitError(AppError):
    error_type = ErrorType.RATE_LIMIT
    default_status = status.HTTP_429_TOO_MANY_REQUESTS


class MissingUserReferenceError(AppError):
    """Raised when a webhook payload carries no reference to a local account."""

    error_type = ErrorType.BUSINESS_LOGIC
    severity = ErrorSeverity.HIGH
    default_status = 422


class ProviderError(AppError):
    """Raised when the payment provider SDK fails."""

    error_type = ErrorType.EXTERNAL_API
    default_status = status.HTTP_502_BAD_GATEWAY

    def __init__(self, operation: str, message: str, **kwargs: Any):
        super().__init__(f"Stripe {operation} failed: {message}", **kwargs)
        self.operation = operation


class DatabaseError(AppError):
    """Raised when a record read or update fails."""

    error_type = ErrorType.DATABASE
    severity = ErrorSeverity.HIGH


class UserNotFoundError(DatabaseError):
    """Raised when an update that must touch a user row matched none."""

    def __init__(self, criteria: dict[str, Any], **kwargs: Any):
        described = ", ".join(f"{k}={v}" for k, v in criteria.items())
        super().__init__(f"No user matched {described}", **kwargs)
        self.criteria = criteria


class WebhookProcessingError(AppError):
    """Raised when a verified webhook could not be applied; Stripe will retry it."""

    severity = ErrorSeverity.HIGH

    def __init__(self, event_type: str, **kwargs: Any):
        super().__init__(f"Webhook processing failed: {event_type}", **kwargs)
        self.event_type = event_type
