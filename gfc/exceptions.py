"""Custom exceptions for the Gravity Forms cache."""

from typing import Any


class GFCError(Exception):
    """Base exception for all GFC errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize GFC error.

        Args:
            message: Error message
            details: Additional error details

        """
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(GFCError):
    """Raised when configuration is invalid or missing."""


class APIError(GFCError):
    """Base class for API-related errors."""

    def __init__(
        self,
        status_code: int,
        message: str,
        response_text: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize API error.

        Args:
            status_code: HTTP status code
            message: Error message
            response_text: Raw response text from API
            details: Additional error details

        """
        super().__init__(message, details)
        self.status_code = status_code
        self.response_text = response_text


class AuthenticationError(APIError):
    """Raised when authentication fails (401)."""

    def __init__(self, message: str = "Authentication failed", response_text: str | None = None) -> None:
        super().__init__(401, message, response_text)


class PermissionError(APIError):
    """Raised when access is forbidden (403)."""

    def __init__(self, message: str = "Access forbidden", response_text: str | None = None) -> None:
        super().__init__(403, message, response_text)


class NotFoundError(APIError):
    """Raised when resource is not found (404)."""

    def __init__(self, message: str = "Resource not found", response_text: str | None = None) -> None:
        super().__init__(404, message, response_text)


class RateLimitError(APIError):
    """Raised when rate limit is exceeded (429)."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        response_text: str | None = None,
        retry_after: int | None = None,
    ) -> None:
        super().__init__(429, message, response_text)
        self.retry_after = retry_after


class TimeoutError(GFCError):
    """Raised when operation times out."""

    def __init__(self, operation: str, timeout_seconds: float) -> None:
        message = f"Operation '{operation}' timed out after {timeout_seconds} seconds"
        super().__init__(message, {"operation": operation, "timeout_seconds": timeout_seconds})
        self.operation = operation
        self.timeout_seconds = timeout_seconds


class ConnectionFailedError(GFCError):
    """Raised when the remote service cannot be reached."""

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(f"Connection failed in '{operation}': {reason}", {"operation": operation})
        self.operation = operation


class ValidationError(GFCError):
    """Raised when input validation fails."""

    def __init__(self, field: str, value: Any, message: str) -> None:
        super().__init__(message, {"field": field, "value": value})
        self.field = field
        self.value = value


class InvalidArgumentError(ValidationError):
    """Raised when a caller passes an argument outside its accepted domain."""


class InvalidResponseError(ValidationError):
    """Raised when the remote service returns a payload of the wrong shape."""

    def __init__(self, reason: str, value: Any = None) -> None:
        super().__init__("response", value, f"Invalid API response format: {reason}")
        self.reason = reason


class CacheError(GFCError):
    """Raised when cache operations fail."""


class DatabaseError(CacheError):
    """Raised when the underlying database cannot be opened, read or written."""

    def __init__(self, message: str, corrupted: bool = False, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details)
        self.corrupted = corrupted


class ConstraintViolationError(DatabaseError):
    """Raised when a write violates a table constraint."""


class SyncError(GFCError):
    """Raised when a sync run makes no progress at all."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message, {"errors": errors or []})
        self.errors = errors or []


class CircuitOpenError(GFCError):
    """Raised when a call is rejected by an open circuit breaker."""

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(reason, {"operation": operation})
        self.operation = operation


class FormNotFoundError(NotFoundError):
    """Raised when a specific form is not found."""

    def __init__(self, form_id: int) -> None:
        super().__init__(f"Form '{form_id}' not found")
        self.form_id = form_id


class InvalidCredentialsError(AuthenticationError):
    """Raised when API credentials are invalid."""

    def __init__(self, credential_type: str = "consumer key") -> None:
        super().__init__(f"Invalid {credential_type}")
        self.credential_type = credential_type
