"""Custom exceptions for docgate.

Every error a request can run into is a subclass of DocGateError so the
FastAPI handlers can turn it into a response at the request boundary.
"""

from enum import Enum


class DocGateError(Exception):
    """Base exception for all docgate errors.

    All docgate exceptions inherit from this class, making it easy
    to catch all gateway-specific errors.
    """

    def __init__(self, message: str, hint: str | None = None):
        """Initialize the exception.

        Args:
            message: The error message
            hint: Optional hint for resolving the error
        """
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message}\nHint: {self.hint}"
        return self.message


class RateLimitedError(DocGateError):
    """Raised when a client exceeds its admission window."""

    def __init__(
        self,
        message: str = "Too many requests.",
        retry_after: int | None = None,
    ):
        """Initialize the rate limit error.

        Args:
            message: The error message
            retry_after: Seconds until the oldest admission leaves the window
        """
        self.retry_after = retry_after

        if retry_after:
            hint = f"Try again in {retry_after} seconds."
        else:
            hint = "Please wait before making more requests."

        super().__init__(message, hint)


class UnauthorizedError(DocGateError):
    """Raised when a capability is missing, invalid, expired or out of scope.

    The reason is never carried on the exception; callers only learn that
    the credential was not accepted.
    """

    def __init__(self, message: str = "Unauthorized."):
        super().__init__(message)


class ValidationReason(str, Enum):
    """Client input policy violations."""

    UNSUPPORTED_TYPE = "unsupported_type"
    TOO_LARGE = "too_large"
    MISSING_REFERENCE = "missing_reference"
    NO_FILE = "no_file"


class ValidationError(DocGateError):
    """Raised when an upload or delete request breaks the input policy."""

    def __init__(
        self,
        reason: ValidationReason,
        message: str,
        field: str | None = None,
    ):
        """Initialize the validation error.

        Args:
            reason: Which policy was violated
            message: Short message safe to return to the client
            field: The request field that failed validation
        """
        self.reason = reason
        self.field = field

        hint = None
        if field:
            hint = f"Check the value for field '{field}'."

        super().__init__(message, hint)


class BackendError(DocGateError):
    """Raised when the storage backend fails.

    The backend's message is passed through as-is; it is never parsed
    and the operation is never retried.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        original_error: Exception | None = None,
    ):
        """Initialize the backend error.

        Args:
            message: The backend's error message
            operation: The storage operation that failed (e.g. 'put_object')
            original_error: The original exception
        """
        self.operation = operation
        self.original_error = original_error
        super().__init__(message)


class SigningError(DocGateError):
    """Raised when a capability token cannot be signed."""

    def __init__(self, message: str = "Could not issue an upload capability."):
        super().__init__(message)


class ConfigurationError(DocGateError):
    """Raised when docgate configuration is invalid.

    This is fatal at startup: the service must not accept traffic with
    a missing signing key or unusable backend credentials.
    """

    def __init__(
        self,
        message: str | None = None,
        missing_fields: list[str] | None = None,
    ):
        """Initialize the configuration error.

        Args:
            message: Custom error message
            missing_fields: List of missing configuration fields
        """
        self.missing_fields = missing_fields or []

        if missing_fields:
            fields_str = ", ".join(missing_fields)
            message = f"Missing required configuration: {fields_str}"
            hint = "Set these as environment variables or in your .env file."
        else:
            hint = "Check your docgate configuration."

        super().__init__(message or "Invalid docgate configuration", hint)
