"""
Custom exceptions for the backend.

This module provides a consistent exception hierarchy for error handling
across all providers and services. Provider failures are raised as typed
exceptions and mapped to JSON responses in one place (app.main).

Exception Hierarchy:
    BackendException (base)
    ├── ConfigurationError (500)
    ├── ValidationError (400)
    │   ├── FileTooLargeError (413)
    │   └── UnsupportedFileTypeError (415)
    ├── FeatureUnavailableError (503)
    ├── HealthCheckError (503)
    └── ProviderError (503)
        ├── ProviderInitError (503)
        └── ProviderCallError (502)
            ├── ProviderTimeoutError (504)
            ├── StorageError (502)
            ├── EmailSendError (502)
            ├── CacheError (502)
            └── DatabaseError (502)

Usage:
    from app.exceptions import EmailSendError

    raise EmailSendError("SendGrid rejected message", provider="sendgrid", retryable=True)
"""
from __future__ import annotations

from typing import Any


class BackendException(Exception):
    """
    Base exception for all backend errors.

    All custom exceptions inherit from this class, enabling
    consistent error handling at the API layer.

    Attributes:
        message: Human-readable error message
        status_code: HTTP status code for API response
        details: Additional error details (optional)
        error_code: Machine-readable error code (optional)
    """

    default_message: str = "An error occurred"
    default_status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        details: str | None = None,
        error_code: str | None = None,
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message (uses default if not provided)
            status_code: HTTP status code (uses default if not provided)
            details: Additional details about the error
            error_code: Machine-readable error code
        """
        self.message = message or self.default_message
        self.status_code = status_code or self.default_status_code
        self.details = details
        self.error_code = error_code or self.__class__.__name__.upper()
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Returns:
            Dictionary with error details
        """
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, status_code={self.status_code})"


# =============================================================================
# Configuration Errors (500)
# =============================================================================

class ConfigurationError(BackendException):
    """
    Raised when configuration is invalid or missing.

    Examples:
        - A provider listed in STRICT_PROVIDERS failed to initialize
        - Duplicate provider registration
    """

    default_message = "Configuration error"
    default_status_code = 500


# =============================================================================
# Client Errors (4xx)
# =============================================================================

class ValidationError(BackendException):
    """
    Raised when input validation fails.

    Validation always happens before any provider I/O.
    """

    default_message = "Validation error"
    default_status_code = 400


class FileTooLargeError(ValidationError):
    """Raised when an upload exceeds the effective size limit."""

    default_message = "File too large"
    default_status_code = 413


class UnsupportedFileTypeError(ValidationError):
    """Raised when an upload's extension or MIME type is not allowed."""

    default_message = "Unsupported file type"
    default_status_code = 415


# =============================================================================
# Availability Errors (503)
# =============================================================================

class FeatureUnavailableError(BackendException):
    """
    Raised when a feature's backing provider is not initialized.

    Examples:
        - Upload requested while storage failed to initialize
        - Cache stats requested with no cache configured
    """

    default_message = "Feature temporarily unavailable"
    default_status_code = 503


class HealthCheckError(BackendException):
    """Raised when the health checker cannot complete a sweep."""

    default_message = "Health check sweep failed"
    default_status_code = 503


# =============================================================================
# Provider Errors
# =============================================================================

class ProviderError(BackendException):
    """
    Base class for failures talking to a backing service.

    Attributes:
        provider: Name of the provider that failed (e.g. "s3", "smtp")
        retryable: Whether the same call might succeed if repeated
    """

    default_message = "Provider error"
    default_status_code = 503

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        details: str | None = None,
        error_code: str | None = None,
        *,
        provider: str | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message, status_code, details, error_code)
        self.provider = provider
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.provider:
            result["provider"] = self.provider
        return result


class ProviderInitError(ProviderError):
    """
    Raised by a provider's initialize() when it cannot become available.

    Examples:
        - Missing credentials
        - Connection refused at startup
        - Unknown provider kind in configuration
    """

    default_message = "Provider initialization failed"
    default_status_code = 503


class ProviderCallError(ProviderError):
    """Raised when a call to an initialized provider fails."""

    default_message = "Provider call failed"
    default_status_code = 502


class ProviderTimeoutError(ProviderCallError):
    """Raised when a provider call exceeds its configured timeout."""

    default_message = "Provider call timed out"
    default_status_code = 504

    def __init__(self, message: str | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("retryable", True)
        super().__init__(message, **kwargs)


class StorageError(ProviderCallError):
    default_message = "Storage service error"


class EmailSendError(ProviderCallError):
    """
    Raised when an email cannot be delivered.

    Examples:
        - API rejected the message (4xx, not retryable)
        - Provider throttling or 5xx (retryable)
        - SMTP connection dropped (retryable)
    """

    default_message = "Email delivery failed"


class CacheError(ProviderCallError):
    default_message = "Cache service error"


class DatabaseError(ProviderCallError):
    default_message = "Database service error"


# =============================================================================
# Utility Functions
# =============================================================================

def is_retryable_exception(exc: BaseException) -> bool:
    """
    Check if an exception is potentially retryable.

    Args:
        exc: Exception to check

    Returns:
        True if the exception might succeed on retry
    """
    if isinstance(exc, ProviderError):
        return exc.retryable
    return False
