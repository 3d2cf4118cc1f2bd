"""
Custom exceptions for the Simple Todo API.

Provides structured error handling with appropriate HTTP status codes,
string error codes and error details for API responses.
"""

from typing import Any, Dict, List, Optional


class TodoApiException(Exception):
    """Base exception for the Simple Todo API."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details or {}


class ApiError(TodoApiException):
    """Raised by auth operations with an operation-specific error code."""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=status_code,
            code=code,
            details=details,
        )


class ValidationError(TodoApiException):
    """Raised when request validation fails."""

    def __init__(self, errors: List[str], message: str = "Validation failed") -> None:
        super().__init__(
            message=message,
            status_code=400,
            code="VALIDATION_ERROR",
            details={"errors": errors},
        )
        self.errors = errors


class AuthenticationError(TodoApiException):
    """Raised when a request lacks a usable bearer token or session."""

    def __init__(
        self,
        message: str = "Authorization token required",
        code: str = "MISSING_TOKEN",
    ) -> None:
        super().__init__(
            message=message,
            status_code=401,
            code=code,
        )


class InvalidCredentialsError(TodoApiException):
    """Raised when the provider rejects an email/password pair."""

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(
            message=message,
            status_code=401,
            code="INVALID_CREDENTIALS",
        )


class ConflictError(TodoApiException):
    """Raised when a registration targets an existing account."""

    def __init__(
        self,
        message: str = "User already registered",
        code: str = "USER_ALREADY_EXISTS",
    ) -> None:
        super().__init__(
            message=message,
            status_code=409,
            code=code,
        )


class RateLimitError(TodoApiException):
    """Raised when rate limit is exceeded."""

    def __init__(
        self,
        message: str = "Too many requests. Please try again later.",
        retry_after: Optional[int] = None,
    ) -> None:
        details = {}
        if retry_after:
            details["retry_after"] = retry_after

        super().__init__(
            message=message,
            status_code=429,
            code="RATE_LIMIT_EXCEEDED",
            details=details,
        )


class ProviderError(TodoApiException):
    """Raised when a call to the hosted auth provider fails."""

    def __init__(
        self,
        message: str,
        provider_status: Optional[int] = None,
        provider_code: Optional[str] = None,
    ) -> None:
        details: Dict[str, Any] = {}
        if provider_status is not None:
            details["provider_status"] = provider_status
        if provider_code:
            details["provider_code"] = provider_code

        super().__init__(
            message=message,
            status_code=502,
            code="PROVIDER_ERROR",
            details=details,
        )
        self.provider_status = provider_status
        self.provider_code = provider_code


class ConfigurationError(TodoApiException):
    """Raised when required configuration is missing."""

    def __init__(self, message: str) -> None:
        super().__init__(
            message=message,
            status_code=500,
            code="CONFIGURATION_ERROR",
        )
