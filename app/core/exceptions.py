"""
Base exception classes for application-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent error responses across the application
- Machine-readable error codes for client handling
- Detailed error information for debugging

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ConflictError - State conflicts (duplicates, invalid transitions)
    └── PersistenceError - Durable storage read/write failures

Usage:
    from core.exceptions import PersistenceError

    # Raise with error code and details
    raise PersistenceError(
        "Could not write subscriptions collection",
        details={"path": "/var/lib/billing/subscriptions.json"}
    )

    # Convert to dict for API response
    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=500)

Note:
    Service methods report expected business outcomes through
    core.services.ServiceResult. These exceptions are for conditions the
    caller cannot be expected to branch on.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

if TYPE_CHECKING:
    from typing import Any


logger = logging.getLogger(__name__)


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, metadata, etc.)
        status_code: HTTP status used when the error reaches the API layer
    """

    default_error_code: str = "APPLICATION_ERROR"
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (defaults to class default)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to the API response envelope.

        Example:
            {
                "success": false,
                "error": "Could not write subscriptions collection",
                "error_code": "PERSISTENCE_FAILURE",
                "details": {"path": "..."}
            }
        """
        result: dict[str, Any] = {
            "success": False,
            "message": self.message,
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ConflictError(BaseApplicationError):
    """
    Raised when operation conflicts with current resource state.

    Use for:
    - Duplicate entries (unique constraint violations)
    - Invalid state transitions
    - Record id collisions

    Note:
        HTTP 409 Conflict is the appropriate status for these errors.
    """

    default_error_code: str = "CONFLICT"
    status_code: int = status.HTTP_409_CONFLICT


class PersistenceError(BaseApplicationError):
    """
    Raised when durable storage cannot be read or written.

    Fatal for the call that hit it. Logged and surfaced as an
    internal error; never retried automatically.
    """

    default_error_code: str = "PERSISTENCE_FAILURE"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR


def api_exception_handler(exc, context):
    """
    DRF exception handler producing the uniform response envelope.

    Application errors are mapped to their status code; DRF's own
    exceptions (parse errors, method not allowed) keep their status
    and are wrapped in the envelope.
    """
    if isinstance(exc, BaseApplicationError):
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            f"Application error in {context.get('view').__class__.__name__}: {exc}",
            extra={"error_code": exc.error_code},
            exc_info=exc.status_code >= 500,
        )
        return Response(exc.to_dict(), status=exc.status_code)

    response = exception_handler(exc, context)
    if response is not None:
        detail = response.data.get("detail") if isinstance(response.data, dict) else None
        if detail is None:
            # Serializer field errors
            envelope = {
                "success": False,
                "message": "Validation failed",
                "error": "Validation failed",
                "error_code": "VALIDATION_ERROR",
                "errors": response.data,
            }
        else:
            envelope = {
                "success": False,
                "message": str(detail),
                "error": str(detail),
                "error_code": str(getattr(detail, "code", None) or "request_error").upper(),
            }
        response.data = envelope
    return response
