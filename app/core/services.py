"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities

Service Layer Philosophy:
    Services encapsulate business logic separate from views and storage.
    Views handle HTTP concerns, stores handle data, services handle logic.

Pattern Comparison:
    - ServiceResult: Use for expected failures (not found, invalid state,
      validation, ownership mismatch)
    - Exceptions: Use for unexpected failures (store I/O errors, bugs)

Usage:
    from core.services import BaseService, ServiceResult

    class UserService(BaseService):
        def __init__(self, users: JsonRecordStore):
            self.users = users

        def create_user(self, name: str, email: str) -> ServiceResult[User]:
            if self.users.find_by(email=email):
                return ServiceResult.failure(
                    "Email already registered",
                    error_code="EMAIL_EXISTS",
                )

            user = self.users.create(name=name, email=email)
            self.get_logger().info(f"Created user {user.id}")
            return ServiceResult.success(user)

    # In view
    result = services.users.create_user(name, email)
    if result.success:
        return Response(result.to_response(), status=201)
    return Response(result.to_response(), status=400)

Related:
    - core.exceptions: For unexpected/exceptional errors
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from typing import Any

# Generic type for ServiceResult data
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Provides consistent success/failure handling without exceptions.
    Use this for expected failures (validation errors, business rule violations).

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        message: Optional human-readable note for successful operations
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures

    Usage:
        # Success case
        return ServiceResult.success(subscription)

        # Success with a note (e.g. idempotent replay)
        return ServiceResult.success(subscription, message="Already active")

        # Failure case
        return ServiceResult.failure("Plan not found", "PLAN_NOT_FOUND")

        # Check result
        result = engine.activate(subscription_id)
        if result.success:
            subscription = result.data
        else:
            print(f"Error: {result.error} ({result.error_code})")
    """

    success: bool
    data: T | None = None
    message: str | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T, message: str | None = None) -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data
            message: Optional human-readable note

        Returns:
            ServiceResult with success=True and data set
        """
        return cls(success=True, data=data, message=message)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)

        Returns:
            ServiceResult with success=False and error details

        Example:
            # Simple error
            return ServiceResult.failure("Subscription not found", "SUBSCRIPTION_NOT_FOUND")

            # Validation errors
            return ServiceResult.failure(
                "Validation failed",
                error_code="VALIDATION_ERROR",
                errors={"price": ["Must be positive"]}
            )
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    @property
    def text(self) -> str:
        """The message for a success, the error for a failure."""
        if self.success:
            return self.message or ""
        return self.error or ""

    def to_response(self, data: Any = None) -> dict[str, Any]:
        """
        Convert to the API response envelope.

        Args:
            data: Serialized data to use instead of ``self.data``

        Returns:
            Dict shaped as {success, data?, message?, error?, error_code?}

        Example:
            result = engine.cancel(subscription_id)
            return Response(result.to_response(SubscriptionSerializer(result.data).data))
        """
        if self.success:
            response: dict[str, Any] = {"success": True}
            payload = self.data if data is None else data
            if payload is not None:
                response["data"] = payload
            if self.message:
                response["message"] = self.message
            return response

        response = {
            "success": False,
            "message": self.error,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        return response

    def __bool__(self) -> bool:
        """Allow using result in boolean context (same as ``result.success``)."""
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Required-field and text-field validation

    Design Notes:
        - Collaborators (stores, other services) are passed to __init__
        - Use ServiceResult for expected failures
        - Raise exceptions for unexpected failures
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    def validate_required(cls, **kwargs) -> ServiceResult | None:
        """
        Validate that required fields are provided.

        Returns a failure result if any required field is None or empty.
        Returns None if all fields are valid.

        Example:
            validation = cls.validate_required(name=name, email=email)
            if validation is not None:
                return validation
        """
        errors = {}
        for field_name, value in kwargs.items():
            if value is None or (isinstance(value, str) and not value.strip()):
                errors[field_name] = ["This field is required."]

        if errors:
            return ServiceResult.failure(
                "Required fields missing",
                error_code="VALIDATION_ERROR",
                errors=errors,
            )
        return None

    @classmethod
    def validate_text(cls, **kwargs) -> ServiceResult | None:
        """
        Validate that required text fields are non-blank strings.

        Same contract as validate_required, with non-string values
        reported as invalid instead of reaching string handling.
        """
        invalid = cls.validate_required(**kwargs)
        if invalid is not None:
            return invalid

        errors = {
            field_name: ["Must be a string."]
            for field_name, value in kwargs.items()
            if not isinstance(value, str)
        }
        if errors:
            return ServiceResult.failure(
                "Invalid field types",
                error_code="VALIDATION_ERROR",
                errors=errors,
            )
        return None
