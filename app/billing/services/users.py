"""
User directory for the billing core.

Users are the owners referenced by subscriptions and transactions.
Emails are unique, compared case-insensitively.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.utils import timezone

from core.services import BaseService, ServiceResult

from billing.constants import ErrorCode

if TYPE_CHECKING:
    from billing.records import JsonRecordStore
    from billing.types import User


class UserService(BaseService):
    """CRUD and activation for user records."""

    def __init__(self, users: JsonRecordStore[User]):
        self.users = users

    def _find_by_email(self, email: str) -> User | None:
        wanted = email.strip().lower()
        for user in self.users.find_all():
            if user.email.lower() == wanted:
                return user
        return None

    def _validate_email(self, email: str) -> ServiceResult | None:
        try:
            validate_email(email)
        except DjangoValidationError:
            return ServiceResult.failure(
                "Invalid email address",
                error_code=ErrorCode.VALIDATION_ERROR,
                errors={"email": ["Enter a valid email address."]},
            )
        return None

    def create_user(self, name: str, email: str) -> ServiceResult[User]:
        invalid = self.validate_text(name=name, email=email)
        if invalid is not None:
            return invalid
        email = email.strip()
        invalid = self._validate_email(email)
        if invalid is not None:
            return invalid

        if self._find_by_email(email):
            return ServiceResult.failure(
                f"User with email {email} already exists",
                error_code=ErrorCode.EMAIL_EXISTS,
            )

        now = timezone.now()
        user = self.users.create(
            name=name.strip(),
            email=email,
            created_at=now,
            updated_at=now,
            is_active=True,
        )
        self.get_logger().info(f"Created user {user.id}")
        return ServiceResult.success(user)

    def get_user(self, user_id: str) -> ServiceResult[User]:
        user = self.users.find_by_id(user_id)
        if user is None:
            return ServiceResult.failure(
                f"User {user_id} not found",
                error_code=ErrorCode.USER_NOT_FOUND,
            )
        return ServiceResult.success(user)

    def get_user_by_email(self, email: str) -> ServiceResult[User]:
        user = self._find_by_email(email)
        if user is None:
            return ServiceResult.failure(
                f"User with email {email} not found",
                error_code=ErrorCode.USER_NOT_FOUND,
            )
        return ServiceResult.success(user)

    def list_users(self) -> list[User]:
        return self.users.find_all()

    def update_user(
        self,
        user_id: str,
        name: str | None = None,
        email: str | None = None,
    ) -> ServiceResult[User]:
        """Change name and/or email; the email stays unique."""
        changes = {}
        if name is not None:
            invalid = self.validate_text(name=name)
            if invalid is not None:
                return invalid
            changes["name"] = name.strip()
        if email is not None:
            invalid = self.validate_text(email=email)
            if invalid is not None:
                return invalid
            email = email.strip()
            invalid = self._validate_email(email)
            if invalid is not None:
                return invalid
            existing = self._find_by_email(email)
            if existing and existing.id != user_id:
                return ServiceResult.failure(
                    f"User with email {email} already exists",
                    error_code=ErrorCode.EMAIL_EXISTS,
                )
            changes["email"] = email

        return self._update(user_id, **changes)

    def deactivate_user(self, user_id: str) -> ServiceResult[User]:
        return self._update(user_id, is_active=False)

    def activate_user(self, user_id: str) -> ServiceResult[User]:
        return self._update(user_id, is_active=True)

    def delete_user(self, user_id: str) -> ServiceResult[bool]:
        if not self.users.delete(user_id):
            return ServiceResult.failure(
                f"User {user_id} not found",
                error_code=ErrorCode.USER_NOT_FOUND,
            )
        self.get_logger().info(f"Deleted user {user_id}")
        return ServiceResult.success(True, message="User deleted")

    def _update(self, user_id: str, **changes) -> ServiceResult[User]:
        user = self.users.update(user_id, updated_at=timezone.now(), **changes)
        if user is None:
            return ServiceResult.failure(
                f"User {user_id} not found",
                error_code=ErrorCode.USER_NOT_FOUND,
            )
        return ServiceResult.success(user)
