"""
Core Application - Infrastructure & Base Classes

This app contains infrastructure code shared by the domain apps:

- Generic, reusable base classes (no domain-specific logic)
- Clear extension points for domain apps
- Infrastructure concerns separated from business logic

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ConflictError: State conflicts (duplicates, etc.)
    - PersistenceError: Durable storage failures
    - api_exception_handler: DRF handler producing the error envelope

Views (import from core.views):
    - health_check: Liveness/readiness endpoint

Usage:
    from core.services import BaseService, ServiceResult
    from core.exceptions import PersistenceError

Note:
    - Business logic should NOT go here. Extend core classes in your domain apps.
"""

from .exceptions import (
    BaseApplicationError,
    ConflictError,
    PersistenceError,
)
from .services import BaseService, ServiceResult

__all__ = [
    # Services
    "BaseService",
    "ServiceResult",
    # Exceptions
    "BaseApplicationError",
    "ConflictError",
    "PersistenceError",
]
