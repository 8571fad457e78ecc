"""
Constants for the billing module.

This module centralizes:
- Machine-readable error codes carried by ServiceResult failures
- The HTTP status each error code maps to in the API layer
- Defaults used when settings do not override them

Import example:
    from billing.constants import ErrorCode, ERROR_STATUS
"""

from decimal import Decimal
from typing import Final

from rest_framework import status


# =============================================================================
# Error Codes
# =============================================================================


class ErrorCode:
    """Error codes returned in ServiceResult.error_code."""

    # NotFound
    USER_NOT_FOUND: Final[str] = "USER_NOT_FOUND"
    PLAN_NOT_FOUND: Final[str] = "PLAN_NOT_FOUND"
    SUBSCRIPTION_NOT_FOUND: Final[str] = "SUBSCRIPTION_NOT_FOUND"
    TRANSACTION_NOT_FOUND: Final[str] = "TRANSACTION_NOT_FOUND"

    # InvalidState
    INVALID_STATE: Final[str] = "INVALID_STATE"
    ALREADY_FINALIZED: Final[str] = "ALREADY_FINALIZED"
    PLAN_IN_USE: Final[str] = "PLAN_IN_USE"

    # Conflict
    EMAIL_EXISTS: Final[str] = "EMAIL_EXISTS"
    PLAN_NAME_EXISTS: Final[str] = "PLAN_NAME_EXISTS"

    # ValidationFailure
    VALIDATION_ERROR: Final[str] = "VALIDATION_ERROR"

    # Unauthorized
    UNAUTHORIZED: Final[str] = "UNAUTHORIZED"


ERROR_STATUS: Final[dict[str, int]] = {
    ErrorCode.USER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.PLAN_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.SUBSCRIPTION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.TRANSACTION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorCode.ALREADY_FINALIZED: status.HTTP_409_CONFLICT,
    ErrorCode.PLAN_IN_USE: status.HTTP_409_CONFLICT,
    ErrorCode.EMAIL_EXISTS: status.HTTP_409_CONFLICT,
    ErrorCode.PLAN_NAME_EXISTS: status.HTTP_409_CONFLICT,
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
}


# =============================================================================
# Defaults
# =============================================================================


class BILLING_DEFAULTS:
    """Fallback values when the corresponding setting is absent."""

    CURRENCY: Final[str] = "UAH"
    # Units of the billing currency per one unit of the display currency
    DISPLAY_RATES: Final[dict[str, Decimal]] = {
        "USD": Decimal("40"),
        "EUR": Decimal("45"),
    }
    SIMULATION_SUCCESS_RATE: Final[float] = 0.8


MONEY_QUANTUM: Final[Decimal] = Decimal("0.01")
