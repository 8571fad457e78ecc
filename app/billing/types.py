"""
Data types for billing records.

This module defines the dataclasses stored by the record store, their
RecordSchemas, and small value types passed between services.

Records are frozen: every change goes through the store's ``update``,
which the owning service calls only after checking its state machine.

Types:
    User, Plan, Subscription, Transaction, SettlementIntent: stored records
    WebhookEvent: transient provider notification (never stored)
    Money: amount with currency, with fixed-rate display conversion

Usage:
    from billing.types import Subscription, SUBSCRIPTION_SCHEMA

    store = JsonRecordStore(SUBSCRIPTION_SCHEMA, data_dir)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from billing.constants import MONEY_QUANTUM
from billing.records import RecordSchema


def quantize_money(amount: Decimal) -> Decimal:
    """Round to minor units (two decimal places, half up)."""
    return amount.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Money:
    """
    A monetary amount in a given currency.

    Display conversion uses fixed rates expressed as units of this
    currency per one unit of the target currency (e.g. 40 UAH per USD).

    Example:
        price = Money(Decimal("400.00"), "UAH")
        price.convert("USD", Decimal("40"))  # Money(Decimal("10.00"), "USD")
    """

    amount: Decimal
    currency: str

    def __str__(self) -> str:
        return f"{quantize_money(self.amount)} {self.currency.upper()}"

    def convert(self, currency: str, rate: Decimal) -> Money:
        """Convert for display at a fixed ``rate``."""
        if rate <= 0:
            raise ValueError("Display rate must be positive")
        return Money(quantize_money(self.amount / rate), currency.upper())


# =============================================================================
# Stored records
# =============================================================================


@dataclass(frozen=True)
class User:
    id: str
    name: str
    email: str
    created_at: datetime
    updated_at: datetime
    is_active: bool = True


@dataclass(frozen=True)
class Plan:
    """
    A priced, billing-interval-scoped product tier.

    Plans are never hard-deleted while a subscription references them;
    deactivation (``is_active=False``) hides them from new checkouts.
    """

    id: str
    name: str
    price: Decimal
    billing_interval: str
    created_at: datetime
    updated_at: datetime
    description: str = ""
    features: list[str] = field(default_factory=list)
    is_active: bool = True


@dataclass(frozen=True)
class Subscription:
    """
    A user's time-bounded entitlement to a plan.

    ``price`` and ``billing_interval`` are snapshots taken at creation, so
    later plan edits never change existing subscriptions.

    Invariant: current_period_end > start_date
    """

    id: str
    user_id: str
    plan_id: str
    status: str
    start_date: datetime
    current_period_end: datetime
    price: Decimal
    billing_interval: str
    created_at: datetime
    updated_at: datetime
    auto_renew: bool = True
    payment_method: str | None = None
    # First time the subscription became active; None while never paid
    activated_at: datetime | None = None
    # Status the subscription was cancelled from; only a cancellation
    # from active keeps the current period
    cancelled_from: str | None = None


@dataclass(frozen=True)
class Transaction:
    """
    A single payment or refund attempt and its outcome.

    Invariant: completed_at is set iff status is completed or failed.
    After finalization only ``metadata`` may grow.
    """

    id: str
    subscription_id: str
    user_id: str
    plan_id: str
    type: str
    status: str
    amount: Decimal
    currency: str
    created_at: datetime
    completed_at: datetime | None = None
    payment_method: str | None = None
    external_ref: str | None = None
    description: str | None = None
    refunded_transaction_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SettlementIntent:
    """Write-ahead record for finalizing a payment and moving its subscription."""

    id: str
    transaction_id: str
    subscription_id: str
    succeeded: bool
    status: str
    created_at: datetime
    applied_at: datetime | None = None


# =============================================================================
# Transient types
# =============================================================================


@dataclass(frozen=True)
class WebhookEvent:
    """A payment-provider notification. Used once, never stored."""

    event_type: str
    subscription_id: str
    user_id: str
    timestamp: datetime
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def external_ref(self) -> str | None:
        ref = self.metadata.get("external_ref") or self.metadata.get("transaction_ref")
        return str(ref) if ref else None


# =============================================================================
# Schemas
# =============================================================================


USER_SCHEMA = RecordSchema(
    record_type=User,
    collection="users",
    temporal_fields=("created_at", "updated_at"),
)

PLAN_SCHEMA = RecordSchema(
    record_type=Plan,
    collection="plans",
    temporal_fields=("created_at", "updated_at"),
    decimal_fields=("price",),
)

SUBSCRIPTION_SCHEMA = RecordSchema(
    record_type=Subscription,
    collection="subscriptions",
    temporal_fields=(
        "start_date",
        "current_period_end",
        "activated_at",
        "created_at",
        "updated_at",
    ),
    decimal_fields=("price",),
)

TRANSACTION_SCHEMA = RecordSchema(
    record_type=Transaction,
    collection="transactions",
    temporal_fields=("created_at", "completed_at"),
    decimal_fields=("amount",),
)

SETTLEMENT_INTENT_SCHEMA = RecordSchema(
    record_type=SettlementIntent,
    collection="settlement_intents",
    temporal_fields=("created_at", "applied_at"),
)
