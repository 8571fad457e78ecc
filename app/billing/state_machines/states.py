"""
State enums for billing entities.

This module defines all state enums used by billing records, plus the
allowed-transition tables the services consult before writing a status.
The enums are Django TextChoices so they serialize as plain strings and
carry human-readable labels for the API.

State Machines Overview:

Subscription States:
    pending → active → cancelled / expired
    pending → payment_failed → active (retry succeeds) / cancelled
    active → payment_failed
    pending → cancelled

Transaction Statuses:
    pending → completed
    pending → failed
"""

from django.db import models


class SubscriptionState(models.TextChoices):
    """
    States for the Subscription lifecycle.

    Terminal states: CANCELLED, EXPIRED
    No transition re-enters PENDING.

    State Flow (happy path):
        PENDING → ACTIVE → EXPIRED

    Recovery Flow:
        PENDING → PAYMENT_FAILED → ACTIVE

    Cancellation Flow:
        PENDING / ACTIVE / PAYMENT_FAILED → CANCELLED
    """

    PENDING = "pending", "Pending"
    ACTIVE = "active", "Active"
    PAYMENT_FAILED = "payment_failed", "Payment Failed"
    CANCELLED = "cancelled", "Cancelled"
    EXPIRED = "expired", "Expired"


class TransactionStatus(models.TextChoices):
    """
    Statuses for a Transaction.

    Terminal statuses: COMPLETED, FAILED
    A transaction is finalized exactly once.
    """

    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class TransactionType(models.TextChoices):
    """Kinds of ledger entries."""

    PAYMENT = "payment", "Payment"
    REFUND = "refund", "Refund"


class BillingInterval(models.TextChoices):
    """Renewal cadence of a plan (and of the subscriptions snapshotting it)."""

    MONTHLY = "monthly", "Monthly"
    YEARLY = "yearly", "Yearly"


class SettlementStatus(models.TextChoices):
    """
    Status of a settlement intent.

    State Flow:
        PENDING → APPLIED
        PENDING → ABANDONED (replay rejected by the current record states)
    PENDING intents are replayed by SettlementService.recover_pending().
    """

    PENDING = "pending", "Pending"
    APPLIED = "applied", "Applied"
    ABANDONED = "abandoned", "Abandoned"


class WebhookEventType(models.TextChoices):
    """Payment-provider events understood by the webhook reconciler."""

    PAYMENT_PROCESSED = "payment_processed", "Payment Processed"
    PAYMENT_FAILED = "payment_failed", "Payment Failed"
    SUBSCRIPTION_CANCELLED = "subscription_cancelled", "Subscription Cancelled"


SUBSCRIPTION_TRANSITIONS: dict[str, frozenset[str]] = {
    SubscriptionState.PENDING: frozenset(
        {
            SubscriptionState.ACTIVE,
            SubscriptionState.PAYMENT_FAILED,
            SubscriptionState.CANCELLED,
        }
    ),
    SubscriptionState.ACTIVE: frozenset(
        {
            SubscriptionState.PAYMENT_FAILED,
            SubscriptionState.CANCELLED,
            SubscriptionState.EXPIRED,
        }
    ),
    SubscriptionState.PAYMENT_FAILED: frozenset(
        {
            SubscriptionState.ACTIVE,
            SubscriptionState.CANCELLED,
        }
    ),
    SubscriptionState.CANCELLED: frozenset(),
    SubscriptionState.EXPIRED: frozenset(),
}

TERMINAL_SUBSCRIPTION_STATES = frozenset(
    state for state, targets in SUBSCRIPTION_TRANSITIONS.items() if not targets
)

TRANSACTION_TRANSITIONS: dict[str, frozenset[str]] = {
    TransactionStatus.PENDING: frozenset(
        {TransactionStatus.COMPLETED, TransactionStatus.FAILED}
    ),
    TransactionStatus.COMPLETED: frozenset(),
    TransactionStatus.FAILED: frozenset(),
}


def can_transition(table: dict[str, frozenset[str]], current: str, target: str) -> bool:
    """Return True if ``table`` allows moving from ``current`` to ``target``."""
    return target in table.get(current, frozenset())


__all__ = [
    "SubscriptionState",
    "TransactionStatus",
    "TransactionType",
    "BillingInterval",
    "SettlementStatus",
    "WebhookEventType",
    "SUBSCRIPTION_TRANSITIONS",
    "TERMINAL_SUBSCRIPTION_STATES",
    "TRANSACTION_TRANSITIONS",
    "can_transition",
]
