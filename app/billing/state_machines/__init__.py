"""
State machine enums and helpers for billing records.

This module defines the state enums and transition tables consulted by
the billing services before any status write.
"""

from billing.state_machines.states import (
    SUBSCRIPTION_TRANSITIONS,
    TERMINAL_SUBSCRIPTION_STATES,
    TRANSACTION_TRANSITIONS,
    BillingInterval,
    SettlementStatus,
    SubscriptionState,
    TransactionStatus,
    TransactionType,
    WebhookEventType,
    can_transition,
)

__all__ = [
    "BillingInterval",
    "SettlementStatus",
    "SubscriptionState",
    "TransactionStatus",
    "TransactionType",
    "WebhookEventType",
    "SUBSCRIPTION_TRANSITIONS",
    "TERMINAL_SUBSCRIPTION_STATES",
    "TRANSACTION_TRANSITIONS",
    "can_transition",
]
