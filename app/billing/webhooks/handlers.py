"""
Webhook event reconciliation.

This module turns payment-provider notifications into consistent ledger
and subscription transitions.

Processing order for every event:
1. Shape validation (known event type, non-empty ids, timestamp) - no
   side effect happens before this passes
2. Subscription lookup (unknown id → SUBSCRIPTION_NOT_FOUND)
3. Ownership check (event user must own the subscription → UNAUTHORIZED)
4. Dispatch to the handler registered for the event type

Idempotency:
    Handlers look at current subscription and transaction status before
    writing, so replaying an event that already succeeded records no new
    transaction and does not move the period.

Usage:
    from billing.webhooks import WebhookReconciler, register_handler

    reconciler = WebhookReconciler(engine, ledger, settlement)
    result = reconciler.handle({
        "event_type": "payment_processed",
        "subscription_id": "...",
        "user_id": "...",
        "timestamp": "2024-01-15T12:00:00Z",
    })
    result.success, result.text
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from core.services import ServiceResult

from billing.constants import ErrorCode
from billing.records import to_datetime
from billing.state_machines import (
    TERMINAL_SUBSCRIPTION_STATES,
    SubscriptionState,
    TransactionStatus,
    WebhookEventType,
)
from billing.types import WebhookEvent

if TYPE_CHECKING:
    from typing import Any

    from billing.services.settlement import SettlementService
    from billing.services.subscriptions import SubscriptionLifecycleEngine
    from billing.services.transactions import TransactionLedger
    from billing.types import Subscription

    WebhookHandler = Callable[["WebhookReconciler", WebhookEvent, Subscription], ServiceResult]


logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, WebhookHandler] = {}


def register_handler(event_type: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Usage:
        @register_handler(WebhookEventType.PAYMENT_PROCESSED)
        def handle_payment_processed(reconciler, event, subscription) -> ServiceResult:
            ...

    Args:
        event_type: The event type (e.g., "payment_processed")

    Returns:
        Decorator function that registers the handler
    """

    def decorator(func: WebhookHandler) -> WebhookHandler:
        WEBHOOK_HANDLERS[str(event_type)] = func
        logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


# =============================================================================
# Validation
# =============================================================================


def parse_webhook_event(payload: Mapping[str, Any] | WebhookEvent) -> ServiceResult[WebhookEvent]:
    """
    Validate a raw payload and build a WebhookEvent.

    Accepts ``event_type`` (or ``event``), ``subscription_id``, ``user_id``,
    ``timestamp`` (ISO-8601 text or datetime) and optional ``metadata``.
    """
    if isinstance(payload, WebhookEvent):
        payload = {
            "event_type": payload.event_type,
            "subscription_id": payload.subscription_id,
            "user_id": payload.user_id,
            "timestamp": payload.timestamp,
            "metadata": payload.metadata,
        }
    if not isinstance(payload, Mapping):
        return ServiceResult.failure(
            "Webhook payload must be an object",
            error_code=ErrorCode.VALIDATION_ERROR,
        )

    errors: dict[str, list[str]] = {}

    event_type = payload.get("event_type", payload.get("event"))
    if event_type not in WebhookEventType.values:
        errors["event_type"] = [f"Unknown event type {event_type!r}."]

    for name in ("subscription_id", "user_id"):
        value = payload.get(name)
        if not isinstance(value, str) or not value.strip():
            errors[name] = ["Must be a non-empty string."]

    timestamp = payload.get("timestamp")
    parsed_timestamp: datetime | None = None
    try:
        parsed_timestamp = to_datetime(timestamp)
    except ValueError:
        errors["timestamp"] = ["Must be an ISO-8601 datetime."]

    metadata = payload.get("metadata")
    if metadata is None:
        metadata = {}
    elif not isinstance(metadata, Mapping):
        errors["metadata"] = ["Must be an object."]

    if errors:
        return ServiceResult.failure(
            "Malformed webhook event",
            error_code=ErrorCode.VALIDATION_ERROR,
            errors=errors,
        )

    return ServiceResult.success(
        WebhookEvent(
            event_type=event_type,
            subscription_id=payload["subscription_id"].strip(),
            user_id=payload["user_id"].strip(),
            timestamp=parsed_timestamp,
            metadata=dict(metadata),
        )
    )


# =============================================================================
# Reconciler
# =============================================================================


class WebhookReconciler:
    """Single entry point for provider events."""

    def __init__(
        self,
        engine: SubscriptionLifecycleEngine,
        ledger: TransactionLedger,
        settlement: SettlementService,
    ):
        self.engine = engine
        self.ledger = ledger
        self.settlement = settlement

    def handle(self, payload: Mapping[str, Any] | WebhookEvent) -> ServiceResult:
        """
        Validate, authorize and dispatch one event.

        Returns:
            ServiceResult whose ``success`` and ``text`` form the
            {success, message} reply to the provider
        """
        parsed = parse_webhook_event(payload)
        if not parsed:
            logger.warning(
                "Rejected malformed webhook event",
                extra={"errors": parsed.errors},
            )
            return parsed
        event = parsed.data

        logger.info(
            f"Processing webhook event: {event.event_type}",
            extra={
                "event_type": event.event_type,
                "subscription_id": event.subscription_id,
                "event_timestamp": event.timestamp.isoformat(),
            },
        )

        found = self.engine.get(event.subscription_id)
        if not found:
            logger.warning(
                "Webhook references unknown subscription",
                extra={"subscription_id": event.subscription_id},
            )
            return found
        subscription = found.data

        if subscription.user_id != event.user_id:
            logger.warning(
                "Webhook user does not own subscription",
                extra={"subscription_id": subscription.id, "event_type": event.event_type},
            )
            return ServiceResult.failure(
                "User does not have access to this subscription",
                error_code=ErrorCode.UNAUTHORIZED,
            )

        handler = WEBHOOK_HANDLERS[event.event_type]
        result = handler(self, event, subscription)

        if result:
            logger.info(
                f"Webhook {event.event_type} applied: {result.text}",
                extra={"subscription_id": subscription.id},
            )
        else:
            logger.warning(
                f"Webhook {event.event_type} rejected: {result.text}",
                extra={"subscription_id": subscription.id, "error_code": result.error_code},
            )
        return result

    # -------------------------------------------------------------------------
    # Shared steps for payment events
    # -------------------------------------------------------------------------

    def settle_payment_event(
        self,
        event: WebhookEvent,
        subscription: Subscription,
        succeeded: bool,
        settled_state: SubscriptionState,
    ) -> ServiceResult:
        """
        Settle the payment an event reports on.

        Picks, in order: the transaction named by the event's external
        reference, the latest pending payment, or a new payment for the
        snapshot price. Nothing is written when the subscription already
        sits in ``settled_state`` with no pending payment. An ended
        subscription only gets its outstanding payment finalized; no new
        payment is recorded for it.
        """
        external_ref = event.external_ref
        if external_ref:
            existing = self.ledger.find_by_external_ref(external_ref)
            if existing is not None:
                if existing.subscription_id != subscription.id:
                    return ServiceResult.failure(
                        "External reference belongs to another subscription",
                        error_code=ErrorCode.VALIDATION_ERROR,
                    )
                if existing.status != TransactionStatus.PENDING:
                    return ServiceResult.success(
                        subscription,
                        message=f"Event already processed for transaction {existing.id}",
                    )
                return self._settle(existing.id, subscription, succeeded)

        pending = self.ledger.latest_pending_for_subscription(subscription.id)
        if pending is not None:
            return self._settle(pending.id, subscription, succeeded)

        if subscription.status in TERMINAL_SUBSCRIPTION_STATES:
            return ServiceResult.failure(
                f"Subscription is {subscription.status}",
                error_code=ErrorCode.INVALID_STATE,
            )

        if subscription.status == settled_state:
            return ServiceResult.success(
                subscription,
                message=f"Subscription already {settled_state.value}",
            )

        recorded = self.ledger.record(
            subscription.id,
            subscription.user_id,
            subscription.plan_id,
            event.metadata.get("amount", subscription.price),
            payment_method=event.metadata.get("payment_method", subscription.payment_method),
            description=f"Webhook {event.event_type}",
            external_ref=external_ref,
        )
        if not recorded:
            return recorded
        return self._settle(recorded.data.id, subscription, succeeded)

    def _settle(self, transaction_id: str, subscription: Subscription, succeeded: bool) -> ServiceResult:
        settled = self.settlement.settle(transaction_id, subscription.id, succeeded)
        if not settled:
            return settled
        settled_subscription = settled.data.subscription
        if settled_subscription.status in TERMINAL_SUBSCRIPTION_STATES:
            message = (
                f"Payment {settled.data.transaction.status}; "
                f"subscription remains {settled_subscription.status}"
            )
        elif succeeded:
            message = "Subscription activated after successful payment"
        else:
            message = "Subscription marked as payment failed"
        return ServiceResult.success(settled.data, message=message)


# =============================================================================
# Event Handlers
# =============================================================================


@register_handler(WebhookEventType.PAYMENT_PROCESSED)
def handle_payment_processed(
    reconciler: WebhookReconciler, event: WebhookEvent, subscription: Subscription
) -> ServiceResult:
    """Complete the payment and activate the subscription."""
    return reconciler.settle_payment_event(
        event, subscription, succeeded=True, settled_state=SubscriptionState.ACTIVE
    )


@register_handler(WebhookEventType.PAYMENT_FAILED)
def handle_payment_failed(
    reconciler: WebhookReconciler, event: WebhookEvent, subscription: Subscription
) -> ServiceResult:
    """Fail the payment and mark the subscription payment_failed."""
    return reconciler.settle_payment_event(
        event, subscription, succeeded=False, settled_state=SubscriptionState.PAYMENT_FAILED
    )


@register_handler(WebhookEventType.SUBSCRIPTION_CANCELLED)
def handle_subscription_cancelled(
    reconciler: WebhookReconciler, event: WebhookEvent, subscription: Subscription
) -> ServiceResult:
    """Cancel the subscription; the paid period is kept."""
    result = reconciler.engine.cancel(subscription.id)
    if result and not result.message:
        return ServiceResult.success(result.data, message="Subscription cancelled")
    return result
