"""
Payment-provider webhook handling.

Exports:
    WebhookReconciler: validates and applies provider events
    register_handler: decorator adding an event handler
    parse_webhook_event: payload shape validation
"""

from billing.webhooks.handlers import (
    WEBHOOK_HANDLERS,
    WebhookReconciler,
    parse_webhook_event,
    register_handler,
)

__all__ = [
    "WEBHOOK_HANDLERS",
    "WebhookReconciler",
    "parse_webhook_event",
    "register_handler",
]
