"""
End-to-end billing scenarios.

These drive the HTTP API for the full lifecycle and then reopen the data
directory to check that what the API reported is what was persisted.
"""

from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

from django.urls import reverse

from billing.container import build_services
from billing.services import FixedOutcomeStrategy
from billing.state_machines import SubscriptionState, TransactionStatus


def post(client, name, data=None, **kwargs):
    response = client.post(reverse(f"billing:{name}", kwargs=kwargs), data or {}, format="json")
    assert response.data["success"] is True, response.data
    return response.data["data"]


class TestHappyPath:
    def test_plan_to_active_subscription(self, frozen_now, api_client, data_dir):
        user = post(api_client, "user-list", {"name": "Ann", "email": "ann@example.com"})
        plan = post(
            api_client,
            "plan-list",
            {"name": "Pro", "price": "100", "billing_interval": "monthly"},
        )
        subscription = post(
            api_client, "subscription-list", {"user_id": user["id"], "plan_id": plan["id"]}
        )
        assert subscription["status"] == "pending"
        assert subscription["price"] == "100.00"

        transaction = post(
            api_client, "transaction-list", {"subscription_id": subscription["id"]}
        )
        assert transaction["status"] == "pending"
        assert transaction["amount"] == "100.00"

        completed = post(api_client, "transaction-complete", transaction_id=transaction["id"])
        assert completed["status"] == "completed"
        activated = post(api_client, "subscription-activate", subscription_id=subscription["id"])
        assert activated["status"] == "active"
        assert activated["current_period_end"] == "2024-02-15T12:00:00Z"

        reopened = build_services(data_dir, outcome_strategy=FixedOutcomeStrategy(True))
        [stored] = reopened.ledger.list_all()
        assert stored.status == TransactionStatus.COMPLETED
        assert stored.amount == Decimal("100.00")
        assert reopened.engine.is_active(subscription["id"])


class TestPaymentFailedRecovery:
    def test_failed_then_activated(self, services, pending_subscription):
        failed = services.engine.mark_payment_failed(pending_subscription.id)
        assert failed.data.status == SubscriptionState.PAYMENT_FAILED

        recovered = services.engine.activate(pending_subscription.id)

        assert recovered.success
        assert recovered.data.status == SubscriptionState.ACTIVE


class TestCancelWithDerivedExpiry:
    def test_entitlement_lasts_until_period_end(self, frozen_now, api_client, active_subscription):
        url = reverse(
            "billing:subscription-entitlement",
            kwargs={"subscription_id": active_subscription.id},
        )

        cancelled = post(api_client, "subscription-cancel", subscription_id=active_subscription.id)
        assert cancelled["status"] == "cancelled"

        # Stored status changed, entitlement is decided by the date
        entitlement = api_client.get(url).data["data"]
        assert entitlement["status"] == "cancelled"
        assert entitlement["is_active"] is True

        frozen_now.move_to(datetime(2024, 2, 15, 11, 59, 59, tzinfo=dt_timezone.utc))
        assert api_client.get(url).data["data"]["is_active"] is True

        frozen_now.move_to(datetime(2024, 2, 15, 12, 0, 1, tzinfo=dt_timezone.utc))
        assert api_client.get(url).data["data"]["is_active"] is False
