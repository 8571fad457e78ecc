"""
Tests for the billing API views.

Covers the response envelope, status code mapping and request
validation for each endpoint group.
"""

import pytest
from django.urls import reverse
from rest_framework import status

from billing.state_machines import SubscriptionState, TransactionStatus, WebhookEventType
from billing.tests.factories import PlanPayloadFactory, UserPayloadFactory, WebhookPayloadFactory


def post(client, name, data=None, **kwargs):
    return client.post(reverse(f"billing:{name}", kwargs=kwargs), data or {}, format="json")


# =============================================================================
# Users
# =============================================================================


class TestUserViews:
    def test_create_user(self, api_client):
        response = post(api_client, "user-list", {"name": "Ann", "email": "ann@example.com"})

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["success"] is True
        assert response.data["data"]["email"] == "ann@example.com"
        assert response.data["data"]["is_active"] is True

    def test_duplicate_email_conflict(self, api_client, user):
        response = post(api_client, "user-list", {"name": "Other", "email": user.email})

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "EMAIL_EXISTS"
        assert response.data["success"] is False

    def test_invalid_payload(self, api_client):
        response = post(api_client, "user-list", {"name": "Ann"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "VALIDATION_ERROR"
        assert "email" in response.data["errors"]

    def test_detail_not_found(self, api_client):
        response = api_client.get(reverse("billing:user-detail", kwargs={"user_id": "missing"}))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "USER_NOT_FOUND"

    def test_update_and_deactivate(self, api_client, user):
        url = reverse("billing:user-detail", kwargs={"user_id": user.id})
        response = api_client.patch(url, {"name": "Ann Renamed"}, format="json")
        assert response.data["data"]["name"] == "Ann Renamed"

        response = post(api_client, "user-deactivate", user_id=user.id)
        assert response.data["data"]["is_active"] is False

    def test_user_subscriptions_nest_plan(self, api_client, user, pending_subscription, monthly_plan):
        response = api_client.get(
            reverse("billing:user-subscriptions", kwargs={"user_id": user.id})
        )

        [item] = response.data["data"]
        assert item["id"] == pending_subscription.id
        assert item["plan"]["name"] == monthly_plan.name


# =============================================================================
# Plans
# =============================================================================


class TestPlanViews:
    def test_create_plan(self, api_client):
        response = post(api_client, "plan-list", PlanPayloadFactory(name="Basic", price="49.90"))

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["data"]["price"] == "49.90"
        assert response.data["data"]["billing_interval"] == "monthly"

    def test_non_positive_price(self, api_client):
        response = post(api_client, "plan-list", PlanPayloadFactory(price="0.00"))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "VALIDATION_ERROR"

    def test_unknown_interval(self, api_client):
        response = post(api_client, "plan-list", PlanPayloadFactory(billing_interval="weekly"))
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_list_filters(self, api_client, monthly_plan, yearly_plan):
        post(api_client, "plan-deactivate", plan_id=yearly_plan.id)
        url = reverse("billing:plan-list")

        assert len(api_client.get(url).data["data"]) == 2
        active = api_client.get(url, {"active_only": "true"}).data["data"]
        assert [p["id"] for p in active] == [monthly_plan.id]
        yearly = api_client.get(url, {"billing_interval": "yearly"}).data["data"]
        assert [p["id"] for p in yearly] == [yearly_plan.id]

    def test_delete_plan_in_use(self, api_client, pending_subscription, monthly_plan):
        response = api_client.delete(
            reverse("billing:plan-detail", kwargs={"plan_id": monthly_plan.id})
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "PLAN_IN_USE"


# =============================================================================
# Subscriptions
# =============================================================================


class TestSubscriptionViews:
    def test_create_pending(self, frozen_now, api_client, user, monthly_plan):
        response = post(
            api_client, "subscription-list", {"user_id": user.id, "plan_id": monthly_plan.id}
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.data["data"]
        assert data["status"] == SubscriptionState.PENDING
        assert data["current_period_end"] == "2024-02-15T12:00:00Z"
        assert data["price"] == "100.00"

    def test_create_for_unknown_plan(self, api_client, user):
        response = post(api_client, "subscription-list", {"user_id": user.id, "plan_id": "nope"})
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_detail_includes_plan(self, api_client, pending_subscription, monthly_plan):
        response = api_client.get(
            reverse("billing:subscription-detail", kwargs={"subscription_id": pending_subscription.id})
        )
        assert response.data["data"]["plan"]["id"] == monthly_plan.id

    def test_list_filters(self, api_client, pending_subscription, active_subscription, other_user):
        url = reverse("billing:subscription-list")

        assert len(api_client.get(url, {"user_id": other_user.id}).data["data"]) == 0
        active = api_client.get(url, {"status": "active"}).data["data"]
        assert [s["id"] for s in active] == [active_subscription.id]

    def test_transitions(self, api_client, pending_subscription):
        response = post(api_client, "subscription-activate", subscription_id=pending_subscription.id)
        assert response.data["data"]["status"] == "active"

        response = post(api_client, "subscription-activate", subscription_id=pending_subscription.id)
        assert response.data["message"] == "Subscription already active"

        response = post(api_client, "subscription-cancel", subscription_id=pending_subscription.id)
        assert response.data["data"]["auto_renew"] is False

    def test_invalid_transition_conflict(self, api_client, pending_subscription):
        post(api_client, "subscription-cancel", subscription_id=pending_subscription.id)

        response = post(
            api_client, "subscription-payment-failed", subscription_id=pending_subscription.id
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "INVALID_STATE"

    def test_renew(self, frozen_now, api_client, active_subscription):
        response = post(
            api_client,
            "subscription-renew",
            {"interval_count": 2},
            subscription_id=active_subscription.id,
        )
        assert response.data["data"]["current_period_end"] == "2024-04-15T12:00:00Z"

    def test_renew_rejects_zero(self, api_client, active_subscription):
        response = post(
            api_client,
            "subscription-renew",
            {"interval_count": 0},
            subscription_id=active_subscription.id,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["errors"] == {"interval_count": ["Must be a positive integer."]}

    def test_entitlement(self, frozen_now, api_client, active_subscription):
        url = reverse(
            "billing:subscription-entitlement",
            kwargs={"subscription_id": active_subscription.id},
        )

        assert api_client.get(url).data["data"] == {
            "subscription_id": active_subscription.id,
            "is_active": True,
            "status": "active",
            "current_period_end": "2024-02-15T12:00:00Z",
        }

        frozen_now.move_to("2024-02-16T00:00:00Z")
        assert api_client.get(url).data["data"]["is_active"] is False

    def test_expire_lapsed(self, frozen_now, api_client, active_subscription):
        response = post(
            api_client, "subscription-expire-lapsed", {"now": "2024-03-01T00:00:00Z"}
        )

        assert [s["status"] for s in response.data["data"]] == ["expired"]


# =============================================================================
# Transactions
# =============================================================================


class TestTransactionViews:
    def test_record_defaults_to_snapshot_price(self, api_client, pending_subscription):
        response = post(
            api_client, "transaction-list", {"subscription_id": pending_subscription.id}
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["data"]["amount"] == "100.00"
        assert response.data["data"]["status"] == TransactionStatus.PENDING
        assert response.data["data"]["payment_method"] == "card"

    def test_complete_payment_activates_subscription(self, api_client, services, pending_payment):
        response = post(api_client, "transaction-complete", transaction_id=pending_payment.id)

        assert response.data["data"]["status"] == "completed"
        subscription = services.engine.get(pending_payment.subscription_id).data
        assert subscription.status == SubscriptionState.ACTIVE

    def test_fail_payment_of_cancelled_subscription(
        self, api_client, services, pending_subscription, pending_payment
    ):
        services.engine.cancel(pending_subscription.id)

        response = post(api_client, "transaction-fail", transaction_id=pending_payment.id)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["data"]["status"] == "failed"
        subscription = services.engine.get(pending_subscription.id).data
        assert subscription.status == SubscriptionState.CANCELLED

    def test_second_finalization_conflict(self, api_client, pending_payment):
        post(api_client, "transaction-fail", transaction_id=pending_payment.id)

        response = post(api_client, "transaction-complete", transaction_id=pending_payment.id)

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "ALREADY_FINALIZED"

    def test_refund_flow(self, api_client, active_subscription, pending_payment):
        response = post(
            api_client, "transaction-refund", {"amount": "40.00"}, transaction_id=pending_payment.id
        )
        assert response.status_code == status.HTTP_201_CREATED
        refund_id = response.data["data"]["id"]

        response = post(api_client, "transaction-complete", transaction_id=refund_id)

        assert response.data["data"]["type"] == "refund"
        assert response.data["data"]["status"] == "completed"

    def test_metadata(self, api_client, pending_payment):
        response = post(
            api_client,
            "transaction-metadata",
            {"metadata": {"gateway": "sandbox"}},
            transaction_id=pending_payment.id,
        )
        assert response.data["data"]["metadata"] == {"gateway": "sandbox"}

    def test_list_filters(self, api_client, active_subscription, pending_payment):
        url = reverse("billing:transaction-list")

        assert len(api_client.get(url, {"status": "completed"}).data["data"]) == 1
        assert api_client.get(url, {"type": "refund"}).data["data"] == []
        assert api_client.get(url, {"end": "2000-01-01T00:00:00Z"}).data["data"] == []


# =============================================================================
# Payments, Webhooks, Statistics, Health
# =============================================================================


class TestSimulatePaymentView:
    def test_simulate(self, api_client, user, monthly_plan):
        response = post(
            api_client, "payment-simulate", {"user_id": user.id, "plan_id": monthly_plan.id}
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["data"]["succeeded"] is True
        assert response.data["data"]["subscription"]["status"] == "active"
        assert response.data["message"] == "Payment succeeded"


class TestWebhookView:
    def test_processed(self, api_client, pending_subscription):
        payload = WebhookPayloadFactory(
            subscription_id=pending_subscription.id, user_id=pending_subscription.user_id
        )

        response = post(api_client, "webhook", payload)

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {
            "success": True,
            "message": "Subscription activated after successful payment",
        }

    def test_malformed(self, api_client):
        response = post(api_client, "webhook", {"event_type": "payment_processed"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["success"] is False
        assert response.data["message"] == "Malformed webhook event"
        assert "timestamp" in response.data["errors"]

    def test_wrong_user(self, api_client, pending_subscription, other_user):
        payload = WebhookPayloadFactory(
            event_type=WebhookEventType.SUBSCRIPTION_CANCELLED.value,
            subscription_id=pending_subscription.id,
            user_id=other_user.id,
        )

        response = post(api_client, "webhook", payload)

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["error_code"] == "UNAUTHORIZED"

    def test_unknown_subscription(self, api_client, user):
        response = post(api_client, "webhook", WebhookPayloadFactory(user_id=user.id))
        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestStatisticsView:
    def test_summary(self, api_client, active_subscription):
        response = api_client.get(reverse("billing:statistics"))

        data = response.data["data"]
        assert data["total_transactions"] == 1
        assert data["total_revenue"] == "100.00"
        assert data["success_rate"] == 1.0
        assert data["display_totals"] == {"USD": "2.50", "EUR": "2.22"}
        assert data["revenue_by_month"][0]["amount"] == "100.00"
        assert data["plan_breakdown"][0]["plan_name"] == "Pro"

    def test_empty(self, api_client):
        data = api_client.get(reverse("billing:statistics")).data["data"]

        assert data["total_revenue"] == "0.00"
        assert data["success_rate"] == 0.0


class TestHealthCheck:
    def test_healthy(self, api_client):
        response = api_client.get(reverse("health_check"))

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_unwritable_storage(self, api_client, settings, tmp_path):
        settings.BILLING_DATA_DIR = tmp_path / "missing"

        response = api_client.get(reverse("health_check"))

        assert response.status_code == 503
        assert response.json()["storage"] == "unavailable"
