"""
DRF views for the billing app.

This module exposes the billing services over HTTP. Views only parse
requests and shape responses; every decision is made by the services
built in billing.container and kept on the app config.

Response envelope:
    success: {"success": true, "data": ..., "message"?: ...}
    failure: {"success": false, "message": ..., "error": ..., "error_code": ...}

Failure status codes follow billing.constants.ERROR_STATUS
(not found → 404, invalid state / conflict → 409, validation → 400,
unauthorized → 403). Storage failures surface as 500 through
core.exceptions.api_exception_handler.

Endpoints:
    GET/POST   /api/v1/billing/users/
    GET/PATCH/DELETE /api/v1/billing/users/{id}/
    POST       /api/v1/billing/users/{id}/{activate,deactivate}/
    GET        /api/v1/billing/users/{id}/subscriptions/
    GET/POST   /api/v1/billing/plans/
    GET/PATCH/DELETE /api/v1/billing/plans/{id}/
    POST       /api/v1/billing/plans/{id}/{activate,deactivate}/
    GET/POST   /api/v1/billing/subscriptions/
    GET/DELETE /api/v1/billing/subscriptions/{id}/
    POST       /api/v1/billing/subscriptions/{id}/{activate,payment-failed,cancel,renew,expire}/
    GET        /api/v1/billing/subscriptions/{id}/entitlement/
    POST       /api/v1/billing/subscriptions/expire-lapsed/
    GET/POST   /api/v1/billing/transactions/
    GET        /api/v1/billing/transactions/{id}/
    POST       /api/v1/billing/transactions/{id}/{complete,fail,refund,metadata}/
    POST       /api/v1/billing/payments/simulate/
    POST       /api/v1/billing/webhooks/
    GET        /api/v1/billing/statistics/
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.apps import apps
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from billing.constants import ERROR_STATUS
from billing.serializers import (
    ExpireSerializer,
    MetadataSerializer,
    PlanCreateSerializer,
    PlanQuerySerializer,
    PlanSerializer,
    PlanUpdateSerializer,
    RefundSerializer,
    RenewSerializer,
    SimulatePaymentSerializer,
    SimulationResultSerializer,
    StatisticsQuerySerializer,
    SubscriptionCreateSerializer,
    SubscriptionQuerySerializer,
    SubscriptionSerializer,
    TransactionCreateSerializer,
    TransactionQuerySerializer,
    TransactionSerializer,
    TransactionStatisticsSerializer,
    UserCreateSerializer,
    UserSerializer,
    UserUpdateSerializer,
    serialize_with_plan,
)
from billing.state_machines import TransactionType

if TYPE_CHECKING:
    from typing import Any, Callable

    from core.services import ServiceResult

    from billing.container import BillingServices

logger = logging.getLogger(__name__)


class BillingAPIView(APIView):
    """Base view: service access and ServiceResult → Response mapping."""

    @property
    def services(self) -> BillingServices:
        return apps.get_app_config("billing").services

    @staticmethod
    def validated(serializer_class, data) -> dict[str, Any]:
        serializer = serializer_class(data=data)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data

    @staticmethod
    def respond(
        result: ServiceResult,
        serialize: Callable[[Any], Any] | None = None,
        success_status: int = status.HTTP_200_OK,
    ) -> Response:
        if result.success:
            data = serialize(result.data) if serialize else None
            return Response(result.to_response(data), status=success_status)
        return Response(
            result.to_response(),
            status=ERROR_STATUS.get(result.error_code, status.HTTP_400_BAD_REQUEST),
        )

    @staticmethod
    def respond_data(data: Any) -> Response:
        return Response({"success": True, "data": data})


# =============================================================================
# Users
# =============================================================================


class UserListView(BillingAPIView):
    """
    List or create users.

    POST body:
        {"name": "Ann", "email": "ann@example.com"}
    """

    def get(self, request):
        users = self.services.users.list_users()
        return self.respond_data(UserSerializer(users, many=True).data)

    def post(self, request):
        data = self.validated(UserCreateSerializer, request.data)
        result = self.services.users.create_user(data["name"], data["email"])
        return self.respond(
            result, lambda user: UserSerializer(user).data, status.HTTP_201_CREATED
        )


class UserDetailView(BillingAPIView):
    def get(self, request, user_id):
        result = self.services.users.get_user(user_id)
        return self.respond(result, lambda user: UserSerializer(user).data)

    def patch(self, request, user_id):
        data = self.validated(UserUpdateSerializer, request.data)
        result = self.services.users.update_user(user_id, **data)
        return self.respond(result, lambda user: UserSerializer(user).data)

    def delete(self, request, user_id):
        return self.respond(self.services.users.delete_user(user_id))


class UserStatusView(BillingAPIView):
    """POST users/{id}/activate/ or users/{id}/deactivate/."""

    transition: str = ""

    def post(self, request, user_id):
        users = self.services.users
        if self.transition == "activate":
            result = users.activate_user(user_id)
        else:
            result = users.deactivate_user(user_id)
        return self.respond(result, lambda user: UserSerializer(user).data)


class UserSubscriptionsView(BillingAPIView):
    """A user's subscriptions, each with its plan nested."""

    def get(self, request, user_id):
        found = self.services.users.get_user(user_id)
        if not found:
            return self.respond(found)
        pairs = self.services.engine.list_for_user_with_plans(user_id)
        return self.respond_data(
            [serialize_with_plan(subscription, plan) for subscription, plan in pairs]
        )


# =============================================================================
# Plans
# =============================================================================


class PlanListView(BillingAPIView):
    """
    List or create plans.

    GET query params:
        active_only: only plans open for new subscriptions
        billing_interval: monthly | yearly

    POST body:
        {"name": "Pro", "price": "100.00", "billing_interval": "monthly",
         "description": "...", "features": ["..."]}
    """

    def get(self, request):
        query = self.validated(PlanQuerySerializer, request.query_params)
        catalog = self.services.catalog
        if query.get("billing_interval"):
            plans = catalog.list_plans_by_interval(query["billing_interval"])
            if query["active_only"]:
                plans = [plan for plan in plans if plan.is_active]
        else:
            plans = catalog.list_plans(active_only=query["active_only"])
        return self.respond_data(PlanSerializer(plans, many=True).data)

    def post(self, request):
        data = self.validated(PlanCreateSerializer, request.data)
        result = self.services.catalog.create_plan(**data)
        return self.respond(
            result, lambda plan: PlanSerializer(plan).data, status.HTTP_201_CREATED
        )


class PlanDetailView(BillingAPIView):
    def get(self, request, plan_id):
        result = self.services.catalog.get_plan(plan_id)
        return self.respond(result, lambda plan: PlanSerializer(plan).data)

    def patch(self, request, plan_id):
        data = self.validated(PlanUpdateSerializer, request.data)
        result = self.services.catalog.update_plan(plan_id, **data)
        return self.respond(result, lambda plan: PlanSerializer(plan).data)

    def delete(self, request, plan_id):
        return self.respond(self.services.catalog.delete_plan(plan_id))


class PlanStatusView(BillingAPIView):
    """POST plans/{id}/activate/ or plans/{id}/deactivate/."""

    transition: str = ""

    def post(self, request, plan_id):
        catalog = self.services.catalog
        if self.transition == "activate":
            result = catalog.activate_plan(plan_id)
        else:
            result = catalog.deactivate_plan(plan_id)
        return self.respond(result, lambda plan: PlanSerializer(plan).data)


# =============================================================================
# Subscriptions
# =============================================================================


def _subscription_data(subscription) -> dict:
    return SubscriptionSerializer(subscription).data


class SubscriptionListView(BillingAPIView):
    """
    List or create subscriptions.

    GET query params: user_id, plan_id, status

    POST body:
        {"user_id": "...", "plan_id": "...", "payment_method": "card",
         "auto_renew": true}

    A created subscription is PENDING until its first payment settles.
    """

    def get(self, request):
        query = self.validated(SubscriptionQuerySerializer, request.query_params)
        engine = self.services.engine
        if "plan_id" in query:
            subscriptions = engine.list_for_plan(query["plan_id"], status=query.get("status"))
        elif "user_id" in query:
            subscriptions = engine.list_for_user(query["user_id"])
        else:
            subscriptions = engine.list_all()

        if "user_id" in query:
            subscriptions = [s for s in subscriptions if s.user_id == query["user_id"]]
        if "status" in query:
            subscriptions = [s for s in subscriptions if s.status == query["status"]]
        return self.respond_data(SubscriptionSerializer(subscriptions, many=True).data)

    def post(self, request):
        data = self.validated(SubscriptionCreateSerializer, request.data)
        result = self.services.engine.create(**data)
        return self.respond(result, _subscription_data, status.HTTP_201_CREATED)


class SubscriptionDetailView(BillingAPIView):
    """Subscription with its plan nested under ``plan``."""

    def get(self, request, subscription_id):
        result = self.services.engine.get_with_plan(subscription_id)
        return self.respond(result, lambda pair: serialize_with_plan(*pair))

    def delete(self, request, subscription_id):
        return self.respond(self.services.engine.delete(subscription_id))


class SubscriptionTransitionView(BillingAPIView):
    """POST subscriptions/{id}/activate/, payment-failed/ or cancel/."""

    transition: str = ""

    def post(self, request, subscription_id):
        engine = self.services.engine
        handlers = {
            "activate": engine.activate,
            "payment-failed": engine.mark_payment_failed,
            "cancel": engine.cancel,
        }
        result = handlers[self.transition](subscription_id)
        return self.respond(result, _subscription_data)


class SubscriptionRenewView(BillingAPIView):
    """
    Extend by N billing intervals from the current period end.

    POST body:
        {"interval_count": 1}
    """

    def post(self, request, subscription_id):
        data = self.validated(RenewSerializer, request.data)
        result = self.services.engine.renew(subscription_id, data["interval_count"])
        return self.respond(result, _subscription_data)


class SubscriptionExpireView(BillingAPIView):
    def post(self, request, subscription_id):
        data = self.validated(ExpireSerializer, request.data)
        result = self.services.engine.expire(subscription_id, now=data["now"])
        return self.respond(result, _subscription_data)


class SubscriptionEntitlementView(BillingAPIView):
    """
    Entitlement check.

    Returns:
        {"subscription_id": "...", "is_active": bool, "status": "...",
         "current_period_end": "..."}
    """

    def get(self, request, subscription_id):
        engine = self.services.engine
        result = engine.get(subscription_id)
        if not result:
            return self.respond(result)
        subscription = result.data
        return self.respond_data(
            {
                "subscription_id": subscription.id,
                "is_active": engine.is_active(subscription.id),
                "status": subscription.status,
                "current_period_end": SubscriptionSerializer(subscription).data[
                    "current_period_end"
                ],
            }
        )


class ExpireLapsedView(BillingAPIView):
    """Expire every ACTIVE subscription whose period has ended."""

    def post(self, request):
        data = self.validated(ExpireSerializer, request.data)
        result = self.services.engine.expire_lapsed(now=data["now"])
        return self.respond(
            result, lambda expired: SubscriptionSerializer(expired, many=True).data
        )


# =============================================================================
# Transactions
# =============================================================================


def _transaction_data(transaction) -> dict:
    return TransactionSerializer(transaction).data


class TransactionListView(BillingAPIView):
    """
    List or record transactions.

    GET query params: user_id, subscription_id, type, status, start, end

    POST body:
        {"subscription_id": "...", "amount": "100.00", "payment_method": "card"}

    A recorded payment is PENDING; ``amount`` defaults to the
    subscription's snapshot price.
    """

    def get(self, request):
        query = self.validated(TransactionQuerySerializer, request.query_params)
        ledger = self.services.ledger
        if "start" in query or "end" in query:
            transactions = ledger.list_between(query.get("start"), query.get("end"))
        else:
            transactions = ledger.list_all()

        for name in ("user_id", "subscription_id", "type", "status"):
            if name in query:
                transactions = [t for t in transactions if getattr(t, name) == query[name]]
        return self.respond_data(TransactionSerializer(transactions, many=True).data)

    def post(self, request):
        data = self.validated(TransactionCreateSerializer, request.data)
        found = self.services.engine.get(data["subscription_id"])
        if not found:
            return self.respond(found)
        subscription = found.data

        amount = data.get("amount")
        result = self.services.ledger.record(
            subscription.id,
            subscription.user_id,
            subscription.plan_id,
            amount if amount is not None else subscription.price,
            payment_method=data["payment_method"] or subscription.payment_method,
            description=data["description"],
            external_ref=data["external_ref"],
        )
        return self.respond(result, _transaction_data, status.HTTP_201_CREATED)


class TransactionDetailView(BillingAPIView):
    def get(self, request, transaction_id):
        result = self.services.ledger.get(transaction_id)
        return self.respond(result, _transaction_data)


class TransactionFinalizeView(BillingAPIView):
    """
    POST transactions/{id}/complete/ or transactions/{id}/fail/.

    Payments are settled together with their subscription; refunds are
    finalized on the ledger alone.
    """

    transition: str = ""

    def post(self, request, transaction_id):
        services = self.services
        found = services.ledger.get(transaction_id)
        if not found:
            return self.respond(found)
        transaction = found.data
        succeeded = self.transition == "complete"

        if transaction.type == TransactionType.PAYMENT:
            result = services.settlement.settle(
                transaction.id, transaction.subscription_id, succeeded
            )
            return self.respond(
                result, lambda settlement: _transaction_data(settlement.transaction)
            )

        finalize = services.ledger.complete if succeeded else services.ledger.fail
        return self.respond(finalize(transaction.id), _transaction_data)


class TransactionRefundView(BillingAPIView):
    """
    Record a pending refund against a completed payment.

    POST body:
        {"amount": "50.00", "description": "..."}  # amount optional
    """

    def post(self, request, transaction_id):
        data = self.validated(RefundSerializer, request.data)
        result = self.services.ledger.record_refund(
            transaction_id,
            amount=data.get("amount"),
            description=data["description"],
        )
        return self.respond(result, _transaction_data, status.HTTP_201_CREATED)


class TransactionMetadataView(BillingAPIView):
    """Append metadata keys; existing keys cannot be overwritten."""

    def post(self, request, transaction_id):
        data = self.validated(MetadataSerializer, request.data)
        result = self.services.ledger.add_metadata(transaction_id, **data["metadata"])
        return self.respond(result, _transaction_data)


# =============================================================================
# Payments, Webhooks, Statistics
# =============================================================================


class SimulatePaymentView(BillingAPIView):
    """
    Simulated checkout: subscription + payment + settlement in one call.

    POST body:
        {"user_id": "...", "plan_id": "...", "payment_method": "card"}

    Returns 201 with the subscription, the transaction and ``succeeded``;
    a declined payment is still a successful call.
    """

    def post(self, request):
        data = self.validated(SimulatePaymentSerializer, request.data)
        result = self.services.simulator.simulate(**data)
        return self.respond(
            result,
            lambda simulation: SimulationResultSerializer(simulation).data,
            status.HTTP_201_CREATED,
        )


class WebhookView(BillingAPIView):
    """
    Receive a payment provider event.

    POST body:
        {"event_type": "payment_processed", "subscription_id": "...",
         "user_id": "...", "timestamp": "2024-01-15T12:00:00Z",
         "metadata": {"external_ref": "..."}}

    Returns:
        {"success": bool, "message": "..."}
    """

    def post(self, request):
        result = self.services.reconciler.handle(request.data)
        body: dict[str, Any] = {"success": result.success, "message": result.text}
        if result.success:
            return Response(body, status=status.HTTP_200_OK)

        body["error_code"] = result.error_code
        if result.errors:
            body["errors"] = result.errors
        return Response(
            body,
            status=ERROR_STATUS.get(result.error_code, status.HTTP_400_BAD_REQUEST),
        )


class StatisticsView(BillingAPIView):
    """
    Revenue statistics.

    GET query params:
        user_id: restrict to one user's transactions
        plan_id: restrict to one plan's transactions
    """

    def get(self, request):
        query = self.validated(StatisticsQuerySerializer, request.query_params)
        summary = self.services.statistics.summary(
            user_id=query["user_id"], plan_id=query["plan_id"]
        )
        return self.respond_data(TransactionStatisticsSerializer(summary).data)
