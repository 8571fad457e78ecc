"""
DRF serializers for the billing app.

This module provides serializers for:
- Request validation (create/update payloads, query parameters)
- Record output (users, plans, subscriptions, transactions, statistics)

Records are frozen dataclasses, not models, so every serializer here is a
plain ``serializers.Serializer`` reading attributes off the record.

Related files:
    - types.py: Record dataclasses
    - views.py: Billing API views

Usage:
    serializer = PlanCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    result = services.catalog.create_plan(**serializer.validated_data)
    PlanSerializer(result.data).data
"""

from __future__ import annotations

from rest_framework import serializers

from billing.state_machines import (
    BillingInterval,
    SubscriptionState,
    TransactionStatus,
    TransactionType,
)

MONEY_FIELD_KWARGS = {"max_digits": 14, "decimal_places": 2}


# =============================================================================
# Users
# =============================================================================


class UserSerializer(serializers.Serializer):
    """User record for API responses."""

    id = serializers.CharField(read_only=True)
    name = serializers.CharField(read_only=True)
    email = serializers.EmailField(read_only=True)
    is_active = serializers.BooleanField(read_only=True)
    created_at = serializers.DateTimeField(read_only=True)
    updated_at = serializers.DateTimeField(read_only=True)


class UserCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    email = serializers.EmailField()


class UserUpdateSerializer(serializers.Serializer):
    """Partial update: omitted fields are left unchanged."""

    name = serializers.CharField(max_length=200, required=False)
    email = serializers.EmailField(required=False)


# =============================================================================
# Plans
# =============================================================================


class PlanSerializer(serializers.Serializer):
    """
    Plan record for API responses.

    ``price`` is rendered as a decimal string ("100.00").
    """

    id = serializers.CharField(read_only=True)
    name = serializers.CharField(read_only=True)
    description = serializers.CharField(read_only=True)
    price = serializers.DecimalField(read_only=True, **MONEY_FIELD_KWARGS)
    billing_interval = serializers.CharField(read_only=True)
    features = serializers.ListField(child=serializers.CharField(), read_only=True)
    is_active = serializers.BooleanField(read_only=True)
    created_at = serializers.DateTimeField(read_only=True)
    updated_at = serializers.DateTimeField(read_only=True)


class PlanCreateSerializer(serializers.Serializer):
    """
    Validate plan creation.

    Positivity of ``price`` is checked by the catalog so every entry point
    reports it the same way.
    """

    name = serializers.CharField(max_length=200)
    price = serializers.DecimalField(**MONEY_FIELD_KWARGS)
    billing_interval = serializers.ChoiceField(choices=BillingInterval.choices)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    features = serializers.ListField(
        child=serializers.CharField(), required=False, default=list
    )


class PlanUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200, required=False)
    price = serializers.DecimalField(required=False, **MONEY_FIELD_KWARGS)
    billing_interval = serializers.ChoiceField(
        choices=BillingInterval.choices, required=False
    )
    description = serializers.CharField(required=False, allow_blank=True)
    features = serializers.ListField(child=serializers.CharField(), required=False)


class PlanQuerySerializer(serializers.Serializer):
    active_only = serializers.BooleanField(required=False, default=False)
    billing_interval = serializers.ChoiceField(
        choices=BillingInterval.choices, required=False
    )


# =============================================================================
# Subscriptions
# =============================================================================


class SubscriptionSerializer(serializers.Serializer):
    """
    Subscription record for API responses.

    ``price`` and ``billing_interval`` are the values snapshotted from the
    plan at creation.
    """

    id = serializers.CharField(read_only=True)
    user_id = serializers.CharField(read_only=True)
    plan_id = serializers.CharField(read_only=True)
    status = serializers.CharField(read_only=True)
    start_date = serializers.DateTimeField(read_only=True)
    current_period_end = serializers.DateTimeField(read_only=True)
    price = serializers.DecimalField(read_only=True, **MONEY_FIELD_KWARGS)
    billing_interval = serializers.CharField(read_only=True)
    auto_renew = serializers.BooleanField(read_only=True)
    payment_method = serializers.CharField(read_only=True, allow_null=True)
    activated_at = serializers.DateTimeField(read_only=True, allow_null=True)
    cancelled_from = serializers.CharField(read_only=True, allow_null=True)
    created_at = serializers.DateTimeField(read_only=True)
    updated_at = serializers.DateTimeField(read_only=True)


def serialize_with_plan(subscription, plan) -> dict:
    """Subscription output with its plan nested under ``plan`` (None if deleted)."""
    data = SubscriptionSerializer(subscription).data
    data["plan"] = PlanSerializer(plan).data if plan is not None else None
    return data


class SubscriptionCreateSerializer(serializers.Serializer):
    user_id = serializers.CharField()
    plan_id = serializers.CharField()
    payment_method = serializers.CharField(required=False, allow_null=True, default=None)
    auto_renew = serializers.BooleanField(required=False, default=True)


class SubscriptionQuerySerializer(serializers.Serializer):
    user_id = serializers.CharField(required=False)
    plan_id = serializers.CharField(required=False)
    status = serializers.ChoiceField(choices=SubscriptionState.choices, required=False)


class RenewSerializer(serializers.Serializer):
    """The lifecycle engine checks that ``interval_count`` is positive."""

    interval_count = serializers.IntegerField(required=False, default=1)


class ExpireSerializer(serializers.Serializer):
    now = serializers.DateTimeField(required=False, default=None)


# =============================================================================
# Transactions
# =============================================================================


class TransactionSerializer(serializers.Serializer):
    """Transaction record for API responses."""

    id = serializers.CharField(read_only=True)
    subscription_id = serializers.CharField(read_only=True)
    user_id = serializers.CharField(read_only=True)
    plan_id = serializers.CharField(read_only=True)
    type = serializers.CharField(read_only=True)
    status = serializers.CharField(read_only=True)
    amount = serializers.DecimalField(read_only=True, **MONEY_FIELD_KWARGS)
    currency = serializers.CharField(read_only=True)
    payment_method = serializers.CharField(read_only=True, allow_null=True)
    external_ref = serializers.CharField(read_only=True, allow_null=True)
    description = serializers.CharField(read_only=True, allow_null=True)
    refunded_transaction_id = serializers.CharField(read_only=True, allow_null=True)
    metadata = serializers.DictField(read_only=True)
    created_at = serializers.DateTimeField(read_only=True)
    completed_at = serializers.DateTimeField(read_only=True, allow_null=True)


class TransactionCreateSerializer(serializers.Serializer):
    """
    Record a payment against a subscription.

    ``amount`` defaults to the subscription's snapshot price.
    """

    subscription_id = serializers.CharField()
    amount = serializers.DecimalField(required=False, **MONEY_FIELD_KWARGS)
    payment_method = serializers.CharField(required=False, allow_null=True, default=None)
    description = serializers.CharField(required=False, allow_null=True, default=None)
    external_ref = serializers.CharField(required=False, allow_null=True, default=None)


class TransactionQuerySerializer(serializers.Serializer):
    user_id = serializers.CharField(required=False)
    subscription_id = serializers.CharField(required=False)
    type = serializers.ChoiceField(choices=TransactionType.choices, required=False)
    status = serializers.ChoiceField(choices=TransactionStatus.choices, required=False)
    start = serializers.DateTimeField(required=False)
    end = serializers.DateTimeField(required=False)


class RefundSerializer(serializers.Serializer):
    """Omitted ``amount`` refunds everything still refundable."""

    amount = serializers.DecimalField(required=False, **MONEY_FIELD_KWARGS)
    description = serializers.CharField(required=False, allow_null=True, default=None)


class MetadataSerializer(serializers.Serializer):
    metadata = serializers.DictField()


# =============================================================================
# Payments
# =============================================================================


class SimulatePaymentSerializer(serializers.Serializer):
    user_id = serializers.CharField()
    plan_id = serializers.CharField()
    payment_method = serializers.CharField(required=False, allow_null=True, default=None)
    auto_renew = serializers.BooleanField(required=False, default=True)


class SimulationResultSerializer(serializers.Serializer):
    subscription = SubscriptionSerializer(read_only=True)
    transaction = TransactionSerializer(read_only=True)
    succeeded = serializers.BooleanField(read_only=True)


# =============================================================================
# Statistics
# =============================================================================


class StatisticsQuerySerializer(serializers.Serializer):
    user_id = serializers.CharField(required=False, default=None)
    plan_id = serializers.CharField(required=False, default=None)


class MonthlyRevenueSerializer(serializers.Serializer):
    month = serializers.CharField(read_only=True)
    count = serializers.IntegerField(read_only=True)
    amount = serializers.DecimalField(read_only=True, **MONEY_FIELD_KWARGS)


class PlanBreakdownSerializer(serializers.Serializer):
    plan_id = serializers.CharField(read_only=True)
    plan_name = serializers.CharField(read_only=True, allow_null=True)
    subscription_count = serializers.IntegerField(read_only=True)
    revenue = serializers.DecimalField(read_only=True, **MONEY_FIELD_KWARGS)


class TransactionStatisticsSerializer(serializers.Serializer):
    """Statistics summary; amounts render as decimal strings."""

    total_transactions = serializers.IntegerField(read_only=True)
    total_revenue = serializers.DecimalField(read_only=True, **MONEY_FIELD_KWARGS)
    success_count = serializers.IntegerField(read_only=True)
    failure_count = serializers.IntegerField(read_only=True)
    pending_count = serializers.IntegerField(read_only=True)
    success_rate = serializers.FloatField(read_only=True)
    average_amount = serializers.DecimalField(read_only=True, **MONEY_FIELD_KWARGS)
    currency = serializers.CharField(read_only=True)
    revenue_by_month = MonthlyRevenueSerializer(many=True, read_only=True)
    plan_breakdown = PlanBreakdownSerializer(many=True, read_only=True)
    display_totals = serializers.DictField(
        child=serializers.DecimalField(**MONEY_FIELD_KWARGS), read_only=True
    )
