"""
URL configuration for the billing app.

All routes are prefixed with /api/v1/billing/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("billing/", include("billing.urls")),
    ]
"""

from django.urls import path

from billing import views

app_name = "billing"

urlpatterns = [
    # Users
    path("users/", views.UserListView.as_view(), name="user-list"),
    path("users/<str:user_id>/", views.UserDetailView.as_view(), name="user-detail"),
    path(
        "users/<str:user_id>/activate/",
        views.UserStatusView.as_view(transition="activate"),
        name="user-activate",
    ),
    path(
        "users/<str:user_id>/deactivate/",
        views.UserStatusView.as_view(transition="deactivate"),
        name="user-deactivate",
    ),
    path(
        "users/<str:user_id>/subscriptions/",
        views.UserSubscriptionsView.as_view(),
        name="user-subscriptions",
    ),
    # Plans
    path("plans/", views.PlanListView.as_view(), name="plan-list"),
    path("plans/<str:plan_id>/", views.PlanDetailView.as_view(), name="plan-detail"),
    path(
        "plans/<str:plan_id>/activate/",
        views.PlanStatusView.as_view(transition="activate"),
        name="plan-activate",
    ),
    path(
        "plans/<str:plan_id>/deactivate/",
        views.PlanStatusView.as_view(transition="deactivate"),
        name="plan-deactivate",
    ),
    # Subscriptions
    path("subscriptions/", views.SubscriptionListView.as_view(), name="subscription-list"),
    # Before <subscription_id>/ so "expire-lapsed" is not taken for an id
    path(
        "subscriptions/expire-lapsed/",
        views.ExpireLapsedView.as_view(),
        name="subscription-expire-lapsed",
    ),
    path(
        "subscriptions/<str:subscription_id>/",
        views.SubscriptionDetailView.as_view(),
        name="subscription-detail",
    ),
    path(
        "subscriptions/<str:subscription_id>/activate/",
        views.SubscriptionTransitionView.as_view(transition="activate"),
        name="subscription-activate",
    ),
    path(
        "subscriptions/<str:subscription_id>/payment-failed/",
        views.SubscriptionTransitionView.as_view(transition="payment-failed"),
        name="subscription-payment-failed",
    ),
    path(
        "subscriptions/<str:subscription_id>/cancel/",
        views.SubscriptionTransitionView.as_view(transition="cancel"),
        name="subscription-cancel",
    ),
    path(
        "subscriptions/<str:subscription_id>/renew/",
        views.SubscriptionRenewView.as_view(),
        name="subscription-renew",
    ),
    path(
        "subscriptions/<str:subscription_id>/expire/",
        views.SubscriptionExpireView.as_view(),
        name="subscription-expire",
    ),
    path(
        "subscriptions/<str:subscription_id>/entitlement/",
        views.SubscriptionEntitlementView.as_view(),
        name="subscription-entitlement",
    ),
    # Transactions
    path("transactions/", views.TransactionListView.as_view(), name="transaction-list"),
    path(
        "transactions/<str:transaction_id>/",
        views.TransactionDetailView.as_view(),
        name="transaction-detail",
    ),
    path(
        "transactions/<str:transaction_id>/complete/",
        views.TransactionFinalizeView.as_view(transition="complete"),
        name="transaction-complete",
    ),
    path(
        "transactions/<str:transaction_id>/fail/",
        views.TransactionFinalizeView.as_view(transition="fail"),
        name="transaction-fail",
    ),
    path(
        "transactions/<str:transaction_id>/refund/",
        views.TransactionRefundView.as_view(),
        name="transaction-refund",
    ),
    path(
        "transactions/<str:transaction_id>/metadata/",
        views.TransactionMetadataView.as_view(),
        name="transaction-metadata",
    ),
    # Payments, webhooks, statistics
    path("payments/simulate/", views.SimulatePaymentView.as_view(), name="payment-simulate"),
    path("webhooks/", views.WebhookView.as_view(), name="webhook"),
    path("statistics/", views.StatisticsView.as_view(), name="statistics"),
]
