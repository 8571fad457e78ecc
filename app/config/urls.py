"""
URL configuration for the billing service.

URL Structure:
    /health/                                   - Health check endpoint
    /api/v1/billing/                           - Billing endpoints
        users/                                 - User list/create
        users/{id}/                            - User detail/update/delete
        users/{id}/subscriptions/              - User's subscriptions with plans
        plans/                                 - Plan list/create
        plans/{id}/                            - Plan detail/update/delete
        plans/{id}/deactivate/                 - Retire plan
        plans/{id}/activate/                   - Reinstate plan
        subscriptions/                         - Subscription list/create
        subscriptions/{id}/                    - Subscription detail/delete
        subscriptions/{id}/activate/           - Activate
        subscriptions/{id}/payment-failed/     - Mark payment failed
        subscriptions/{id}/cancel/             - Cancel
        subscriptions/{id}/renew/              - Renew by N intervals
        subscriptions/{id}/expire/             - Expire ended period
        subscriptions/{id}/entitlement/        - Entitlement check
        subscriptions/expire-lapsed/           - Expire all lapsed subscriptions
        transactions/                          - Transaction list/create
        transactions/{id}/                     - Transaction detail
        transactions/{id}/complete/            - Complete
        transactions/{id}/fail/                - Fail
        transactions/{id}/refund/              - Record refund
        payments/simulate/                     - Simulated checkout
        webhooks/                              - Payment provider webhook
        statistics/                            - Revenue statistics

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.urls import include, path

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("billing/", include("billing.urls")),
]

urlpatterns = [
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]
