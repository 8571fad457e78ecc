"""
Pytest fixtures for billing tests.

Every test gets its own BillingServices built over a fresh temporary
data directory, with a deterministic payment outcome strategy.

Usage:
    def test_activate(services, pending_subscription):
        result = services.engine.activate(pending_subscription.id)
        assert result.data.status == SubscriptionState.ACTIVE
"""

import pytest
from django.apps import apps
from freezegun import freeze_time
from rest_framework.test import APIClient

from billing.container import build_services
from billing.services import FixedOutcomeStrategy
from billing.tests.factories import PlanPayloadFactory, UserPayloadFactory


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def data_dir(tmp_path):
    """Directory holding the JSON collections for one test."""
    return tmp_path / "billing-data"


@pytest.fixture
def services(data_dir):
    """Billing services whose simulated payments always succeed."""
    return build_services(data_dir, outcome_strategy=FixedOutcomeStrategy(True))


@pytest.fixture
def api_client(services, monkeypatch):
    """DRF client whose requests are served by the ``services`` fixture."""
    monkeypatch.setattr(apps.get_app_config("billing"), "services", services)
    return APIClient()


@pytest.fixture
def frozen_now():
    """Freeze time at a fixed instant for period arithmetic."""
    with freeze_time("2024-01-15T12:00:00Z") as frozen:
        yield frozen


# =============================================================================
# Records
# =============================================================================


@pytest.fixture
def user(services):
    """An active user."""
    return services.users.create_user(**UserPayloadFactory(name="Ann Example")).data


@pytest.fixture
def other_user(services):
    """A second active user."""
    return services.users.create_user(**UserPayloadFactory()).data


@pytest.fixture
def monthly_plan(services):
    """Monthly plan priced 100.00."""
    return services.catalog.create_plan(
        **PlanPayloadFactory(name="Pro", price="100.00")
    ).data


@pytest.fixture
def yearly_plan(services):
    """Yearly plan priced 1000.00."""
    return services.catalog.create_plan(
        **PlanPayloadFactory(name="Pro Yearly", yearly=True)
    ).data


@pytest.fixture
def pending_subscription(services, user, monthly_plan):
    """A freshly created PENDING subscription to the monthly plan."""
    return services.engine.create(user.id, monthly_plan.id, payment_method="card").data


@pytest.fixture
def pending_payment(services, pending_subscription):
    """A PENDING payment for the pending subscription's snapshot price."""
    return services.ledger.record(
        pending_subscription.id,
        pending_subscription.user_id,
        pending_subscription.plan_id,
        pending_subscription.price,
        payment_method="card",
    ).data


@pytest.fixture
def active_subscription(services, pending_subscription, pending_payment):
    """A subscription activated by settling its first payment."""
    settled = services.settlement.settle(
        pending_payment.id, pending_subscription.id, succeeded=True
    )
    return settled.data.subscription
