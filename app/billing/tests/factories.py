"""
Factory Boy factories for billing test data.

Billing records are created through the services, not saved directly,
so these factories build request payloads. Pass the payload to the
service (or post it to the API) to get a stored record.

Usage:
    from billing.tests.factories import PlanPayloadFactory, WebhookPayloadFactory

    plan = services.catalog.create_plan(**PlanPayloadFactory(price="250.00")).data

    payload = WebhookPayloadFactory(
        subscription_id=subscription.id,
        user_id=subscription.user_id,
    )
    services.reconciler.handle(payload)
"""

import factory
from django.utils import timezone

from billing.state_machines import BillingInterval, WebhookEventType


class UserPayloadFactory(factory.DictFactory):
    """Payload for UserService.create_user / POST users/."""

    name = factory.Faker("name")
    email = factory.Sequence(lambda n: f"user{n}@example.com")


class PlanPayloadFactory(factory.DictFactory):
    """Payload for PlanCatalog.create_plan / POST plans/."""

    name = factory.Sequence(lambda n: f"Plan {n}")
    price = "100.00"
    billing_interval = BillingInterval.MONTHLY.value
    description = factory.Faker("sentence", nb_words=6)
    features = factory.List(["Unlimited projects", "Priority support"])

    class Params:
        yearly = factory.Trait(
            billing_interval=BillingInterval.YEARLY.value,
            price="1000.00",
        )


class WebhookPayloadFactory(factory.DictFactory):
    """Raw provider event accepted by WebhookReconciler.handle."""

    event_type = WebhookEventType.PAYMENT_PROCESSED.value
    subscription_id = "unknown-subscription"
    user_id = "unknown-user"
    timestamp = factory.LazyFunction(lambda: timezone.now().isoformat())
    metadata = factory.Dict({})
