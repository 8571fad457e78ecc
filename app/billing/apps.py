"""
Billing app configuration.

This app provides the subscription billing core:
- Plan catalog and user directory
- Subscription lifecycle engine
- Transaction ledger with settlement
- Payment provider webhook reconciliation
- Revenue statistics
"""

import logging
from decimal import Decimal

from django.apps import AppConfig
from django.conf import settings

logger = logging.getLogger(__name__)


class BillingConfig(AppConfig):
    """Configuration for the billing application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "billing"
    verbose_name = "Billing"

    # Built in ready(); views read services from here
    services = None

    def ready(self):
        """Open the record stores and wire the billing services."""
        from billing.container import build_services
        from billing.services import RandomOutcomeStrategy

        display_rates = {
            code.upper(): Decimal(str(rate))
            for code, rate in settings.BILLING_DISPLAY_RATES.items()
        }
        self.services = build_services(
            settings.BILLING_DATA_DIR,
            outcome_strategy=RandomOutcomeStrategy(settings.BILLING_SIMULATION_SUCCESS_RATE),
            currency=settings.BILLING_CURRENCY.upper(),
            display_rates=display_rates,
        )
