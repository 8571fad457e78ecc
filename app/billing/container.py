"""
Service wiring for the billing core.

``build_services`` opens one record store per collection under a data
directory and hands each service exactly the collaborators it needs.
Nothing here is a module-level singleton: the Django app config builds
one BillingServices at startup, and tests build their own against a
temporary directory.

Usage:
    from billing.container import build_services
    from billing.services import FixedOutcomeStrategy

    services = build_services(tmp_path, outcome_strategy=FixedOutcomeStrategy(True))
    user = services.users.create_user("Ann", "ann@example.com").data
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from decimal import Decimal

from billing.constants import BILLING_DEFAULTS
from billing.records import JsonRecordStore
from billing.services import (
    PaymentOutcomeStrategy,
    PaymentSimulationService,
    PlanCatalog,
    RandomOutcomeStrategy,
    SettlementService,
    StatisticsAggregator,
    SubscriptionLifecycleEngine,
    TransactionLedger,
    UserService,
)
from billing.types import (
    PLAN_SCHEMA,
    SETTLEMENT_INTENT_SCHEMA,
    SUBSCRIPTION_SCHEMA,
    TRANSACTION_SCHEMA,
    USER_SCHEMA,
    Plan,
    SettlementIntent,
    Subscription,
    Transaction,
    User,
)
from billing.webhooks import WebhookReconciler

logger = logging.getLogger(__name__)


@dataclass
class BillingServices:
    """Every store and service of one billing instance."""

    user_store: JsonRecordStore[User]
    plan_store: JsonRecordStore[Plan]
    subscription_store: JsonRecordStore[Subscription]
    transaction_store: JsonRecordStore[Transaction]
    intent_store: JsonRecordStore[SettlementIntent]

    users: UserService
    catalog: PlanCatalog
    engine: SubscriptionLifecycleEngine
    ledger: TransactionLedger
    settlement: SettlementService
    statistics: StatisticsAggregator
    simulator: PaymentSimulationService
    reconciler: WebhookReconciler


def build_services(
    data_dir: str | os.PathLike,
    outcome_strategy: PaymentOutcomeStrategy | None = None,
    currency: str = BILLING_DEFAULTS.CURRENCY,
    display_rates: dict[str, Decimal] | None = None,
) -> BillingServices:
    """
    Open the stores under ``data_dir`` and wire the services.

    Settlements interrupted by a previous crash are replayed before
    the services are returned.

    Raises:
        RecordStoreError: If a collection file cannot be read or created
    """
    user_store = JsonRecordStore(USER_SCHEMA, data_dir)
    plan_store = JsonRecordStore(PLAN_SCHEMA, data_dir)
    subscription_store = JsonRecordStore(SUBSCRIPTION_SCHEMA, data_dir)
    transaction_store = JsonRecordStore(TRANSACTION_SCHEMA, data_dir)
    intent_store = JsonRecordStore(SETTLEMENT_INTENT_SCHEMA, data_dir)

    users = UserService(user_store)
    catalog = PlanCatalog(plan_store, subscription_store)
    engine = SubscriptionLifecycleEngine(subscription_store, user_store, catalog)
    ledger = TransactionLedger(transaction_store, currency=currency)
    settlement = SettlementService(intent_store, ledger, engine)

    services = BillingServices(
        user_store=user_store,
        plan_store=plan_store,
        subscription_store=subscription_store,
        transaction_store=transaction_store,
        intent_store=intent_store,
        users=users,
        catalog=catalog,
        engine=engine,
        ledger=ledger,
        settlement=settlement,
        statistics=StatisticsAggregator(
            ledger, plan_store, subscription_store, display_rates=display_rates
        ),
        simulator=PaymentSimulationService(
            engine, ledger, settlement, outcome_strategy or RandomOutcomeStrategy()
        ),
        reconciler=WebhookReconciler(engine, ledger, settlement),
    )

    recovered = settlement.recover_pending()
    if recovered.data:
        logger.warning(f"Recovered {recovered.data} interrupted settlements")
    logger.info(
        "Billing services ready",
        extra={"data_dir": str(data_dir), "currency": currency},
    )
    return services
