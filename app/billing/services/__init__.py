"""
Billing services.

Each service receives its stores and collaborators explicitly; see
billing.container.build_services for how they are wired together.
"""

from billing.services.plans import PlanCatalog
from billing.services.settlement import Settlement, SettlementService
from billing.services.simulation import (
    FixedOutcomeStrategy,
    PaymentOutcomeStrategy,
    PaymentSimulationService,
    RandomOutcomeStrategy,
    SimulationResult,
)
from billing.services.statistics import StatisticsAggregator, TransactionStatistics
from billing.services.subscriptions import SubscriptionLifecycleEngine, add_billing_intervals
from billing.services.transactions import TransactionLedger
from billing.services.users import UserService

__all__ = [
    "FixedOutcomeStrategy",
    "PaymentOutcomeStrategy",
    "PaymentSimulationService",
    "PlanCatalog",
    "RandomOutcomeStrategy",
    "Settlement",
    "SettlementService",
    "SimulationResult",
    "StatisticsAggregator",
    "SubscriptionLifecycleEngine",
    "TransactionLedger",
    "TransactionStatistics",
    "UserService",
    "add_billing_intervals",
]
