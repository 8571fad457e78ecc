"""
Payment simulation.

Stands in for a payment gateway during demos: a checkout creates a
pending subscription and payment, asks an outcome strategy whether the
payment went through, and settles both records accordingly.

The strategy is injected so tests substitute a deterministic one.

Usage:
    simulator = PaymentSimulationService(engine, ledger, settlement,
                                         RandomOutcomeStrategy(0.8))
    result = simulator.simulate(user.id, plan.id)
    result.data.succeeded
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from core.services import BaseService, ServiceResult

from billing.constants import BILLING_DEFAULTS

if TYPE_CHECKING:
    from decimal import Decimal

    from billing.services.settlement import SettlementService
    from billing.services.subscriptions import SubscriptionLifecycleEngine
    from billing.services.transactions import TransactionLedger
    from billing.types import Subscription, Transaction


@runtime_checkable
class PaymentOutcomeStrategy(Protocol):
    """Decides whether a simulated payment succeeds."""

    def attempt_payment(self, subscription_id: str, amount: Decimal) -> bool: ...


class RandomOutcomeStrategy:
    """Succeeds with probability ``success_rate``."""

    def __init__(
        self,
        success_rate: float = BILLING_DEFAULTS.SIMULATION_SUCCESS_RATE,
        rng: random.Random | None = None,
    ):
        if not 0.0 <= success_rate <= 1.0:
            raise ValueError("success_rate must be between 0 and 1")
        self.success_rate = success_rate
        self.rng = rng or random.Random()

    def attempt_payment(self, subscription_id: str, amount: Decimal) -> bool:
        return self.rng.random() < self.success_rate


class FixedOutcomeStrategy:
    """Always returns the same outcome."""

    def __init__(self, outcome: bool):
        self.outcome = outcome

    def attempt_payment(self, subscription_id: str, amount: Decimal) -> bool:
        return self.outcome


@dataclass(frozen=True)
class SimulationResult:
    subscription: Subscription
    transaction: Transaction
    succeeded: bool


class PaymentSimulationService(BaseService):
    """Runs a simulated checkout end to end."""

    def __init__(
        self,
        engine: SubscriptionLifecycleEngine,
        ledger: TransactionLedger,
        settlement: SettlementService,
        strategy: PaymentOutcomeStrategy,
    ):
        self.engine = engine
        self.ledger = ledger
        self.settlement = settlement
        self.strategy = strategy

    def simulate(
        self,
        user_id: str,
        plan_id: str,
        payment_method: str | None = None,
        auto_renew: bool = True,
    ) -> ServiceResult[SimulationResult]:
        """
        Create a subscription, record its first payment and settle it
        with the strategy's outcome.
        """
        created = self.engine.create(
            user_id, plan_id, payment_method=payment_method, auto_renew=auto_renew
        )
        if not created:
            return created
        subscription = created.data

        recorded = self.ledger.record(
            subscription.id,
            user_id,
            subscription.plan_id,
            subscription.price,
            payment_method=payment_method,
            description="Simulated payment",
        )
        if not recorded:
            return recorded

        succeeded = bool(self.strategy.attempt_payment(subscription.id, subscription.price))
        settled = self.settlement.settle(recorded.data.id, subscription.id, succeeded)
        if not settled:
            return settled

        self.get_logger().info(
            f"Simulated payment for subscription {subscription.id}: "
            f"{'succeeded' if succeeded else 'failed'}",
            extra={"subscription_id": subscription.id, "transaction_id": recorded.data.id},
        )
        return ServiceResult.success(
            SimulationResult(
                subscription=settled.data.subscription,
                transaction=settled.data.transaction,
                succeeded=succeeded,
            ),
            message="Payment succeeded" if succeeded else "Payment failed",
        )
