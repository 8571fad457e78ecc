"""
Settlement: finalize a payment and move its subscription as one unit.

Finalizing a transaction and transitioning its subscription are two
separate store writes. SettlementService brackets them with a
write-ahead SettlementIntent:

    1. intent written as PENDING
    2. transaction completed / failed
    3. subscription activated / marked payment_failed
    4. intent marked APPLIED

A cancelled or expired subscription is left as it is: step 3 is skipped
and only the payment is finalized.

If the process dies between 1 and 4, ``recover_pending`` (run when the
services are built at process start) replays the intent. Each step is
safe to repeat: an already-finalized transaction in the expected status
is accepted and subscription transitions are idempotent.

Usage:
    settlement.settle(transaction.id, subscription.id, succeeded=True)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.utils import timezone

from core.services import BaseService, ServiceResult

from billing.constants import ErrorCode
from billing.state_machines import (
    TERMINAL_SUBSCRIPTION_STATES,
    SettlementStatus,
    TransactionStatus,
    TransactionType,
)

if TYPE_CHECKING:
    from billing.records import JsonRecordStore
    from billing.services.subscriptions import SubscriptionLifecycleEngine
    from billing.services.transactions import TransactionLedger
    from billing.types import SettlementIntent, Subscription, Transaction


@dataclass(frozen=True)
class Settlement:
    """Both records after a settlement was applied."""

    transaction: Transaction
    subscription: Subscription


class SettlementService(BaseService):
    """Applies payment outcomes to ledger and subscription together."""

    def __init__(
        self,
        intents: JsonRecordStore[SettlementIntent],
        ledger: TransactionLedger,
        engine: SubscriptionLifecycleEngine,
    ):
        self.intents = intents
        self.ledger = ledger
        self.engine = engine

    def settle(
        self,
        transaction_id: str,
        subscription_id: str,
        succeeded: bool,
    ) -> ServiceResult[Settlement]:
        """
        Finalize ``transaction_id`` and transition ``subscription_id``.

        All preconditions are checked before the first write, so a
        rejected settlement leaves no trace.
        """
        transaction_result = self.ledger.get(transaction_id)
        if not transaction_result:
            return transaction_result
        subscription_result = self.engine.get(subscription_id)
        if not subscription_result:
            return subscription_result
        transaction = transaction_result.data
        subscription = subscription_result.data

        if transaction.subscription_id != subscription_id:
            return ServiceResult.failure(
                f"Transaction {transaction_id} does not belong to subscription {subscription_id}",
                error_code=ErrorCode.VALIDATION_ERROR,
            )
        if transaction.type != TransactionType.PAYMENT:
            return ServiceResult.failure(
                "Only payments can be settled against a subscription",
                error_code=ErrorCode.VALIDATION_ERROR,
            )
        if transaction.status not in (TransactionStatus.PENDING, self._target_status(succeeded)):
            return ServiceResult.failure(
                f"Transaction {transaction_id} is already {transaction.status}",
                error_code=ErrorCode.ALREADY_FINALIZED,
            )
        intent = self.intents.create(
            transaction_id=transaction_id,
            subscription_id=subscription_id,
            succeeded=succeeded,
            status=SettlementStatus.PENDING.value,
            created_at=timezone.now(),
            applied_at=None,
        )
        return self._apply(intent)

    def recover_pending(self) -> ServiceResult[int]:
        """
        Replay intents left PENDING by an interrupted settlement.

        Intents whose replay is rejected by the current record states are
        marked ABANDONED and logged.

        Returns:
            ServiceResult with the number of intents applied
        """
        applied = 0
        for intent in self.intents.find_by(status=SettlementStatus.PENDING.value):
            self.get_logger().warning(
                f"Replaying interrupted settlement {intent.id}",
                extra={
                    "intent_id": intent.id,
                    "transaction_id": intent.transaction_id,
                    "subscription_id": intent.subscription_id,
                },
            )
            result = self._apply(intent)
            if result:
                applied += 1
                continue
            self.intents.update(intent.id, status=SettlementStatus.ABANDONED.value)
            self.get_logger().error(
                f"Abandoned settlement {intent.id}: {result.error}",
                extra={"intent_id": intent.id, "error_code": result.error_code},
            )
        return ServiceResult.success(applied)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @staticmethod
    def _target_status(succeeded: bool) -> TransactionStatus:
        return TransactionStatus.COMPLETED if succeeded else TransactionStatus.FAILED

    def _apply(self, intent: SettlementIntent) -> ServiceResult[Settlement]:
        target = self._target_status(intent.succeeded)

        transaction_result = self.ledger.get(intent.transaction_id)
        if not transaction_result:
            return transaction_result
        transaction = transaction_result.data
        if transaction.status == TransactionStatus.PENDING:
            finalize = self.ledger.complete if intent.succeeded else self.ledger.fail
            transaction_result = finalize(transaction.id)
            if not transaction_result:
                return transaction_result
            transaction = transaction_result.data
        elif transaction.status != target:
            return ServiceResult.failure(
                f"Transaction {transaction.id} is already {transaction.status}",
                error_code=ErrorCode.ALREADY_FINALIZED,
            )

        subscription_result = self.engine.get(intent.subscription_id)
        if not subscription_result:
            return subscription_result
        # Ended subscriptions stay ended; only the ledger is finalized
        if subscription_result.data.status not in TERMINAL_SUBSCRIPTION_STATES:
            transition = self.engine.activate if intent.succeeded else self.engine.mark_payment_failed
            subscription_result = transition(intent.subscription_id)
            if not subscription_result:
                return subscription_result

        self.intents.update(
            intent.id,
            status=SettlementStatus.APPLIED.value,
            applied_at=timezone.now(),
        )
        self.get_logger().info(
            f"Settled transaction {transaction.id} as {target.value}",
            extra={
                "intent_id": intent.id,
                "transaction_id": transaction.id,
                "subscription_id": intent.subscription_id,
                "subscription_status": subscription_result.data.status,
            },
        )
        return ServiceResult.success(
            Settlement(transaction=transaction, subscription=subscription_result.data)
        )
