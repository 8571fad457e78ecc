"""
Transaction ledger service.

Owns payment and refund records and their one-time finalization:

    pending → completed
    pending → failed

A finalized transaction never changes again except for append-only
``metadata``. The ledger knows nothing about subscription status; pairing
a finalized payment with a subscription transition is the job of
SettlementService.

Usage:
    txn = ledger.record(subscription.id, user.id, plan.id, subscription.price).data
    ledger.complete(txn.id)
    ledger.complete(txn.id)  # fails with ALREADY_FINALIZED
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from django.utils import timezone

from core.services import BaseService, ServiceResult

from billing.constants import BILLING_DEFAULTS, ErrorCode
from billing.records import to_datetime, to_decimal
from billing.state_machines import (
    TRANSACTION_TRANSITIONS,
    TransactionStatus,
    TransactionType,
    can_transition,
)
from billing.types import quantize_money

if TYPE_CHECKING:
    from datetime import datetime
    from typing import Any

    from billing.records import JsonRecordStore
    from billing.types import Transaction


class TransactionLedger(BaseService):
    """Records payment attempts and refunds and finalizes them exactly once."""

    def __init__(
        self,
        transactions: JsonRecordStore[Transaction],
        currency: str = BILLING_DEFAULTS.CURRENCY,
    ):
        self.transactions = transactions
        self.currency = currency

    @staticmethod
    def _clean_amount(amount: Any) -> tuple[Decimal | None, ServiceResult | None]:
        try:
            value = to_decimal(amount)
        except ValueError:
            value = None
        if value is None or not value.is_finite() or value <= 0:
            return None, ServiceResult.failure(
                "Amount must be positive",
                error_code=ErrorCode.VALIDATION_ERROR,
                errors={"amount": ["Must be a positive amount."]},
            )
        return quantize_money(value), None

    # -------------------------------------------------------------------------
    # Recording
    # -------------------------------------------------------------------------

    def record(
        self,
        subscription_id: str,
        user_id: str,
        plan_id: str,
        amount: Any,
        payment_method: str | None = None,
        description: str | None = None,
        external_ref: str | None = None,
        currency: str | None = None,
    ) -> ServiceResult[Transaction]:
        """Record a PENDING payment attempt."""
        invalid = self.validate_required(
            subscription_id=subscription_id, user_id=user_id, plan_id=plan_id
        )
        if invalid is not None:
            return invalid
        value, invalid = self._clean_amount(amount)
        if invalid is not None:
            return invalid

        transaction = self.transactions.create(
            subscription_id=subscription_id,
            user_id=user_id,
            plan_id=plan_id,
            type=TransactionType.PAYMENT.value,
            status=TransactionStatus.PENDING.value,
            amount=value,
            currency=(currency or self.currency).upper(),
            payment_method=payment_method,
            external_ref=external_ref,
            description=description,
            created_at=timezone.now(),
            completed_at=None,
            metadata={},
        )
        self.get_logger().info(
            f"Recorded payment {transaction.id}",
            extra={
                "transaction_id": transaction.id,
                "subscription_id": subscription_id,
                "amount": str(value),
            },
        )
        return ServiceResult.success(transaction)

    def record_refund(
        self,
        transaction_id: str,
        amount: Any = None,
        description: str | None = None,
    ) -> ServiceResult[Transaction]:
        """
        Record a PENDING refund against a completed payment.

        ``amount`` defaults to the full payment and may not exceed it
        minus refunds already completed or pending.
        """
        original = self.transactions.find_by_id(transaction_id)
        if original is None:
            return self._not_found(transaction_id)
        if (
            original.type != TransactionType.PAYMENT
            or original.status != TransactionStatus.COMPLETED
        ):
            return ServiceResult.failure(
                "Only completed payments can be refunded",
                error_code=ErrorCode.INVALID_STATE,
            )

        already_refunded = sum(
            (
                refund.amount
                for refund in self.transactions.find_by(refunded_transaction_id=transaction_id)
                if refund.status != TransactionStatus.FAILED
            ),
            start=Decimal("0.00"),
        )
        refundable = original.amount - already_refunded

        if amount is None:
            value = refundable
        else:
            value, invalid = self._clean_amount(amount)
            if invalid is not None:
                return invalid
        if value <= 0 or value > refundable:
            return ServiceResult.failure(
                f"Refund amount must be between 0.01 and {refundable}",
                error_code=ErrorCode.VALIDATION_ERROR,
                errors={"amount": [f"At most {refundable} can be refunded."]},
            )

        refund = self.transactions.create(
            subscription_id=original.subscription_id,
            user_id=original.user_id,
            plan_id=original.plan_id,
            type=TransactionType.REFUND.value,
            status=TransactionStatus.PENDING.value,
            amount=value,
            currency=original.currency,
            payment_method=original.payment_method,
            description=description or f"Refund of {original.id}",
            refunded_transaction_id=original.id,
            created_at=timezone.now(),
            completed_at=None,
            metadata={},
        )
        self.get_logger().info(
            f"Recorded refund {refund.id} for {original.id}",
            extra={"transaction_id": refund.id, "amount": str(value)},
        )
        return ServiceResult.success(refund)

    # -------------------------------------------------------------------------
    # Finalization
    # -------------------------------------------------------------------------

    def _finalize(self, transaction_id: str, target: TransactionStatus) -> ServiceResult[Transaction]:
        transaction = self.transactions.find_by_id(transaction_id)
        if transaction is None:
            return self._not_found(transaction_id)
        if not can_transition(TRANSACTION_TRANSITIONS, transaction.status, target):
            return ServiceResult.failure(
                f"Transaction {transaction_id} is already {transaction.status}",
                error_code=ErrorCode.ALREADY_FINALIZED,
            )

        updated = self.transactions.update(
            transaction_id,
            status=target.value,
            completed_at=timezone.now(),
        )
        self.get_logger().info(
            f"Transaction {transaction_id} {target.value}",
            extra={"transaction_id": transaction_id, "amount": str(transaction.amount)},
        )
        return ServiceResult.success(updated)

    def complete(self, transaction_id: str) -> ServiceResult[Transaction]:
        """PENDING → COMPLETED. Anything else fails with ALREADY_FINALIZED."""
        return self._finalize(transaction_id, TransactionStatus.COMPLETED)

    def fail(self, transaction_id: str) -> ServiceResult[Transaction]:
        """PENDING → FAILED. Anything else fails with ALREADY_FINALIZED."""
        return self._finalize(transaction_id, TransactionStatus.FAILED)

    def add_metadata(self, transaction_id: str, **metadata: Any) -> ServiceResult[Transaction]:
        """Append metadata keys; existing keys are never overwritten."""
        transaction = self.transactions.find_by_id(transaction_id)
        if transaction is None:
            return self._not_found(transaction_id)

        clashing = sorted(set(metadata) & set(transaction.metadata))
        if clashing:
            return ServiceResult.failure(
                f"Metadata keys already set: {', '.join(clashing)}",
                error_code=ErrorCode.VALIDATION_ERROR,
            )
        merged = {**transaction.metadata, **metadata}
        return ServiceResult.success(self.transactions.update(transaction_id, metadata=merged))

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, transaction_id: str) -> ServiceResult[Transaction]:
        transaction = self.transactions.find_by_id(transaction_id)
        if transaction is None:
            return self._not_found(transaction_id)
        return ServiceResult.success(transaction)

    def list_all(self) -> list[Transaction]:
        return self.transactions.find_all()

    def list_for_user(self, user_id: str) -> list[Transaction]:
        return self.transactions.find_by(user_id=user_id)

    def list_for_subscription(self, subscription_id: str) -> list[Transaction]:
        return self.transactions.find_by(subscription_id=subscription_id)

    def list_by(self, type: str | None = None, status: str | None = None) -> list[Transaction]:
        criteria = {}
        if type is not None:
            criteria["type"] = type
        if status is not None:
            criteria["status"] = status
        return self.transactions.find_by(**criteria)

    def list_between(self, start: datetime | str | None = None, end: datetime | str | None = None) -> list[Transaction]:
        """Transactions created in [start, end); either bound may be open."""
        start = to_datetime(start) if start is not None else None
        end = to_datetime(end) if end is not None else None
        return [
            transaction
            for transaction in self.transactions.find_all()
            if (start is None or transaction.created_at >= start)
            and (end is None or transaction.created_at < end)
        ]

    def latest_pending_for_subscription(self, subscription_id: str) -> Transaction | None:
        pending = self.transactions.find_by(
            subscription_id=subscription_id,
            type=TransactionType.PAYMENT.value,
            status=TransactionStatus.PENDING.value,
        )
        if not pending:
            return None
        return sorted(pending, key=lambda t: t.created_at)[-1]

    def find_by_external_ref(self, external_ref: str) -> Transaction | None:
        matches = self.transactions.find_by(external_ref=external_ref)
        return matches[0] if matches else None

    @staticmethod
    def _not_found(transaction_id: str) -> ServiceResult:
        return ServiceResult.failure(
            f"Transaction {transaction_id} not found",
            error_code=ErrorCode.TRANSACTION_NOT_FOUND,
        )
