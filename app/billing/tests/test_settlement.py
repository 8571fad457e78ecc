"""
Tests for SettlementService.

A settlement finalizes a payment and transitions its subscription
together; an interrupted one is replayed when services are rebuilt.
"""

from django.utils import timezone

from billing.constants import ErrorCode
from billing.container import build_services
from billing.services import FixedOutcomeStrategy
from billing.state_machines import (
    SettlementStatus,
    SubscriptionState,
    TransactionStatus,
)


def write_intent(services, transaction, succeeded=True):
    """Leave a PENDING intent behind, as a crash after step 1 would."""
    return services.intent_store.create(
        transaction_id=transaction.id,
        subscription_id=transaction.subscription_id,
        succeeded=succeeded,
        status=SettlementStatus.PENDING.value,
        created_at=timezone.now(),
        applied_at=None,
    )


def rebuild(data_dir):
    return build_services(data_dir, outcome_strategy=FixedOutcomeStrategy(True))


class TestSettle:
    def test_success_activates(self, services, pending_subscription, pending_payment):
        result = services.settlement.settle(pending_payment.id, pending_subscription.id, True)

        assert result.data.transaction.status == TransactionStatus.COMPLETED
        assert result.data.subscription.status == SubscriptionState.ACTIVE
        intents = services.intent_store.find_all()
        assert [i.status for i in intents] == [SettlementStatus.APPLIED]
        assert intents[0].applied_at is not None

    def test_failure_marks_payment_failed(self, services, pending_subscription, pending_payment):
        result = services.settlement.settle(pending_payment.id, pending_subscription.id, False)

        assert result.data.transaction.status == TransactionStatus.FAILED
        assert result.data.subscription.status == SubscriptionState.PAYMENT_FAILED

    def test_period_end_untouched(self, services, pending_subscription, pending_payment):
        result = services.settlement.settle(pending_payment.id, pending_subscription.id, True)
        assert result.data.subscription.current_period_end == pending_subscription.current_period_end

    def test_finalized_transaction_rejected(self, services, pending_subscription, pending_payment):
        services.ledger.fail(pending_payment.id)

        result = services.settlement.settle(pending_payment.id, pending_subscription.id, True)

        assert result.error_code == ErrorCode.ALREADY_FINALIZED
        assert services.intent_store.find_all() == []

    def test_foreign_transaction_rejected(self, services, user, monthly_plan, pending_payment):
        other = services.engine.create(user.id, monthly_plan.id).data

        result = services.settlement.settle(pending_payment.id, other.id, True)

        assert result.error_code == ErrorCode.VALIDATION_ERROR
        assert services.ledger.get(pending_payment.id).data.status == TransactionStatus.PENDING

    def test_cancelled_subscription_payment_still_failed(
        self, services, pending_subscription, pending_payment
    ):
        """The payment is finalized; the cancelled subscription does not move."""
        services.engine.cancel(pending_subscription.id)

        result = services.settlement.settle(pending_payment.id, pending_subscription.id, False)

        assert result.success
        assert result.data.transaction.status == TransactionStatus.FAILED
        assert result.data.subscription.status == SubscriptionState.CANCELLED
        assert services.ledger.latest_pending_for_subscription(pending_subscription.id) is None
        assert services.intent_store.find_all()[0].status == SettlementStatus.APPLIED

    def test_expired_subscription_payment_completed(
        self, frozen_now, services, active_subscription
    ):
        late = services.ledger.record(
            active_subscription.id,
            active_subscription.user_id,
            active_subscription.plan_id,
            active_subscription.price,
        ).data
        frozen_now.move_to(active_subscription.current_period_end)
        services.engine.expire(active_subscription.id)

        result = services.settlement.settle(late.id, active_subscription.id, True)

        assert result.data.transaction.status == TransactionStatus.COMPLETED
        assert result.data.subscription.status == SubscriptionState.EXPIRED
        assert not services.engine.is_active(active_subscription.id)

    def test_refund_cannot_be_settled(self, services, active_subscription, pending_payment):
        refund = services.ledger.record_refund(pending_payment.id).data

        result = services.settlement.settle(refund.id, active_subscription.id, True)

        assert result.error_code == ErrorCode.VALIDATION_ERROR

    def test_unknown_records(self, services, pending_subscription, pending_payment):
        assert (
            services.settlement.settle("missing", pending_subscription.id, True).error_code
            == ErrorCode.TRANSACTION_NOT_FOUND
        )
        assert (
            services.settlement.settle(pending_payment.id, "missing", True).error_code
            == ErrorCode.SUBSCRIPTION_NOT_FOUND
        )


class TestRecoverPending:
    def test_replays_untouched_intent(self, data_dir, services, pending_subscription, pending_payment):
        write_intent(services, pending_payment)

        restarted = rebuild(data_dir)

        assert restarted.ledger.get(pending_payment.id).data.status == TransactionStatus.COMPLETED
        assert restarted.engine.get(pending_subscription.id).data.status == SubscriptionState.ACTIVE
        assert restarted.intent_store.find_all()[0].status == SettlementStatus.APPLIED

    def test_finishes_half_applied_intent(self, data_dir, services, pending_subscription, pending_payment):
        """Transaction finalized but subscription never moved."""
        write_intent(services, pending_payment, succeeded=False)
        services.ledger.fail(pending_payment.id)

        restarted = rebuild(data_dir)

        subscription = restarted.engine.get(pending_subscription.id).data
        assert subscription.status == SubscriptionState.PAYMENT_FAILED

    def test_contradicting_intent_abandoned(self, data_dir, services, pending_subscription, pending_payment):
        write_intent(services, pending_payment, succeeded=False)
        services.ledger.complete(pending_payment.id)

        restarted = rebuild(data_dir)

        assert restarted.intent_store.find_all()[0].status == SettlementStatus.ABANDONED
        assert restarted.engine.get(pending_subscription.id).data.status == SubscriptionState.PENDING

    def test_returns_applied_count(self, services, pending_payment):
        write_intent(services, pending_payment)

        assert services.settlement.recover_pending().data == 1
        assert services.settlement.recover_pending().data == 0
