"""
Tests for the transaction ledger.

Finalization happens once; metadata only grows; refunds never exceed
what was paid.
"""

from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

import pytest

from billing.constants import ErrorCode
from billing.state_machines import TransactionStatus, TransactionType


def record_payment(services, subscription, amount="100.00", **kwargs):
    return services.ledger.record(
        subscription.id, subscription.user_id, subscription.plan_id, amount, **kwargs
    )


# =============================================================================
# Recording
# =============================================================================


class TestRecord:
    def test_record_pending_payment(self, services, pending_subscription):
        result = record_payment(services, pending_subscription, "99.999", payment_method="card")

        transaction = result.data
        assert transaction.status == TransactionStatus.PENDING
        assert transaction.type == TransactionType.PAYMENT
        assert transaction.amount == Decimal("100.00")
        assert transaction.currency == "UAH"
        assert transaction.completed_at is None
        assert transaction.metadata == {}

    @pytest.mark.parametrize("amount", ["0", "-5", "abc", None, "NaN"])
    def test_rejects_bad_amount(self, services, pending_subscription, amount):
        result = record_payment(services, pending_subscription, amount)

        assert result.error_code == ErrorCode.VALIDATION_ERROR
        assert services.ledger.list_all() == []

    def test_requires_ids(self, services):
        result = services.ledger.record("", "user", "plan", "10.00")

        assert result.error_code == ErrorCode.VALIDATION_ERROR
        assert "subscription_id" in result.errors


# =============================================================================
# Finalization
# =============================================================================


class TestFinalize:
    def test_complete_sets_completed_at(self, frozen_now, services, pending_payment):
        result = services.ledger.complete(pending_payment.id)

        assert result.data.status == TransactionStatus.COMPLETED
        assert result.data.completed_at == datetime(2024, 1, 15, 12, tzinfo=dt_timezone.utc)

    def test_fail(self, services, pending_payment):
        assert services.ledger.fail(pending_payment.id).data.status == TransactionStatus.FAILED

    @pytest.mark.parametrize(
        "first,second",
        [("complete", "complete"), ("complete", "fail"), ("fail", "complete"), ("fail", "fail")],
    )
    def test_second_finalization_rejected(self, services, pending_payment, first, second):
        """A finalized transaction is never re-finalized."""
        finalized = getattr(services.ledger, first)(pending_payment.id).data

        result = getattr(services.ledger, second)(pending_payment.id)

        assert result.error_code == ErrorCode.ALREADY_FINALIZED
        assert services.ledger.get(pending_payment.id).data == finalized

    def test_unknown_transaction(self, services):
        assert services.ledger.complete("missing").error_code == ErrorCode.TRANSACTION_NOT_FOUND


# =============================================================================
# Metadata
# =============================================================================


class TestMetadata:
    def test_append_after_finalization(self, services, pending_payment):
        services.ledger.complete(pending_payment.id)

        services.ledger.add_metadata(pending_payment.id, gateway="sandbox")
        result = services.ledger.add_metadata(pending_payment.id, attempt=2)

        assert result.data.metadata == {"gateway": "sandbox", "attempt": 2}
        assert result.data.status == TransactionStatus.COMPLETED

    def test_existing_keys_are_not_overwritten(self, services, pending_payment):
        services.ledger.add_metadata(pending_payment.id, gateway="sandbox")

        result = services.ledger.add_metadata(pending_payment.id, gateway="live")

        assert result.error_code == ErrorCode.VALIDATION_ERROR
        assert services.ledger.get(pending_payment.id).data.metadata == {"gateway": "sandbox"}

    def test_returned_metadata_cannot_be_edited_in_place(self, services, pending_payment):
        services.ledger.add_metadata(pending_payment.id, gateway="sandbox")

        services.ledger.get(pending_payment.id).data.metadata["gateway"] = "live"

        assert services.ledger.get(pending_payment.id).data.metadata == {"gateway": "sandbox"}


# =============================================================================
# Refunds
# =============================================================================


class TestRefunds:
    @pytest.fixture
    def completed_payment(self, services, pending_payment):
        return services.ledger.complete(pending_payment.id).data

    def test_full_refund_by_default(self, services, completed_payment):
        refund = services.ledger.record_refund(completed_payment.id).data

        assert refund.type == TransactionType.REFUND
        assert refund.status == TransactionStatus.PENDING
        assert refund.amount == Decimal("100.00")
        assert refund.refunded_transaction_id == completed_payment.id

    def test_partial_refunds_up_to_paid_amount(self, services, completed_payment):
        services.ledger.record_refund(completed_payment.id, "60.00")
        services.ledger.record_refund(completed_payment.id, "40.00")

        result = services.ledger.record_refund(completed_payment.id, "0.01")

        assert result.error_code == ErrorCode.VALIDATION_ERROR

    def test_failed_refund_frees_amount(self, services, completed_payment):
        refund = services.ledger.record_refund(completed_payment.id).data
        services.ledger.fail(refund.id)

        assert services.ledger.record_refund(completed_payment.id, "100.00").success

    def test_over_refund_rejected(self, services, completed_payment):
        result = services.ledger.record_refund(completed_payment.id, "100.01")
        assert result.error_code == ErrorCode.VALIDATION_ERROR

    def test_pending_payment_not_refundable(self, services, pending_payment):
        result = services.ledger.record_refund(pending_payment.id)
        assert result.error_code == ErrorCode.INVALID_STATE

    def test_refund_of_refund_rejected(self, services, completed_payment):
        refund = services.ledger.record_refund(completed_payment.id).data
        services.ledger.complete(refund.id)

        assert services.ledger.record_refund(refund.id).error_code == ErrorCode.INVALID_STATE


# =============================================================================
# Queries
# =============================================================================


class TestQueries:
    def test_list_between_is_half_open(self, frozen_now, services, pending_subscription):
        frozen_now.move_to("2024-01-31T23:59:59Z")
        january = record_payment(services, pending_subscription).data
        frozen_now.move_to("2024-02-01T00:00:00Z")
        february = record_payment(services, pending_subscription).data

        in_january = services.ledger.list_between("2024-01-01T00:00:00Z", "2024-02-01T00:00:00Z")
        from_february = services.ledger.list_between(start="2024-02-01T00:00:00Z")

        assert [t.id for t in in_january] == [january.id]
        assert [t.id for t in from_february] == [february.id]

    def test_latest_pending(self, frozen_now, services, pending_subscription):
        assert services.ledger.latest_pending_for_subscription(pending_subscription.id) is None

        record_payment(services, pending_subscription)
        frozen_now.tick(60)
        newer = record_payment(services, pending_subscription).data

        latest = services.ledger.latest_pending_for_subscription(pending_subscription.id)
        assert latest.id == newer.id

    def test_find_by_external_ref(self, services, pending_subscription):
        transaction = record_payment(services, pending_subscription, external_ref="evt_1").data

        assert services.ledger.find_by_external_ref("evt_1") == transaction
        assert services.ledger.find_by_external_ref("evt_2") is None

    def test_list_filters(self, services, pending_payment, other_user):
        services.ledger.complete(pending_payment.id)

        assert services.ledger.list_by(status="completed") == [
            services.ledger.get(pending_payment.id).data
        ]
        assert services.ledger.list_by(type="refund") == []
        assert services.ledger.list_for_user(other_user.id) == []
        assert len(services.ledger.list_for_subscription(pending_payment.subscription_id)) == 1
