"""
Subscription lifecycle engine.

Owns subscription records and every status change they go through.
No other component writes ``status``; the record store is a passive
ledger for this service.

State Machine:
    pending → active → cancelled / expired
    pending → payment_failed → active / cancelled
    active → payment_failed
    pending → cancelled

Entitlement:
    ``is_active`` is the authoritative check: status must be ACTIVE (or
    CANCELLED straight from ACTIVE, which keeps the period already
    paid for) and the current period must not have ended. Expiry is
    derived from the date until ``expire``/``expire_lapsed`` is called
    explicitly; there is no timer.

Failure semantics:
    Unknown ids and disallowed transitions come back as failed
    ServiceResults (SUBSCRIPTION_NOT_FOUND, INVALID_STATE). Store I/O
    errors propagate as RecordStoreError.

Usage:
    result = engine.create(user_id, plan_id)
    engine.activate(result.data.id)
    engine.is_active(result.data.id)  # True until current_period_end
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from dateutil.relativedelta import relativedelta
from django.utils import timezone

from core.services import BaseService, ServiceResult

from billing.constants import ErrorCode
from billing.state_machines import (
    SUBSCRIPTION_TRANSITIONS,
    TERMINAL_SUBSCRIPTION_STATES,
    BillingInterval,
    SubscriptionState,
    can_transition,
)

if TYPE_CHECKING:
    from typing import Any

    from billing.records import JsonRecordStore
    from billing.services.plans import PlanCatalog
    from billing.types import Plan, Subscription, User


def add_billing_intervals(start: datetime, billing_interval: str, count: int = 1) -> datetime:
    """
    Move ``start`` forward by ``count`` billing intervals.

    Calendar arithmetic: Jan 31 + 1 month is Feb 28/29, Feb 29 + 1 year
    is Feb 28.
    """
    if billing_interval == BillingInterval.MONTHLY:
        return start + relativedelta(months=count)
    if billing_interval == BillingInterval.YEARLY:
        return start + relativedelta(years=count)
    raise ValueError(f"Unknown billing interval: {billing_interval!r}")


class SubscriptionLifecycleEngine(BaseService):
    """Creates subscriptions and applies their named transitions."""

    def __init__(
        self,
        subscriptions: JsonRecordStore[Subscription],
        users: JsonRecordStore[User],
        catalog: PlanCatalog,
    ):
        self.subscriptions = subscriptions
        self.users = users
        self.catalog = catalog

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create(
        self,
        user_id: str,
        plan_id: str,
        payment_method: str | None = None,
        auto_renew: bool = True,
    ) -> ServiceResult[Subscription]:
        """
        Create a PENDING subscription to an active plan.

        The plan's price and billing interval are snapshotted; the first
        period ends one interval after now.
        """
        user = self.users.find_by_id(user_id)
        if user is None or not user.is_active:
            return ServiceResult.failure(
                f"User {user_id} not found",
                error_code=ErrorCode.USER_NOT_FOUND,
            )

        plan_result = self.catalog.get_active_plan(plan_id)
        if not plan_result:
            return plan_result
        plan: Plan = plan_result.data

        now = timezone.now()
        subscription = self.subscriptions.create(
            user_id=user_id,
            plan_id=plan.id,
            status=SubscriptionState.PENDING.value,
            start_date=now,
            current_period_end=add_billing_intervals(now, plan.billing_interval),
            price=plan.price,
            billing_interval=plan.billing_interval,
            auto_renew=auto_renew,
            payment_method=payment_method,
            created_at=now,
            updated_at=now,
        )

        self.get_logger().info(
            f"Created subscription {subscription.id}",
            extra={
                "subscription_id": subscription.id,
                "user_id": user_id,
                "plan_id": plan.id,
                "current_period_end": subscription.current_period_end.isoformat(),
            },
        )
        return ServiceResult.success(subscription)

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def _transition(
        self,
        subscription_id: str,
        target: SubscriptionState,
        action: str,
        **changes: Any,
    ) -> ServiceResult[Subscription]:
        """
        Move a subscription to ``target`` if the state machine allows it.

        A subscription already in ``target`` is returned unchanged, which
        makes every transition safe to replay.
        """
        subscription = self.subscriptions.find_by_id(subscription_id)
        if subscription is None:
            return self._not_found(subscription_id)

        if subscription.status == target:
            return ServiceResult.success(
                subscription,
                message=f"Subscription already {target.value}",
            )

        if not can_transition(SUBSCRIPTION_TRANSITIONS, subscription.status, target):
            self.get_logger().warning(
                f"Rejected {action} for subscription {subscription_id}",
                extra={"subscription_id": subscription_id, "status": subscription.status},
            )
            return self._invalid_state(subscription, action)

        now = timezone.now()
        if target == SubscriptionState.ACTIVE and subscription.activated_at is None:
            changes["activated_at"] = now
        if target == SubscriptionState.CANCELLED:
            changes["cancelled_from"] = subscription.status
        updated = self.subscriptions.update(
            subscription_id,
            status=target.value,
            updated_at=now,
            **changes,
        )
        self.get_logger().info(
            f"Subscription {subscription_id}: {subscription.status} -> {target.value}",
            extra={"subscription_id": subscription_id, "action": action},
        )
        return ServiceResult.success(updated)

    def activate(self, subscription_id: str) -> ServiceResult[Subscription]:
        """
        PENDING/PAYMENT_FAILED → ACTIVE.

        Never touches current_period_end; calling it on an ACTIVE
        subscription returns it unchanged.
        """
        return self._transition(subscription_id, SubscriptionState.ACTIVE, "activate")

    def mark_payment_failed(self, subscription_id: str) -> ServiceResult[Subscription]:
        """PENDING/ACTIVE → PAYMENT_FAILED."""
        return self._transition(
            subscription_id, SubscriptionState.PAYMENT_FAILED, "mark payment failed"
        )

    def cancel(self, subscription_id: str) -> ServiceResult[Subscription]:
        """
        Any non-terminal state → CANCELLED.

        current_period_end is kept: cancellation stops renewal but does not
        revoke the period already paid for. The prior status is recorded
        as cancelled_from.
        """
        return self._transition(
            subscription_id, SubscriptionState.CANCELLED, "cancel", auto_renew=False
        )

    def renew(self, subscription_id: str, interval_count: int = 1) -> ServiceResult[Subscription]:
        """
        Extend by ``interval_count`` billing intervals and force ACTIVE.

        The extension starts from the current current_period_end, not from
        now, so renewing early never shortens a period.
        """
        if isinstance(interval_count, bool) or not isinstance(interval_count, int) or interval_count < 1:
            return ServiceResult.failure(
                "interval_count must be a positive integer",
                error_code=ErrorCode.VALIDATION_ERROR,
                errors={"interval_count": ["Must be a positive integer."]},
            )

        subscription = self.subscriptions.find_by_id(subscription_id)
        if subscription is None:
            return self._not_found(subscription_id)
        if subscription.status in TERMINAL_SUBSCRIPTION_STATES:
            return self._invalid_state(subscription, "renew")

        new_end = add_billing_intervals(
            subscription.current_period_end,
            subscription.billing_interval,
            interval_count,
        )
        now = timezone.now()
        updated = self.subscriptions.update(
            subscription_id,
            status=SubscriptionState.ACTIVE.value,
            current_period_end=new_end,
            activated_at=subscription.activated_at or now,
            updated_at=now,
        )
        self.get_logger().info(
            f"Renewed subscription {subscription_id}",
            extra={
                "subscription_id": subscription_id,
                "interval_count": interval_count,
                "current_period_end": new_end.isoformat(),
            },
        )
        return ServiceResult.success(updated)

    def expire(self, subscription_id: str, now: datetime | None = None) -> ServiceResult[Subscription]:
        """ACTIVE → EXPIRED, only once the current period has ended."""
        now = now or timezone.now()
        subscription = self.subscriptions.find_by_id(subscription_id)
        if subscription is None:
            return self._not_found(subscription_id)
        if subscription.status == SubscriptionState.ACTIVE and subscription.current_period_end > now:
            return ServiceResult.failure(
                "Subscription period has not ended",
                error_code=ErrorCode.INVALID_STATE,
            )
        return self._transition(subscription_id, SubscriptionState.EXPIRED, "expire")

    def expire_lapsed(self, now: datetime | None = None) -> ServiceResult[list[Subscription]]:
        """Expire every ACTIVE subscription whose period has ended."""
        now = now or timezone.now()
        expired = []
        for subscription in self.subscriptions.find_by(status=SubscriptionState.ACTIVE.value):
            if subscription.current_period_end <= now:
                result = self._transition(subscription.id, SubscriptionState.EXPIRED, "expire")
                if result:
                    expired.append(result.data)
        if expired:
            self.get_logger().info(f"Expired {len(expired)} lapsed subscriptions")
        return ServiceResult.success(expired)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def is_active(self, subscription_id: str, now: datetime | None = None) -> bool:
        """
        Entitlement check: current_period_end still ahead and the status
        ACTIVE, or CANCELLED straight from ACTIVE.

        A subscription cancelled while pending or payment_failed never
        regains access.
        """
        subscription = self.subscriptions.find_by_id(subscription_id)
        if subscription is None:
            return False
        if subscription.status == SubscriptionState.CANCELLED:
            if subscription.cancelled_from != SubscriptionState.ACTIVE:
                return False
        elif subscription.status != SubscriptionState.ACTIVE:
            return False
        now = now or timezone.now()
        return subscription.current_period_end > now

    def get(self, subscription_id: str) -> ServiceResult[Subscription]:
        subscription = self.subscriptions.find_by_id(subscription_id)
        if subscription is None:
            return self._not_found(subscription_id)
        return ServiceResult.success(subscription)

    def list_all(self) -> list[Subscription]:
        return self.subscriptions.find_all()

    def list_for_user(self, user_id: str) -> list[Subscription]:
        return self.subscriptions.find_by(user_id=user_id)

    def get_active_for_user(self, user_id: str) -> Subscription | None:
        for subscription in self.subscriptions.find_by(
            user_id=user_id, status=SubscriptionState.ACTIVE.value
        ):
            if self.is_active(subscription.id):
                return subscription
        return None

    def list_for_plan(self, plan_id: str, status: str | None = None) -> list[Subscription]:
        if status is None:
            return self.subscriptions.find_by(plan_id=plan_id)
        return self.subscriptions.find_by(plan_id=plan_id, status=status)

    def get_with_plan(self, subscription_id: str) -> ServiceResult[tuple[Subscription, Plan | None]]:
        """The subscription together with its plan (None if the plan was deleted)."""
        result = self.get(subscription_id)
        if not result:
            return result
        plan = self.catalog.plans.find_by_id(result.data.plan_id)
        return ServiceResult.success((result.data, plan))

    def list_for_user_with_plans(self, user_id: str) -> list[tuple[Subscription, Plan | None]]:
        return [
            (subscription, self.catalog.plans.find_by_id(subscription.plan_id))
            for subscription in self.list_for_user(user_id)
        ]

    def delete(self, subscription_id: str) -> ServiceResult[bool]:
        """Administrative removal. Ended subscriptions are normally retained."""
        if not self.subscriptions.delete(subscription_id):
            return self._not_found(subscription_id)
        self.get_logger().warning(f"Deleted subscription {subscription_id}")
        return ServiceResult.success(True, message="Subscription deleted")

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _not_found(subscription_id: str) -> ServiceResult:
        return ServiceResult.failure(
            f"Subscription {subscription_id} not found",
            error_code=ErrorCode.SUBSCRIPTION_NOT_FOUND,
        )

    @staticmethod
    def _invalid_state(subscription: Subscription, action: str) -> ServiceResult:
        return ServiceResult.failure(
            f"Cannot {action} subscription in '{subscription.status}' status",
            error_code=ErrorCode.INVALID_STATE,
        )
