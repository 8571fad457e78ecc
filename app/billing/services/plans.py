"""
Plan catalog service.

Read-mostly reference data: plan id → price and billing interval.

Plans are soft-deleted by deactivation. Hard deletion is refused while
any subscription references the plan, and price edits never reach
existing subscriptions because each subscription snapshots its price.

Usage:
    result = catalog.create_plan("Pro", Decimal("100.00"), BillingInterval.MONTHLY)
    plan = catalog.get_active_plan(result.data.id).data
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from django.utils import timezone

from core.services import BaseService, ServiceResult

from billing.constants import ErrorCode
from billing.records import to_decimal
from billing.state_machines import BillingInterval
from billing.types import quantize_money

if TYPE_CHECKING:
    from typing import Any, Iterable

    from billing.records import JsonRecordStore
    from billing.types import Plan, Subscription


class PlanCatalog(BaseService):
    """Create, query, edit and retire subscription plans."""

    UPDATABLE_FIELDS = frozenset(
        {"name", "description", "price", "billing_interval", "features"}
    )

    def __init__(
        self,
        plans: JsonRecordStore[Plan],
        subscriptions: JsonRecordStore[Subscription],
    ):
        self.plans = plans
        self.subscriptions = subscriptions

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    @staticmethod
    def _clean_price(price: Any) -> tuple[Decimal | None, ServiceResult | None]:
        try:
            value = to_decimal(price)
        except ValueError:
            value = None
        if value is None or not value.is_finite() or value <= 0:
            return None, ServiceResult.failure(
                "Price must be a positive amount",
                error_code=ErrorCode.VALIDATION_ERROR,
                errors={"price": ["Must be a positive amount."]},
            )
        return quantize_money(value), None

    @staticmethod
    def _check_interval(billing_interval: str) -> ServiceResult | None:
        if billing_interval not in BillingInterval.values:
            return ServiceResult.failure(
                f"Billing interval must be one of {', '.join(BillingInterval.values)}",
                error_code=ErrorCode.VALIDATION_ERROR,
                errors={"billing_interval": [f"Invalid value {billing_interval!r}."]},
            )
        return None

    def _name_taken(self, name: str, exclude_id: str | None = None) -> bool:
        return any(plan.id != exclude_id for plan in self.plans.find_by(name=name))

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def create_plan(
        self,
        name: str,
        price: Any,
        billing_interval: str,
        description: str = "",
        features: Iterable[str] = (),
    ) -> ServiceResult[Plan]:
        invalid = self.validate_text(name=name)
        if invalid is not None:
            return invalid
        amount, invalid = self._clean_price(price)
        if invalid is not None:
            return invalid
        invalid = self._check_interval(billing_interval)
        if invalid is not None:
            return invalid

        name = name.strip()
        if self._name_taken(name):
            return ServiceResult.failure(
                f"Plan named {name!r} already exists",
                error_code=ErrorCode.PLAN_NAME_EXISTS,
            )

        now = timezone.now()
        plan = self.plans.create(
            name=name,
            description=description,
            price=amount,
            billing_interval=BillingInterval(billing_interval).value,
            features=list(features),
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        self.get_logger().info(
            f"Created plan {plan.id}",
            extra={"plan_id": plan.id, "price": str(amount), "interval": plan.billing_interval},
        )
        return ServiceResult.success(plan)

    def update_plan(self, plan_id: str, **changes: Any) -> ServiceResult[Plan]:
        """
        Edit plan fields.

        Existing subscriptions keep their snapshot price and interval.
        """
        unknown = set(changes) - self.UPDATABLE_FIELDS
        if unknown:
            return ServiceResult.failure(
                f"Cannot update plan fields: {', '.join(sorted(unknown))}",
                error_code=ErrorCode.VALIDATION_ERROR,
            )
        if self.plans.find_by_id(plan_id) is None:
            return self._not_found(plan_id)

        if "price" in changes:
            changes["price"], invalid = self._clean_price(changes["price"])
            if invalid is not None:
                return invalid
        if "billing_interval" in changes:
            invalid = self._check_interval(changes["billing_interval"])
            if invalid is not None:
                return invalid
        if "name" in changes:
            invalid = self.validate_text(name=changes["name"])
            if invalid is not None:
                return invalid
            changes["name"] = changes["name"].strip()
            if self._name_taken(changes["name"], exclude_id=plan_id):
                return ServiceResult.failure(
                    f"Plan named {changes['name']!r} already exists",
                    error_code=ErrorCode.PLAN_NAME_EXISTS,
                )
        if "features" in changes:
            changes["features"] = list(changes["features"])

        plan = self.plans.update(plan_id, updated_at=timezone.now(), **changes)
        self.get_logger().info(f"Updated plan {plan_id}", extra={"fields": sorted(changes)})
        return ServiceResult.success(plan)

    def deactivate_plan(self, plan_id: str) -> ServiceResult[Plan]:
        plan = self.plans.update(plan_id, is_active=False, updated_at=timezone.now())
        if plan is None:
            return self._not_found(plan_id)
        self.get_logger().info(f"Deactivated plan {plan_id}")
        return ServiceResult.success(plan)

    def activate_plan(self, plan_id: str) -> ServiceResult[Plan]:
        plan = self.plans.update(plan_id, is_active=True, updated_at=timezone.now())
        if plan is None:
            return self._not_found(plan_id)
        return ServiceResult.success(plan)

    def delete_plan(self, plan_id: str) -> ServiceResult[bool]:
        """Hard-delete a plan that no subscription references."""
        if self.plans.find_by_id(plan_id) is None:
            return self._not_found(plan_id)
        if self.subscriptions.find_by(plan_id=plan_id):
            return ServiceResult.failure(
                "Plan is referenced by subscriptions; deactivate it instead",
                error_code=ErrorCode.PLAN_IN_USE,
            )
        self.plans.delete(plan_id)
        self.get_logger().info(f"Deleted plan {plan_id}")
        return ServiceResult.success(True, message="Plan deleted")

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_plan(self, plan_id: str) -> ServiceResult[Plan]:
        plan = self.plans.find_by_id(plan_id)
        if plan is None:
            return self._not_found(plan_id)
        return ServiceResult.success(plan)

    def get_active_plan(self, plan_id: str) -> ServiceResult[Plan]:
        """Plan lookup for checkout: deactivated plans count as missing."""
        plan = self.plans.find_by_id(plan_id)
        if plan is None or not plan.is_active:
            return self._not_found(plan_id)
        return ServiceResult.success(plan)

    def get_plan_by_name(self, name: str) -> ServiceResult[Plan]:
        matches = self.plans.find_by(name=name)
        if not matches:
            return ServiceResult.failure(
                f"Plan named {name!r} not found",
                error_code=ErrorCode.PLAN_NOT_FOUND,
            )
        return ServiceResult.success(matches[0])

    def list_plans(self, active_only: bool = False) -> list[Plan]:
        if active_only:
            return self.plans.find_by(is_active=True)
        return self.plans.find_all()

    def list_plans_by_interval(self, billing_interval: str) -> list[Plan]:
        return self.plans.find_by(billing_interval=billing_interval)

    @staticmethod
    def _not_found(plan_id: str) -> ServiceResult:
        return ServiceResult.failure(
            f"Plan {plan_id} not found",
            error_code=ErrorCode.PLAN_NOT_FOUND,
        )
