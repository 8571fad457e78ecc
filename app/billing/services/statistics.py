"""
Revenue and payment statistics.

Pure read-side computation over the transaction ledger, recomputed from
a full scan on every call. Fine at small scale; a large ledger would
need incremental aggregates.

Definitions:
    total_revenue    completed payments minus completed refunds
    average_amount   total_revenue / total_transactions (0 when empty)
    success_rate     completed / (completed + failed) (0 when none finalized)
    revenue_by_month completed payments bucketed by created_at month (YYYY-MM)
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import timezone as dt_timezone
from decimal import Decimal
from typing import TYPE_CHECKING

from core.services import BaseService

from billing.constants import BILLING_DEFAULTS
from billing.state_machines import TransactionStatus, TransactionType
from billing.types import Money, quantize_money

if TYPE_CHECKING:
    from billing.records import JsonRecordStore
    from billing.services.transactions import TransactionLedger
    from billing.types import Plan, Subscription, Transaction

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class MonthlyRevenue:
    month: str
    count: int
    amount: Decimal


@dataclass(frozen=True)
class PlanBreakdown:
    plan_id: str
    plan_name: str | None
    subscription_count: int
    revenue: Decimal


@dataclass(frozen=True)
class TransactionStatistics:
    total_transactions: int
    total_revenue: Decimal
    success_count: int
    failure_count: int
    pending_count: int
    success_rate: float
    average_amount: Decimal
    currency: str
    revenue_by_month: list[MonthlyRevenue] = field(default_factory=list)
    plan_breakdown: list[PlanBreakdown] = field(default_factory=list)
    display_totals: dict[str, Decimal] = field(default_factory=dict)


class StatisticsAggregator(BaseService):
    """Derives revenue reports from the ledger; never writes."""

    def __init__(
        self,
        ledger: TransactionLedger,
        plans: JsonRecordStore[Plan],
        subscriptions: JsonRecordStore[Subscription],
        display_rates: dict[str, Decimal] | None = None,
    ):
        self.ledger = ledger
        self.plans = plans
        self.subscriptions = subscriptions
        self.display_rates = (
            BILLING_DEFAULTS.DISPLAY_RATES if display_rates is None else display_rates
        )

    def summary(self, user_id: str | None = None, plan_id: str | None = None) -> TransactionStatistics:
        transactions = self._select(user_id, plan_id)

        completed = [t for t in transactions if t.status == TransactionStatus.COMPLETED]
        success_count = sum(1 for t in completed if t.type == TransactionType.PAYMENT)
        failure_count = sum(1 for t in transactions if t.status == TransactionStatus.FAILED)
        pending_count = sum(1 for t in transactions if t.status == TransactionStatus.PENDING)

        total_revenue = self.net_revenue(completed)
        total = len(transactions)
        average = quantize_money(total_revenue / total) if total else ZERO
        finalized = success_count + failure_count
        success_rate = round(success_count / finalized, 4) if finalized else 0.0

        currency = self.ledger.currency
        revenue = Money(total_revenue, currency)
        return TransactionStatistics(
            total_transactions=total,
            total_revenue=total_revenue,
            success_count=success_count,
            failure_count=failure_count,
            pending_count=pending_count,
            success_rate=success_rate,
            average_amount=average,
            currency=currency,
            revenue_by_month=self.revenue_by_month(completed),
            plan_breakdown=self.plan_breakdown(transactions, user_id=user_id, plan_id=plan_id),
            display_totals={
                code: revenue.convert(code, rate).amount
                for code, rate in self.display_rates.items()
            },
        )

    # -------------------------------------------------------------------------
    # Building blocks
    # -------------------------------------------------------------------------

    def _select(self, user_id: str | None, plan_id: str | None) -> list[Transaction]:
        criteria = {}
        if user_id is not None:
            criteria["user_id"] = user_id
        if plan_id is not None:
            criteria["plan_id"] = plan_id
        return self.ledger.transactions.find_by(**criteria)

    @staticmethod
    def net_revenue(transactions: list[Transaction]) -> Decimal:
        """Completed payments minus completed refunds."""
        total = ZERO
        for t in transactions:
            if t.status != TransactionStatus.COMPLETED:
                continue
            if t.type == TransactionType.PAYMENT:
                total += t.amount
            elif t.type == TransactionType.REFUND:
                total -= t.amount
        return quantize_money(total)

    @staticmethod
    def revenue_by_month(transactions: list[Transaction]) -> list[MonthlyRevenue]:
        """Completed payments grouped by created_at UTC calendar month, oldest first."""
        buckets: dict[str, list[Decimal]] = defaultdict(list)
        for t in transactions:
            if t.status == TransactionStatus.COMPLETED and t.type == TransactionType.PAYMENT:
                buckets[t.created_at.astimezone(dt_timezone.utc).strftime("%Y-%m")].append(t.amount)
        return [
            MonthlyRevenue(month=month, count=len(amounts), amount=quantize_money(sum(amounts, ZERO)))
            for month, amounts in sorted(buckets.items())
        ]

    def plan_breakdown(
        self,
        transactions: list[Transaction],
        user_id: str | None = None,
        plan_id: str | None = None,
    ) -> list[PlanBreakdown]:
        """Subscription count and net revenue per plan, ordered by plan name."""
        criteria = {}
        if user_id is not None:
            criteria["user_id"] = user_id
        if plan_id is not None:
            criteria["plan_id"] = plan_id

        counts: dict[str, int] = defaultdict(int)
        for subscription in self.subscriptions.find_by(**criteria):
            counts[subscription.plan_id] += 1

        by_plan: dict[str, list[Transaction]] = defaultdict(list)
        for t in transactions:
            by_plan[t.plan_id].append(t)

        rows = []
        for pid in set(counts) | set(by_plan):
            plan = self.plans.find_by_id(pid)
            rows.append(
                PlanBreakdown(
                    plan_id=pid,
                    plan_name=plan.name if plan else None,
                    subscription_count=counts.get(pid, 0),
                    revenue=self.net_revenue(by_plan.get(pid, [])),
                )
            )
        return sorted(rows, key=lambda row: (row.plan_name or "", row.plan_id))
