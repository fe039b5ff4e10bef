"""Budget analytics aggregation.

Everything here is a pure function of its inputs: budgets, transactions and
categories come in as plain sequences (ORM rows or any object with the same
attributes) and nothing is written back. Calling these twice with the same
inputs returns equal results.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from familybudget.core.errors import IntegrityWarning
from familybudget.core.models import BudgetPeriod, TransactionStatus
from familybudget.processing.periods import DateWindow, resolve_budget_window

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")
DEFAULT_WARNING_THRESHOLD = Decimal("80")

UNKNOWN_CATEGORY = "Unknown category"
UNCATEGORIZED = "Uncategorized"


class BudgetStatus(str, Enum):
    OK = "ok"
    WARNING = "warning"
    OVER = "over"


@dataclass(frozen=True)
class BudgetAnalytics:
    """Spend against one budget within its resolved window."""

    budget_id: int
    category_id: int
    category_name: str
    period: str
    window: DateWindow
    budget_amount: Decimal
    spent_amount: Decimal
    percentage: Decimal
    remaining: Decimal
    status: BudgetStatus
    transaction_count: int
    # True when the budget amount is zero and the percentage is a sentinel
    unbounded: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "budget_id": self.budget_id,
            "category_id": self.category_id,
            "category_name": self.category_name,
            "period": self.period,
            "start_date": self.window.start.isoformat(),
            "end_date": self.window.end.isoformat(),
            "budget_amount": float(self.budget_amount),
            "spent_amount": float(self.spent_amount),
            "percentage": float(self.percentage),
            "remaining": float(self.remaining),
            "status": self.status.value,
            "transaction_count": self.transaction_count,
            "unbounded": self.unbounded,
        }


@dataclass(frozen=True)
class BudgetSummary:
    total_budget: Decimal = ZERO
    total_spent: Decimal = ZERO
    total_remaining: Decimal = ZERO
    over_budget_count: int = 0
    under_budget_count: int = 0
    budget_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_budget": float(self.total_budget),
            "total_spent": float(self.total_spent),
            "total_remaining": float(self.total_remaining),
            "over_budget_count": self.over_budget_count,
            "under_budget_count": self.under_budget_count,
            "budget_count": self.budget_count,
        }


@dataclass(frozen=True)
class BudgetReport:
    window: DateWindow
    budgets: tuple[BudgetAnalytics, ...]
    summary: BudgetSummary
    warnings: tuple[IntegrityWarning, ...] = ()

    def for_category(self, category_id: int) -> list[BudgetAnalytics]:
        return [row for row in self.budgets if row.category_id == category_id]

    def to_dict(self) -> dict[str, Any]:
        return {
            "window": self.window.to_dict(),
            "budgets": [row.to_dict() for row in self.budgets],
            "summary": self.summary.to_dict(),
            "warnings": [w.to_dict() for w in self.warnings],
        }


@dataclass(frozen=True)
class CategorySpend:
    category_id: Optional[int]
    category_name: str
    amount: Decimal
    transaction_count: int
    share: Decimal  # percentage of total spend in the window

    def to_dict(self) -> dict[str, Any]:
        return {
            "category_id": self.category_id,
            "category_name": self.category_name,
            "amount": float(self.amount),
            "transaction_count": self.transaction_count,
            "share": float(self.share),
        }


@dataclass(frozen=True)
class DashboardReport:
    budget_report: BudgetReport
    spending_by_category: tuple[CategorySpend, ...]
    total_spent: Decimal
    transaction_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.budget_report.to_dict(),
            "spending_by_category": [row.to_dict() for row in self.spending_by_category],
            "total_spent": float(self.total_spent),
            "transaction_count": self.transaction_count,
        }


def _is_active(tx: Any) -> bool:
    return tx.status == TransactionStatus.ACTIVE


def _money(value: Any) -> Decimal:
    return Decimal(str(value)) if value is not None else ZERO


def calculate_percentage(spent: Decimal, budget_amount: Decimal) -> tuple[Decimal, bool]:
    """Percentage of budget used, and whether the budget was zero.

    A zero (or negative) budget has no meaningful percentage; 0 is returned
    with the unbounded flag set instead of dividing.
    """
    if budget_amount <= ZERO:
        return ZERO, True
    percentage = (spent / budget_amount * HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)
    return percentage, False


def classify(
    spent: Decimal,
    budget_amount: Decimal,
    percentage: Decimal,
    warning_threshold: Decimal = DEFAULT_WARNING_THRESHOLD,
) -> BudgetStatus:
    # Equality is not over; strictly greater is
    if spent > budget_amount:
        return BudgetStatus.OVER
    if percentage >= warning_threshold:
        return BudgetStatus.WARNING
    return BudgetStatus.OK


def _category_label(
    budget: Any,
    categories: Mapping[int, Any],
    warnings: list[IntegrityWarning],
) -> str:
    category = categories.get(budget.category_id)
    if category is None:
        warnings.append(
            IntegrityWarning(
                f"Budget {budget.id} references missing category {budget.category_id}",
                budget_id=budget.id,
                category_id=budget.category_id,
            )
        )
        return UNKNOWN_CATEGORY
    if not getattr(category, "is_active", True):
        warnings.append(
            IntegrityWarning(
                f"Budget {budget.id} references inactive category {category.name!r}",
                budget_id=budget.id,
                category_id=budget.category_id,
            )
        )
    return category.name


def analyze_budget(
    budget: Any,
    window: DateWindow,
    transactions: Iterable[Any],
    category_name: str,
    warning_threshold: Decimal = DEFAULT_WARNING_THRESHOLD,
) -> BudgetAnalytics:
    """Compute spend figures for a single budget over an already-resolved window."""
    spent = ZERO
    count = 0
    for tx in transactions:
        if tx.category_id != budget.category_id or not _is_active(tx):
            continue
        if not window.contains(tx.transaction_date):
            continue
        spent += _money(tx.amount)
        count += 1

    budget_amount = _money(budget.amount)
    percentage, unbounded = calculate_percentage(spent, budget_amount)
    period = budget.period.value if isinstance(budget.period, BudgetPeriod) else str(budget.period)

    return BudgetAnalytics(
        budget_id=budget.id,
        category_id=budget.category_id,
        category_name=category_name,
        period=period,
        window=window,
        budget_amount=budget_amount,
        spent_amount=spent,
        percentage=percentage,
        remaining=budget_amount - spent,
        status=classify(spent, budget_amount, percentage, warning_threshold),
        transaction_count=count,
        unbounded=unbounded,
    )


def summarize(rows: Iterable[BudgetAnalytics]) -> BudgetSummary:
    rows = list(rows)
    total_budget = sum((row.budget_amount for row in rows), ZERO)
    total_spent = sum((row.spent_amount for row in rows), ZERO)
    over = sum(1 for row in rows if row.status == BudgetStatus.OVER)
    return BudgetSummary(
        total_budget=total_budget,
        total_spent=total_spent,
        total_remaining=total_budget - total_spent,
        over_budget_count=over,
        under_budget_count=len(rows) - over,
        budget_count=len(rows),
    )


def aggregate_budgets(
    budgets: Iterable[Any],
    transactions: Iterable[Any],
    categories: Mapping[int, Any],
    reporting: DateWindow,
    warning_threshold: Decimal = DEFAULT_WARNING_THRESHOLD,
) -> BudgetReport:
    """Per-budget analytics plus a team-wide summary for a reporting window.

    Args:
        budgets: Active budgets of one team
        transactions: Candidate transactions; inactive ones are ignored
        categories: All of the team's categories by id, including inactive ones
        reporting: Window periodic budgets are re-windowed to
        warning_threshold: Percentage at which a budget turns to "warning"

    Returns:
        BudgetReport with rows ordered by budget id
    """
    tx_list = [tx for tx in transactions if _is_active(tx)]
    warnings: list[IntegrityWarning] = []
    rows = []

    for budget in sorted(budgets, key=lambda b: b.id):
        window = resolve_budget_window(budget, reporting)
        if budget.period == BudgetPeriod.CUSTOM and not window.overlaps(reporting):
            continue
        label = _category_label(budget, categories, warnings)
        rows.append(analyze_budget(budget, window, tx_list, label, warning_threshold))

    for warning in warnings:
        logger.warning(warning.message)

    return BudgetReport(
        window=reporting,
        budgets=tuple(rows),
        summary=summarize(rows),
        warnings=tuple(warnings),
    )


def spending_by_category(
    transactions: Iterable[Any],
    categories: Mapping[int, Any],
    window: DateWindow,
) -> tuple[CategorySpend, ...]:
    """Spend per category in the window, with or without a budget, largest first."""
    totals: dict[Optional[int], Decimal] = defaultdict(lambda: ZERO)
    counts: dict[Optional[int], int] = defaultdict(int)

    for tx in transactions:
        if not _is_active(tx) or not window.contains(tx.transaction_date):
            continue
        totals[tx.category_id] += _money(tx.amount)
        counts[tx.category_id] += 1

    grand_total = sum(totals.values(), ZERO)
    rows = []
    for category_id, amount in totals.items():
        if category_id is None:
            name = UNCATEGORIZED
        else:
            category = categories.get(category_id)
            name = category.name if category is not None else UNKNOWN_CATEGORY
        share, _ = calculate_percentage(amount, grand_total)
        rows.append(CategorySpend(category_id, name, amount, counts[category_id], share))

    rows.sort(key=lambda row: (-row.amount, row.category_name, row.category_id or 0))
    return tuple(rows)


def build_dashboard(
    budgets: Iterable[Any],
    transactions: Iterable[Any],
    categories: Mapping[int, Any],
    reporting: DateWindow,
    warning_threshold: Decimal = DEFAULT_WARNING_THRESHOLD,
) -> DashboardReport:
    tx_list = list(transactions)
    report = aggregate_budgets(budgets, tx_list, categories, reporting, warning_threshold)
    by_category = spending_by_category(tx_list, categories, reporting)
    return DashboardReport(
        budget_report=report,
        spending_by_category=by_category,
        total_spent=sum((row.amount for row in by_category), ZERO),
        transaction_count=sum(row.transaction_count for row in by_category),
    )
