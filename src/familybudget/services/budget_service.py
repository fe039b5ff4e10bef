"""Budget management and the budget analytics read path."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from sqlalchemy.orm import Session

from familybudget.core.config import settings
from familybudget.core.errors import ConflictError, ValidationError
from familybudget.core.models import Budget, BudgetPeriod
from familybudget.core.repositories import BudgetRepo, CategoryRepo, TransactionRepo
from familybudget.processing.analytics import (
    BudgetReport,
    DashboardReport,
    aggregate_budgets,
    build_dashboard,
)
from familybudget.processing.periods import (
    DateWindow,
    derive_end_date,
    month_window,
    resolve_budget_window,
)

logger = logging.getLogger(__name__)


@dataclass
class BudgetInput:
    category_id: int
    amount: Any
    period: BudgetPeriod | str
    start_date: date
    end_date: Optional[date] = None


def _parse_period(period: BudgetPeriod | str) -> BudgetPeriod:
    try:
        return BudgetPeriod(period)
    except ValueError:
        allowed = [p.value for p in BudgetPeriod]
        raise ValidationError(
            f"Invalid period {period!r}. Options: {', '.join(allowed)}",
            field="period",
            details={"allowed": allowed},
        )


def _parse_budget_amount(value: Any) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount: {value!r}", field="amount")
    if not amount.is_finite() or amount < 0:
        raise ValidationError("Budget amount must be zero or positive", field="amount")
    return amount.quantize(Decimal("0.01"))


def _coverage(budget: Budget) -> Optional[DateWindow]:
    """Dates a budget reports over; None means every reporting window."""
    if budget.period == BudgetPeriod.CUSTOM:
        return DateWindow(budget.start_date, budget.end_date or budget.start_date)
    return None


def _ensure_no_overlap(db: Session, team_id: int, candidate: Budget) -> None:
    """Reject a second active budget that would be counted alongside this one.

    Periodic budgets are re-windowed to every reporting month, so they clash
    with any other active budget on the category; custom budgets clash with
    periodic ones and with overlapping custom ones.
    """
    mine = _coverage(candidate)
    for other in BudgetRepo(db).find_active(team_id, category_id=candidate.category_id):
        if other.id == candidate.id:
            continue
        theirs = _coverage(other)
        if mine is None or theirs is None or mine.overlaps(theirs):
            raise ConflictError(
                f"Category {candidate.category_id} already has an active budget "
                f"({other.id}, {other.period.value}) covering the same dates"
            )


def list_budgets(db: Session, team_id: int) -> list[Budget]:
    return BudgetRepo(db).find_active(team_id)


def create_budget(db: Session, team_id: int, data: BudgetInput) -> Budget:
    category = CategoryRepo(db).get(data.category_id, team_id)
    if not category.is_active:
        raise ValidationError(
            f"Category {category.name!r} is inactive", field="category_id"
        )

    period = _parse_period(data.period)
    budget = Budget(
        team_id=team_id,
        category_id=category.id,
        amount=_parse_budget_amount(data.amount),
        period=period,
        start_date=data.start_date,
        end_date=derive_end_date(period, data.start_date, data.end_date),
        is_active=True,
    )
    _ensure_no_overlap(db, team_id, budget)

    db.add(budget)
    db.commit()
    db.refresh(budget)
    logger.info(
        "Created %s budget %s for category %s (%s)",
        period.value, budget.id, category.id, budget.amount,
    )
    return budget


def update_budget(
    db: Session,
    budget_id: int,
    team_id: int,
    category_id: Optional[int] = None,
    amount: Any = None,
    period: Optional[BudgetPeriod | str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> Budget:
    """Partial update; the end date is re-derived whenever period or dates change."""
    budget = BudgetRepo(db).get(budget_id, team_id)

    if category_id is not None:
        category = CategoryRepo(db).get(category_id, team_id)
        if not category.is_active:
            raise ValidationError(f"Category {category.name!r} is inactive", field="category_id")
        budget.category_id = category.id
    if amount is not None:
        budget.amount = _parse_budget_amount(amount)
    if period is not None or start_date is not None or end_date is not None:
        new_period = _parse_period(period) if period is not None else budget.period
        new_start = start_date or budget.start_date
        new_end = end_date if end_date is not None else budget.end_date
        budget.period = new_period
        budget.start_date = new_start
        budget.end_date = derive_end_date(new_period, new_start, new_end)

    if budget.is_active:
        with db.no_autoflush:
            _ensure_no_overlap(db, team_id, budget)

    db.commit()
    db.refresh(budget)
    return budget


def deactivate_budget(db: Session, budget_id: int, team_id: int) -> Budget:
    budget = BudgetRepo(db).get(budget_id, team_id)
    budget.is_active = False
    db.commit()
    return budget


def budget_to_dict(budget: Budget) -> dict:
    return {
        "id": budget.id,
        "category_id": budget.category_id,
        "category_name": budget.category.name if budget.category else None,
        "amount": float(budget.amount),
        "period": budget.period.value,
        "start_date": budget.start_date.isoformat(),
        "end_date": budget.end_date.isoformat() if budget.end_date else None,
        "is_active": budget.is_active,
    }


def _load_inputs(db: Session, team_id: int, reporting: DateWindow):
    budgets = BudgetRepo(db).find_active(team_id)
    categories = {c.id: c for c in CategoryRepo(db).find_all(team_id)}

    # Custom budgets may reach outside the reporting window
    start, end = reporting.start, reporting.end
    for budget in budgets:
        window = resolve_budget_window(budget, reporting)
        if window.overlaps(reporting):
            start, end = min(start, window.start), max(end, window.end)

    transactions = TransactionRepo(db).find_in_range(team_id, start, end)
    return budgets, transactions, categories


def compute_range_analytics(db: Session, team_id: int, start: date, end: date) -> BudgetReport:
    """Budget analytics for an explicit date range."""
    if end < start:
        raise ValidationError("end must not be before start", field="end")
    reporting = DateWindow(start, end)
    budgets, transactions, categories = _load_inputs(db, team_id, reporting)
    return aggregate_budgets(
        budgets, transactions, categories, reporting, settings.BUDGET_WARNING_THRESHOLD
    )


def compute_budget_analytics(db: Session, team_id: int, month: int, year: int) -> BudgetReport:
    """Per-budget spend, percentage, remaining and status for a calendar month."""
    window = month_window(month, year)
    return compute_range_analytics(db, team_id, window.start, window.end)


def compute_dashboard(db: Session, team_id: int, month: int, year: int) -> DashboardReport:
    """Budget analytics plus spend per category (budgeted or not) for a month."""
    reporting = month_window(month, year)
    budgets, transactions, categories = _load_inputs(db, team_id, reporting)
    return build_dashboard(
        budgets, transactions, categories, reporting, settings.BUDGET_WARNING_THRESHOLD
    )
