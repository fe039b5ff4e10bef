"""Date windows for budgets and reports."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

from familybudget.core.errors import ValidationError
from familybudget.core.models import BudgetPeriod


@dataclass(frozen=True)
class DateWindow:
    """Inclusive calendar date range."""

    start: date
    end: date

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end

    def overlaps(self, other: "DateWindow") -> bool:
        return self.start <= other.end and other.start <= self.end

    def to_dict(self) -> dict:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def month_window(month: int, year: int) -> DateWindow:
    """First and last day of a calendar month."""
    if not 1 <= month <= 12:
        raise ValidationError(f"Month must be between 1 and 12, got {month}", field="month")
    if not 1 <= year <= 9999:
        raise ValidationError(f"Invalid year {year}", field="year")
    last_day = calendar.monthrange(year, month)[1]
    return DateWindow(date(year, month, 1), date(year, month, last_day))


def derive_end_date(period: BudgetPeriod, start: date, end: Optional[date] = None) -> date:
    """End date of a budget's first period.

    Custom budgets must bring their own end date; the other periods ignore
    any supplied end and derive it from the start.
    """
    if period == BudgetPeriod.CUSTOM:
        if end is None:
            raise ValidationError("Custom budgets require an end date", field="end_date")
        if end < start:
            raise ValidationError("end_date must not be before start_date", field="end_date")
        return end
    if period == BudgetPeriod.WEEKLY:
        return start + timedelta(days=6)
    if period == BudgetPeriod.BIWEEKLY:
        return start + timedelta(days=13)
    return start + relativedelta(months=1) - timedelta(days=1)


def resolve_budget_window(budget, reporting: DateWindow) -> DateWindow:
    """Window a budget is measured over within a report.

    Custom budgets keep their own dates; periodic budgets are re-windowed to
    the reporting window regardless of their own start date.
    """
    if budget.period == BudgetPeriod.CUSTOM:
        end = budget.end_date or budget.start_date
        return DateWindow(budget.start_date, end)
    return reporting
