"""Auto-categorization rule evaluation.

Rules are evaluated in the order they are given (repositories hand them out
in creation order). The first matching rule wins; a longer or more specific
match_text later in the list never overrides an earlier match.

match_text conventions per field:

    description  case-insensitive substring, e.g. "uber"
    amount       "150" (equal within 0.01), ">100", ">=100", "<100", "<=100",
                 "100-200" (inclusive range)
    date         "2024-05-01" (exact), "2024-05-01..2024-05-15" (inclusive range),
                 "2024-05" (any day in that month), "15" (that day of any month)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from familybudget.core.errors import ValidationError
from familybudget.core.models import RuleField

AMOUNT_TOLERANCE = Decimal("0.01")

_COMPARISON_RE = re.compile(r"^(>=|<=|>|<)\s*(\d+(?:\.\d+)?)$")
_RANGE_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*-\s*(\d+(?:\.\d+)?)$")
_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")
_DAY_RE = re.compile(r"^\d{1,2}$")


@dataclass(frozen=True)
class AmountCondition:
    operator: str  # "eq", ">", ">=", "<", "<=", "between"
    low: Decimal
    high: Optional[Decimal] = None

    def matches(self, amount: Decimal) -> bool:
        if self.operator == "eq":
            return abs(amount - self.low) < AMOUNT_TOLERANCE
        if self.operator == ">":
            return amount > self.low
        if self.operator == ">=":
            return amount >= self.low
        if self.operator == "<":
            return amount < self.low
        if self.operator == "<=":
            return amount <= self.low
        return self.low <= amount <= self.high


@dataclass(frozen=True)
class DateCondition:
    kind: str  # "exact", "range", "month", "day"
    start: Optional[date] = None
    end: Optional[date] = None
    year: Optional[int] = None
    month: Optional[int] = None
    day: Optional[int] = None

    def matches(self, value: date) -> bool:
        if self.kind == "exact":
            return value == self.start
        if self.kind == "range":
            return self.start <= value <= self.end
        if self.kind == "month":
            return value.year == self.year and value.month == self.month
        return value.day == self.day


def _parse_decimal(text: str) -> Decimal:
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"not a number: {text!r}")
    if not value.is_finite():
        raise ValueError(f"not a number: {text!r}")
    return value


def parse_amount_condition(match_text: str) -> AmountCondition:
    """Parse an amount rule pattern; raises ValueError when malformed."""
    text = (match_text or "").strip().replace(",", "").replace("$", "")
    if not text:
        raise ValueError("empty amount pattern")

    comparison = _COMPARISON_RE.match(text)
    if comparison:
        return AmountCondition(comparison.group(1), _parse_decimal(comparison.group(2)))

    between = _RANGE_RE.match(text)
    if between:
        low = _parse_decimal(between.group(1))
        high = _parse_decimal(between.group(2))
        if low > high:
            raise ValueError(f"range start {low} is greater than range end {high}")
        return AmountCondition("between", low, high)

    return AmountCondition("eq", abs(_parse_decimal(text)))


def parse_date_condition(match_text: str) -> DateCondition:
    """Parse a date rule pattern; raises ValueError when malformed."""
    text = (match_text or "").strip()
    if not text:
        raise ValueError("empty date pattern")

    if ".." in text:
        first, _, last = text.partition("..")
        start = date.fromisoformat(first.strip())
        end = date.fromisoformat(last.strip())
        if start > end:
            raise ValueError(f"range start {start} is after range end {end}")
        return DateCondition("range", start=start, end=end)

    month = _MONTH_RE.match(text)
    if month:
        year, month_number = int(month.group(1)), int(month.group(2))
        if not 1 <= month_number <= 12:
            raise ValueError(f"invalid month: {text!r}")
        return DateCondition("month", year=year, month=month_number)

    if _DAY_RE.match(text):
        day = int(text)
        if not 1 <= day <= 31:
            raise ValueError(f"invalid day of month: {text!r}")
        return DateCondition("day", day=day)

    return DateCondition("exact", start=date.fromisoformat(text))


def validate_match_text(field: RuleField | str, match_text: str) -> str:
    """Check a rule pattern at creation time and return it stripped.

    Raises ValidationError naming the field when the pattern cannot be
    evaluated for that field type.
    """
    try:
        rule_field = RuleField(field)
    except ValueError:
        allowed = ", ".join(f.value for f in RuleField)
        raise ValidationError(
            f"Unknown rule field {field!r}. Options: {allowed}",
            field="field",
            details={"allowed": [f.value for f in RuleField]},
        )

    text = (match_text or "").strip()
    if not text:
        raise ValidationError("match_text must not be empty", field="match_text")

    try:
        if rule_field == RuleField.AMOUNT:
            parse_amount_condition(text)
        elif rule_field == RuleField.DATE:
            parse_date_condition(text)
    except ValueError as exc:
        raise ValidationError(
            f"Invalid {rule_field.value} pattern {text!r}: {exc}",
            field="match_text",
        )
    return text


def evaluate_rule(rule: Any, description: str, amount: Decimal, tx_date: date) -> bool:
    """Evaluate one rule against transaction fields. Never raises."""

    field = rule.field.value if isinstance(rule.field, RuleField) else str(rule.field)
    match_text = rule.match_text or ""

    if field == RuleField.DESCRIPTION.value:
        needle = match_text.strip().casefold()
        return bool(needle) and needle in (description or "").casefold()

    elif field == RuleField.AMOUNT.value:
        try:
            condition = parse_amount_condition(match_text)
            return condition.matches(abs(Decimal(str(amount))))
        except (ValueError, InvalidOperation):
            return False

    elif field == RuleField.DATE.value:
        if tx_date is None:
            return False
        try:
            return parse_date_condition(match_text).matches(tx_date)
        except ValueError:
            return False

    return False


def match_rule_detail(
    description: str,
    amount: Decimal,
    tx_date: date,
    rules: Iterable[Any],
) -> Optional[Any]:
    """Return the first active rule matching the transaction, or None."""
    for rule in rules:
        if not getattr(rule, "is_active", True):
            continue
        if evaluate_rule(rule, description, amount, tx_date):
            return rule
    return None


def match_rule(
    description: str,
    amount: Decimal,
    tx_date: date,
    rules: Iterable[Any],
) -> Optional[int]:
    """Suggest a category id for the transaction fields, or None when nothing matches."""
    rule = match_rule_detail(description, amount, tx_date, rules)
    return rule.category_id if rule is not None else None
