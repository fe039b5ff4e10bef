"""Tests for the pure budget analytics aggregation."""

from datetime import date
from decimal import Decimal

from familybudget.core.models import BudgetPeriod, TransactionStatus
from familybudget.processing.analytics import (
    UNCATEGORIZED,
    UNKNOWN_CATEGORY,
    BudgetStatus,
    aggregate_budgets,
    build_dashboard,
    calculate_percentage,
    classify,
)
from familybudget.processing.periods import month_window


class MockBudget:
    def __init__(self, id, category_id, amount, period=BudgetPeriod.MONTHLY, start_date=None, end_date=None):
        self.id = id
        self.category_id = category_id
        self.amount = Decimal(str(amount))
        self.period = period
        self.start_date = start_date or date(2024, 1, 1)
        self.end_date = end_date


class MockTransaction:
    def __init__(self, category_id, amount, transaction_date, status=TransactionStatus.ACTIVE):
        self.category_id = category_id
        self.amount = Decimal(str(amount))
        self.transaction_date = transaction_date
        self.status = status


class MockCategory:
    def __init__(self, name, is_active=True):
        self.name = name
        self.is_active = is_active


FOOD = 1
TRANSPORT = 2
CATEGORIES = {FOOD: MockCategory("Food"), TRANSPORT: MockCategory("Transport")}
MAY = month_window(5, 2024)


def _report(budgets, transactions, categories=CATEGORIES, window=MAY):
    return aggregate_budgets(budgets, transactions, categories, window, Decimal("80"))


def test_warning_when_at_ninety_percent():
    report = _report(
        [MockBudget(1, FOOD, 500)],
        [
            MockTransaction(FOOD, 200, date(2024, 5, 3)),
            MockTransaction(FOOD, 250, date(2024, 5, 20)),
        ],
    )

    row = report.budgets[0]
    assert row.spent_amount == Decimal("450")
    assert row.percentage == Decimal("90.00")
    assert row.status == BudgetStatus.WARNING
    assert row.remaining == Decimal("50")
    assert row.transaction_count == 2


def test_over_budget_has_negative_remaining():
    report = _report(
        [MockBudget(1, FOOD, 500)],
        [
            MockTransaction(FOOD, 200, date(2024, 5, 3)),
            MockTransaction(FOOD, 250, date(2024, 5, 20)),
            MockTransaction(FOOD, 100, date(2024, 5, 21)),
        ],
    )

    row = report.budgets[0]
    assert row.spent_amount == Decimal("550")
    assert row.percentage == Decimal("110.00")
    assert row.status == BudgetStatus.OVER
    assert row.remaining == Decimal("-50")


def test_spending_exactly_the_budget_is_not_over():
    report = _report([MockBudget(1, FOOD, 500)], [MockTransaction(FOOD, 500, date(2024, 5, 1))])

    row = report.budgets[0]
    assert row.percentage == Decimal("100.00")
    assert row.status == BudgetStatus.WARNING
    assert row.remaining == Decimal("0")


def test_zero_budget_reports_zero_percentage_and_flag():
    report = _report([MockBudget(1, FOOD, 0)], [MockTransaction(FOOD, 10, date(2024, 5, 1))])

    row = report.budgets[0]
    assert row.percentage == Decimal("0")
    assert row.unbounded is True
    assert row.status == BudgetStatus.OVER


def test_zero_budget_without_spend_is_ok():
    row = _report([MockBudget(1, FOOD, 0)], []).budgets[0]
    assert row.status == BudgetStatus.OK
    assert row.remaining == Decimal("0")


def test_deleted_and_pending_transactions_are_ignored():
    report = _report(
        [MockBudget(1, FOOD, 500)],
        [
            MockTransaction(FOOD, 100, date(2024, 5, 3)),
            MockTransaction(FOOD, 300, date(2024, 5, 3), status=TransactionStatus.DELETED),
            MockTransaction(FOOD, 300, date(2024, 5, 3), status=TransactionStatus.PENDING),
        ],
    )
    assert report.budgets[0].spent_amount == Decimal("100")


def test_transactions_outside_month_or_category_are_ignored():
    report = _report(
        [MockBudget(1, FOOD, 500)],
        [
            MockTransaction(FOOD, 100, date(2024, 5, 31)),
            MockTransaction(FOOD, 100, date(2024, 6, 1)),
            MockTransaction(FOOD, 100, date(2024, 4, 30)),
            MockTransaction(TRANSPORT, 100, date(2024, 5, 10)),
            MockTransaction(None, 100, date(2024, 5, 10)),
        ],
    )
    assert report.budgets[0].spent_amount == Decimal("100")


def test_monthly_budget_is_rewindowed_to_reporting_month():
    budget = MockBudget(1, FOOD, 500, start_date=date(2023, 1, 15), end_date=date(2023, 2, 14))
    report = _report([budget], [MockTransaction(FOOD, 40, date(2024, 5, 2))])

    row = report.budgets[0]
    assert row.window == MAY
    assert row.spent_amount == Decimal("40")


def test_custom_budget_uses_own_window():
    budget = MockBudget(
        1, FOOD, 1000,
        period=BudgetPeriod.CUSTOM,
        start_date=date(2024, 5, 10),
        end_date=date(2024, 6, 10),
    )
    report = _report(
        [budget],
        [
            MockTransaction(FOOD, 100, date(2024, 5, 9)),
            MockTransaction(FOOD, 200, date(2024, 5, 15)),
            MockTransaction(FOOD, 300, date(2024, 6, 5)),
        ],
    )

    row = report.budgets[0]
    assert row.window.start == date(2024, 5, 10)
    assert row.window.end == date(2024, 6, 10)
    assert row.spent_amount == Decimal("500")


def test_custom_budget_outside_reporting_window_is_left_out():
    budget = MockBudget(
        1, FOOD, 1000,
        period=BudgetPeriod.CUSTOM,
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 31),
    )
    report = _report([budget], [])
    assert report.budgets == ()


def test_missing_category_is_labelled_and_warned():
    report = _report([MockBudget(1, 99, 100)], [])

    assert report.budgets[0].category_name == UNKNOWN_CATEGORY
    assert len(report.warnings) == 1
    assert report.warnings[0].budget_id == 1
    assert report.warnings[0].category_id == 99


def test_inactive_category_keeps_name_but_warns():
    categories = {FOOD: MockCategory("Food", is_active=False)}
    report = _report([MockBudget(1, FOOD, 100)], [], categories=categories)

    assert report.budgets[0].category_name == "Food"
    assert len(report.warnings) == 1


def test_summary_totals():
    report = _report(
        [MockBudget(1, FOOD, 500), MockBudget(2, TRANSPORT, 100)],
        [
            MockTransaction(FOOD, 200, date(2024, 5, 3)),
            MockTransaction(TRANSPORT, 150, date(2024, 5, 3)),
        ],
    )

    summary = report.summary
    assert summary.total_budget == Decimal("600")
    assert summary.total_spent == Decimal("350")
    assert summary.total_remaining == Decimal("250")
    assert summary.over_budget_count == 1
    assert summary.under_budget_count == 1
    assert summary.budget_count == 2


def test_rows_are_ordered_by_budget_id():
    report = _report([MockBudget(5, FOOD, 1), MockBudget(2, TRANSPORT, 1)], [])
    assert [row.budget_id for row in report.budgets] == [2, 5]


def test_same_inputs_give_equal_reports():
    budgets = [MockBudget(1, FOOD, 500), MockBudget(2, 99, 10)]
    transactions = [MockTransaction(FOOD, 120, date(2024, 5, 3))]

    assert _report(budgets, transactions) == _report(budgets, transactions)


def test_report_to_dict_uses_floats():
    data = _report([MockBudget(1, FOOD, 500)], [MockTransaction(FOOD, 450, date(2024, 5, 3))]).to_dict()

    row = data["budgets"][0]
    assert row["percentage"] == 90.0
    assert row["status"] == "warning"
    assert row["start_date"] == "2024-05-01"
    assert data["summary"]["total_spent"] == 450.0


def test_calculate_percentage_rounds_half_up():
    percentage, unbounded = calculate_percentage(Decimal("1"), Decimal("3"))
    assert percentage == Decimal("33.33")
    assert unbounded is False


def test_classify_threshold_boundaries():
    assert classify(Decimal("79"), Decimal("100"), Decimal("79.99")) == BudgetStatus.OK
    assert classify(Decimal("80"), Decimal("100"), Decimal("80.00")) == BudgetStatus.WARNING
    assert classify(Decimal("100.01"), Decimal("100"), Decimal("100.01")) == BudgetStatus.OVER


def test_dashboard_groups_spend_by_category():
    dashboard = build_dashboard(
        [MockBudget(1, FOOD, 500)],
        [
            MockTransaction(FOOD, 300, date(2024, 5, 3)),
            MockTransaction(TRANSPORT, 100, date(2024, 5, 3)),
            MockTransaction(None, 100, date(2024, 5, 4)),
            MockTransaction(FOOD, 999, date(2024, 5, 4), status=TransactionStatus.DELETED),
        ],
        CATEGORIES,
        MAY,
    )

    rows = {row.category_name: row for row in dashboard.spending_by_category}
    assert rows["Food"].amount == Decimal("300")
    assert rows["Food"].share == Decimal("60.00")
    assert rows[UNCATEGORIZED].category_id is None
    assert dashboard.total_spent == Decimal("500")
    assert dashboard.transaction_count == 3
    assert dashboard.spending_by_category[0].category_name == "Food"
