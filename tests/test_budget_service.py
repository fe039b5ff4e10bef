"""Tests for budget management and the analytics read path."""

import pytest
from datetime import date
from decimal import Decimal

from familybudget.core.errors import ConflictError, NotFoundError, ValidationError
from familybudget.core.models import BudgetPeriod
from familybudget.processing.analytics import BudgetStatus
from familybudget.services.budget_service import (
    BudgetInput,
    compute_budget_analytics,
    compute_dashboard,
    compute_range_analytics,
    create_budget,
    deactivate_budget,
    list_budgets,
    update_budget,
)
from familybudget.services.category_service import deactivate_category
from familybudget.services.transaction_service import (
    TransactionInput,
    create_transaction,
    delete_transaction,
)


def _spend(db, team, category, amount, day):
    return create_transaction(
        db,
        team.team_id,
        team.user_id,
        TransactionInput(
            amount=amount,
            description="gasto",
            transaction_date=day,
            category_id=team.categories[category],
        ),
        notifier=None,
    )


def _monthly(db, team, category, amount):
    return create_budget(
        db,
        team.team_id,
        BudgetInput(
            category_id=team.categories[category],
            amount=amount,
            period="monthly",
            start_date=date(2024, 5, 1),
        ),
    )


def test_create_monthly_budget_derives_end(db_session, team):
    budget = _monthly(db_session, team, "Food", "500")
    assert budget.period == BudgetPeriod.MONTHLY
    assert budget.end_date == date(2024, 5, 31)
    assert budget.amount == Decimal("500.00")


def test_create_custom_budget_requires_end(db_session, team):
    with pytest.raises(ValidationError):
        create_budget(
            db_session,
            team.team_id,
            BudgetInput(team.categories["Food"], 100, "custom", date(2024, 5, 1)),
        )


def test_create_rejects_negative_amount_and_bad_period(db_session, team):
    with pytest.raises(ValidationError):
        create_budget(
            db_session,
            team.team_id,
            BudgetInput(team.categories["Food"], -1, "monthly", date(2024, 5, 1)),
        )
    with pytest.raises(ValidationError):
        create_budget(
            db_session,
            team.team_id,
            BudgetInput(team.categories["Food"], 1, "yearly", date(2024, 5, 1)),
        )


def test_second_periodic_budget_for_category_conflicts(db_session, team):
    _monthly(db_session, team, "Food", 500)
    with pytest.raises(ConflictError):
        create_budget(
            db_session,
            team.team_id,
            BudgetInput(team.categories["Food"], 100, "weekly", date(2024, 5, 1)),
        )


def test_non_overlapping_custom_budgets_coexist(db_session, team):
    food = team.categories["Food"]
    create_budget(
        db_session, team.team_id,
        BudgetInput(food, 100, "custom", date(2024, 5, 1), date(2024, 5, 15)),
    )
    create_budget(
        db_session, team.team_id,
        BudgetInput(food, 100, "custom", date(2024, 5, 16), date(2024, 5, 31)),
    )
    with pytest.raises(ConflictError):
        create_budget(
            db_session, team.team_id,
            BudgetInput(food, 100, "custom", date(2024, 5, 10), date(2024, 5, 20)),
        )
    assert len(list_budgets(db_session, team.team_id)) == 2


def test_deactivated_budget_frees_the_category(db_session, team):
    budget = _monthly(db_session, team, "Food", 500)
    deactivate_budget(db_session, budget.id, team.team_id)

    _monthly(db_session, team, "Food", 600)
    assert [b.amount for b in list_budgets(db_session, team.team_id)] == [Decimal("600.00")]


def test_update_budget_rederives_end(db_session, team):
    budget = _monthly(db_session, team, "Food", 500)
    updated = update_budget(db_session, budget.id, team.team_id, period="weekly", amount="250")
    assert updated.end_date == date(2024, 5, 7)
    assert updated.amount == Decimal("250.00")


def test_budget_of_other_team_is_not_found(db_session, team, other_team):
    budget = _monthly(db_session, team, "Food", 500)
    with pytest.raises(NotFoundError):
        update_budget(db_session, budget.id, other_team.team_id, amount=1)


def test_analytics_reflect_spend_for_month(db_session, team):
    _monthly(db_session, team, "Food", 500)
    _spend(db_session, team, "Food", 200, date(2024, 5, 3))
    _spend(db_session, team, "Food", 250, date(2024, 5, 20))
    _spend(db_session, team, "Food", 999, date(2024, 6, 1))

    report = compute_budget_analytics(db_session, team.team_id, 5, 2024)

    row = report.budgets[0]
    assert row.spent_amount == Decimal("450.00")
    assert row.percentage == Decimal("90.00")
    assert row.status == BudgetStatus.WARNING
    assert row.remaining == Decimal("50.00")


def test_deleted_transactions_drop_out_of_analytics(db_session, team):
    _monthly(db_session, team, "Food", 500)
    _spend(db_session, team, "Food", 200, date(2024, 5, 3))
    tx = _spend(db_session, team, "Food", 400, date(2024, 5, 4))
    assert compute_budget_analytics(db_session, team.team_id, 5, 2024).budgets[0].status == BudgetStatus.OVER

    delete_transaction(db_session, tx.id, team.team_id, team.user_id, notifier=None)

    row = compute_budget_analytics(db_session, team.team_id, 5, 2024).budgets[0]
    assert row.spent_amount == Decimal("200.00")
    assert row.status == BudgetStatus.OK


def test_analytics_are_team_scoped(db_session, team, other_team):
    _monthly(db_session, team, "Food", 500)
    _spend(db_session, other_team, "Food", 300, date(2024, 5, 3))

    report = compute_budget_analytics(db_session, team.team_id, 5, 2024)
    assert report.budgets[0].spent_amount == Decimal("0")
    assert compute_budget_analytics(db_session, other_team.team_id, 5, 2024).budgets == ()


def test_analytics_are_idempotent(db_session, team):
    _monthly(db_session, team, "Food", 500)
    _spend(db_session, team, "Food", 120, date(2024, 5, 3))

    first = compute_budget_analytics(db_session, team.team_id, 5, 2024)
    second = compute_budget_analytics(db_session, team.team_id, 5, 2024)
    assert first == second


def test_inactive_category_budget_is_reported_with_warning(db_session, team):
    _monthly(db_session, team, "Health", 100)
    deactivate_category(db_session, team.categories["Health"], team.team_id)

    report = compute_budget_analytics(db_session, team.team_id, 5, 2024)
    assert report.budgets[0].category_name == "Health"
    assert len(report.warnings) == 1


def test_custom_budget_counts_spend_outside_month(db_session, team):
    create_budget(
        db_session, team.team_id,
        BudgetInput(team.categories["Food"], 1000, "custom", date(2024, 5, 20), date(2024, 6, 10)),
    )
    _spend(db_session, team, "Food", 100, date(2024, 5, 25))
    _spend(db_session, team, "Food", 300, date(2024, 6, 5))

    row = compute_budget_analytics(db_session, team.team_id, 5, 2024).budgets[0]
    assert row.spent_amount == Decimal("400.00")


def test_invalid_month_is_rejected(db_session, team):
    with pytest.raises(ValidationError):
        compute_budget_analytics(db_session, team.team_id, 13, 2024)


def test_range_analytics_rejects_inverted_range(db_session, team):
    with pytest.raises(ValidationError):
        compute_range_analytics(db_session, team.team_id, date(2024, 5, 31), date(2024, 5, 1))


def test_dashboard_includes_unbudgeted_categories(db_session, team):
    _monthly(db_session, team, "Food", 500)
    _spend(db_session, team, "Food", 100, date(2024, 5, 3))
    _spend(db_session, team, "Transport", 40, date(2024, 5, 3))

    dashboard = compute_dashboard(db_session, team.team_id, 5, 2024)
    names = [row.category_name for row in dashboard.spending_by_category]
    assert names == ["Food", "Transport"]
    assert dashboard.total_spent == Decimal("140.00")
