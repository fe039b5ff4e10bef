"""Tool definitions and dispatch for assistant clients.

Each tool returns `{"content": [{"type": "text", "text": ...}], "isError": bool}`
with a JSON document as the text.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from familybudget.core.errors import FinanceError, ValidationError
from familybudget.core.repositories import TransactionFilters
from familybudget.services import (
    budget_service,
    category_service,
    rule_service,
    transaction_service,
)
from familybudget.services.team_service import TeamContext, get_context

logger = logging.getLogger(__name__)


TOOLS: list[dict[str, Any]] = [
    {
        "name": "get_transactions",
        "description": "List the team's transactions with optional date, category, text and bank filters",
        "inputSchema": {
            "type": "object",
            "properties": {
                "from_date": {"type": "string", "description": "Start date YYYY-MM-DD"},
                "to_date": {"type": "string", "description": "End date YYYY-MM-DD"},
                "category_id": {"type": "integer", "description": "Category id to filter by"},
                "search": {"type": "string", "description": "Text to look for in the description"},
                "bank": {"type": "string", "description": "Bank name to filter by"},
                "limit": {"type": "integer", "description": "Maximum number of rows (default 50)"},
            },
        },
    },
    {
        "name": "create_transactions",
        "description": "Create one or more transactions; each item succeeds or fails on its own",
        "inputSchema": {
            "type": "object",
            "properties": {
                "transactions": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "description": {"type": "string"},
                            "amount": {"type": "number", "description": "Stored as a positive value"},
                            "date": {"type": "string", "description": "YYYY-MM-DD"},
                            "category_id": {"type": "integer"},
                            "bank": {"type": "string"},
                        },
                        "required": ["description", "amount", "date"],
                    },
                },
            },
            "required": ["transactions"],
        },
    },
    {
        "name": "update_transaction",
        "description": "Update fields of an existing transaction",
        "inputSchema": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "description": {"type": "string"},
                "amount": {"type": "number"},
                "date": {"type": "string", "description": "YYYY-MM-DD"},
                "category_id": {"type": "integer"},
                "bank": {"type": "string"},
                "clear_category": {"type": "boolean", "description": "Remove the category"},
                "expected_version": {"type": "integer"},
            },
            "required": ["id"],
        },
    },
    {
        "name": "delete_transaction",
        "description": "Soft delete a transaction by id",
        "inputSchema": {
            "type": "object",
            "properties": {"id": {"type": "integer"}},
            "required": ["id"],
        },
    },
    {
        "name": "get_categories",
        "description": "List the team's active categories",
        "inputSchema": {"type": "object", "properties": {}},
    },
    {
        "name": "manage_category",
        "description": "Create a category, or edit it when an id is given",
        "inputSchema": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "name": {"type": "string"},
                "icon": {"type": "string"},
                "color": {"type": "string"},
            },
            "required": ["name"],
        },
    },
    {
        "name": "get_rules",
        "description": "List the team's categorization rules in evaluation order",
        "inputSchema": {"type": "object", "properties": {}},
    },
    {
        "name": "manage_rule",
        "description": "Create a categorization rule, or edit it when an id is given",
        "inputSchema": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "name": {"type": "string"},
                "field": {"type": "string", "enum": ["description", "amount", "date"]},
                "match_text": {"type": "string"},
                "category_id": {"type": "integer"},
                "is_active": {"type": "boolean"},
            },
            "required": ["name", "field", "match_text", "category_id"],
        },
    },
    {
        "name": "get_budgets",
        "description": "List the team's budgets with this month's spending",
        "inputSchema": {"type": "object", "properties": {}},
    },
    {
        "name": "manage_budget",
        "description": "Create a budget, or edit it when an id is given",
        "inputSchema": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "category_id": {"type": "integer"},
                "amount": {"type": "number"},
                "period": {"type": "string", "enum": ["monthly", "weekly", "biweekly", "custom"]},
                "start_date": {"type": "string", "description": "YYYY-MM-DD"},
                "end_date": {"type": "string", "description": "YYYY-MM-DD"},
            },
            "required": ["category_id", "amount", "period", "start_date"],
        },
    },
    {
        "name": "get_budget_analytics",
        "description": "Spent, percentage, remaining and status per budget for a month",
        "inputSchema": {
            "type": "object",
            "properties": {
                "month": {"type": "integer", "minimum": 1, "maximum": 12},
                "year": {"type": "integer"},
            },
        },
    },
    {
        "name": "get_context",
        "description": "Current user, team and the banks transactions may use",
        "inputSchema": {"type": "object", "properties": {}},
    },
]


def _result(payload: Any, is_error: bool = False) -> dict:
    text = payload if isinstance(payload, str) else json.dumps(payload, indent=2, ensure_ascii=False)
    return {"content": [{"type": "text", "text": text}], "isError": is_error}


def _int_arg(args: dict, name: str, required: bool = False) -> Optional[int]:
    value = args.get(name)
    if value is None or value == "":
        if required:
            raise ValidationError(f"{name} is required", field=name)
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer", field=name)


def _date_arg(args: dict, name: str) -> Optional[date]:
    value = args.get(name)
    if not value:
        return None
    return transaction_service.parse_date(value, field_name=name)


def _get_transactions(db: Session, ctx: TeamContext, args: dict) -> dict:
    filters = TransactionFilters(
        from_date=_date_arg(args, "from_date"),
        to_date=_date_arg(args, "to_date"),
        category_id=_int_arg(args, "category_id"),
        search=args.get("search") or None,
        bank=args.get("bank") or None,
        limit=_int_arg(args, "limit") or 50,
    )
    rows = transaction_service.list_transactions(db, ctx.team_id, filters)
    return {
        "total": len(rows),
        "transactions": [transaction_service.transaction_to_dict(tx) for tx in rows],
        "total_amount": float(sum((tx.amount for tx in rows), 0)),
    }


def _create_transactions(db: Session, ctx: TeamContext, args: dict) -> dict:
    items = args.get("transactions")
    if not isinstance(items, list) or not items:
        raise ValidationError("transactions must be a non-empty list", field="transactions")
    result = transaction_service.create_transactions_batch(db, ctx.team_id, ctx.user_id, items)
    return {
        "created": [transaction_service.transaction_to_dict(tx) for tx in result.created],
        "errors": [error.to_dict() for error in result.errors],
    }


def _update_transaction(db: Session, ctx: TeamContext, args: dict) -> dict:
    patch = transaction_service.TransactionPatch(
        amount=args.get("amount"),
        description=args.get("description"),
        transaction_date=args.get("date"),
        category_id=_int_arg(args, "category_id"),
        bank=args.get("bank"),
        clear_category=bool(args.get("clear_category")),
    )
    tx = transaction_service.update_transaction(
        db,
        _int_arg(args, "id", required=True),
        ctx.team_id,
        ctx.user_id,
        patch,
        expected_version=_int_arg(args, "expected_version"),
    )
    return transaction_service.transaction_to_dict(tx)


def _delete_transaction(db: Session, ctx: TeamContext, args: dict) -> dict:
    tx = transaction_service.delete_transaction(
        db, _int_arg(args, "id", required=True), ctx.team_id, ctx.user_id
    )
    return {"deleted": tx.id, "description": tx.description}


def _get_categories(db: Session, ctx: TeamContext, args: dict) -> dict:
    categories = category_service.list_categories(db, ctx.team_id)
    return {
        "total": len(categories),
        "categories": [category_service.category_to_dict(c) for c in categories],
    }


def _manage_category(db: Session, ctx: TeamContext, args: dict) -> dict:
    category_id = _int_arg(args, "id")
    if category_id is not None:
        category = category_service.update_category(
            db,
            category_id,
            ctx.team_id,
            name=args.get("name"),
            icon=args.get("icon"),
            color=args.get("color"),
        )
    else:
        category = category_service.create_category(
            db, ctx.team_id, args.get("name"), icon=args.get("icon"), color=args.get("color")
        )
    return category_service.category_to_dict(category)


def _get_rules(db: Session, ctx: TeamContext, args: dict) -> dict:
    rules = rule_service.list_rules(db, ctx.team_id, include_inactive=True)
    return {"total": len(rules), "rules": [rule_service.rule_to_dict(r) for r in rules]}


def _manage_rule(db: Session, ctx: TeamContext, args: dict) -> dict:
    rule_id = _int_arg(args, "id")
    if rule_id is not None:
        rule = rule_service.update_rule(
            db,
            rule_id,
            ctx.team_id,
            name=args.get("name"),
            field=args.get("field"),
            match_text=args.get("match_text"),
            category_id=_int_arg(args, "category_id"),
            is_active=args.get("is_active"),
        )
    else:
        rule = rule_service.create_rule(
            db,
            ctx.team_id,
            name=args.get("name"),
            field=args.get("field"),
            match_text=args.get("match_text"),
            category_id=_int_arg(args, "category_id", required=True),
        )
    return rule_service.rule_to_dict(rule)


def _get_budgets(db: Session, ctx: TeamContext, args: dict) -> dict:
    today = date.today()
    report = budget_service.compute_budget_analytics(db, ctx.team_id, today.month, today.year)
    return {
        "budgets": [budget_service.budget_to_dict(b) for b in budget_service.list_budgets(db, ctx.team_id)],
        "current_month": report.to_dict(),
    }


def _manage_budget(db: Session, ctx: TeamContext, args: dict) -> dict:
    budget_id = _int_arg(args, "id")
    if budget_id is not None:
        budget = budget_service.update_budget(
            db,
            budget_id,
            ctx.team_id,
            category_id=_int_arg(args, "category_id"),
            amount=args.get("amount"),
            period=args.get("period"),
            start_date=_date_arg(args, "start_date"),
            end_date=_date_arg(args, "end_date"),
        )
    else:
        start = _date_arg(args, "start_date")
        if start is None:
            raise ValidationError("start_date is required", field="start_date")
        budget = budget_service.create_budget(
            db,
            ctx.team_id,
            budget_service.BudgetInput(
                category_id=_int_arg(args, "category_id", required=True),
                amount=args.get("amount"),
                period=args.get("period") or "monthly",
                start_date=start,
                end_date=_date_arg(args, "end_date"),
            ),
        )
    return budget_service.budget_to_dict(budget)


def _get_budget_analytics(db: Session, ctx: TeamContext, args: dict) -> dict:
    today = date.today()
    month = _int_arg(args, "month") or today.month
    year = _int_arg(args, "year") or today.year
    return budget_service.compute_budget_analytics(db, ctx.team_id, month, year).to_dict()


def _get_context(db: Session, ctx: TeamContext, args: dict) -> dict:
    return ctx.to_dict()


HANDLERS: dict[str, Callable[[Session, TeamContext, dict], Any]] = {
    "get_transactions": _get_transactions,
    "create_transactions": _create_transactions,
    "update_transaction": _update_transaction,
    "delete_transaction": _delete_transaction,
    "get_categories": _get_categories,
    "manage_category": _manage_category,
    "get_rules": _get_rules,
    "manage_rule": _manage_rule,
    "get_budgets": _get_budgets,
    "manage_budget": _manage_budget,
    "get_budget_analytics": _get_budget_analytics,
    "get_context": _get_context,
}


def execute_tool(db: Session, name: str, args: Optional[dict], team_id: int, user_id: int) -> dict:
    """Run one tool for the caller; domain errors come back as `isError` results."""
    handler = HANDLERS.get(name)
    if handler is None:
        return _result(f"Unknown tool: {name}", is_error=True)

    try:
        ctx = get_context(db, team_id, user_id)
        return _result(handler(db, ctx, args or {}))
    except FinanceError as exc:
        logger.warning("Tool %s failed for team %s: %s", name, team_id, exc.message)
        return _result(exc.to_dict(), is_error=True)
