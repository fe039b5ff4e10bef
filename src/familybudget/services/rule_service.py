"""Service for rule creation, preview, and batch operations."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Optional

from sqlalchemy.orm import Session

from familybudget.core.errors import ValidationError
from familybudget.core.models import Rule, RuleField, TransactionStatus
from familybudget.core.repositories import (
    CategoryRepo,
    RuleRepo,
    TransactionFilters,
    TransactionRepo,
)
from familybudget.processing.rule_matcher import evaluate_rule, validate_match_text
from familybudget.services.transaction_service import recategorize

logger = logging.getLogger(__name__)


def _parse_field(value: RuleField | str) -> RuleField:
    try:
        return RuleField(value)
    except ValueError:
        allowed = [f.value for f in RuleField]
        raise ValidationError(
            f"Invalid rule field {value!r}. Options: {', '.join(allowed)}",
            field="field",
            details={"allowed": allowed},
        )


def _check_target(db: Session, team_id: int, category_id: int) -> int:
    category = CategoryRepo(db).get(category_id, team_id)
    if not category.is_active:
        raise ValidationError(f"Category {category.name!r} is inactive", field="category_id")
    return category.id


def list_rules(db: Session, team_id: int, include_inactive: bool = False) -> list[Rule]:
    """Rules in evaluation order."""
    repo = RuleRepo(db)
    if include_inactive:
        return repo.find_all(team_id)
    return [rule for rule in repo.find_all(team_id) if rule.is_active]


def create_rule(
    db: Session,
    team_id: int,
    name: str,
    field: RuleField | str,
    match_text: str,
    category_id: int,
) -> Rule:
    """Create a rule; it is evaluated after every rule created before it."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("Rule name must not be empty", field="name")
    rule_field = _parse_field(field)

    rule = Rule(
        team_id=team_id,
        name=name,
        field=rule_field,
        match_text=validate_match_text(rule_field, match_text),
        category_id=_check_target(db, team_id, category_id),
        is_active=True,
    )
    db.add(rule)
    db.commit()
    db.refresh(rule)
    logger.info(
        "Created rule %s (%s %r -> category %s) for team %s",
        rule.id, rule_field.value, rule.match_text, rule.category_id, team_id,
    )
    return rule


def update_rule(
    db: Session,
    rule_id: int,
    team_id: int,
    name: Optional[str] = None,
    field: Optional[RuleField | str] = None,
    match_text: Optional[str] = None,
    category_id: Optional[int] = None,
    is_active: Optional[bool] = None,
) -> Rule:
    rule = RuleRepo(db).get(rule_id, team_id)

    if name is not None:
        if not name.strip():
            raise ValidationError("Rule name must not be empty", field="name")
        rule.name = name.strip()
    if field is not None or match_text is not None:
        # Pattern is re-checked against the (possibly new) field
        new_field = _parse_field(field) if field is not None else rule.field
        new_text = match_text if match_text is not None else rule.match_text
        rule.match_text = validate_match_text(new_field, new_text)
        rule.field = new_field
    if category_id is not None:
        rule.category_id = _check_target(db, team_id, category_id)
    if is_active is not None:
        rule.is_active = is_active

    db.commit()
    db.refresh(rule)
    return rule


def deactivate_rule(db: Session, rule_id: int, team_id: int) -> Rule:
    rule = RuleRepo(db).get(rule_id, team_id)
    rule.is_active = False
    db.commit()
    logger.info("Deactivated rule %s for team %s", rule_id, team_id)
    return rule


def preview_rule(
    db: Session,
    team_id: int,
    field: RuleField | str,
    match_text: str,
    limit: int = 20,
) -> dict:
    """Preview which active transactions a rule would match without saving it.

    Returns:
        Dict with match count, total amount, current category breakdown and
        a sample of the matching transactions
    """
    rule_field = _parse_field(field)
    candidate = Rule(field=rule_field, match_text=validate_match_text(rule_field, match_text))

    transactions = TransactionRepo(db).find(
        team_id, TransactionFilters(status=TransactionStatus.ACTIVE, limit=None)
    )
    matches = [
        tx
        for tx in transactions
        if evaluate_rule(candidate, tx.description, tx.amount, tx.transaction_date)
    ]

    categories = {c.id: c.name for c in CategoryRepo(db).find_all(team_id)}
    breakdown = Counter(
        categories.get(tx.category_id, "Unknown") if tx.category_id else "Uncategorized"
        for tx in matches
    )

    return {
        "total_matches": len(matches),
        "total_amount": float(sum((tx.amount for tx in matches), 0)),
        "current_categories": dict(breakdown),
        "sample_transactions": [
            {
                "id": tx.id,
                "date": tx.transaction_date.isoformat(),
                "description": tx.description,
                "amount": float(tx.amount),
                "current_category_id": tx.category_id,
            }
            for tx in matches[:limit]
        ],
    }


def apply_rules_to_uncategorized(db: Session, team_id: int, user_id: int) -> dict:
    """Run the team's active rules over its active uncategorized transactions."""
    transactions = TransactionRepo(db).find_uncategorized(team_id)
    rules = RuleRepo(db).find_active(team_id)

    try:
        changed = recategorize(db, team_id, user_id, transactions, rules)
        db.commit()
    except Exception:
        db.rollback()
        raise

    by_rule = Counter(tx.applied_rule_id for tx in changed)
    logger.info(
        "Applied %s rules to %s uncategorized transactions for team %s: %s categorized",
        len(rules), len(transactions), team_id, len(changed),
    )
    return {
        "total_checked": len(transactions),
        "categorized": len(changed),
        "remaining": len(transactions) - len(changed),
        "by_rule": {str(rule_id): count for rule_id, count in sorted(by_rule.items())},
        "transaction_ids": [tx.id for tx in changed],
    }


def rule_to_dict(rule: Rule) -> dict:
    return {
        "id": rule.id,
        "name": rule.name,
        "field": rule.field.value,
        "match_text": rule.match_text,
        "category_id": rule.category_id,
        "category_name": rule.category.name if rule.category else None,
        "is_active": rule.is_active,
        "created_at": rule.created_at.isoformat() if rule.created_at else None,
    }
