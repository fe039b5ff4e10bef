"""Transaction mutations: create, update, soft delete and batch create.

Every mutation validates, writes the row and its audit entry, and commits
in one database transaction. The notification hook runs only after the
commit and can never fail the mutation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from familybudget.core.errors import ConflictError, FinanceError, NotFoundError, ValidationError
from familybudget.core.models import (
    ChangeType,
    Rule,
    Transaction,
    TransactionSource,
    TransactionStatus,
)
from familybudget.core.repositories import (
    CategoryRepo,
    RuleRepo,
    TransactionFilters,
    TransactionRepo,
    UserRepo,
)
from familybudget.processing.rule_matcher import match_rule_detail
from familybudget.services.audit_service import record_change, snapshot_transaction
from familybudget.services.notification_service import (
    BatchCreatedEvent,
    BudgetAlertNotifier,
    MutationEvent,
    MutationNotifier,
    run_notifier,
)
from familybudget.services.team_service import get_team_banks

logger = logging.getLogger(__name__)

DEFAULT_NOTIFIER = BudgetAlertNotifier()

CENT = Decimal("0.01")


@dataclass
class TransactionInput:
    amount: Any
    description: str
    transaction_date: date | str
    category_id: Optional[int] = None
    bank: Optional[str] = None
    source: TransactionSource | str = TransactionSource.MANUAL
    status: TransactionStatus | str = TransactionStatus.ACTIVE
    is_ai_suggested: bool = False
    ai_confidence: Any = None

    @classmethod
    def from_dict(cls, data: dict) -> "TransactionInput":
        """Build from a loose mapping, accepting `date` for the transaction date."""
        if not isinstance(data, dict):
            raise ValidationError("Transaction must be an object")
        values = dict(data)
        if "date" in values and "transaction_date" not in values:
            values["transaction_date"] = values.pop("date")
        known = {f.name for f in fields(cls)}
        missing = [name for name in ("amount", "description", "transaction_date") if name not in values]
        if missing:
            raise ValidationError(f"Missing field(s): {', '.join(missing)}", field=missing[0])
        return cls(**{k: v for k, v in values.items() if k in known})


@dataclass
class TransactionPatch:
    """Fields to change on update; None leaves a field untouched."""

    amount: Any = None
    description: Optional[str] = None
    transaction_date: Optional[date | str] = None
    category_id: Optional[int] = None
    bank: Optional[str] = None
    status: Optional[TransactionStatus | str] = None
    clear_category: bool = False

    def changes(self) -> dict[str, Any]:
        values = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }
        if not self.clear_category:
            values.pop("clear_category", None)
        return values


@dataclass
class BatchError:
    index: int
    reason: str

    def to_dict(self) -> dict:
        return {"index": self.index, "reason": self.reason}


@dataclass
class BatchResult:
    created: list[Transaction] = field(default_factory=list)
    errors: list[BatchError] = field(default_factory=list)


def parse_amount(value: Any) -> Decimal:
    """Absolute amount rounded to cents; zero and non-numbers are rejected."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid amount: {value!r}", field="amount")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount: {value!r}", field="amount")
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}", field="amount")

    amount = abs(amount).quantize(CENT)
    if amount == 0:
        raise ValidationError("Amount must not be zero", field="amount")
    return amount


def parse_date(value: Any, field_name: str = "date") -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(
            f"Invalid date {value!r}, expected YYYY-MM-DD", field=field_name
        )


def _clean_description(value: Optional[str]) -> str:
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"Description must be text, got {value!r}", field="description")
    description = (value or "").strip()
    if not description:
        raise ValidationError("Description must not be empty", field="description")
    return description


def _parse_confidence(value: Any) -> Optional[Decimal]:
    """AI confidence as a fraction between 0 and 1."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Invalid ai_confidence: {value!r}", field="ai_confidence")
    try:
        confidence = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid ai_confidence: {value!r}", field="ai_confidence")
    if not confidence.is_finite() or not 0 <= confidence <= 1:
        raise ValidationError(
            f"ai_confidence must be between 0 and 1, got {value!r}", field="ai_confidence"
        )
    return confidence.quantize(Decimal("0.0001"))


def _parse_category_id(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationError(f"Invalid category id {value!r}", field="category_id")


def _parse_status(value: TransactionStatus | str) -> TransactionStatus:
    try:
        status = TransactionStatus(value)
    except (ValueError, TypeError):
        status = None
    # Deletion only goes through delete_transaction
    if status is None or status == TransactionStatus.DELETED:
        allowed = [TransactionStatus.ACTIVE.value, TransactionStatus.PENDING.value]
        raise ValidationError(
            f"Invalid status {value!r}. Options: {', '.join(allowed)}",
            field="status",
            details={"allowed": allowed},
        )
    return status


def _parse_source(value: TransactionSource | str) -> TransactionSource:
    try:
        return TransactionSource(value)
    except (ValueError, TypeError):
        allowed = [s.value for s in TransactionSource]
        raise ValidationError(
            f"Invalid source {value!r}. Options: {', '.join(allowed)}",
            field="source",
            details={"allowed": allowed},
        )


def _check_category(db: Session, team_id: int, category_id: int) -> int:
    category_id = _parse_category_id(category_id)
    try:
        category = CategoryRepo(db).get(category_id, team_id)
    except NotFoundError:
        raise ValidationError(f"Category {category_id} not found", field="category_id")
    if not category.is_active:
        raise ValidationError(f"Category {category.name!r} is inactive", field="category_id")
    return category.id


def _check_bank(bank: Optional[str], allowed: list[str], required: bool = False) -> str:
    """A missing bank defaults to the first allowed one unless `required`."""
    if bank is None or not str(bank).strip():
        if required:
            raise ValidationError(
                f"Bank must not be empty. Allowed: {', '.join(allowed)}",
                field="bank",
                details={"allowed": list(allowed)},
            )
        return allowed[0]
    bank = str(bank).strip()
    if bank not in allowed:
        raise ValidationError(
            f"Bank {bank!r} is not configured for this team. Allowed: {', '.join(allowed)}",
            field="bank",
            details={"allowed": list(allowed)},
        )
    return bank


def _build_transaction(
    db: Session,
    team_id: int,
    user_id: int,
    data: TransactionInput,
    banks: list[str],
    rules: list[Rule],
) -> Transaction:
    """Validate one input, insert it and append its `created` audit row."""
    amount = parse_amount(data.amount)
    tx_date = parse_date(data.transaction_date)
    description = _clean_description(data.description)
    bank = _check_bank(data.bank, banks)

    category_id = None
    applied_rule_id = None
    if data.category_id is not None:
        category_id = _check_category(db, team_id, data.category_id)
    else:
        rule = match_rule_detail(description, amount, tx_date, rules)
        if rule is not None:
            category_id = rule.category_id
            applied_rule_id = rule.id

    tx = Transaction(
        team_id=team_id,
        user_id=user_id,
        transaction_date=tx_date,
        amount=amount,
        description=description,
        bank=bank,
        source=_parse_source(data.source),
        status=_parse_status(data.status),
        category_id=category_id,
        applied_rule_id=applied_rule_id,
        is_ai_suggested=bool(data.is_ai_suggested),
        ai_confidence=_parse_confidence(data.ai_confidence),
    )
    db.add(tx)
    db.flush()

    record_change(db, tx, user_id, ChangeType.CREATED, new_value=snapshot_transaction(tx))
    return tx


def create_transaction(
    db: Session,
    team_id: int,
    user_id: int,
    data: TransactionInput,
    notifier: Optional[MutationNotifier] = DEFAULT_NOTIFIER,
) -> Transaction:
    """Create one transaction.

    Without an explicit category the team's active rules suggest one; when
    none matches the transaction stays uncategorized.
    """
    UserRepo(db).get(user_id, team_id)
    try:
        tx = _build_transaction(
            db,
            team_id,
            user_id,
            data,
            get_team_banks(db, team_id),
            RuleRepo(db).find_active(team_id),
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Created transaction %s for team %s (%s, category %s, rule %s)",
        tx.id, team_id, tx.amount, tx.category_id, tx.applied_rule_id,
    )
    new_value = snapshot_transaction(tx)
    run_notifier(
        db,
        notifier,
        MutationEvent(team_id, user_id, tx.id, ChangeType.CREATED, new_value=new_value),
    )
    return tx


def update_transaction(
    db: Session,
    transaction_id: int,
    team_id: int,
    user_id: int,
    patch: TransactionPatch,
    expected_version: Optional[int] = None,
    notifier: Optional[MutationNotifier] = DEFAULT_NOTIFIER,
) -> Transaction:
    """Apply the fields set on `patch`.

    With `expected_version` the update only succeeds if nobody changed the
    row since the caller read it.
    """
    UserRepo(db).get(user_id, team_id)
    changes = patch.changes()
    if not changes:
        raise ValidationError("No fields to update")
    if "clear_category" in changes and "category_id" in changes:
        raise ValidationError(
            "Use either category_id or clear_category, not both", field="category_id"
        )

    try:
        tx = TransactionRepo(db).get(transaction_id, team_id, for_update=True)
        if tx.status == TransactionStatus.DELETED:
            raise NotFoundError("Transaction", transaction_id)
        if expected_version is not None and tx.version != expected_version:
            raise ConflictError(
                f"Transaction {transaction_id} was modified concurrently "
                f"(expected version {expected_version}, found {tx.version})"
            )

        old_value = snapshot_transaction(tx)

        if "amount" in changes:
            tx.amount = parse_amount(changes["amount"])
        if "description" in changes:
            tx.description = _clean_description(changes["description"])
        if "transaction_date" in changes:
            tx.transaction_date = parse_date(changes["transaction_date"])
        if "bank" in changes:
            tx.bank = _check_bank(changes["bank"], get_team_banks(db, team_id), required=True)
        if "status" in changes:
            tx.status = _parse_status(changes["status"])
        if "category_id" in changes:
            category_id = _check_category(db, team_id, changes["category_id"])
            if category_id != tx.category_id:
                tx.category_id = category_id
                # Manual choice replaces whatever a rule picked
                tx.applied_rule_id = None
                tx.is_ai_suggested = False
        if "clear_category" in changes:
            tx.category_id = None
            tx.applied_rule_id = None
            tx.is_ai_suggested = False

        db.flush()
        new_value = snapshot_transaction(tx)
        record_change(db, tx, user_id, ChangeType.UPDATED, old_value=old_value, new_value=new_value)
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConflictError(f"Transaction {transaction_id} was modified concurrently")
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Updated transaction %s for team %s: %s", transaction_id, team_id, sorted(changes)
    )
    run_notifier(
        db,
        notifier,
        MutationEvent(
            team_id, user_id, tx.id, ChangeType.UPDATED, old_value=old_value, new_value=new_value
        ),
    )
    return tx


def delete_transaction(
    db: Session,
    transaction_id: int,
    team_id: int,
    user_id: int,
    notifier: Optional[MutationNotifier] = DEFAULT_NOTIFIER,
) -> Transaction:
    """Soft delete; the row stays retrievable by id and keeps its history."""
    UserRepo(db).get(user_id, team_id)
    try:
        tx = TransactionRepo(db).get(transaction_id, team_id, for_update=True)
        if tx.status == TransactionStatus.DELETED:
            raise NotFoundError("Transaction", transaction_id)

        old_value = snapshot_transaction(tx)
        tx.status = TransactionStatus.DELETED
        db.flush()
        record_change(db, tx, user_id, ChangeType.DELETED, old_value=old_value)
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConflictError(f"Transaction {transaction_id} was modified concurrently")
    except Exception:
        db.rollback()
        raise

    logger.info("Deleted transaction %s for team %s", transaction_id, team_id)
    run_notifier(
        db,
        notifier,
        MutationEvent(team_id, user_id, tx.id, ChangeType.DELETED, old_value=old_value),
    )
    return tx


def create_transactions_batch(
    db: Session,
    team_id: int,
    user_id: int,
    items: Iterable[TransactionInput | dict],
    notifier: Optional[MutationNotifier] = DEFAULT_NOTIFIER,
) -> BatchResult:
    """Create many transactions; a failing item never affects the others.

    Each item runs in its own SAVEPOINT and everything that succeeded is
    committed together at the end. The notification hook sees the batch as
    one event.
    """
    UserRepo(db).get(user_id, team_id)
    banks = get_team_banks(db, team_id)
    rules = RuleRepo(db).find_active(team_id)
    result = BatchResult()

    for index, item in enumerate(items):
        try:
            data = item if isinstance(item, TransactionInput) else TransactionInput.from_dict(item)
            with db.begin_nested():
                tx = _build_transaction(db, team_id, user_id, data, banks, rules)
            result.created.append(tx)
        except FinanceError as exc:
            logger.warning("Batch item %s rejected for team %s: %s", index, team_id, exc.message)
            result.errors.append(BatchError(index=index, reason=exc.message))

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Batch for team %s: %s created, %s failed",
        team_id, len(result.created), len(result.errors),
    )
    if result.created:
        snapshots = tuple(snapshot_transaction(tx) for tx in result.created)
        run_notifier(db, notifier, BatchCreatedEvent(team_id, user_id, snapshots))
    return result


def recategorize(
    db: Session,
    team_id: int,
    user_id: int,
    transactions: Iterable[Transaction],
    rules: list[Rule],
) -> list[Transaction]:
    """Assign rule categories to the given transactions in the caller's transaction.

    Rows no rule matches are left alone; each changed row gets a
    `category_changed` audit entry. The caller commits.
    """
    changed = []
    for tx in transactions:
        if tx.status != TransactionStatus.ACTIVE:
            continue
        rule = match_rule_detail(tx.description, tx.amount, tx.transaction_date, rules)
        if rule is None or rule.category_id == tx.category_id:
            continue

        old_value = snapshot_transaction(tx)
        tx.category_id = rule.category_id
        tx.applied_rule_id = rule.id
        db.flush()
        record_change(
            db,
            tx,
            user_id,
            ChangeType.CATEGORY_CHANGED,
            old_value=old_value,
            new_value=snapshot_transaction(tx),
        )
        changed.append(tx)
    return changed


def get_transaction(db: Session, transaction_id: int, team_id: int) -> Transaction:
    return TransactionRepo(db).get(transaction_id, team_id)


def list_transactions(
    db: Session, team_id: int, filters: Optional[TransactionFilters] = None
) -> list[Transaction]:
    return TransactionRepo(db).find(team_id, filters)


def transaction_to_dict(tx: Transaction) -> dict:
    return {
        "id": tx.id,
        "date": tx.transaction_date.isoformat(),
        "amount": float(tx.amount),
        "description": tx.description,
        "bank": tx.bank,
        "source": tx.source.value,
        "status": tx.status.value,
        "category_id": tx.category_id,
        "category_name": tx.category.name if tx.category else None,
        "applied_rule_id": tx.applied_rule_id,
        "is_ai_suggested": bool(tx.is_ai_suggested),
        "ai_confidence": float(tx.ai_confidence) if tx.ai_confidence is not None else None,
        "user_id": tx.user_id,
        "version": tx.version,
        "created_at": tx.created_at.isoformat() if tx.created_at else None,
        "updated_at": tx.updated_at.isoformat() if tx.updated_at else None,
    }
