"""Transaction audit trail: snapshots, append, queries and CSV export."""

from __future__ import annotations

import csv
import json
from datetime import datetime
from io import StringIO
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from familybudget.core.models import ChangeType, Transaction, TransactionAuditLog
from familybudget.core.repositories import AuditLogRepo, TransactionRepo


def snapshot_transaction(tx: Transaction) -> dict:
    """JSON-safe copy of the fields a mutation can change."""
    return {
        "id": tx.id,
        "team_id": tx.team_id,
        "user_id": tx.user_id,
        "category_id": tx.category_id,
        "amount": str(tx.amount),
        "description": tx.description,
        "date": tx.transaction_date.isoformat(),
        "bank": tx.bank,
        "source": tx.source.value if tx.source else None,
        "status": tx.status.value if tx.status else None,
        "applied_rule_id": tx.applied_rule_id,
        "is_ai_suggested": bool(tx.is_ai_suggested),
        "ai_confidence": str(tx.ai_confidence) if tx.ai_confidence is not None else None,
        "version": tx.version,
    }


def record_change(
    db: Session,
    tx: Transaction,
    user_id: int,
    change_type: ChangeType,
    old_value: Optional[dict] = None,
    new_value: Optional[dict] = None,
) -> TransactionAuditLog:
    """Append one audit row in the caller's transaction.

    created -> new_value only; deleted -> old_value only; updated and
    category_changed -> both.
    """
    entry = TransactionAuditLog(
        transaction_id=tx.id,
        user_id=user_id,
        change_type=change_type,
        old_value=old_value,
        new_value=new_value,
        changed_at=datetime.utcnow(),
    )
    return AuditLogRepo(db).add(entry)


def history_for_transaction(
    db: Session, transaction_id: int, team_id: int
) -> list[TransactionAuditLog]:
    """Audit rows of one transaction, oldest first; deleted transactions included."""
    TransactionRepo(db).get(transaction_id, team_id)
    return AuditLogRepo(db).for_transaction(transaction_id)


def entries_in_range(
    db: Session,
    team_id: int,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> list[TransactionAuditLog]:
    return AuditLogRepo(db).in_range(team_id, start, end)


def entry_to_dict(entry: TransactionAuditLog) -> dict:
    return {
        "id": entry.id,
        "transaction_id": entry.transaction_id,
        "user_id": entry.user_id,
        "change_type": entry.change_type.value,
        "old_value": entry.old_value,
        "new_value": entry.new_value,
        "changed_at": entry.changed_at.isoformat(),
    }


def export_audit_csv(entries: Iterable[TransactionAuditLog]) -> str:
    """Export audit entries to CSV string."""
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(
        [
            "id",
            "changed_at",
            "transaction_id",
            "user_id",
            "change_type",
            "old_value",
            "new_value",
        ]
    )
    for entry in entries:
        writer.writerow(
            [
                entry.id,
                entry.changed_at.isoformat(),
                entry.transaction_id,
                entry.user_id,
                entry.change_type.value,
                json.dumps(entry.old_value, sort_keys=True) if entry.old_value is not None else "",
                json.dumps(entry.new_value, sort_keys=True) if entry.new_value is not None else "",
            ]
        )
    return output.getvalue()
