"""Notifications and the budget alert hook run after transaction mutations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from familybudget.core.models import ChangeType, Notification, NotificationType
from familybudget.core.repositories import NotificationRepo
from familybudget.processing.analytics import BudgetStatus
from familybudget.services.budget_service import compute_budget_analytics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MutationEvent:
    """What a committed transaction mutation changed, as audit snapshots."""

    team_id: int
    user_id: int
    transaction_id: int
    change_type: ChangeType
    old_value: Optional[dict] = None
    new_value: Optional[dict] = None


@dataclass(frozen=True)
class BatchCreatedEvent:
    """All transactions a committed batch created, as `created` snapshots."""

    team_id: int
    user_id: int
    created: tuple[dict, ...] = ()

    @property
    def transaction_ids(self) -> list[int]:
        return [snapshot["id"] for snapshot in self.created]


class MutationNotifier(Protocol):
    def __call__(self, db: Session, event: MutationEvent | BatchCreatedEvent) -> None: ...


def create_notification(
    db: Session,
    team_id: int,
    title: str,
    body: str,
    type: NotificationType = NotificationType.INFO,
    user_id: Optional[int] = None,
    related_transaction_id: Optional[int] = None,
    related_category_id: Optional[int] = None,
    commit: bool = True,
) -> Notification:
    notification = Notification(
        team_id=team_id,
        user_id=user_id,
        title=title,
        body=body,
        type=type,
        is_read=False,
        related_transaction_id=related_transaction_id,
        related_category_id=related_category_id,
    )
    db.add(notification)
    if commit:
        db.commit()
        db.refresh(notification)
    return notification


def list_notifications(
    db: Session, team_id: int, user_id: Optional[int] = None, unread_only: bool = False
) -> list[Notification]:
    return NotificationRepo(db).find(team_id, user_id=user_id, unread_only=unread_only)


def mark_read(db: Session, notification_id: int, team_id: int) -> Notification:
    notification = NotificationRepo(db).get(notification_id, team_id)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.utcnow()
        db.commit()
    return notification


def mark_all_read(db: Session, team_id: int, user_id: Optional[int] = None) -> int:
    now = datetime.utcnow()
    unread = NotificationRepo(db).find(team_id, user_id=user_id, unread_only=True)
    for notification in unread:
        notification.is_read = True
        notification.read_at = now
    db.commit()
    return len(unread)


def notification_to_dict(notification: Notification) -> dict:
    return {
        "id": notification.id,
        "title": notification.title,
        "body": notification.body,
        "type": notification.type.value,
        "is_read": notification.is_read,
        "user_id": notification.user_id,
        "related_transaction_id": notification.related_transaction_id,
        "related_category_id": notification.related_category_id,
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
        "read_at": notification.read_at.isoformat() if notification.read_at else None,
    }


def _contribution(snapshot: Optional[dict], category_id: int, window) -> Decimal:
    """Amount a snapshot adds to a category's spend within a window."""
    if not snapshot or snapshot.get("status") != "active":
        return Decimal("0")
    if snapshot.get("category_id") != category_id:
        return Decimal("0")
    if not window.contains(date.fromisoformat(snapshot["date"])):
        return Decimal("0")
    return Decimal(snapshot["amount"])


class BudgetAlertNotifier:
    """Emit an alert when a mutation moves a category from within budget to over it.

    A batch is judged as a whole: spend before the batch is compared with
    spend after it, so each crossed budget gets at most one alert.
    """

    def __call__(self, db: Session, event: MutationEvent | BatchCreatedEvent) -> None:
        if isinstance(event, BatchCreatedEvent):
            changes = [(None, snapshot) for snapshot in event.created]
        else:
            changes = [(event.old_value, event.new_value)]

        # Reporting months touched by a snapshot that can add spend
        months: dict[tuple[int, int], set[int]] = {}
        for _, new in changes:
            if not new or new.get("status") != "active" or new.get("category_id") is None:
                continue
            tx_date = date.fromisoformat(new["date"])
            months.setdefault((tx_date.year, tx_date.month), set()).add(new["category_id"])

        alerted: set[int] = set()
        for (year, month), category_ids in sorted(months.items()):
            report = compute_budget_analytics(db, event.team_id, month, year)
            for category_id in sorted(category_ids):
                for row in report.for_category(category_id):
                    if row.budget_id in alerted or row.status != BudgetStatus.OVER:
                        continue
                    before = row.spent_amount
                    trigger_id = None
                    for old, new in changes:
                        added = _contribution(new, category_id, row.window)
                        before += _contribution(old, category_id, row.window) - added
                        if added:
                            trigger_id = new["id"]
                    if before > row.budget_amount:
                        continue  # was already over

                    alerted.add(row.budget_id)
                    self._alert(db, event.team_id, row, category_id, trigger_id)
        db.commit()

    def _alert(self, db: Session, team_id: int, row, category_id: int, transaction_id) -> None:
        create_notification(
            db,
            team_id=team_id,
            user_id=None,
            title=f"Budget exceeded: {row.category_name}",
            body=(
                f"Spent {row.spent_amount} of {row.budget_amount} "
                f"between {row.window.start.isoformat()} and {row.window.end.isoformat()} "
                f"({row.percentage}%)."
            ),
            type=NotificationType.ALERT,
            related_transaction_id=transaction_id,
            related_category_id=category_id,
            commit=False,
        )
        logger.info(
            "Budget %s for category %s went over after transaction %s",
            row.budget_id, category_id, transaction_id,
        )


def run_notifier(
    db: Session,
    notifier: Optional[MutationNotifier],
    event: MutationEvent | BatchCreatedEvent,
) -> None:
    """Call the hook after a committed mutation; its failures never reach the caller."""
    if notifier is None:
        return
    try:
        notifier(db, event)
    except Exception:
        db.rollback()
        logger.exception("Notification hook failed for team %s: %r", event.team_id, event)
