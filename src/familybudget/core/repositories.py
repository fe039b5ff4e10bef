"""Team-scoped query interfaces over the ORM models.

Services read through these so the matcher and aggregator only ever see
plain lists, and so every lookup carries the caller's team id.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from familybudget.core.errors import NotFoundError
from familybudget.core.models import (
    Budget,
    Category,
    Notification,
    Rule,
    Team,
    Transaction,
    TransactionAuditLog,
    TransactionStatus,
    User,
)


@dataclass
class TransactionFilters:
    """Optional filters for listing transactions."""

    from_date: Optional[date] = None
    to_date: Optional[date] = None
    category_id: Optional[int] = None
    search: Optional[str] = None
    bank: Optional[str] = None
    status: Optional[TransactionStatus] = TransactionStatus.ACTIVE
    uncategorized_only: bool = False
    limit: Optional[int] = 50


class TeamRepo:
    def __init__(self, db: Session):
        self.db = db

    def get(self, team_id: int) -> Team:
        team = self.db.get(Team, team_id)
        if team is None:
            raise NotFoundError("Team", team_id)
        return team

    def find_by_invite_code(self, invite_code: str) -> Optional[Team]:
        return self.db.scalars(
            select(Team).where(Team.invite_code == invite_code.strip().upper())
        ).one_or_none()


class UserRepo:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: int, team_id: int) -> User:
        user = self.db.get(User, user_id)
        if user is None or user.team_id != team_id:
            raise NotFoundError("User", user_id)
        return user

    def find_by_email(self, email: str) -> Optional[User]:
        return self.db.scalars(
            select(User).where(func.lower(User.email) == email.strip().lower())
        ).one_or_none()

    def find_active(self, team_id: int) -> list[User]:
        return list(
            self.db.scalars(
                select(User)
                .where(User.team_id == team_id, User.is_active.is_(True))
                .order_by(User.id)
            )
        )


class CategoryRepo:
    def __init__(self, db: Session):
        self.db = db

    def get(self, category_id: int, team_id: int) -> Category:
        """Category owned by the team, active or not."""
        category = self.db.get(Category, category_id)
        if category is None or category.team_id != team_id:
            raise NotFoundError("Category", category_id)
        return category

    def find_all(self, team_id: int) -> list[Category]:
        return list(
            self.db.scalars(
                select(Category).where(Category.team_id == team_id).order_by(Category.id)
            )
        )

    def find_active(self, team_id: int) -> list[Category]:
        return list(
            self.db.scalars(
                select(Category)
                .where(Category.team_id == team_id, Category.is_active.is_(True))
                .order_by(Category.name, Category.id)
            )
        )

    def find_active_by_name(self, team_id: int, name: str) -> Optional[Category]:
        return self.db.scalars(
            select(Category).where(
                Category.team_id == team_id,
                Category.is_active.is_(True),
                func.lower(Category.name) == name.strip().lower(),
            )
        ).first()


class TransactionRepo:
    def __init__(self, db: Session):
        self.db = db

    def get(self, transaction_id: int, team_id: int, for_update: bool = False) -> Transaction:
        """Transaction owned by the team, in any status."""
        stmt = select(Transaction).where(
            Transaction.id == transaction_id, Transaction.team_id == team_id
        )
        if for_update:
            # Re-read the row even if the session already holds it
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        tx = self.db.scalars(stmt).one_or_none()
        if tx is None:
            raise NotFoundError("Transaction", transaction_id)
        return tx

    def find(self, team_id: int, filters: Optional[TransactionFilters] = None) -> list[Transaction]:
        filters = filters or TransactionFilters()
        stmt = select(Transaction).where(Transaction.team_id == team_id)

        if filters.status is not None:
            stmt = stmt.where(Transaction.status == filters.status)
        if filters.from_date:
            stmt = stmt.where(Transaction.transaction_date >= filters.from_date)
        if filters.to_date:
            stmt = stmt.where(Transaction.transaction_date <= filters.to_date)
        if filters.category_id is not None:
            stmt = stmt.where(Transaction.category_id == filters.category_id)
        if filters.uncategorized_only:
            stmt = stmt.where(Transaction.category_id.is_(None))
        if filters.search:
            stmt = stmt.where(Transaction.description.ilike(f"%{filters.search}%"))
        if filters.bank:
            stmt = stmt.where(Transaction.bank == filters.bank)

        stmt = stmt.order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
        if filters.limit:
            stmt = stmt.limit(filters.limit)
        return list(self.db.scalars(stmt))

    def find_in_range(
        self,
        team_id: int,
        start: date,
        end: date,
        category_ids: Optional[Iterable[int]] = None,
    ) -> list[Transaction]:
        """Active transactions dated within [start, end]."""
        stmt = select(Transaction).where(
            Transaction.team_id == team_id,
            Transaction.status == TransactionStatus.ACTIVE,
            Transaction.transaction_date >= start,
            Transaction.transaction_date <= end,
        )
        if category_ids is not None:
            stmt = stmt.where(Transaction.category_id.in_(list(category_ids)))
        return list(self.db.scalars(stmt.order_by(Transaction.id)))

    def find_uncategorized(self, team_id: int) -> list[Transaction]:
        return self.find(
            team_id,
            TransactionFilters(uncategorized_only=True, limit=None),
        )


class BudgetRepo:
    def __init__(self, db: Session):
        self.db = db

    def get(self, budget_id: int, team_id: int) -> Budget:
        budget = self.db.get(Budget, budget_id)
        if budget is None or budget.team_id != team_id:
            raise NotFoundError("Budget", budget_id)
        return budget

    def find_active(self, team_id: int, category_id: Optional[int] = None) -> list[Budget]:
        stmt = select(Budget).where(Budget.team_id == team_id, Budget.is_active.is_(True))
        if category_id is not None:
            stmt = stmt.where(Budget.category_id == category_id)
        return list(self.db.scalars(stmt.order_by(Budget.id)))


class RuleRepo:
    def __init__(self, db: Session):
        self.db = db

    def get(self, rule_id: int, team_id: int) -> Rule:
        rule = self.db.get(Rule, rule_id)
        if rule is None or rule.team_id != team_id:
            raise NotFoundError("Rule", rule_id)
        return rule

    def find_all(self, team_id: int) -> list[Rule]:
        return list(
            self.db.scalars(select(Rule).where(Rule.team_id == team_id).order_by(Rule.id))
        )

    def find_active(self, team_id: int) -> list[Rule]:
        """Active rules targeting active categories, in creation order.

        This is the order the matcher evaluates them in.
        """
        return list(
            self.db.scalars(
                select(Rule)
                .join(Category, Category.id == Rule.category_id)
                .where(
                    Rule.team_id == team_id,
                    Rule.is_active.is_(True),
                    Category.is_active.is_(True),
                )
                .order_by(Rule.id)
            )
        )


class AuditLogRepo:
    def __init__(self, db: Session):
        self.db = db

    def add(self, entry: TransactionAuditLog) -> TransactionAuditLog:
        self.db.add(entry)
        return entry

    def for_transaction(self, transaction_id: int) -> list[TransactionAuditLog]:
        return list(
            self.db.scalars(
                select(TransactionAuditLog)
                .where(TransactionAuditLog.transaction_id == transaction_id)
                .order_by(TransactionAuditLog.id)
            )
        )

    def in_range(
        self,
        team_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[TransactionAuditLog]:
        stmt = (
            select(TransactionAuditLog)
            .join(Transaction, Transaction.id == TransactionAuditLog.transaction_id)
            .where(Transaction.team_id == team_id)
        )
        if start:
            stmt = stmt.where(TransactionAuditLog.changed_at >= start)
        if end:
            stmt = stmt.where(TransactionAuditLog.changed_at <= end)
        return list(self.db.scalars(stmt.order_by(TransactionAuditLog.id)))


class NotificationRepo:
    def __init__(self, db: Session):
        self.db = db

    def get(self, notification_id: int, team_id: int) -> Notification:
        notification = self.db.get(Notification, notification_id)
        if notification is None or notification.team_id != team_id:
            raise NotFoundError("Notification", notification_id)
        return notification

    def find(
        self,
        team_id: int,
        user_id: Optional[int] = None,
        unread_only: bool = False,
    ) -> list[Notification]:
        stmt = select(Notification).where(Notification.team_id == team_id)
        if user_id is not None:
            # Team-wide notifications have no user
            stmt = stmt.where(
                (Notification.user_id == user_id) | Notification.user_id.is_(None)
            )
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        return list(self.db.scalars(stmt.order_by(Notification.id.desc())))
