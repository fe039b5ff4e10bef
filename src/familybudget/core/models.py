"""SQLAlchemy ORM models for the family budgeting system."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


def _enum_column(enum_cls: type[Enum]) -> SQLEnum:
    # Persist the lowercase values rather than the member names
    return SQLEnum(enum_cls, values_callable=lambda members: [m.value for m in members])


class UserRole(str, Enum):
    """Role of a user within their team."""

    ADMIN = "admin"
    MEMBER = "member"


class TransactionSource(str, Enum):
    """Where a transaction came from."""

    MANUAL = "manual"
    STATEMENT = "statement"
    TICKET = "ticket"
    OCR = "ocr"
    FILE = "file"


class TransactionStatus(str, Enum):
    """Lifecycle state; deletion is a status, never a missing row."""

    ACTIVE = "active"
    DELETED = "deleted"
    PENDING = "pending"


class BudgetPeriod(str, Enum):
    """Budget period type."""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class RuleField(str, Enum):
    """Transaction field a rule is evaluated against."""

    DESCRIPTION = "description"
    AMOUNT = "amount"
    DATE = "date"


class ChangeType(str, Enum):
    """Kind of change recorded in the transaction audit log."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    CATEGORY_CHANGED = "category_changed"


class NotificationType(str, Enum):
    """Notification kind."""

    ALERT = "alert"
    INFO = "info"
    REMINDER = "reminder"


class Team(Base):
    """Tenancy root; every other row belongs to exactly one team."""

    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    invite_code: Mapped[Optional[str]] = mapped_column(String(32), unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    users: Mapped[list["User"]] = relationship(back_populates="team")
    categories: Mapped[list["Category"]] = relationship(back_populates="team")

    def __repr__(self) -> str:
        return f"<Team {self.name}>"


class User(Base):
    """Team member."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    team_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(300), nullable=False)
    role: Mapped[UserRole] = mapped_column(_enum_column(UserRole), default=UserRole.MEMBER)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    preferences: Mapped[dict] = mapped_column(JSON, default=dict)
    # Example preferences:
    # {"banks": ["BBVA", "Banregio"]}
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    team: Mapped["Team"] = relationship(back_populates="users")

    __table_args__ = (Index("ix_users_team", "team_id"),)

    def __repr__(self) -> str:
        return f"<User {self.email}>"


class Category(Base):
    """User-defined spending bucket."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    team_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    icon: Mapped[Optional[str]] = mapped_column(String(50))
    color: Mapped[Optional[str]] = mapped_column(String(20))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    team: Mapped["Team"] = relationship(back_populates="categories")
    transactions: Mapped[list["Transaction"]] = relationship(back_populates="category")
    budgets: Mapped[list["Budget"]] = relationship(back_populates="category")
    rules: Mapped[list["Rule"]] = relationship(back_populates="category")

    __table_args__ = (Index("ix_categories_team", "team_id"),)

    def __repr__(self) -> str:
        return f"<Category {self.name}>"


class Transaction(Base):
    """Expense recorded by a team member."""

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    team_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)

    # Core transaction data
    transaction_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    bank: Mapped[str] = mapped_column(String(100), nullable=False)
    source: Mapped[TransactionSource] = mapped_column(
        _enum_column(TransactionSource), default=TransactionSource.MANUAL
    )
    status: Mapped[TransactionStatus] = mapped_column(
        _enum_column(TransactionStatus), default=TransactionStatus.ACTIVE
    )

    # Categorization
    category_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("categories.id"))
    applied_rule_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("rules.id", ondelete="SET NULL")
    )
    is_ai_suggested: Mapped[bool] = mapped_column(Boolean, default=False)
    ai_confidence: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 4))

    # Optimistic lock counter, bumped by SQLAlchemy on every UPDATE
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    category: Mapped[Optional["Category"]] = relationship(back_populates="transactions")
    applied_rule: Mapped[Optional["Rule"]] = relationship()
    audit_entries: Mapped[list["TransactionAuditLog"]] = relationship(
        back_populates="transaction", order_by="TransactionAuditLog.id"
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_transactions_team_date", "team_id", "date"),
        Index("ix_transactions_category", "category_id"),
        Index("ix_transactions_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Transaction {self.transaction_date} {self.amount} {self.description[:30]}>"


class Budget(Base):
    """Spending ceiling for one category over a period."""

    __tablename__ = "budgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    team_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False
    )
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("categories.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    period: Mapped[BudgetPeriod] = mapped_column(_enum_column(BudgetPeriod), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    category: Mapped["Category"] = relationship(back_populates="budgets")

    __table_args__ = (Index("ix_budgets_team_category", "team_id", "category_id"),)

    def __repr__(self) -> str:
        return f"<Budget {self.category_id} {self.amount} {self.period.value}>"


class Rule(Base):
    """Auto-categorization rule."""

    __tablename__ = "rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    team_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    field: Mapped[RuleField] = mapped_column(_enum_column(RuleField), nullable=False)
    match_text: Mapped[str] = mapped_column(String(300), nullable=False)
    # Example match_text values:
    # description: "uber"
    # amount: "150", ">=1000", "100-200"
    # date: "2024-05-01", "2024-05", "2024-05-01..2024-05-15", "15"
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("categories.id"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    category: Mapped["Category"] = relationship(back_populates="rules")

    __table_args__ = (Index("ix_rules_team", "team_id"),)

    def __repr__(self) -> str:
        return f"<Rule {self.name}>"


class TransactionAuditLog(Base):
    """Append-only history of transaction mutations."""

    __tablename__ = "transaction_audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    transaction_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("transactions.id"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    change_type: Mapped[ChangeType] = mapped_column(_enum_column(ChangeType), nullable=False)
    old_value: Mapped[Optional[dict]] = mapped_column(JSON)
    new_value: Mapped[Optional[dict]] = mapped_column(JSON)
    changed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    transaction: Mapped["Transaction"] = relationship(back_populates="audit_entries")

    __table_args__ = (
        Index("ix_transaction_audit_log_transaction", "transaction_id"),
        Index("ix_transaction_audit_log_changed_at", "changed_at"),
    )

    def __repr__(self) -> str:
        return f"<TransactionAuditLog {self.transaction_id} {self.change_type.value}>"


class Notification(Base):
    """Message shown to a team (or one of its members)."""

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    team_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"))
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[NotificationType] = mapped_column(
        _enum_column(NotificationType), nullable=False
    )
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    related_transaction_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("transactions.id")
    )
    related_category_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("categories.id")
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (Index("ix_notifications_team_read", "team_id", "is_read"),)

    def __repr__(self) -> str:
        return f"<Notification {self.type.value} {self.title}>"
