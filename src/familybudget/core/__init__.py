"""Core module - database, models and errors."""

from familybudget.core.database import get_db, init_db
from familybudget.core.errors import (
    ConflictError,
    FinanceError,
    IntegrityWarning,
    NotFoundError,
    ValidationError,
)
from familybudget.core.models import (
    Budget,
    Category,
    Notification,
    Rule,
    Team,
    Transaction,
    TransactionAuditLog,
    User,
)

__all__ = [
    "get_db",
    "init_db",
    "ConflictError",
    "FinanceError",
    "IntegrityWarning",
    "NotFoundError",
    "ValidationError",
    "Budget",
    "Category",
    "Notification",
    "Rule",
    "Team",
    "Transaction",
    "TransactionAuditLog",
    "User",
]
