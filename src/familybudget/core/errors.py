"""Typed errors raised by the services.

Every failure in the core maps to one of these so the HTTP and tool layers
can translate it to a stable response code.
"""

from __future__ import annotations

from typing import Any, Optional


class FinanceError(Exception):
    """Base class for all domain errors."""

    status_code = 400
    code = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message}


class ValidationError(FinanceError):
    """Bad input: unknown category, bank outside the allowed set, bad amount or date."""

    status_code = 422
    code = "validation_error"

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.field = field
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        if self.field:
            payload["field"] = self.field
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(FinanceError):
    """Entity absent or owned by another team.

    The message is the same in both cases.
    """

    status_code = 404
    code = "not_found"

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(FinanceError):
    """Concurrent modification or uniqueness clash."""

    status_code = 409
    code = "conflict"


class IntegrityWarning(UserWarning):
    """Non-fatal data problem found while aggregating (e.g. budget on an inactive category)."""

    def __init__(self, message: str, budget_id: Optional[int] = None, category_id: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.budget_id = budget_id
        self.category_id = category_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "budget_id": self.budget_id,
            "category_id": self.category_id,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IntegrityWarning):
            return NotImplemented
        return (self.message, self.budget_id, self.category_id) == (
            other.message,
            other.budget_id,
            other.category_id,
        )

    def __hash__(self) -> int:
        return hash((self.message, self.budget_id, self.category_id))
