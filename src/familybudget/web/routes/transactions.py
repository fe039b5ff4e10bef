"""Routes for viewing and editing transactions."""

from __future__ import annotations

from datetime import date
from typing import Any, Optional, Union

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from familybudget.core.database import get_db
from familybudget.core.errors import ValidationError
from familybudget.core.models import TransactionStatus
from familybudget.core.repositories import TransactionFilters
from familybudget.services.audit_service import entry_to_dict, history_for_transaction
from familybudget.services.team_service import TeamContext
from familybudget.services.transaction_service import (
    TransactionInput,
    TransactionPatch,
    create_transaction,
    create_transactions_batch,
    delete_transaction,
    get_transaction,
    list_transactions,
    transaction_to_dict,
    update_transaction,
)
from familybudget.web.deps import current_context

router = APIRouter(tags=["transactions"])

Amount = Union[float, str]


class CreateTransactionRequest(BaseModel):
    """Request to create one transaction."""

    amount: Amount
    description: str
    date: str
    category_id: Optional[int] = None
    bank: Optional[str] = None
    source: str = "manual"
    status: str = "active"
    is_ai_suggested: bool = False
    ai_confidence: Optional[float] = None

    def to_input(self) -> TransactionInput:
        return TransactionInput(
            amount=self.amount,
            description=self.description,
            transaction_date=self.date,
            category_id=self.category_id,
            bank=self.bank,
            source=self.source,
            status=self.status,
            is_ai_suggested=self.is_ai_suggested,
            ai_confidence=self.ai_confidence,
        )


class BatchRequest(BaseModel):
    """Items are validated one by one so a bad item only fails itself."""

    transactions: list[dict[str, Any]] = Field(min_length=1)


class UpdateTransactionRequest(BaseModel):
    amount: Optional[Amount] = None
    description: Optional[str] = None
    date: Optional[str] = None
    category_id: Optional[int] = None
    bank: Optional[str] = None
    status: Optional[str] = None
    clear_category: bool = False
    expected_version: Optional[int] = None


@router.get("/")
async def list_transactions_api(
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    category_id: Optional[int] = Query(None),
    q: Optional[str] = Query(None),
    bank: Optional[str] = Query(None),
    status: str = Query("active"),
    uncategorized: bool = Query(False),
    limit: int = Query(50, ge=1, le=500),
) -> dict:
    if status == "all":
        status_filter = None
    else:
        try:
            status_filter = TransactionStatus(status)
        except ValueError:
            raise ValidationError(f"Invalid status {status!r}", field="status")

    filters = TransactionFilters(
        from_date=from_date,
        to_date=to_date,
        category_id=category_id,
        search=q,
        bank=bank,
        status=status_filter,
        uncategorized_only=uncategorized,
        limit=limit,
    )
    items = list_transactions(db, ctx.team_id, filters)
    return {"total": len(items), "transactions": [transaction_to_dict(tx) for tx in items]}


@router.post("/", status_code=201)
async def create_transaction_api(
    request: CreateTransactionRequest,
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    tx = create_transaction(db, ctx.team_id, ctx.user_id, request.to_input())
    return transaction_to_dict(tx)


@router.post("/batch")
async def create_batch_api(
    request: BatchRequest,
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    result = create_transactions_batch(db, ctx.team_id, ctx.user_id, request.transactions)
    return {
        "created": [transaction_to_dict(tx) for tx in result.created],
        "errors": [error.to_dict() for error in result.errors],
    }


@router.get("/{tx_id}")
async def get_transaction_api(
    tx_id: int,
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    return transaction_to_dict(get_transaction(db, tx_id, ctx.team_id))


@router.patch("/{tx_id}")
async def update_transaction_api(
    tx_id: int,
    request: UpdateTransactionRequest,
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    patch = TransactionPatch(
        amount=request.amount,
        description=request.description,
        transaction_date=request.date,
        category_id=request.category_id,
        bank=request.bank,
        status=request.status,
        clear_category=request.clear_category,
    )
    tx = update_transaction(
        db, tx_id, ctx.team_id, ctx.user_id, patch, expected_version=request.expected_version
    )
    return transaction_to_dict(tx)


@router.delete("/{tx_id}")
async def delete_transaction_api(
    tx_id: int,
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    tx = delete_transaction(db, tx_id, ctx.team_id, ctx.user_id)
    return transaction_to_dict(tx)


@router.get("/{tx_id}/history")
async def transaction_history_api(
    tx_id: int,
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> list[dict]:
    return [entry_to_dict(entry) for entry in history_for_transaction(db, tx_id, ctx.team_id)]
