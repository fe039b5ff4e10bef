"""API routes for rule management."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from familybudget.core.database import get_db
from familybudget.services.rule_service import (
    apply_rules_to_uncategorized,
    create_rule,
    deactivate_rule,
    list_rules,
    preview_rule,
    rule_to_dict,
    update_rule,
)
from familybudget.services.team_service import TeamContext
from familybudget.web.deps import current_context

router = APIRouter(tags=["rules"])


class CreateRuleRequest(BaseModel):
    """Request to create a rule."""

    name: str
    field: str = "description"
    match_text: str
    category_id: int


class UpdateRuleRequest(BaseModel):
    name: Optional[str] = None
    field: Optional[str] = None
    match_text: Optional[str] = None
    category_id: Optional[int] = None
    is_active: Optional[bool] = None


class PreviewRequest(BaseModel):
    """Request to preview rule matches."""

    field: str = "description"
    match_text: str
    limit: int = 20


@router.get("/")
async def list_rules_api(
    include_inactive: bool = Query(False),
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> list[dict]:
    """Rules in the order they are evaluated."""
    return [rule_to_dict(r) for r in list_rules(db, ctx.team_id, include_inactive)]


@router.post("/", status_code=201)
async def create_rule_api(
    request: CreateRuleRequest,
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    rule = create_rule(
        db,
        ctx.team_id,
        name=request.name,
        field=request.field,
        match_text=request.match_text,
        category_id=request.category_id,
    )
    return rule_to_dict(rule)


@router.post("/preview")
async def preview_rule_api(
    request: PreviewRequest,
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    return preview_rule(db, ctx.team_id, request.field, request.match_text, limit=request.limit)


@router.post("/apply")
async def apply_rules_api(
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    """Categorize active uncategorized transactions with the current rules."""
    return apply_rules_to_uncategorized(db, ctx.team_id, ctx.user_id)


@router.patch("/{rule_id}")
async def update_rule_api(
    rule_id: int,
    request: UpdateRuleRequest,
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    rule = update_rule(
        db,
        rule_id,
        ctx.team_id,
        name=request.name,
        field=request.field,
        match_text=request.match_text,
        category_id=request.category_id,
        is_active=request.is_active,
    )
    return rule_to_dict(rule)


@router.delete("/{rule_id}")
async def deactivate_rule_api(
    rule_id: int,
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    return rule_to_dict(deactivate_rule(db, rule_id, ctx.team_id))
