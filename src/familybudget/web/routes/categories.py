"""Routes for category management."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from familybudget.core.database import get_db
from familybudget.services.category_service import (
    category_to_dict,
    create_category,
    deactivate_category,
    list_categories,
    update_category,
)
from familybudget.services.team_service import TeamContext
from familybudget.web.deps import current_context

router = APIRouter(tags=["categories"])


class CategoryRequest(BaseModel):
    name: str
    icon: Optional[str] = None
    color: Optional[str] = None


class CategoryUpdateRequest(BaseModel):
    name: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    is_active: Optional[bool] = None


@router.get("/")
async def list_categories_api(
    include_inactive: bool = Query(False),
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> list[dict]:
    return [
        category_to_dict(c)
        for c in list_categories(db, ctx.team_id, include_inactive=include_inactive)
    ]


@router.post("/", status_code=201)
async def create_category_api(
    request: CategoryRequest,
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    category = create_category(
        db, ctx.team_id, request.name, icon=request.icon, color=request.color
    )
    return category_to_dict(category)


@router.patch("/{category_id}")
async def update_category_api(
    category_id: int,
    request: CategoryUpdateRequest,
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    category = update_category(
        db,
        category_id,
        ctx.team_id,
        name=request.name,
        icon=request.icon,
        color=request.color,
        is_active=request.is_active,
    )
    return category_to_dict(category)


@router.delete("/{category_id}")
async def deactivate_category_api(
    category_id: int,
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    return category_to_dict(deactivate_category(db, category_id, ctx.team_id))
