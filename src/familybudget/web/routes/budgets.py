"""Routes for budgets and budget analytics."""

from __future__ import annotations

from datetime import date
from typing import Optional, Union

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from familybudget.core.database import get_db
from familybudget.services.budget_service import (
    BudgetInput,
    budget_to_dict,
    compute_budget_analytics,
    compute_dashboard,
    compute_range_analytics,
    create_budget,
    deactivate_budget,
    list_budgets,
    update_budget,
)
from familybudget.services.team_service import TeamContext
from familybudget.web.deps import current_context

router = APIRouter(tags=["budgets"])


class BudgetRequest(BaseModel):
    category_id: int
    amount: Union[float, str]
    period: str = "monthly"
    start_date: date
    end_date: Optional[date] = None


class BudgetUpdateRequest(BaseModel):
    category_id: Optional[int] = None
    amount: Optional[Union[float, str]] = None
    period: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


def _month_and_year(month: Optional[int], year: Optional[int]) -> tuple[int, int]:
    today = date.today()
    return month or today.month, year or today.year


@router.get("/")
async def list_budgets_api(
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> list[dict]:
    return [budget_to_dict(b) for b in list_budgets(db, ctx.team_id)]


@router.post("/", status_code=201)
async def create_budget_api(
    request: BudgetRequest,
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    budget = create_budget(
        db,
        ctx.team_id,
        BudgetInput(
            category_id=request.category_id,
            amount=request.amount,
            period=request.period,
            start_date=request.start_date,
            end_date=request.end_date,
        ),
    )
    return budget_to_dict(budget)


@router.get("/analytics")
async def budget_analytics_api(
    month: Optional[int] = Query(None),
    year: Optional[int] = Query(None),
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    month, year = _month_and_year(month, year)
    return compute_budget_analytics(db, ctx.team_id, month, year).to_dict()


@router.get("/analytics/range")
async def range_analytics_api(
    start: date = Query(...),
    end: date = Query(...),
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    return compute_range_analytics(db, ctx.team_id, start, end).to_dict()


@router.get("/dashboard")
async def dashboard_api(
    month: Optional[int] = Query(None),
    year: Optional[int] = Query(None),
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    month, year = _month_and_year(month, year)
    return compute_dashboard(db, ctx.team_id, month, year).to_dict()


@router.patch("/{budget_id}")
async def update_budget_api(
    budget_id: int,
    request: BudgetUpdateRequest,
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    budget = update_budget(
        db,
        budget_id,
        ctx.team_id,
        category_id=request.category_id,
        amount=request.amount,
        period=request.period,
        start_date=request.start_date,
        end_date=request.end_date,
    )
    return budget_to_dict(budget)


@router.delete("/{budget_id}")
async def deactivate_budget_api(
    budget_id: int,
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    return budget_to_dict(deactivate_budget(db, budget_id, ctx.team_id))
