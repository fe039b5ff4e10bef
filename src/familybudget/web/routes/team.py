"""Routes for registration, the caller's account and bank preferences."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from familybudget.core.database import get_db
from familybudget.services.team_service import (
    TeamContext,
    change_password,
    deactivate_user,
    get_team_banks,
    register_user,
    set_user_banks,
    update_profile,
)
from familybudget.web.deps import current_context

router = APIRouter(tags=["team"])


class RegisterRequest(BaseModel):
    """Either team_name (found a team) or invite_code (join one)."""

    name: str
    email: str
    password: str
    team_name: Optional[str] = None
    invite_code: Optional[str] = None
    banks: Optional[list[str]] = None


class BanksRequest(BaseModel):
    banks: list[str]


class ProfileRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None


class PasswordChangeRequest(BaseModel):
    current_password: str
    new_password: str


class PasswordConfirmRequest(BaseModel):
    password: str


@router.post("/register", status_code=201)
async def register_api(request: RegisterRequest, db: Session = Depends(get_db)) -> dict:
    user = register_user(
        db,
        name=request.name,
        email=request.email,
        password=request.password,
        team_name=request.team_name,
        invite_code=request.invite_code,
        banks=request.banks,
    )
    return {
        "user": {"id": user.id, "name": user.name, "email": user.email, "role": user.role.value},
        "team": {"id": user.team.id, "name": user.team.name, "invite_code": user.team.invite_code},
    }


@router.get("/me")
async def context_api(ctx: TeamContext = Depends(current_context)) -> dict:
    return ctx.to_dict()


@router.get("/banks")
async def team_banks_api(
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    return {"banks": get_team_banks(db, ctx.team_id)}


@router.put("/banks")
async def set_banks_api(
    request: BanksRequest,
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    """Replace the caller's own bank list."""
    mine = set_user_banks(db, ctx.team_id, ctx.user_id, request.banks)
    return {"user_banks": mine, "banks": get_team_banks(db, ctx.team_id)}


@router.put("/me")
async def update_profile_api(
    request: ProfileRequest,
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    user = update_profile(db, ctx.team_id, ctx.user_id, name=request.name, email=request.email)
    return {"id": user.id, "name": user.name, "email": user.email, "role": user.role.value}


@router.put("/me/password")
async def change_password_api(
    request: PasswordChangeRequest,
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    change_password(db, ctx.team_id, ctx.user_id, request.current_password, request.new_password)
    return {"message": "Password updated"}


@router.delete("/me")
async def deactivate_account_api(
    request: PasswordConfirmRequest,
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    """Close the caller's account; the password must be confirmed."""
    deactivate_user(db, ctx.team_id, ctx.user_id, request.password)
    return {"message": "Account deactivated"}
