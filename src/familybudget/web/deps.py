"""Shared route dependencies."""

from __future__ import annotations

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from familybudget.core.database import get_db
from familybudget.services.team_service import TeamContext, get_context


def current_context(
    x_team_id: int = Header(...),
    x_user_id: int = Header(...),
    db: Session = Depends(get_db),
) -> TeamContext:
    """Resolve the caller from the X-Team-Id and X-User-Id headers."""
    return get_context(db, x_team_id, x_user_id)
