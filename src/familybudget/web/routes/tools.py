"""Tool listing and dispatch for assistant clients."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Header
from sqlalchemy.orm import Session

from familybudget.core.database import get_db
from familybudget.services.tool_service import TOOLS, execute_tool

router = APIRouter(tags=["tools"])


@router.get("/")
async def list_tools_api() -> dict:
    return {"tools": TOOLS}


@router.post("/{name}")
async def call_tool_api(
    name: str,
    arguments: Optional[dict[str, Any]] = Body(None),
    x_team_id: int = Header(...),
    x_user_id: int = Header(...),
    db: Session = Depends(get_db),
) -> dict:
    """Errors are reported in the result body, never as HTTP errors."""
    return execute_tool(db, name, arguments, x_team_id, x_user_id)
