"""Routes for the transaction audit trail."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from familybudget.core.database import get_db
from familybudget.services.audit_service import entries_in_range, entry_to_dict, export_audit_csv
from familybudget.services.team_service import TeamContext
from familybudget.web.deps import current_context

router = APIRouter(tags=["audit"])


@router.get("/")
async def list_audit_api(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> list[dict]:
    return [entry_to_dict(e) for e in entries_in_range(db, ctx.team_id, start, end)]


@router.get("/export", response_class=StreamingResponse)
async def export_audit_api(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> StreamingResponse:
    """Export the team's audit entries as CSV."""
    csv_data = export_audit_csv(entries_in_range(db, ctx.team_id, start, end))
    return StreamingResponse(
        iter([csv_data]),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=audit.csv"},
    )
