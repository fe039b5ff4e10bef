"""Routes for team notifications."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from familybudget.core.database import get_db
from familybudget.core.errors import ValidationError
from familybudget.core.models import NotificationType
from familybudget.services.notification_service import (
    create_notification,
    list_notifications,
    mark_all_read,
    mark_read,
    notification_to_dict,
)
from familybudget.services.team_service import TeamContext
from familybudget.web.deps import current_context

router = APIRouter(tags=["notifications"])


class NotificationRequest(BaseModel):
    title: str
    body: str
    type: str = "info"
    user_id: Optional[int] = None


@router.get("/")
async def list_notifications_api(
    unread_only: bool = Query(False),
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> list[dict]:
    """Team-wide notifications plus the ones addressed to the caller."""
    items = list_notifications(db, ctx.team_id, user_id=ctx.user_id, unread_only=unread_only)
    return [notification_to_dict(n) for n in items]


@router.post("/", status_code=201)
async def create_notification_api(
    request: NotificationRequest,
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    try:
        kind = NotificationType(request.type)
    except ValueError:
        raise ValidationError(f"Invalid notification type {request.type!r}", field="type")
    notification = create_notification(
        db, ctx.team_id, request.title, request.body, type=kind, user_id=request.user_id
    )
    return notification_to_dict(notification)


@router.post("/read-all")
async def mark_all_read_api(
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    return {"updated": mark_all_read(db, ctx.team_id, user_id=ctx.user_id)}


@router.post("/{notification_id}/read")
async def mark_read_api(
    notification_id: int,
    ctx: TeamContext = Depends(current_context),
    db: Session = Depends(get_db),
) -> dict:
    return notification_to_dict(mark_read(db, notification_id, ctx.team_id))
