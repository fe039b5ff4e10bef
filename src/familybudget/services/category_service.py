"""Service for category management."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from familybudget.core.config import settings
from familybudget.core.errors import ConflictError, ValidationError
from familybudget.core.models import Category
from familybudget.core.repositories import CategoryRepo

logger = logging.getLogger(__name__)

# (name, icon, color)
DEFAULT_CATEGORIES = [
    ("Income", "💰", "#10B981"),
    ("Housing", "🏠", "#3B82F6"),
    ("Food", "🛒", "#059669"),
    ("Transportation", "🚗", "#F59E0B"),
    ("Entertainment", "🎬", "#EF4444"),
    ("Healthcare", "🏥", "#8B5CF6"),
    ("Shopping", "🛍", "#EC4899"),
    ("Other", "📦", "#6B7280"),
]


def _clean_name(name: Optional[str]) -> str:
    cleaned = " ".join((name or "").split())
    if not cleaned:
        raise ValidationError("Category name must not be empty", field="name")
    return cleaned


def _ensure_unique_name(
    repo: CategoryRepo, team_id: int, name: str, exclude_id: Optional[int] = None
) -> None:
    existing = repo.find_active_by_name(team_id, name)
    if existing is not None and existing.id != exclude_id:
        raise ConflictError(f"Category {name!r} already exists")


def list_categories(db: Session, team_id: int, include_inactive: bool = False) -> list[Category]:
    repo = CategoryRepo(db)
    if include_inactive:
        return repo.find_all(team_id)
    return repo.find_active(team_id)


def create_category(
    db: Session,
    team_id: int,
    name: str,
    icon: Optional[str] = None,
    color: Optional[str] = None,
) -> Category:
    repo = CategoryRepo(db)
    name = _clean_name(name)
    _ensure_unique_name(repo, team_id, name)

    category = Category(
        team_id=team_id,
        name=name,
        icon=icon or settings.DEFAULT_CATEGORY_ICON,
        color=color or settings.DEFAULT_CATEGORY_COLOR,
        is_active=True,
    )
    db.add(category)
    db.commit()
    db.refresh(category)
    logger.info("Created category %s %r for team %s", category.id, name, team_id)
    return category


def update_category(
    db: Session,
    category_id: int,
    team_id: int,
    name: Optional[str] = None,
    icon: Optional[str] = None,
    color: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> Category:
    """Partial update; fields left as None are untouched."""
    repo = CategoryRepo(db)
    category = repo.get(category_id, team_id)

    if name is not None:
        name = _clean_name(name)
        if category.is_active or is_active:
            _ensure_unique_name(repo, team_id, name, exclude_id=category.id)
        category.name = name
    if icon is not None:
        category.icon = icon
    if color is not None:
        category.color = color
    if is_active is not None:
        if is_active and not category.is_active:
            _ensure_unique_name(repo, team_id, category.name, exclude_id=category.id)
        category.is_active = is_active

    db.commit()
    db.refresh(category)
    return category


def deactivate_category(db: Session, category_id: int, team_id: int) -> Category:
    """Soft delete; transactions and budgets keep pointing at the row."""
    category = CategoryRepo(db).get(category_id, team_id)
    category.is_active = False
    db.commit()
    logger.info("Deactivated category %s for team %s", category_id, team_id)
    return category


def category_to_dict(category: Category) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "icon": category.icon,
        "color": category.color,
        "is_active": category.is_active,
    }


def seed_default_categories(db: Session, team_id: int) -> list[Category]:
    """Create the starter categories a team does not have yet. Idempotent."""
    repo = CategoryRepo(db)
    created = []
    for name, icon, color in DEFAULT_CATEGORIES:
        if repo.find_active_by_name(team_id, name) is not None:
            continue
        category = Category(team_id=team_id, name=name, icon=icon, color=color, is_active=True)
        db.add(category)
        created.append(category)
    db.commit()
    logger.info("Seeded %s default categories for team %s", len(created), team_id)
    return created
