"""Shared fixtures: an in-memory database and a seeded team."""

import os
from dataclasses import dataclass, field

# Keep the module-level engine off the filesystem
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite://")

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from familybudget.core.database import build_engine
from familybudget.core.models import Base, Category
from familybudget.services.team_service import register_user


@dataclass
class TeamFixture:
    team_id: int
    user_id: int
    invite_code: str
    categories: dict = field(default_factory=dict)


@pytest.fixture
def engine():
    """Create an in-memory SQLite database for testing."""
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """A SQLite file database, so each session gets its own connection."""
    engine = build_engine(f"sqlite:///{tmp_path / 'budget.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def make_team(db, team_name, email, banks=("BBVA", "Banregio"), categories=("Food", "Transport", "Health")):
    user = register_user(
        db,
        name="Admin",
        email=email,
        password="secret123",
        team_name=team_name,
        banks=list(banks) if banks else None,
    )
    created = {}
    for name in categories:
        category = Category(team_id=user.team_id, name=name, icon="📝", color="#6366f1", is_active=True)
        db.add(category)
        db.flush()
        created[name] = category.id
    db.commit()
    return TeamFixture(
        team_id=user.team_id,
        user_id=user.id,
        invite_code=user.team.invite_code,
        categories=created,
    )


@pytest.fixture
def team(db_session):
    """A team with one admin (banks BBVA, Banregio) and three categories."""
    return make_team(db_session, "Familia Lopez", "admin@lopez.mx")


@pytest.fixture
def other_team(db_session):
    return make_team(db_session, "Familia Perez", "admin@perez.mx", categories=("Food",))
