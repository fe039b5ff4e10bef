"""Database connection and session management."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from familybudget.core.config import settings


def build_engine(url: str, **kwargs) -> Engine:
    """Create an engine; SQLite connections get foreign keys switched on."""
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        kwargs.setdefault("connect_args", {"check_same_thread": False})

    new_engine = create_engine(url, echo=settings.DEBUG, **kwargs)

    if is_sqlite:
        @event.listens_for(new_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
            # Let SQLAlchemy issue BEGIN itself so SAVEPOINTs nest correctly
            dbapi_connection.isolation_level = None

        @event.listens_for(new_engine, "begin")
        def do_begin(conn):
            conn.exec_driver_sql("BEGIN")

    return new_engine


# Get database URL from config
DATABASE_URL = settings.DATABASE_URL

engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Iterator[Session]:
    """Get database session for dependency injection."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for CLI commands; rolls back anything left uncommitted."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    """Initialize database tables."""
    from familybudget.core.models import Base

    Base.metadata.create_all(bind=bind or engine)
