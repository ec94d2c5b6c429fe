# backend/ingres/db/session.py
from __future__ import annotations

from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from ingres.core.config import settings

# Any SQLAlchemy URL, e.g.
#   postgresql+psycopg2://ingres:secret@db:5432/ingres
#   sqlite:///./data/ingres.sqlite3   (default)
#   sqlite://                         (in-memory, tests)
DATABASE_URL = settings.DATABASE_URL.strip()


def _ensure_sqlite_parent_dir(url: str) -> None:
    if not url.startswith("sqlite:///") or url.endswith(":memory:"):
        return
    Path(url.replace("sqlite:///", "", 1)).parent.mkdir(parents=True, exist_ok=True)


def make_engine(url: str) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        # request threads share the pool
        connect_args = {"check_same_thread": False}
        _ensure_sqlite_parent_dir(url)
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


engine = make_engine(DATABASE_URL)

SessionLocal = sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=True)


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request, rolled back if the handler raises."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
