from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base

# Base class for ORM models to inherit from
Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp (what SQLite hands back for DateTime columns)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
