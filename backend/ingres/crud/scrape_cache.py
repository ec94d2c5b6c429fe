from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ingres.models.base import utcnow
from ingres.models.scrape_cache import DEFAULT_TTL_SECONDS, ScrapeCacheEntry


def get_by_url(db: Session, url: str) -> Optional[ScrapeCacheEntry]:
    return db.query(ScrapeCacheEntry).filter(ScrapeCacheEntry.url == url).one_or_none()


def is_fresh(row: ScrapeCacheEntry, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    age = (now - row.last_fetched_at).total_seconds()
    return age < (row.ttl_seconds or DEFAULT_TTL_SECONDS)


def upsert(
    db: Session,
    *,
    url: str,
    html: Optional[str],
    markdown: Optional[str],
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
    fetched_at: Optional[datetime] = None,
) -> ScrapeCacheEntry:
    row = get_by_url(db, url)
    if row is None:
        row = ScrapeCacheEntry(url=url)
        db.add(row)

    row.content_html = html or None
    row.content_markdown = markdown or None
    row.last_fetched_at = fetched_at or utcnow()
    row.ttl_seconds = ttl_seconds

    db.commit()
    db.refresh(row)
    return row


def purge_stale(db: Session, now: Optional[datetime] = None) -> int:
    """Delete rows older than their own TTL. Returns the number removed."""
    now = now or utcnow()
    # per-row TTL; evaluated in Python so it works on every backend
    rows = db.query(
        ScrapeCacheEntry.id, ScrapeCacheEntry.last_fetched_at, ScrapeCacheEntry.ttl_seconds
    ).all()
    stale_ids = [
        r.id for r in rows
        if r.last_fetched_at + timedelta(seconds=r.ttl_seconds or DEFAULT_TTL_SECONDS) <= now
    ]
    if not stale_ids:
        return 0
    db.query(ScrapeCacheEntry).filter(ScrapeCacheEntry.id.in_(stale_ids)).delete(synchronize_session=False)
    db.commit()
    return len(stale_ids)


def count_all(db: Session) -> int:
    return db.query(ScrapeCacheEntry).count()
