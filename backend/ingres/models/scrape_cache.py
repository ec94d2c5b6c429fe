# ingres/models/scrape_cache.py
from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint

from ingres.models.base import Base

DEFAULT_TTL_SECONDS = 21600


class ScrapeCacheEntry(Base):
    __tablename__ = "scrape_cache"

    id = Column(Integer, primary_key=True)
    # always the caller's original URL, never the fallback that produced the content
    url = Column(String(2000), nullable=False)
    content_html = Column(Text, nullable=True)
    content_markdown = Column(Text, nullable=True)

    # naive UTC
    last_fetched_at = Column(DateTime, nullable=False, index=True)
    ttl_seconds = Column(Integer, nullable=False, default=DEFAULT_TTL_SECONDS)

    __table_args__ = (UniqueConstraint("url", name="uq_scrape_cache_url"),)
