from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel


class ScrapeResult(BaseModel):
    html: str = ""
    markdown: str = ""
    # URL that actually produced the content; use this for "source" links
    effective_url: str
    # "kv" | "db" when served from cache, None for a fresh fetch
    from_cache: Optional[Literal["kv", "db"]] = None
