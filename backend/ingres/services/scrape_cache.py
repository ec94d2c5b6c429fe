# ingres/services/scrape_cache.py
"""Fetch a portal page through a two-tier cache.

Read path (skipped on force_refresh):
    KV   key "scrape:<url>"  -> {html, markdown, fetchedAt, ttlSeconds}
    DB   scrape_cache row for <url>, fresh per its own ttl_seconds

Fetch path, first page with content wins:
    transport cascade on <url>            (rest/sdk order depends on ';')
    transport cascade on query-string form
    direct GET on query-string form, then on <url>

Every successful fetch is written back to both tiers under the caller's
original URL.
"""
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ingres.core.errors import FetchAttempt, FetchError, FetchExhaustedError
from ingres.crud import scrape_cache as crud
from ingres.schemas.scrape import ScrapeResult
from ingres.services import metrics as m
from ingres.services.fetcher import DEFAULT_FORMATS, ContentTransport, RenderedPage
from ingres.services.kv import KVStore
from ingres.services.metrics import MetricsSink
from ingres.services.portal_url import to_query_string_form
from ingres.services.retry import backoff_delay

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 21600


def kv_key(url: str) -> str:
    return f"scrape:{url}"


class ScrapeCacheService:
    def __init__(
        self,
        db: Session,
        kv: KVStore,
        *,
        rest: ContentTransport,
        sdk: ContentTransport,
        legacy: ContentTransport,
        direct: ContentTransport,
        metrics: MetricsSink,
        wait_ms: int = 10000,
        retry_base_delay: float = 0.25,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.db = db
        self.kv = kv
        self.rest = rest
        self.sdk = sdk
        self.legacy = legacy
        self.direct = direct
        self.metrics = metrics
        self.wait_ms = wait_ms
        self.retry_base_delay = retry_base_delay
        self.clock = clock
        self.sleep = sleep

    def fetch_with_cache(
        self,
        url: str,
        *,
        formats: Optional[Sequence[str]] = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        force_refresh: bool = False,
    ) -> ScrapeResult:
        if not force_refresh:
            cached = self._read_kv(url, ttl_seconds) or self._read_db(url)
            if cached is not None:
                return cached

        page, effective_url = self._fetch(url, tuple(formats or DEFAULT_FORMATS))
        self.metrics.increment(m.FETCH_SUCCESS)
        logger.info("fetched %s (effective %s)", url, effective_url)

        self._write_back(url, page, ttl_seconds)
        return ScrapeResult(html=page.html, markdown=page.markdown, effective_url=effective_url)

    # ---------- read path ----------
    def _read_kv(self, url: str, ttl_seconds: int) -> Optional[ScrapeResult]:
        try:
            hit = self.kv.get(kv_key(url))
        except Exception as e:
            logger.warning("KV read failed for %s: %s", url, e)
            return None
        if not isinstance(hit, dict):
            return None
        age = self.clock() - float(hit.get("fetchedAt") or 0)
        if age >= max(int(hit.get("ttlSeconds") or 0), ttl_seconds):
            return None
        logger.debug("KV hit %s (age %.0fs)", url, age)
        self.metrics.increment(m.SCRAPE_KV_HIT)
        return ScrapeResult(
            html=hit.get("html") or "",
            markdown=hit.get("markdown") or "",
            effective_url=url,
            from_cache="kv",
        )

    def _read_db(self, url: str) -> Optional[ScrapeResult]:
        try:
            row = crud.get_by_url(self.db, url)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("scrape cache read failed for %s: %s", url, e)
            return None
        if row is None or not crud.is_fresh(row, self._now()):
            return None
        logger.debug("DB cache hit %s", url)
        self.metrics.increment(m.SCRAPE_DB_HIT)
        return ScrapeResult(
            html=row.content_html or "",
            markdown=row.content_markdown or "",
            effective_url=url,
            from_cache="db",
        )

    # ---------- fetch path ----------
    def _fetch(self, url: str, formats: Tuple[str, ...]) -> Tuple[RenderedPage, str]:
        attempts: List[FetchAttempt] = []
        alt_url = to_query_string_form(url)
        forms = [url] if alt_url == url else [url, alt_url]

        for i, target in enumerate(forms):
            if i:
                self.sleep(backoff_delay(i - 1, self.retry_base_delay))
            page = self._cascade(target, formats, attempts)
            if page is not None and page.has_content:
                return page, target

        for target in reversed(forms):
            try:
                page = self.direct.fetch_rendered(target)
            except FetchError as e:
                attempts.append(FetchAttempt(target, self.direct.name, str(e)))
                continue
            if page.html:
                return RenderedPage(html=page.html, markdown=""), target
            attempts.append(FetchAttempt(target, self.direct.name, "empty body"))

        self.metrics.increment(m.FETCH_FAILURE)
        raise FetchExhaustedError(url, attempts)

    def _cascade(
        self, target: str, formats: Tuple[str, ...], attempts: List[FetchAttempt]
    ) -> Optional[RenderedPage]:
        """First transport that does not raise wins; None when all of them raise."""
        # the SDK historically rejects ';' path parameters
        preferred = (self.rest, self.sdk) if ";" in target else (self.sdk, self.rest)
        for transport in (*preferred, self.legacy):
            t0 = time.monotonic()
            try:
                page = transport.fetch_rendered(target, formats=formats, only_main_content=True, wait_ms=self.wait_ms)
            except FetchError as e:
                logger.warning("%s failed for %s: %s", transport.name, target, e)
                attempts.append(FetchAttempt(target, transport.name, str(e)))
                continue
            logger.debug(
                "%s done for %s in %.2fs (html=%d md=%d)",
                transport.name, target, time.monotonic() - t0, len(page.html), len(page.markdown),
            )
            if not page.has_content:
                attempts.append(FetchAttempt(target, transport.name, "no html or markdown in response"))
            return page
        return None

    # ---------- write-back ----------
    def _write_back(self, url: str, page: RenderedPage, ttl_seconds: int) -> None:
        key = kv_key(url)
        try:
            self.kv.set(key, {
                "html": page.html,
                "markdown": page.markdown,
                "fetchedAt": self.clock(),
                "ttlSeconds": ttl_seconds,
            })
            self.kv.expire(key, ttl_seconds)
        except Exception as e:
            logger.warning("KV write failed for %s: %s", url, e)

        try:
            crud.upsert(
                self.db,
                url=url,
                html=page.html,
                markdown=page.markdown,
                ttl_seconds=ttl_seconds,
                fetched_at=self._now(),
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("scrape cache write failed for %s: %s", url, e)

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self.clock(), tz=timezone.utc).replace(tzinfo=None)
