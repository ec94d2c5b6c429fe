# ingres/api/deps.py
"""Process-wide service objects and the per-request services built on them."""
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from ingres.core.config import settings
from ingres.db.session import get_db
from ingres.services.fetcher import (
    DirectHttpFetcher,
    FirecrawlLegacyTransport,
    FirecrawlRestTransport,
    FirecrawlSdkTransport,
    build_session,
)
from ingres.services.kv import KVStore, build_kv
from ingres.services.location_resolver import LocationResolver
from ingres.services.metrics import MetricsSink
from ingres.services.overrides import OverrideTable
from ingres.services.portal_api import PortalApiClient
from ingres.services.scrape_cache import ScrapeCacheService


@lru_cache
def get_kv() -> KVStore:
    return build_kv(settings)


@lru_cache
def get_metrics() -> MetricsSink:
    return MetricsSink(get_kv())


@lru_cache
def get_overrides() -> OverrideTable:
    return OverrideTable.from_settings(settings)


@lru_cache
def get_transports() -> dict:
    timeout = settings.FETCH_TIMEOUT_SECONDS
    return {
        "rest": FirecrawlRestTransport(
            settings.FIRECRAWL_API_KEY,
            settings.FIRECRAWL_API_URL,
            timeout=timeout,
            max_age_ms=settings.SCRAPE_TTL_SECONDS * 1000,
        ),
        "sdk": FirecrawlSdkTransport(settings.FIRECRAWL_API_KEY, settings.FIRECRAWL_API_URL, timeout=timeout),
        "legacy": FirecrawlLegacyTransport(settings.FIRECRAWL_API_KEY, settings.FIRECRAWL_API_URL, timeout=timeout),
        "direct": DirectHttpFetcher(
            settings.USER_AGENT,
            read_timeout=timeout,
            session=build_session(settings.MAX_RETRIES, settings.RETRY_BASE_DELAY),
        ),
    }


@lru_cache
def get_portal_api() -> PortalApiClient:
    return PortalApiClient(
        settings.PORTAL_API_BASE,
        api_key=settings.PORTAL_API_KEY,
        ttl_seconds=settings.API_CACHE_TTL_SECONDS,
        max_retries=settings.MAX_RETRIES,
        base_delay=settings.RETRY_BASE_DELAY,
        timeout=settings.FETCH_TIMEOUT_SECONDS,
    )


def get_resolver(
    db: Session = Depends(get_db),
    metrics: MetricsSink = Depends(get_metrics),
    overrides: OverrideTable = Depends(get_overrides),
    transports: dict = Depends(get_transports),
) -> LocationResolver:
    return LocationResolver(
        db,
        fetcher=transports["sdk"],
        metrics=metrics,
        overrides=overrides,
        fuzzy_threshold=settings.FUZZY_THRESHOLD,
        portal_base=settings.PORTAL_BASE,
        wait_ms=settings.RESOLVE_WAIT_MS,
    )


def get_scrape_cache(
    db: Session = Depends(get_db),
    kv: KVStore = Depends(get_kv),
    metrics: MetricsSink = Depends(get_metrics),
    transports: dict = Depends(get_transports),
) -> ScrapeCacheService:
    return ScrapeCacheService(
        db,
        kv,
        rest=transports["rest"],
        sdk=transports["sdk"],
        legacy=transports["legacy"],
        direct=transports["direct"],
        metrics=metrics,
        wait_ms=settings.SCRAPE_WAIT_MS,
        retry_base_delay=settings.RETRY_BASE_DELAY,
    )
