# ingres/api/routes/query.py
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ingres.api.deps import get_resolver, get_scrape_cache
from ingres.api.routes.locations import client_hint
from ingres.core.config import settings
from ingres.core.errors import FetchExhaustedError, LocationStoreError
from ingres.crud.audit import log_audit
from ingres.db.session import get_db
from ingres.schemas.location import PortalQuery, PortalQueryOut
from ingres.services.location_resolver import LocationResolver
from ingres.services.markdown_clean import clean_scraped_markdown
from ingres.services.portal_url import build_portal_url
from ingres.services.scrape_cache import ScrapeCacheService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/ingres", tags=["ingres"])


# POST /api/ingres/query
@router.post("/query", response_model=PortalQueryOut)
def query_portal(
    payload: PortalQuery,
    request: Request,
    db: Session = Depends(get_db),
    resolver: LocationResolver = Depends(get_resolver),
    scraper: ScrapeCacheService = Depends(get_scrape_cache),
):
    try:
        pair = resolver.resolve(payload.location_name, payload.location_type)
    except LocationStoreError as e:
        raise HTTPException(status_code=503, detail=str(e))
    if pair is None:
        # actionable for the user: rephrase the place name
        raise HTTPException(status_code=404, detail=f"Location not found: {payload.location_name}")

    url = build_portal_url(
        pair,
        name=payload.location_name,
        type=payload.location_type,
        year=payload.year or settings.DEFAULT_ASSESSMENT_YEAR,
        computation_type=payload.computation_type or settings.DEFAULT_COMPUTATION_TYPE,
        component=payload.component,
        period=payload.period,
        category=payload.category,
        include_click_params=payload.map_on_click_params,
        base_url=settings.PORTAL_BASE,
    )

    try:
        result = scraper.fetch_with_cache(
            url,
            ttl_seconds=settings.SCRAPE_TTL_SECONDS,
            force_refresh=payload.force_refresh,
        )
    except FetchExhaustedError as e:
        # actionable for the user: retry later
        logger.error("portal fetch exhausted: %s", e)
        raise HTTPException(
            status_code=502,
            detail={"error": "upstream unavailable", "url": e.url, "attempts": [str(a) for a in e.attempts]},
        )

    log_audit(
        db,
        "portal.query",
        {"name": payload.location_name, "type": payload.location_type.value, "cache": result.from_cache},
        client_hint(request),
    )
    return PortalQueryOut(
        locuuid=pair.location_identifier,
        stateuuid=pair.state_identifier,
        url=url,
        effective_url=result.effective_url,
        from_cache=result.from_cache,
        markdown=clean_scraped_markdown(result.markdown),
        html=result.html,
    )
