from fastapi import APIRouter, Depends, Query
from bs4 import BeautifulSoup

from ingres.api.deps import get_overrides, get_transports
from ingres.core.config import settings
from ingres.core.errors import FetchError
from ingres.schemas.location import LocationType
from ingres.services.overrides import OverrideTable
from ingres.services.portal_url import extract_identifiers, search_urls

router = APIRouter()


@router.get("/candidates", response_model=dict)
def debug_candidates(
    name: str = Query(..., min_length=1),
    type: LocationType = Query(LocationType.DISTRICT),
    overrides: OverrideTable = Depends(get_overrides),
    transports: dict = Depends(get_transports),
):
    """
    Probe showing what the resolver would try for a name: the override hit,
    the search URLs, and identifier-bearing anchors on the first page (plain GET).
    """
    override = overrides.lookup(name, type)
    urls = search_urls(name, type, base_url=settings.PORTAL_BASE)

    probe = {"url": urls[0], "error": None, "html_len": 0, "anchors": [], "identifiers": None}
    try:
        page = transports["direct"].fetch_rendered(urls[0])
    except FetchError as e:
        probe["error"] = str(e)
    else:
        soup = BeautifulSoup(page.html, "html.parser")
        probe["html_len"] = len(page.html)
        for a in soup.select("a[href*='locuuid']")[:25]:
            probe["anchors"].append({
                "href": (a.get("href") or "").strip(),
                "text": a.get_text(" ", strip=True),
            })
        pair = extract_identifiers(page.html)
        probe["identifiers"] = pair.as_portal_params() if pair else None

    return {
        "name": name,
        "type": type.value,
        "override": override.as_portal_params() if override else None,
        "search_urls": urls,
        "probe": probe,
    }
