# ingres/services/portal_url.py
"""URL construction for the INGRES GIS portal.

The portal addresses a view with semicolon-delimited path parameters:

    <base>;locname=..;loctype=..;view=ADMIN;locuuid=..;year=..;...;stateuuid=..

Field order matters to the portal's parser.
"""
from __future__ import annotations

import re
from typing import List, Optional
from urllib.parse import quote

from ingres.schemas.location import LocationIdentifierPair, LocationType

DEFAULT_PORTAL_BASE = "https://ingres.iith.ac.in/gecdataonline/gis/INDIA"
DEFAULT_YEAR = "2024-2025"
DEFAULT_COMPUTATION_TYPE = "normal"

_UUID = r"([0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})"
_LOCUUID_RE = re.compile(r"locuuid[=:]" + _UUID, re.IGNORECASE)
_STATEUUID_RE = re.compile(r"stateuuid[=:]" + _UUID, re.IGNORECASE)


def component_encode(value: str) -> str:
    # same character set as JS encodeURIComponent
    return quote(value, safe="!*'()")


def strict_encode(value: str) -> str:
    """Percent-encode, including '(' and ')'; the portal rejects literal parentheses."""
    return quote(value, safe="!*'")


def build_portal_url(
    pair: LocationIdentifierPair,
    *,
    name: str,
    type: LocationType,
    year: Optional[str] = None,
    computation_type: Optional[str] = None,
    component: Optional[str] = None,
    period: Optional[str] = None,
    category: Optional[str] = None,
    include_click_params: bool = False,
    base_url: str = DEFAULT_PORTAL_BASE,
) -> str:
    segments = [
        f"locname={strict_encode(name)}",
        f"loctype={LocationType(type).value}",
        "view=ADMIN",
        f"locuuid={pair.location_identifier}",
        f"year={year or DEFAULT_YEAR}",
        f"computationType={computation_type or DEFAULT_COMPUTATION_TYPE}",
    ]
    # optional segments are omitted, never emitted empty
    if component:
        segments.append(f"component={component}")
    if period:
        segments.append(f"period={period}")
    if category:
        segments.append(f"category={category}")
    if include_click_params:
        segments.append("mapOnClickParams=true")
    segments.append(f"stateuuid={pair.state_identifier}")
    return f"{base_url};{';'.join(segments)}"


def to_query_string_form(url: str) -> str:
    """`base;a=b;c=d` -> `base?a=b&c=d`. No-op when the URL has no ';'."""
    idx = url.find(";")
    if idx == -1:
        return url
    base, rest = url[:idx], url[idx + 1:]
    parts = [p for p in rest.split(";") if p]
    if not parts:
        return base
    sep = "&" if "?" in base else "?"
    return f"{base}{sep}{'&'.join(parts)}"


def search_urls(name: str, type: LocationType, base_url: str = DEFAULT_PORTAL_BASE) -> List[str]:
    """Candidate portal pages likely to embed the identifiers for `name`."""
    encoded = component_encode(name)
    return [
        f"{base_url};locname={encoded};loctype={LocationType(type).value}",
        f"{base_url}?search={encoded}",
    ]


def extract_identifiers(html: str) -> Optional[LocationIdentifierPair]:
    """Find `locuuid=`/`stateuuid=` (or `:`) pairs in a page; both must be present."""
    if not html:
        return None
    loc = _LOCUUID_RE.search(html)
    state = _STATEUUID_RE.search(html)
    if not (loc and state):
        return None
    return LocationIdentifierPair(location_identifier=loc.group(1), state_identifier=state.group(1))
