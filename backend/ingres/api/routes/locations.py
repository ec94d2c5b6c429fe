# ingres/api/routes/locations.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from ingres.api.deps import get_resolver
from ingres.api.ratelimit import client_ip
from ingres.core.config import settings
from ingres.core.errors import LocationStoreError
from ingres.crud.audit import log_audit
from ingres.db.session import get_db
from ingres.schemas.location import LocationIdentifierPair, LocationType, UUIDOut
from ingres.services.location_resolver import LocationResolver
from ingres.services.portal_url import build_portal_url, to_query_string_form
from ingres.services.privacy import hash_identifier

router = APIRouter(prefix="/ingres", tags=["ingres"])


def client_hint(request: Request) -> str:
    return hash_identifier(client_ip(request))


# GET /api/ingres/uuid?name=Karnataka&type=STATE
@router.get("/uuid", response_model=UUIDOut)
def lookup_uuid(
    request: Request,
    name: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    resolver: LocationResolver = Depends(get_resolver),
):
    if not name or not type:
        raise HTTPException(status_code=400, detail="Missing name or type")
    try:
        loc_type = LocationType(type.upper())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown location type: {type}")

    try:
        pair = resolver.resolve(name, loc_type)
    except LocationStoreError as e:
        raise HTTPException(status_code=503, detail=str(e))

    log_audit(db, "uuid.lookup", {"name": name, "type": loc_type.value, "found": bool(pair)}, client_hint(request))
    if pair is None:
        raise HTTPException(status_code=404, detail="Location not found")
    return pair.as_portal_params()


# GET /api/ingres/portal-url?locuuid=..&stateuuid=..&name=..&type=..
@router.get("/portal-url", response_model=dict)
def portal_url(
    locuuid: str = Query(...),
    stateuuid: str = Query(...),
    name: str = Query(..., min_length=1),
    type: LocationType = Query(...),
    year: Optional[str] = Query(None),
    computation_type: Optional[str] = Query(None, alias="computationType"),
    component: Optional[str] = Query(None),
    period: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    click_params: bool = Query(False, alias="mapOnClickParams"),
):
    try:
        pair = LocationIdentifierPair(location_identifier=locuuid, state_identifier=stateuuid)
    except ValueError:
        raise HTTPException(status_code=400, detail="locuuid and stateuuid must be UUIDs")
    url = build_portal_url(
        pair,
        name=name,
        type=type,
        year=year or settings.DEFAULT_ASSESSMENT_YEAR,
        computation_type=computation_type or settings.DEFAULT_COMPUTATION_TYPE,
        component=component,
        period=period,
        category=category,
        include_click_params=click_params,
        base_url=settings.PORTAL_BASE,
    )
    return {"url": url, "query_url": to_query_string_form(url)}
