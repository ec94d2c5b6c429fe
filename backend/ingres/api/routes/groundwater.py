# ingres/api/routes/groundwater.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from ingres.api.deps import get_portal_api
from ingres.schemas.groundwater import AdministrativeLevel, RegionIdentifier
from ingres.services.portal_api import PortalApiClient

router = APIRouter(prefix="/ingres", tags=["groundwater"])


class CompareRequest(BaseModel):
    regions: List[RegionIdentifier]
    year: int


def _region(level: str, name: Optional[str], id_: Optional[str], code: Optional[str]) -> RegionIdentifier:
    if not (name or id_ or code):
        raise HTTPException(status_code=400, detail="one of name, id or code is required")
    return RegionIdentifier(level=level, name=name or None, id=id_ or None, code=code or None)


def _respond(result) -> dict:
    # status stays in the payload so callers can tell real data from placeholders
    if result.status == "error":
        raise HTTPException(status_code=502, detail={"status": "error", "reason": result.reason})
    return result.model_dump(mode="json", by_alias=True, exclude_none=True)


@router.get("/assessment", response_model=dict)
def assessment(
    level: AdministrativeLevel = Query(...),
    year: int = Query(..., ge=1900, le=3000),
    name: Optional[str] = Query(None),
    id: Optional[str] = Query(None),
    code: Optional[str] = Query(None),
    client: PortalApiClient = Depends(get_portal_api),
):
    return _respond(client.get_assessment(_region(level, name, id, code), year))


@router.get("/trend", response_model=dict)
def trend(
    level: AdministrativeLevel = Query(...),
    name: Optional[str] = Query(None),
    id: Optional[str] = Query(None),
    code: Optional[str] = Query(None),
    start_year: Optional[int] = Query(None, alias="startYear"),
    end_year: Optional[int] = Query(None, alias="endYear"),
    client: PortalApiClient = Depends(get_portal_api),
):
    if start_year is not None and end_year is not None and start_year > end_year:
        raise HTTPException(status_code=400, detail="startYear must not be after endYear")
    return _respond(client.get_trend(_region(level, name, id, code), start_year, end_year))


@router.post("/compare", response_model=dict)
def compare(payload: CompareRequest, client: PortalApiClient = Depends(get_portal_api)):
    if not payload.regions:
        raise HTTPException(status_code=400, detail="regions must not be empty")
    return _respond(client.compare_regions(payload.regions, payload.year))


@router.post("/assessments", response_model=dict)
def assessments_batch(payload: CompareRequest, client: PortalApiClient = Depends(get_portal_api)):
    if not payload.regions:
        raise HTTPException(status_code=400, detail="regions must not be empty")
    return _respond(client.get_assessments_batch(payload.regions, payload.year))
