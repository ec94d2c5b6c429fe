from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

UUID_PATTERN = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"


class LocationType(str, Enum):
    STATE = "STATE"
    DISTRICT = "DISTRICT"
    BLOCK = "BLOCK"


class LocationIdentifierPair(BaseModel):
    """Resolved portal identifiers for one administrative unit."""

    model_config = ConfigDict(frozen=True)

    location_identifier: str = Field(pattern=UUID_PATTERN)
    state_identifier: str = Field(pattern=UUID_PATTERN)

    def as_portal_params(self) -> dict:
        return {"locuuid": self.location_identifier, "stateuuid": self.state_identifier}


class OverrideEntry(BaseModel):
    name: str
    type: LocationType
    locuuid: str = Field(pattern=UUID_PATTERN)
    stateuuid: str = Field(pattern=UUID_PATTERN)


class PortalQuery(BaseModel):
    # accepts the camelCase bodies the chat frontend sends
    model_config = ConfigDict(populate_by_name=True)

    location_name: str = Field(alias="locationName", min_length=2)
    location_type: LocationType = Field(alias="locationType")
    year: Optional[str] = None
    computation_type: Optional[str] = Field(default=None, alias="computationType")
    component: Optional[str] = None
    period: Optional[str] = None
    category: Optional[str] = None
    map_on_click_params: bool = Field(default=False, alias="mapOnClickParams")
    force_refresh: bool = Field(default=False, alias="forceRefresh")


class UUIDOut(BaseModel):
    locuuid: str
    stateuuid: str


class PortalQueryOut(BaseModel):
    locuuid: str
    stateuuid: str
    url: str
    effective_url: str
    from_cache: Optional[str] = None
    markdown: str = ""
    html: str = ""
