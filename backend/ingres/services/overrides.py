# ingres/services/overrides.py
"""Curated (name, type) -> identifier mappings that bypass resolution.

Entries from INGRES_LOCATION_OVERRIDES (JSON list) are consulted before the
built-in table below.
"""
from __future__ import annotations

import json
import logging
from typing import Iterable, List, Optional

from pydantic import ValidationError

from ingres.schemas.location import LocationIdentifierPair, LocationType, OverrideEntry

logger = logging.getLogger(__name__)

GOA = "7f615d2f-0be6-42bf-891f-7239e101e487"
KARNATAKA = "eaec6bbb-a219-415f-bdba-991c42586352"

_BUILTIN_STATES = [
    ("goa", GOA),
    ("karnataka", KARNATAKA),
]

_BUILTIN_DISTRICTS = [
    ("goa north", "263270cc-5797-436b-bdd3-01db6b794e95", GOA),
    ("south goa", "7b17a41f-5c03-44a7-b4c4-7129aaa7a590", GOA),
    ("bagalkot", "49b27222-4a5c-4e4f-a9bd-30ac4d51a87e", KARNATAKA),
    ("ballari", "b4e3ff83-c2e9-4782-9668-ad9c14d4dbe6", KARNATAKA),
    ("belagavi", "8bf77049-a0a8-455b-a6c0-efb7d99a9d24", KARNATAKA),
    ("bengaluru (rural)", "5e4381d4-773c-49b0-9283-e229a2fd50dc", KARNATAKA),
    ("bengaluru (urban)", "fc194628-dfa2-4026-b410-5535a5ceea8c", KARNATAKA),
    ("bengaluru south", "6962b8fa-e8a2-4b37-93e0-b798f9ee7c1d", KARNATAKA),
    ("bidar", "516ad9f3-efaf-4910-afa0-bd93a8a28464", KARNATAKA),
    ("chamarajanagara", "44d9230a-8ba3-4516-98a2-df5d90cf7159", KARNATAKA),
    ("chikkaballapura", "20633d6d-e0fa-44f7-bfe3-94948bdcba9b", KARNATAKA),
    ("chikkamagaluru", "6f0ba974-468d-4c54-8550-15d9a856a3ea", KARNATAKA),
    ("chitradurga", "0d16d5d2-449e-4399-bdf8-df0c5b4ec0eb", KARNATAKA),
    ("dakshina kannada", "43aa8b45-4156-4964-b43c-269814d1dd5c", KARNATAKA),
    ("davanagere", "d616e03f-2cae-4e9b-a6fe-2badc580a43b", KARNATAKA),
    ("dharwad", "50850ba4-e017-466b-8a9d-623510323464", KARNATAKA),
    ("gadag", "e3c857a4-0f48-44e7-93fe-c3cebdbe6b55", KARNATAKA),
    ("hassan", "9fa87562-43a6-41a5-84c4-f5876acee609", KARNATAKA),
    ("haveri", "e5e196f0-a033-4f98-9967-d87fb48affb0", KARNATAKA),
    ("kalburgi", "469fe3ba-dfa0-4e56-8a0b-86668ab6a753", KARNATAKA),
    ("kodagu", "b2b853a3-c23e-439d-a187-304eb76388a5", KARNATAKA),
    ("koppal", "73536050-24e3-4bf6-933c-fb2e513a4fae", KARNATAKA),
    ("kolara", "35b9b1af-bd93-4002-8f7f-6a507a7ffe1a", KARNATAKA),
    ("mandya", "05825424-0ea1-4180-a46b-fa3f5a2757af", KARNATAKA),
    ("mysuru", "8caa1ea0-0f84-4652-9e97-48cc6de2b8ae", KARNATAKA),
    ("raichur", "f27aad4d-bbe8-4abd-bc73-dc58f4c89238", KARNATAKA),
    ("shivamogga", "7275b7e2-8f12-4a17-a3d2-8190ad8e0d00", KARNATAKA),
    ("tumakuru", "a6fa20e6-cf53-4598-90a8-88f5510de66a", KARNATAKA),
    ("udupi", "19fafdeb-e34a-4a17-9311-cccfa91cc5de", KARNATAKA),
    ("uttara kannada", "3b9a5a5e-88db-49fd-8812-6799699b1e57", KARNATAKA),
    ("vijayanagara", "ecbae4c8-3945-49c2-8443-605071ed523f", KARNATAKA),
    ("vijayapura", "fe8ad24c-bd8e-4e6e-b550-25d54ac2d25f", KARNATAKA),
    ("yadgir", "567c60cc-3f02-4aec-b3ae-9c6efcc3f53b", KARNATAKA),
]

BUILTIN_OVERRIDES: List[OverrideEntry] = [
    OverrideEntry(name=n, type=LocationType.STATE, locuuid=u, stateuuid=u) for n, u in _BUILTIN_STATES
] + [
    OverrideEntry(name=n, type=LocationType.DISTRICT, locuuid=u, stateuuid=s) for n, u, s in _BUILTIN_DISTRICTS
]


def normalize(name: str) -> str:
    """trim + lowercase + collapse internal whitespace"""
    return " ".join((name or "").split()).lower()


def parse_env_overrides(raw: str) -> List[OverrideEntry]:
    """Parse the JSON override list; bad JSON or malformed entries are skipped."""
    if not raw or not raw.strip():
        return []
    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.warning("INGRES_LOCATION_OVERRIDES is not valid JSON; ignoring")
        return []
    if not isinstance(parsed, list):
        return []
    out: List[OverrideEntry] = []
    for item in parsed:
        try:
            out.append(OverrideEntry.model_validate(item))
        except ValidationError:
            logger.warning("Skipping malformed override entry: %r", item)
    return out


class OverrideTable:
    def __init__(self, entries: Iterable[OverrideEntry] = ()) -> None:
        self.entries = list(entries)
        self._index = {}
        for e in self.entries:
            # first entry wins, so env entries shadow built-ins
            self._index.setdefault((normalize(e.name), e.type), e)

    @classmethod
    def from_settings(cls, settings) -> "OverrideTable":
        return cls(parse_env_overrides(settings.INGRES_LOCATION_OVERRIDES) + BUILTIN_OVERRIDES)

    def lookup(self, name: str, type_: LocationType) -> Optional[LocationIdentifierPair]:
        hit = self._index.get((normalize(name), LocationType(type_)))
        if hit is None:
            return None
        return LocationIdentifierPair(location_identifier=hit.locuuid, state_identifier=hit.stateuuid)

    def __len__(self) -> int:
        return len(self.entries)
