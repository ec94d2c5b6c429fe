# ingres/services/location_resolver.py
"""Free-text place name -> portal identifiers.

Strategies, in order, stopping at the first hit:
  1. manual overrides
  2. stored locations (exact name + type)
  3. live scrape of portal search pages
  4. fuzzy match against stored locations of the same type
"""
from __future__ import annotations

import difflib
import logging
import unicodedata
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ingres.core.errors import FetchError, LocationStoreError
from ingres.crud import location as crud
from ingres.models.location import Location
from ingres.schemas.location import LocationIdentifierPair, LocationType
from ingres.services import metrics as m
from ingres.services.fetcher import ContentTransport
from ingres.services.metrics import MetricsSink
from ingres.services.overrides import OverrideTable
from ingres.services.portal_url import DEFAULT_PORTAL_BASE, extract_identifiers, search_urls

logger = logging.getLogger(__name__)


def fuzzy_key(name: str) -> str:
    """Casefold, strip diacritics and punctuation, single spaces. Keeps every script's letters."""
    decomposed = unicodedata.normalize("NFKD", name or "").casefold()
    # accents and viramas carry a combining class and are dropped; vowel signs stay
    kept = "".join(
        ch if ch.isalnum() or unicodedata.category(ch).startswith("M") else " "
        for ch in decomposed
        if not unicodedata.combining(ch)
    )
    return " ".join(kept.split())


def name_distance(a: str, b: str) -> float:
    """0.0 = identical, 1.0 = nothing in common. A name with no letters matches nothing."""
    ka, kb = fuzzy_key(a), fuzzy_key(b)
    if not ka or not kb:
        return 1.0
    return 1.0 - difflib.SequenceMatcher(None, ka, kb).ratio()


class LocationResolver:
    def __init__(
        self,
        db: Session,
        *,
        fetcher: Optional[ContentTransport],
        metrics: MetricsSink,
        overrides: OverrideTable,
        fuzzy_threshold: float = 0.3,
        portal_base: str = DEFAULT_PORTAL_BASE,
        wait_ms: int = 2000,
    ) -> None:
        self.db = db
        self.fetcher = fetcher
        self.metrics = metrics
        self.overrides = overrides
        self.fuzzy_threshold = fuzzy_threshold
        self.portal_base = portal_base
        self.wait_ms = wait_ms

    def resolve(self, name: str, type_: LocationType) -> Optional[LocationIdentifierPair]:
        """Return the identifier pair, or None when every strategy misses.

        Raises LocationStoreError when the location table cannot be read;
        scrape failures only end the scrape step.
        """
        type_ = LocationType(type_)
        name = crud.display_name(name)
        if not name:
            return None

        pair = self.overrides.lookup(name, type_)
        if pair:
            self.metrics.increment(m.OVERRIDE_HIT)
            logger.info("resolved %s/%s via override", name, type_.value)
            self._persist(name, type_, pair)
            return pair

        pair = self._from_store(name, type_)
        if pair:
            self.metrics.increment(m.CACHE_HIT)
            logger.info("resolved %s/%s from store", name, type_.value)
            return pair

        pair = self._from_scrape(name, type_)
        if pair:
            self.metrics.increment(m.SCRAPE_SUCCESS)
            logger.info("resolved %s/%s by scraping", name, type_.value)
            self._persist(name, type_, pair)
            return pair

        pair = self._from_fuzzy(name, type_)
        if pair:
            self.metrics.increment(m.FUZZY_HIT)
            logger.info("resolved %s/%s by fuzzy match", name, type_.value)
            return pair

        logger.info("could not resolve %s/%s", name, type_.value)
        return None

    # ---------- step 2 ----------
    def _from_store(self, name: str, type_: LocationType) -> Optional[LocationIdentifierPair]:
        try:
            row = crud.get_by_name_type(self.db, name, type_.value)
            if row is None:
                return None
            return self._pair_for(row, type_)
        except SQLAlchemyError as e:
            raise LocationStoreError(f"location lookup failed for {name!r}") from e

    def _pair_for(self, row: Location, type_: LocationType) -> Optional[LocationIdentifierPair]:
        """Walk parents up to the state. A broken chain is a miss, not an error."""
        if type_ is LocationType.STATE:
            state_uuid = row.uuid
        elif type_ is LocationType.DISTRICT:
            state = crud.get_by_id(self.db, row.parent_id)
            state_uuid = state.uuid if state else ""
        else:
            district = crud.get_by_id(self.db, row.parent_id)
            state = crud.get_by_id(self.db, district.parent_id) if district else None
            state_uuid = state.uuid if state else ""
        if not state_uuid:
            logger.warning("%s %s has no state in store", type_.value, row.uuid)
            return None
        return LocationIdentifierPair(location_identifier=row.uuid, state_identifier=state_uuid)

    # ---------- step 3 ----------
    def _from_scrape(self, name: str, type_: LocationType) -> Optional[LocationIdentifierPair]:
        if self.fetcher is None:
            return None
        for url in search_urls(name, type_, base_url=self.portal_base):
            try:
                page = self.fetcher.fetch_rendered(url, formats=["html"], wait_ms=self.wait_ms)
            except FetchError as e:
                logger.debug("search candidate %s failed: %s", url, e)
                continue
            pair = extract_identifiers(page.html)
            if pair:
                return pair
        return None

    # ---------- step 4 ----------
    def _from_fuzzy(self, name: str, type_: LocationType) -> Optional[LocationIdentifierPair]:
        if not fuzzy_key(name):
            return None
        try:
            candidates = [c for c in crud.list_by_type(self.db, type_.value) if c.name]
            if not candidates:
                return None
            best = min(candidates, key=lambda c: name_distance(name, c.name))
            score = name_distance(name, best.name)
            if score > self.fuzzy_threshold:
                return None
            logger.debug("fuzzy %r -> %r (distance %.3f)", name, best.name, score)
            return self._pair_for(best, type_)
        except SQLAlchemyError as e:
            raise LocationStoreError(f"fuzzy lookup failed for {name!r}") from e

    # ---------- write-back ----------
    def _persist(self, name: str, type_: LocationType, pair: LocationIdentifierPair) -> None:
        # blocks are not stored: the scrape never yields the district in between
        try:
            if type_ is LocationType.STATE:
                crud.upsert_state(self.db, name=name, uuid=pair.location_identifier)
            elif type_ is LocationType.DISTRICT:
                crud.upsert_district(
                    self.db, name=name, uuid=pair.location_identifier, state_uuid=pair.state_identifier
                )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("could not store %s/%s: %s", name, type_.value, e)
