# tests/test_location_resolver.py
"""LocationResolver: override -> store -> scrape -> fuzzy."""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from conftest import BLOCK_UUID, DISTRICT_UUID, STATE_UUID
from ingres.core.errors import FetchError, LocationStoreError
from ingres.crud import location as crud_location
from ingres.models.location import Location
from ingres.schemas.location import LocationIdentifierPair, LocationType, OverrideEntry
from ingres.services import metrics as m
from ingres.services.location_resolver import LocationResolver, fuzzy_key, name_distance
from ingres.services.overrides import BUILTIN_OVERRIDES, KARNATAKA, OverrideTable
from ingres.services.portal_url import build_portal_url, search_urls
from ingres.services.fetcher import RenderedPage

PAIR = LocationIdentifierPair(location_identifier=DISTRICT_UUID, state_identifier=STATE_UUID)


@pytest.fixture
def make_resolver(db, metrics, transports):
    def _make(overrides=None, session=None, fetcher="sdk", threshold=0.3):
        return LocationResolver(
            session if session is not None else db,
            fetcher=transports[fetcher] if fetcher else None,
            metrics=metrics,
            overrides=overrides if overrides is not None else OverrideTable(),
            fuzzy_threshold=threshold,
        )
    return _make


class TestFuzzyKey:
    def test_strips_case_punctuation_and_diacritics(self):
        assert fuzzy_key("  Bengaluru (Urban) ") == "bengaluru urban"
        assert fuzzy_key("Mysūru") == "mysuru"

    def test_distance_bounds(self):
        assert name_distance("Udupi", "udupi") == 0.0
        assert name_distance("abc", "xyz") == 1.0

    def test_close_spellings_are_close(self):
        assert name_distance("Bangalore Urban", "Bengaluru (Urban)") <= 0.3

    def test_keeps_non_latin_letters(self):
        assert fuzzy_key("बेंगलुरु") != ""
        assert fuzzy_key("ಬೆಂಗಳೂರು (ನಗರ)") == "ಬೆಂಗಳೂರು ನಗರ"
        assert fuzzy_key("ÖSTERREICH") == "osterreich"

    @pytest.mark.parametrize("a,b", [("???", "Udupi"), ("Udupi", "--"), ("", ""), ("!!", "??")])
    def test_names_without_letters_never_match(self, a, b):
        assert name_distance(a, b) == 1.0

    def test_different_scripts_are_far_apart(self):
        assert name_distance("चेन्नई", "बेंगलुरु") > 0.3
        assert name_distance("ಬೆಂಗಳೂರು", "बेंगलुरु") == 1.0


class TestOverrides:
    def test_override_hit_returns_pair_without_fetching(self, make_resolver, transports, metrics):
        resolver = make_resolver(overrides=OverrideTable(BUILTIN_OVERRIDES))
        pair = resolver.resolve("Karnataka", LocationType.STATE)
        assert pair == LocationIdentifierPair(location_identifier=KARNATAKA, state_identifier=KARNATAKA)
        assert transports["sdk"].calls == []
        assert metrics.get(m.OVERRIDE_HIT) == 1

    def test_override_pair_builds_portal_url(self, make_resolver):
        resolver = make_resolver(overrides=OverrideTable(BUILTIN_OVERRIDES))
        pair = resolver.resolve("Karnataka", LocationType.STATE)
        url = build_portal_url(pair, name="Karnataka", type=LocationType.STATE)
        assert f"locuuid={KARNATAKA}" in url
        assert f"stateuuid={KARNATAKA}" in url
        assert "loctype=STATE" in url

    def test_name_normalization(self, make_resolver):
        resolver = make_resolver(overrides=OverrideTable(BUILTIN_OVERRIDES))
        a = resolver.resolve("  Karnataka ", LocationType.STATE)
        b = resolver.resolve("karnataka", LocationType.STATE)
        c = resolver.resolve("KARNATAKA", "STATE")
        assert a == b == c is not None

    @pytest.mark.parametrize("entry", BUILTIN_OVERRIDES[:6], ids=lambda e: e.name)
    def test_override_persists_for_store_lookup(self, make_resolver, metrics, entry):
        first = make_resolver(overrides=OverrideTable(BUILTIN_OVERRIDES)).resolve(entry.name, entry.type)
        second = make_resolver(overrides=OverrideTable()).resolve(entry.name, entry.type)
        assert first == second
        assert second.location_identifier == entry.locuuid
        assert second.state_identifier == entry.stateuuid
        assert metrics.get(m.CACHE_HIT) == 1

    def test_non_ascii_override_round_trips_through_store(self, make_resolver, transports, metrics):
        odisha = OverrideEntry(name="Ōdisha", type=LocationType.STATE, locuuid=STATE_UUID, stateuuid=STATE_UUID)
        first = make_resolver(overrides=OverrideTable([odisha])).resolve("Ōdisha", LocationType.STATE)

        second = make_resolver().resolve("ŌDISHA", LocationType.STATE)
        assert second == first
        assert metrics.get(m.CACHE_HIT) == 1
        assert transports["sdk"].calls == []

    def test_persist_failure_still_returns_pair(self, make_resolver, monkeypatch):
        def boom(*args, **kwargs):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(crud_location, "upsert_state", boom)
        pair = make_resolver(overrides=OverrideTable(BUILTIN_OVERRIDES)).resolve("Goa", LocationType.STATE)
        assert pair is not None


class TestStore:
    def test_district_hit_uses_parent_state(self, db, make_resolver, transports, metrics):
        crud_location.upsert_district(db, name="Bengaluru (Urban)", uuid=DISTRICT_UUID, state_uuid=STATE_UUID)
        pair = make_resolver().resolve("bengaluru  (urban)", LocationType.DISTRICT)
        assert pair == PAIR
        assert transports["sdk"].calls == []
        assert metrics.get(m.CACHE_HIT) == 1

    def test_state_hit(self, db, make_resolver):
        crud_location.upsert_state(db, name="Karnataka", uuid=STATE_UUID)
        pair = make_resolver().resolve("Karnataka", LocationType.STATE)
        assert pair == LocationIdentifierPair(location_identifier=STATE_UUID, state_identifier=STATE_UUID)

    def test_block_walks_two_parents(self, db, make_resolver):
        district = crud_location.upsert_district(db, name="Bengaluru (Urban)", uuid=DISTRICT_UUID, state_uuid=STATE_UUID)
        db.add(Location(name="Anekal", type="BLOCK", uuid=BLOCK_UUID, parent_id=district.id))
        db.commit()
        pair = make_resolver().resolve("Anekal", LocationType.BLOCK)
        assert pair == LocationIdentifierPair(location_identifier=BLOCK_UUID, state_identifier=STATE_UUID)

    def test_broken_chain_falls_through(self, db, make_resolver, transports):
        db.add(Location(name="Anekal", type="BLOCK", uuid=BLOCK_UUID, parent_id=None))
        db.commit()
        assert make_resolver().resolve("Anekal", LocationType.BLOCK) is None
        # fell through to the scrape step
        assert len(transports["sdk"].calls) == 2

    def test_district_without_state_is_a_miss(self, db, make_resolver):
        db.add(Location(name="Orphan", type="DISTRICT", uuid=DISTRICT_UUID, parent_id=None))
        db.commit()
        assert make_resolver().resolve("Orphan", LocationType.DISTRICT) is None

    def test_store_failure_raises(self, make_resolver):
        session = MagicMock(spec=Session)
        session.query.side_effect = OperationalError("SELECT", {}, Exception("database is locked"))
        with pytest.raises(LocationStoreError):
            make_resolver(session=session).resolve("Pune", LocationType.DISTRICT)


class TestScrape:
    def test_scrape_hit_is_persisted(self, make_resolver, transports, identifier_page, metrics):
        transports["sdk"].responses["*"] = identifier_page
        pair = make_resolver().resolve("Bengaluru (Urban)", LocationType.DISTRICT)
        assert pair == PAIR
        assert metrics.get(m.SCRAPE_SUCCESS) == 1

        transports["sdk"].responses.clear()
        again = make_resolver().resolve("Bengaluru (Urban)", LocationType.DISTRICT)
        assert again == PAIR
        assert metrics.get(m.CACHE_HIT) == 1
        assert len(transports["sdk"].calls) == 1

    def test_scrape_persists_state_stub(self, db, make_resolver, transports, identifier_page):
        transports["sdk"].responses["*"] = identifier_page
        make_resolver().resolve("Bengaluru (Urban)", LocationType.DISTRICT)
        state = crud_location.get_by_uuid(db, STATE_UUID)
        assert state.type == "STATE"
        assert state.name == ""

    def test_failed_candidate_moves_to_next(self, make_resolver, transports, identifier_page):
        first, second = search_urls("Bengaluru (Urban)", LocationType.DISTRICT)
        transports["sdk"].responses = {first: FetchError("timeout"), second: identifier_page}
        assert make_resolver().resolve("Bengaluru (Urban)", LocationType.DISTRICT) == PAIR
        assert transports["sdk"].calls == [first, second]

    def test_page_without_both_identifiers_is_a_miss(self, make_resolver, transports):
        transports["sdk"].responses["*"] = RenderedPage(html=f"<a href='?locuuid={DISTRICT_UUID}'>x</a>")
        assert make_resolver().resolve("Bengaluru (Urban)", LocationType.DISTRICT) is None

    def test_block_scrape_is_not_persisted(self, db, make_resolver, transports):
        transports["sdk"].responses["*"] = RenderedPage(html=f"locuuid={BLOCK_UUID} stateuuid={STATE_UUID}")
        pair = make_resolver().resolve("Anekal", LocationType.BLOCK)
        assert pair.location_identifier == BLOCK_UUID
        assert crud_location.get_by_uuid(db, BLOCK_UUID) is None


class TestFuzzy:
    def test_near_spelling_matches_stored_district(self, db, make_resolver, metrics):
        crud_location.upsert_district(db, name="Bengaluru (Urban)", uuid=DISTRICT_UUID, state_uuid=STATE_UUID)
        pair = make_resolver().resolve("Bangalore Urban", LocationType.DISTRICT)
        assert pair == PAIR
        assert metrics.get(m.FUZZY_HIT) == 1

    def test_distant_name_is_not_matched(self, db, make_resolver):
        crud_location.upsert_district(db, name="Bengaluru (Urban)", uuid=DISTRICT_UUID, state_uuid=STATE_UUID)
        assert make_resolver().resolve("Chennai", LocationType.DISTRICT) is None

    def test_threshold_is_configurable(self, db, make_resolver):
        crud_location.upsert_district(db, name="Bengaluru (Urban)", uuid=DISTRICT_UUID, state_uuid=STATE_UUID)
        assert make_resolver(threshold=0.1).resolve("Bangalore Urban", LocationType.DISTRICT) is None

    def test_fuzzy_stays_within_type(self, db, make_resolver):
        crud_location.upsert_state(db, name="Karnataka", uuid=STATE_UUID)
        assert make_resolver().resolve("Karnataka", LocationType.DISTRICT) is None

    def test_unrelated_non_latin_name_is_not_matched(self, db, make_resolver, metrics):
        crud_location.upsert_district(db, name="बेंगलुरु", uuid=DISTRICT_UUID, state_uuid=STATE_UUID)
        assert make_resolver().resolve("चेन्नई", LocationType.DISTRICT) is None
        assert metrics.get(m.FUZZY_HIT) == 0

    def test_punctuation_only_query_is_not_matched(self, db, make_resolver):
        crud_location.upsert_district(db, name="ಬೆಂಗಳೂರು", uuid=DISTRICT_UUID, state_uuid=STATE_UUID)
        assert make_resolver().resolve("???", LocationType.DISTRICT) is None

    def test_near_non_latin_spelling_matches(self, db, make_resolver):
        crud_location.upsert_district(db, name="बेंगलुरु", uuid=DISTRICT_UUID, state_uuid=STATE_UUID)
        assert make_resolver().resolve("बेंगलूरु", LocationType.DISTRICT) == PAIR


class TestNotFound:
    def test_everything_misses(self, make_resolver, metrics):
        assert make_resolver().resolve("Atlantis", LocationType.DISTRICT) is None
        assert all(v == 0 for v in metrics.snapshot().values())

    def test_without_fetcher(self, make_resolver):
        assert make_resolver(fetcher=None).resolve("Atlantis", LocationType.STATE) is None

    def test_blank_name(self, make_resolver, transports):
        assert make_resolver().resolve("   ", LocationType.STATE) is None
        assert transports["sdk"].calls == []
