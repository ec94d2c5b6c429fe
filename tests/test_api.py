# tests/test_api.py
"""HTTP surface, with every external dependency swapped for an in-memory fake."""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from conftest import DISTRICT_UUID, STATE_UUID
from ingres.api import deps
from ingres.core.errors import LocationStoreError
from ingres.db.session import get_db
from ingres.main import app
from ingres.models.audit import AuditLog
from ingres.services.fetcher import RenderedPage
from ingres.services.overrides import BUILTIN_OVERRIDES, KARNATAKA, OverrideTable
from ingres.services.portal_api import PortalApiClient

UDUPI = "19fafdeb-e34a-4a17-9311-cccfa91cc5de"


@pytest.fixture
def portal_session():
    return MagicMock()


@pytest.fixture
def client(db, kv, metrics, transports, portal_session):
    def _db():
        yield db

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[deps.get_kv] = lambda: kv
    app.dependency_overrides[deps.get_metrics] = lambda: metrics
    app.dependency_overrides[deps.get_overrides] = lambda: OverrideTable(BUILTIN_OVERRIDES)
    app.dependency_overrides[deps.get_transports] = lambda: transports
    app.dependency_overrides[deps.get_portal_api] = lambda: PortalApiClient(
        "https://api.example.test", session=portal_session, max_retries=0, sleep=lambda s: None
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "kv": "MemoryKV"}


class TestUuidLookup:
    def test_override_hit(self, client, db):
        r = client.get("/api/ingres/uuid", params={"name": "Karnataka", "type": "STATE"})
        assert r.status_code == 200
        assert r.json() == {"locuuid": KARNATAKA, "stateuuid": KARNATAKA}

        audit = db.query(AuditLog).one()
        assert audit.action == "uuid.lookup"
        # hashed, never the raw client address
        assert len(audit.user_hint) == 32
        assert "testclient" not in audit.user_hint

    def test_lowercase_type_accepted(self, client):
        r = client.get("/api/ingres/uuid", params={"name": "udupi", "type": "district"})
        assert r.status_code == 200
        assert r.json() == {"locuuid": UDUPI, "stateuuid": KARNATAKA}

    @pytest.mark.parametrize("params", [{}, {"name": "Goa"}, {"type": "STATE"}])
    def test_missing_params(self, client, params):
        r = client.get("/api/ingres/uuid", params=params)
        assert r.status_code == 400
        assert r.json()["detail"] == "Missing name or type"

    def test_unknown_type(self, client):
        r = client.get("/api/ingres/uuid", params={"name": "Goa", "type": "TALUK"})
        assert r.status_code == 400

    def test_not_found(self, client):
        r = client.get("/api/ingres/uuid", params={"name": "Atlantis", "type": "STATE"})
        assert r.status_code == 404
        assert r.json()["detail"] == "Location not found"

    def test_store_unavailable(self, client):
        resolver = MagicMock()
        resolver.resolve.side_effect = LocationStoreError("database is locked")
        app.dependency_overrides[deps.get_resolver] = lambda: resolver
        r = client.get("/api/ingres/uuid", params={"name": "Goa", "type": "STATE"})
        assert r.status_code == 503


class TestPortalUrl:
    def test_both_forms(self, client):
        r = client.get("/api/ingres/portal-url", params={
            "locuuid": DISTRICT_UUID,
            "stateuuid": STATE_UUID,
            "name": "Bengaluru (Urban)",
            "type": "DISTRICT",
            "component": "recharge",
        })
        assert r.status_code == 200
        body = r.json()
        assert ";locname=Bengaluru%20%28Urban%29;loctype=DISTRICT;" in body["url"]
        assert "component=recharge;stateuuid=" in body["url"]
        assert ";" not in body["query_url"]
        assert "?locname=" in body["query_url"]

    def test_rejects_non_uuid(self, client):
        r = client.get("/api/ingres/portal-url", params={
            "locuuid": "nope", "stateuuid": STATE_UUID, "name": "Goa", "type": "STATE",
        })
        assert r.status_code == 400


class TestQuery:
    PAGE = RenderedPage(
        html="<table><tr><td>Udupi</td></tr></table>",
        markdown="| Udupi | Safe |\n\nPowered by:\nVassar Labs",
    )

    def test_resolves_fetches_and_caches(self, client, transports):
        transports["rest"].responses["*"] = self.PAGE
        body = {"locationName": "Udupi", "locationType": "DISTRICT"}

        r = client.post("/api/ingres/query", json=body)
        assert r.status_code == 200
        data = r.json()
        assert data["locuuid"] == UDUPI
        assert data["stateuuid"] == KARNATAKA
        assert data["from_cache"] is None
        assert data["effective_url"] == data["url"]
        assert data["markdown"] == "| Udupi | Safe |"
        assert f"locuuid={UDUPI}" in data["url"]

        again = client.post("/api/ingres/query", json=body)
        assert again.json()["from_cache"] == "kv"
        assert len(transports["rest"].calls) == 1

    def test_force_refresh(self, client, transports):
        transports["rest"].responses["*"] = self.PAGE
        body = {"locationName": "Udupi", "locationType": "DISTRICT"}
        client.post("/api/ingres/query", json=body)
        r = client.post("/api/ingres/query", json={**body, "forceRefresh": True})
        assert r.json()["from_cache"] is None
        assert len(transports["rest"].calls) == 2

    def test_upstream_exhausted(self, client):
        r = client.post("/api/ingres/query", json={"locationName": "Udupi", "locationType": "DISTRICT"})
        assert r.status_code == 502
        detail = r.json()["detail"]
        assert detail["error"] == "upstream unavailable"
        assert len(detail["attempts"]) == 8
        assert detail["attempts"][0].startswith("rest ")

    def test_unknown_location(self, client):
        r = client.post("/api/ingres/query", json={"locationName": "Atlantis", "locationType": "STATE"})
        assert r.status_code == 404

    def test_validation(self, client):
        r = client.post("/api/ingres/query", json={"locationName": "U", "locationType": "DISTRICT"})
        assert r.status_code == 422


class TestGroundwater:
    SAMPLE = (
        '{"region": {"level": "state", "name": "Goa"}, "level": "state", "assessmentYear": 2023,'
        ' "metrics": {"annualRechargeBcm": 1, "extractableResourcesBcm": 1, "totalExtractionBcm": 0.5,'
        ' "stageOfExtractionPercent": 50, "category": "Safe"}}'
    )

    def test_assessment_ok(self, client, portal_session):
        portal_session.get.return_value = MagicMock(status_code=200, text=self.SAMPLE)
        r = client.get("/api/ingres/assessment", params={"level": "state", "name": "Goa", "year": 2023})
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "ok"
        assert body["data"]["metrics"]["stageOfExtractionPercent"] == 50

    def test_assessment_fallback_is_labelled(self, client, portal_session):
        portal_session.get.return_value = MagicMock(status_code=503, text="down")
        r = client.get("/api/ingres/assessment", params={"level": "state", "name": "Goa", "year": 2023})
        assert r.status_code == 200
        assert r.json()["status"] == "fallback"
        assert "503" in r.json()["reason"]

    def test_assessment_needs_region(self, client):
        r = client.get("/api/ingres/assessment", params={"level": "state", "year": 2023})
        assert r.status_code == 400

    def test_trend_year_order(self, client):
        r = client.get("/api/ingres/trend", params={
            "level": "state", "name": "Goa", "startYear": 2020, "endYear": 2010,
        })
        assert r.status_code == 400

    def test_compare_requires_regions(self, client):
        r = client.post("/api/ingres/compare", json={"regions": [], "year": 2023})
        assert r.status_code == 400


def test_metrics_endpoint(client):
    client.get("/api/ingres/uuid", params={"name": "Goa", "type": "STATE"})
    r = client.get("/api/metrics")
    assert r.status_code == 200
    assert r.json()["counters"]["uuid.override.hit"] == 1


def test_debug_candidates(client, transports):
    transports["direct"].responses["*"] = RenderedPage(html=(
        f'<a href="/gis;locuuid={DISTRICT_UUID};stateuuid={STATE_UUID}"> Bengaluru (Urban) </a>'
        '<a href="/about">About</a>'
    ))
    r = client.get("/api/debug/candidates", params={"name": "Bengaluru (Urban)", "type": "DISTRICT"})
    assert r.status_code == 200
    body = r.json()
    assert body["override"]["locuuid"] == "fc194628-dfa2-4026-b410-5535a5ceea8c"
    assert len(body["search_urls"]) == 2
    assert body["probe"]["anchors"] == [{
        "href": f"/gis;locuuid={DISTRICT_UUID};stateuuid={STATE_UUID}",
        "text": "Bengaluru (Urban)",
    }]
    assert body["probe"]["identifiers"] == {"locuuid": DISTRICT_UUID, "stateuuid": STATE_UUID}
