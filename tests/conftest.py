# tests/conftest.py
"""Shared fixtures: in-memory SQLite, in-process KV, scripted transports.

Nothing here touches the network or the on-disk database.
"""
from __future__ import annotations

import os

# must be set before any ingres module reads settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = ""
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["RATE_LIMIT_REQUESTS"] = "100000"
os.environ["FIRECRAWL_API_KEY"] = ""
os.environ["INGRES_LOCATION_OVERRIDES"] = ""

from typing import Dict, List, Optional, Sequence

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ingres.core.errors import FetchError
from ingres.db.base import create_all
from ingres.services.fetcher import DEFAULT_FORMATS, ContentTransport, RenderedPage
from ingres.services.kv import MemoryKV
from ingres.services.metrics import MetricsSink

STATE_UUID = "eaec6bbb-a219-415f-bdba-991c42586352"
DISTRICT_UUID = "fc194628-dfa2-4026-b410-5535a5ceea8c"
BLOCK_UUID = "0b1c2d3e-4f50-4a6b-8c7d-9e0f1a2b3c4d"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTransport(ContentTransport):
    """Scripted transport: url -> RenderedPage or exception; '*' is the default."""

    def __init__(self, name: str, responses: Optional[Dict[str, object]] = None, log: Optional[List[str]] = None):
        self.name = name
        self.responses = dict(responses or {})
        self.calls: List[str] = []
        self.log = log if log is not None else []

    def fetch_rendered(
        self,
        url: str,
        *,
        formats: Sequence[str] = DEFAULT_FORMATS,
        only_main_content: bool = True,
        wait_ms: Optional[int] = None,
    ) -> RenderedPage:
        self.calls.append(url)
        self.log.append(f"{self.name} {url}")
        outcome = self.responses.get(url, self.responses.get("*", FetchError(f"{self.name} unavailable")))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def kv(clock) -> MemoryKV:
    return MemoryKV(max_entries=1000, clock=clock)


@pytest.fixture
def metrics(kv) -> MetricsSink:
    return MetricsSink(kv)


@pytest.fixture
def call_log() -> List[str]:
    return []


@pytest.fixture
def transports(call_log) -> Dict[str, FakeTransport]:
    """Every transport fails until a test scripts it."""
    return {name: FakeTransport(name, log=call_log) for name in ("rest", "sdk", "legacy", "direct")}


@pytest.fixture
def identifier_page() -> RenderedPage:
    return RenderedPage(
        html=(
            '<a href="/gis/INDIA;locname=Bengaluru%20(Urban);loctype=DISTRICT;'
            f'locuuid={DISTRICT_UUID};stateuuid={STATE_UUID}">Bengaluru (Urban)</a>'
        )
    )
