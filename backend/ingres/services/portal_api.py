# ingres/services/portal_api.py
"""JSON client for the portal's data-query API (assessments, trends, comparisons).

Every call returns a QueryResult:
  ok        validated upstream data (cached for ttl_seconds)
  fallback  deterministic synthetic placeholder, with the reason upstream failed
  error     upstream failed and synthesis is disabled
Synthetic data is never cached and never returned untagged.
"""
from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar
from urllib.parse import urlencode

import requests
from pydantic import BaseModel, ValidationError

from ingres.core.errors import FetchError
from ingres.schemas.groundwater import (
    GroundwaterAssessment,
    QueryResult,
    RegionalComparison,
    RegionIdentifier,
    TrendAnalysis,
)
from ingres.services.kv import KVStore, MemoryKV
from ingres.services.retry import backoff_delay

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def category_for(stage: float) -> str:
    if stage < 70:
        return "Safe"
    if stage < 90:
        return "Semi-Critical"
    if stage < 110:
        return "Critical"
    return "Over-Exploited"


class PortalApiClient:
    def __init__(
        self,
        base_url: str = "https://ingres.iith.ac.in/api",
        *,
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        cache: Optional[KVStore] = None,
        ttl_seconds: int = 300,
        max_retries: int = 2,
        base_delay: float = 0.25,
        timeout: float = 20,
        synthesize: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.session = session or requests.Session()
        self.cache = cache if cache is not None else MemoryKV(max_entries=1000)
        self.ttl_seconds = ttl_seconds
        self.max_retries = max(0, max_retries)
        self.base_delay = base_delay
        self.timeout = timeout
        self.synthesize = synthesize
        self.sleep = sleep

    # ---------- plumbing ----------
    @staticmethod
    def cache_key(path: str, params: Dict[str, Any]) -> str:
        clean = {k: str(v) for k, v in sorted(params.items()) if v is not None}
        return f"portal-api:{path}?{urlencode(clean)}"

    def _cached(self, key: str, model: Type[M]) -> Optional[M]:
        raw = self.cache.get(key)
        if raw is None:
            return None
        try:
            return model.model_validate(raw)
        except ValidationError:
            return None

    def _store(self, key: str, value: BaseModel) -> None:
        self.cache.set(key, value.model_dump(mode="json", by_alias=True, exclude_none=True))
        self.cache.expire(key, self.ttl_seconds)

    def fetch_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET base_url/path with retries; raises FetchError once retries run out."""
        url = path if path.startswith("http") else f"{self.base_url}/{path.lstrip('/')}"
        query = {k: v for k, v in (params or {}).items() if v is not None}
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        last: Optional[Exception] = None
        for attempt in range(self.max_retries + 1):
            if attempt:
                self.sleep(backoff_delay(attempt - 1, self.base_delay))
            try:
                resp = self.session.get(url, params=query, headers=headers, timeout=self.timeout)
                if resp.status_code >= 400:
                    raise FetchError(f"portal API {resp.status_code}: {(resp.text or '')[:200]}")
                body = resp.text
                if not body or not body.strip():
                    raise FetchError("portal API returned an empty body")
                try:
                    return json.loads(body)
                except ValueError as e:
                    raise FetchError(f"portal API invalid JSON: {e}") from e
            except (FetchError, requests.exceptions.RequestException) as e:
                last = e
                logger.debug("portal API %s attempt %d failed: %s", path, attempt + 1, e)
        raise FetchError(f"{path} failed after {self.max_retries + 1} attempts: {last}") from last

    def _degraded(self, reason: str, synthetic: Callable[[], Any]) -> QueryResult:
        if self.synthesize:
            return QueryResult(status="fallback", data=synthetic(), reason=reason)
        return QueryResult(status="error", reason=reason)

    # ---------- queries ----------
    def get_assessment(self, region: RegionIdentifier, year: int) -> QueryResult[GroundwaterAssessment]:
        params = {"level": region.level, "id": region.key(), "year": year}
        key = self.cache_key("assessment", params)
        cached = self._cached(key, GroundwaterAssessment)
        if cached is not None:
            return QueryResult(status="ok", data=cached)
        try:
            parsed = GroundwaterAssessment.model_validate(self.fetch_json("assessment", params))
        except (FetchError, ValidationError) as e:
            logger.warning("assessment for %s/%s unavailable: %s", region.key(), year, e)
            return self._degraded(str(e), lambda: self._synthetic_assessment(region, year))
        self._store(key, parsed)
        return QueryResult(status="ok", data=parsed)

    def get_trend(
        self, region: RegionIdentifier, start_year: Optional[int] = None, end_year: Optional[int] = None
    ) -> QueryResult[TrendAnalysis]:
        params = {"level": region.level, "id": region.key(), "startYear": start_year, "endYear": end_year}
        key = self.cache_key("trend", params)
        cached = self._cached(key, TrendAnalysis)
        if cached is not None:
            return QueryResult(status="ok", data=cached)
        try:
            parsed = TrendAnalysis.model_validate(self.fetch_json("trend", params))
        except (FetchError, ValidationError) as e:
            logger.warning("trend for %s unavailable: %s", region.key(), e)
            return self._degraded(str(e), lambda: self._synthetic_trend(region, start_year, end_year))
        self._store(key, parsed)
        return QueryResult(status="ok", data=parsed)

    def compare_regions(self, regions: List[RegionIdentifier], year: int) -> QueryResult[RegionalComparison]:
        regions_json = json.dumps([r.model_dump(exclude_none=True) for r in regions])
        params = {"regions": regions_json, "year": year}
        key = self.cache_key("compare", params)
        cached = self._cached(key, RegionalComparison)
        if cached is not None:
            return QueryResult(status="ok", data=cached)
        try:
            parsed = RegionalComparison.model_validate(self.fetch_json("compare", params))
        except (FetchError, ValidationError) as e:
            logger.warning("comparison of %d regions unavailable: %s", len(regions), e)
            return self._degraded(str(e), lambda: self._synthetic_comparison(regions, year))
        self._store(key, parsed)
        return QueryResult(status="ok", data=parsed)

    def get_assessments_batch(
        self, regions: List[RegionIdentifier], year: int
    ) -> QueryResult[List[GroundwaterAssessment]]:
        regions_json = json.dumps([r.model_dump(exclude_none=True) for r in regions])
        try:
            raw = self.fetch_json("batch/assessment", {"regions": regions_json, "year": year})
            items = [GroundwaterAssessment.model_validate(r) for r in (raw if isinstance(raw, list) else [])]
            if items:
                return QueryResult(status="ok", data=items)
            reason = "batch endpoint returned no items"
        except (FetchError, ValidationError) as e:
            reason = str(e)
        logger.info("batch assessment unavailable (%s); querying regions one by one", reason)

        singles = [self.get_assessment(r, year) for r in regions]
        data = [s.data for s in singles if s.data is not None]
        if not data:
            return QueryResult(status="error", reason=reason)
        if all(s.status == "ok" for s in singles):
            return QueryResult(status="ok", data=data)
        failed = [s.reason for s in singles if s.status != "ok"]
        return QueryResult(status="fallback", data=data, reason="; ".join(r for r in failed if r))

    # ---------- placeholders ----------
    @staticmethod
    def _synthetic_assessment(region: RegionIdentifier, year: int) -> GroundwaterAssessment:
        stage = 65 + ((len(region.name or "") or 5) * year) % 30
        return GroundwaterAssessment(
            region=region.model_copy(update={"name": region.name or region.code or "Unknown"}),
            level=region.level,
            assessment_year=year,
            metrics={
                "annualRechargeBcm": 10,
                "extractableResourcesBcm": 8,
                "totalExtractionBcm": round(stage / 100 * 8, 2),
                "stageOfExtractionPercent": stage,
                "category": category_for(stage),
            },
        )

    @staticmethod
    def _synthetic_trend(
        region: RegionIdentifier, start_year: Optional[int], end_year: Optional[int]
    ) -> TrendAnalysis:
        this_year = datetime.now(timezone.utc).year
        start = start_year if start_year is not None else this_year - 8
        end = end_year if end_year is not None else this_year
        seed_base = len(region.name or "") or 7
        history = [
            {"year": y, "stageOfExtractionPercent": 60 + ((seed_base * (y % 13)) * 17) % 40}
            for y in range(start, end + 1)
        ]
        return TrendAnalysis(
            region=region,
            level=region.level,
            history=history,
            method={"technique": "naive", "generatedAt": datetime.now(timezone.utc).isoformat()},
        )

    @staticmethod
    def _synthetic_comparison(regions: List[RegionIdentifier], year: int) -> RegionalComparison:
        metrics = []
        for r in regions:
            stage = 60 + ((len(r.name or "") or 4) * year) % 40
            metrics.append({
                "region": r,
                "level": r.level,
                "assessmentYear": year,
                "category": category_for(stage),
                "stageOfExtractionPercent": stage,
                "annualRechargeBcm": 10,
                "totalExtractionBcm": round(stage / 100 * 8, 2),
            })
        return RegionalComparison(compared_at=datetime.now(timezone.utc).isoformat(), metrics=metrics)
