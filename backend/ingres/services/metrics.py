import logging
from typing import Dict, Iterable

from ingres.services.kv import KVStore

logger = logging.getLogger(__name__)

OVERRIDE_HIT = "uuid.override.hit"
CACHE_HIT = "uuid.cache.hit"
SCRAPE_SUCCESS = "uuid.scrape.success"
FUZZY_HIT = "uuid.fuzzy.hit"
SCRAPE_KV_HIT = "scrape.kv.hit"
SCRAPE_DB_HIT = "scrape.db.hit"
FETCH_SUCCESS = "scrape.fetch.success"
FETCH_FAILURE = "scrape.fetch.failure"

KNOWN_COUNTERS = (
    OVERRIDE_HIT,
    CACHE_HIT,
    SCRAPE_SUCCESS,
    FUZZY_HIT,
    SCRAPE_KV_HIT,
    SCRAPE_DB_HIT,
    FETCH_SUCCESS,
    FETCH_FAILURE,
)


class MetricsSink:
    """Named counters in the KV tier. Observability only: never raises."""

    prefix = "metrics:"

    def __init__(self, kv: KVStore) -> None:
        self._kv = kv

    def increment(self, name: str) -> None:
        try:
            self._kv.incr(f"{self.prefix}{name}")
        except Exception as e:
            logger.debug("metric %s not recorded: %s", name, e)

    def get(self, name: str) -> int:
        try:
            return int(self._kv.get(f"{self.prefix}{name}") or 0)
        except Exception as e:
            logger.debug("metric %s unreadable: %s", name, e)
            return 0

    def snapshot(self, names: Iterable[str] = KNOWN_COUNTERS) -> Dict[str, int]:
        return {n: self.get(n) for n in names}
