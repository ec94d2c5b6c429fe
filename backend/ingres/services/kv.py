# ingres/services/kv.py
"""Key-value tier: Redis when configured, otherwise a bounded in-process map.

Both expose the same four operations the rest of the code relies on:
get / set / expire / incr. Values are JSON-compatible.
"""
from __future__ import annotations

import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class KVStore(ABC):
    @abstractmethod
    def get(self, key: str) -> Any:
        """Return the stored value or None."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a value (clears any previous expiry)."""

    @abstractmethod
    def expire(self, key: str, seconds: int) -> None:
        """Expire key after `seconds`."""

    @abstractmethod
    def incr(self, key: str) -> int:
        """Increment an integer counter, creating it at 1."""


@dataclass
class CacheEntry:
    value: Any
    expires_at: Optional[float] = None

    def expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class MemoryKV(KVStore):
    """Thread-safe TTL map owned by one long-lived service object."""

    def __init__(self, max_entries: int = 10000, clock: Callable[[], float] = time.time) -> None:
        self._data: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._max_entries = max(1, int(max_entries))
        self._clock = clock

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: str) -> Any:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            if entry.expired(self._clock()):
                del self._data[key]
                return None
            return entry.value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data.pop(key, None)
            self._make_room()
            self._data[key] = CacheEntry(value=value)

    def expire(self, key: str, seconds: int) -> None:
        with self._lock:
            entry = self._data.get(key)
            if entry is not None:
                entry.expires_at = self._clock() + seconds

    def incr(self, key: str) -> int:
        with self._lock:
            entry = self._data.get(key)
            if entry is None or entry.expired(self._clock()):
                self._data.pop(key, None)
                self._make_room()
                entry = self._data[key] = CacheEntry(value=0)
            entry.value = int(entry.value) + 1
            return entry.value

    def sweep(self) -> int:
        """Drop every expired entry. Returns how many were removed."""
        with self._lock:
            return self._sweep_locked()

    def _sweep_locked(self) -> int:
        now = self._clock()
        dead = [k for k, e in self._data.items() if e.expired(now)]
        for k in dead:
            del self._data[k]
        return len(dead)

    def _make_room(self) -> None:
        if len(self._data) < self._max_entries:
            return
        self._sweep_locked()
        # oldest insertions go first
        while len(self._data) >= self._max_entries:
            self._data.pop(next(iter(self._data)))


class RedisKV(KVStore):
    """Redis-backed KV for multi-worker deployments."""

    def __init__(self, client) -> None:
        self._client = client

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisKV":
        from redis import Redis

        return cls(Redis.from_url(redis_url, decode_responses=True))

    def get(self, key: str) -> Any:
        raw = self._client.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Undecodable KV value under %s", key)
            return None

    def set(self, key: str, value: Any) -> None:
        self._client.set(key, json.dumps(value, default=str))

    def expire(self, key: str, seconds: int) -> None:
        self._client.expire(key, int(seconds))

    def incr(self, key: str) -> int:
        return int(self._client.incr(key))

    def close(self) -> None:
        self._client.close()


def build_kv(settings) -> KVStore:
    if settings.REDIS_URL:
        logger.info("KV tier: redis")
        return RedisKV.from_url(settings.REDIS_URL)
    logger.info("KV tier: in-process (max %s entries)", settings.KV_MAX_ENTRIES)
    return MemoryKV(max_entries=settings.KV_MAX_ENTRIES)
