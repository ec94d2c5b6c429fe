# backend/ingres/core/errors.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List


class IngresError(Exception):
    """Base class for errors raised by the resolution and caching core."""


class LocationStoreError(IngresError):
    """The location table could not be queried (as opposed to: no matching row)."""


class FetchError(IngresError):
    """A single transport failed for a single URL."""


@dataclass(frozen=True)
class FetchAttempt:
    url: str
    transport: str
    reason: str

    def __str__(self) -> str:
        return f"{self.transport} {self.url}: {self.reason}"


class FetchExhaustedError(IngresError):
    """Every transport and URL form failed; keeps the full attempt log."""

    def __init__(self, url: str, attempts: List[FetchAttempt]):
        self.url = url
        self.attempts = list(attempts)
        tried = " | ".join(str(a) for a in self.attempts) or "no attempts made"
        super().__init__(f"could not fetch {url} | tried: {tried}")
