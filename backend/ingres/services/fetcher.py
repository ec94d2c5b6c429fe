from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ingres.core.errors import FetchError

logger = logging.getLogger(__name__)

DEFAULT_FORMATS = ("html", "markdown")

BROWSER_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


@dataclass(frozen=True)
class RenderedPage:
    html: str = ""
    markdown: str = ""

    @property
    def has_content(self) -> bool:
        return bool(self.html or self.markdown)


def parse_scrape_response(raw: Any) -> RenderedPage:
    """Map every response shape the scraping transports return onto RenderedPage.

    Known shapes:
      - RenderedPage (already normalized)
      - REST envelope: {"success": bool, "data": {"html", "markdown", ...}, "error": str}
      - flat mapping: {"html": ..., "markdown": ...}
      - SDK document object exposing .html / .markdown
    """
    if isinstance(raw, RenderedPage):
        return raw
    if isinstance(raw, dict):
        if "data" in raw or "success" in raw:
            if raw.get("success") is False:
                raise FetchError(str(raw.get("error") or "scrape reported failure"))
            data = raw.get("data") or {}
            if not isinstance(data, dict):
                raise FetchError(f"unexpected data payload: {type(data).__name__}")
            return RenderedPage(html=data.get("html") or "", markdown=data.get("markdown") or "")
        return RenderedPage(html=raw.get("html") or "", markdown=raw.get("markdown") or "")
    if raw is not None and (hasattr(raw, "html") or hasattr(raw, "markdown")):
        return RenderedPage(
            html=getattr(raw, "html", None) or "",
            markdown=getattr(raw, "markdown", None) or "",
        )
    raise FetchError(f"unrecognized scrape response: {type(raw).__name__}")


class ContentTransport(ABC):
    """One way of turning a URL into rendered HTML/Markdown."""

    name = "transport"

    @abstractmethod
    def fetch_rendered(
        self,
        url: str,
        *,
        formats: Sequence[str] = DEFAULT_FORMATS,
        only_main_content: bool = True,
        wait_ms: Optional[int] = None,
    ) -> RenderedPage:
        """Return the page; raise FetchError on any failure."""


# -----------------------------------------------------------------------------
# Firecrawl transports
# -----------------------------------------------------------------------------
class FirecrawlRestTransport(ContentTransport):
    """POST /v2/scrape directly. Tolerates ';' path parameters better than the SDK."""

    name = "rest"

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str = "https://api.firecrawl.dev",
        *,
        timeout: float = 20,
        max_age_ms: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.max_age_ms = max_age_ms
        self.session = session or requests.Session()

    def fetch_rendered(self, url, *, formats=DEFAULT_FORMATS, only_main_content=True, wait_ms=None):
        if not self.api_key:
            raise FetchError("missing FIRECRAWL_API_KEY")
        body = {
            "url": url,
            "formats": list(formats),
            "onlyMainContent": only_main_content,
            "timeout": int(self.timeout * 1000),
        }
        if wait_ms:
            body["waitFor"] = wait_ms
        if self.max_age_ms is not None:
            body["maxAge"] = self.max_age_ms
        try:
            resp = self.session.post(
                f"{self.api_url}/v2/scrape",
                json=body,
                headers={"Authorization": f"Bearer {self.api_key}"},
                # portal render time + a margin for the API itself
                timeout=self.timeout + (wait_ms or 0) / 1000 + 5,
            )
        except requests.exceptions.RequestException as e:
            raise FetchError(f"request failed: {e}") from e
        if resp.status_code >= 400:
            raise FetchError(f"HTTP {resp.status_code}: {resp.text[:200]}")
        try:
            payload = resp.json()
        except ValueError as e:
            raise FetchError("invalid JSON from scrape API") from e
        return parse_scrape_response(payload)


class _FirecrawlSdkBase(ContentTransport):
    def __init__(self, api_key: Optional[str], api_url: str = "https://api.firecrawl.dev", *, timeout: float = 20) -> None:
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self._client = None

    def _make_client(self):
        raise NotImplementedError

    def client(self):
        if not self.api_key:
            raise FetchError("missing FIRECRAWL_API_KEY")
        if self._client is None:
            self._client = self._make_client()
        return self._client


class FirecrawlSdkTransport(_FirecrawlSdkBase):
    name = "sdk"

    def _make_client(self):
        from firecrawl import Firecrawl

        return Firecrawl(api_key=self.api_key, api_url=self.api_url)

    def fetch_rendered(self, url, *, formats=DEFAULT_FORMATS, only_main_content=True, wait_ms=None):
        client = self.client()
        try:
            doc = client.scrape(
                url,
                formats=list(formats),
                only_main_content=only_main_content,
                wait_for=wait_ms,
                timeout=int(self.timeout * 1000),
            )
        except Exception as e:
            raise FetchError(f"sdk scrape failed: {e}") from e
        return parse_scrape_response(doc)


class FirecrawlLegacyTransport(_FirecrawlSdkBase):
    """The older FirecrawlApp.scrape_url call path, kept as a last resort."""

    name = "legacy"

    def _make_client(self):
        from firecrawl import FirecrawlApp

        return FirecrawlApp(api_key=self.api_key, api_url=self.api_url)

    def fetch_rendered(self, url, *, formats=DEFAULT_FORMATS, only_main_content=True, wait_ms=None):
        client = self.client()
        try:
            res = client.scrape_url(
                url,
                formats=list(formats),
                only_main_content=only_main_content,
                wait_for=wait_ms or 6000,
            )
        except Exception as e:
            raise FetchError(f"legacy scrape failed: {e}") from e
        return parse_scrape_response(res)


# -----------------------------------------------------------------------------
# Plain HTTP with retries/backoff
# -----------------------------------------------------------------------------
def build_session(retries: int = 2, backoff: float = 0.25) -> requests.Session:
    session = requests.Session()
    retry = Retry(
        total=retries,
        connect=retries,
        read=retries,
        backoff_factor=backoff,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=frozenset(["GET"]),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class DirectHttpFetcher(ContentTransport):
    """Raw GET with a browser User-Agent. HTML only."""

    name = "direct"

    def __init__(
        self,
        user_agent: str,
        *,
        connect_timeout: float = 6,
        read_timeout: float = 20,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.headers = {
            "User-Agent": user_agent,
            "Accept": BROWSER_ACCEPT,
            "Accept-Language": "en-US,en;q=0.9",
        }
        self.timeout = (connect_timeout, read_timeout)
        self.session = session or build_session()

    def fetch_rendered(self, url, *, formats=DEFAULT_FORMATS, only_main_content=True, wait_ms=None):
        t0 = time.monotonic()
        try:
            resp = self.session.get(url, headers=self.headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise FetchError(f"GET failed: {e}") from e
        if resp.status_code != 200:
            raise FetchError(f"GET returned HTTP {resp.status_code}")
        logger.debug("direct GET %s: %d bytes in %.2fs", url, len(resp.text), time.monotonic() - t0)
        return RenderedPage(html=resp.text, markdown="")
