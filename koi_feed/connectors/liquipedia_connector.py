"""Liquipedia MediaWiki API connector.

Fetches rendered page HTML through the MediaWiki `action=parse` endpoint of
each game wiki. Liquipedia has no stable data contract for these pages, so
this layer only moves HTML; parsing lives in the scraper modules.

Must comply with Liquipedia API terms:
- Include proper User-Agent with contact information
- Respect rate limits (one shared gate per wiki host)
- Provide attribution when displaying data

Failure policy: a 429 gets exactly one retry after a fixed delay. Any other
non-2xx, a timeout, or a network error returns None ("no data"); nothing
raises past this boundary.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from koi_feed.connectors.errors import RateLimitedError
from koi_feed.connectors.rate_limit import RateLimiter

logger = logging.getLogger(__name__)


def host_class(wiki: str) -> str:
    return f"liquipedia:{wiki}"


class LiquipediaConnector:
    """Connector for Liquipedia MediaWiki parse API."""

    WIKI_URLS = {
        "tft": "https://liquipedia.net/tft/api.php",
        "pokemon": "https://liquipedia.net/pokemon/api.php",
        "callofduty": "https://liquipedia.net/callofduty/api.php",
    }

    def __init__(
        self,
        user_agent: str = "MovistarKOI-App/1.0 (esports fan app; contact@movistar-koi-app.dev)",
        timeout: float = 15.0,
        retry_delay: float = 10.0,
        rate_limiter: Optional[RateLimiter] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the Liquipedia connector.

        Args:
            user_agent: User agent string with contact info (REQUIRED by Liquipedia)
            timeout: HTTP request timeout in seconds
            retry_delay: Fixed wait before the single retry after a 429
            rate_limiter: Shared gate; every request waits on it first
            client: Optional pre-built client (tests inject a mock transport)
        """
        self.user_agent = user_agent
        self.timeout = timeout
        self.retry_delay = retry_delay
        self.rate_limiter = rate_limiter or RateLimiter(min_interval=2.0)
        self._client = client
        self._sleep = sleep

    def _client_instance(self) -> httpx.AsyncClient:
        """Get or create HTTP client instance."""
        if self._client is None:
            headers = {
                "User-Agent": self.user_agent,
                "Accept": "application/json",
            }
            self._client = httpx.AsyncClient(timeout=self.timeout, headers=headers)
        return self._client

    def api_url(self, wiki: str) -> str:
        if wiki not in self.WIKI_URLS:
            raise ValueError(f"Unsupported wiki: {wiki}. Supported: {list(self.WIKI_URLS.keys())}")
        return self.WIKI_URLS[wiki]

    async def _request_once(self, wiki: str, url: str, params: Dict[str, Any]) -> str:
        await self.rate_limiter.acquire(host_class(wiki))
        resp = await self._client_instance().get(url, params=params, timeout=self.timeout)
        if resp.status_code == 429:
            raise RateLimitedError()
        resp.raise_for_status()
        data = resp.json()
        return ((data or {}).get("parse") or {}).get("text", {}).get("*") or ""

    async def fetch_page_html(self, wiki: str, page: str) -> Optional[str]:
        """Fetch a parsed page's HTML.

        Args:
            wiki: Wiki key (tft, pokemon, callofduty)
            page: Page title or slug, e.g. "KOI" or "Call_of_Duty_League/2026"

        Returns:
            Page HTML, or None when the page could not be fetched
        """
        url = self.api_url(wiki)
        params = {"action": "parse", "page": page, "prop": "text", "format": "json"}

        try:
            try:
                html = await self._request_once(wiki, url, params)
            except RateLimitedError:
                logger.warning("Liquipedia rate limited (429) on %s/%s, retrying in %ss", wiki, page, self.retry_delay)
                await self._sleep(self.retry_delay)
                html = await self._request_once(wiki, url, params)
        except RateLimitedError:
            logger.warning("Liquipedia still rate limited on %s/%s, giving up", wiki, page)
            return None
        except httpx.TimeoutException:
            logger.warning("Liquipedia request timed out: %s/%s", wiki, page)
            return None
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Liquipedia fetch failed for %s/%s: %s", wiki, page, exc)
            return None

        return html or None

    async def close(self):
        """Close the HTTP client connection."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
