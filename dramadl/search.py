"""
Video search with automatic fallback.

Strategy order (tried sequentially, no shared state):
  1. Dailymotion public API: relevance-sorted video search, clips under
     10 minutes filtered out
  2. Web search scrape: "<query> drama full episode site:dailymotion.com",
     watch links pulled out of the raw result page

The first strategy that returns at least one candidate wins. Strategy 2 is
best-effort HTML scraping and sits behind the same SearchStrategy interface
so it can be swapped without touching callers.
"""

import logging
import re
from typing import List, Optional
from urllib.parse import unquote

import httpx
from bs4 import BeautifulSoup

from . import config, platform
from .egress import EgressProxyPool, egress_pool
from .errors import SearchFailure, UpstreamUnavailable
from .fetching import build_client
from .models import SearchCandidate

logger = logging.getLogger(__name__)

QUERY_SUFFIX = " drama full episode"
MIN_TITLE_LENGTH = 3
HEADING_TAGS = ["h3", "h2"]

WEB_SEARCH_URL = "https://www.google.com/search"
# Result links are either bare or wrapped as /url?q=<target>&sa=...
_RESULT_LINK_RE = re.compile(r"(?:/url\?q=)?(https?://(?:www\.)?dailymotion\.com/video/[a-zA-Z0-9]+)")


def format_duration(seconds) -> Optional[str]:
    """Seconds -> "M:SS"; None for missing or zero durations."""
    try:
        total = int(seconds or 0)
    except (TypeError, ValueError):
        return None
    if total <= 0:
        return None
    minutes, secs = divmod(total, 60)
    return f"{minutes}:{secs:02d}"


class SearchStrategy:
    """A way of turning a query into candidates. Raises UpstreamUnavailable on failure."""

    name = "base"

    async def search(self, client: httpx.AsyncClient, query: str, limit: int) -> List[SearchCandidate]:
        raise NotImplementedError


class DailymotionApiSearch(SearchStrategy):
    name = "dailymotion api"

    async def search(self, client: httpx.AsyncClient, query: str, limit: int) -> List[SearchCandidate]:
        params = {
            "search": f"{query}{QUERY_SUFFIX}",
            "fields": "id,title,thumbnail_480_url,duration,owner.screenname,url",
            "limit": str(limit),
            "sort": "relevance",
            "longer_than": "10",
        }
        try:
            resp = await client.get(platform.SEARCH_API_URL, params=params)
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"Dailymotion API request failed: {e!r}")
        if not resp.is_success:
            raise UpstreamUnavailable(f"Dailymotion API HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError:
            raise UpstreamUnavailable("Dailymotion API returned invalid JSON")

        candidates: List[SearchCandidate] = []
        for item in data.get("list") or []:
            if not isinstance(item, dict):
                continue
            video_id = item.get("id")
            url = item.get("url") or (platform.watch_url(video_id) if video_id else None)
            if not url:
                continue
            candidates.append(SearchCandidate(
                title=str(item.get("title") or ""),
                url=str(url),
                thumbnail=item.get("thumbnail_480_url") or None,
                duration=format_duration(item.get("duration")),
                channel=item.get("owner.screenname") or None,
            ))
        return candidates[:limit]


class WebSearchScraper(SearchStrategy):
    """Site-scoped web search, parsed from the raw result page."""

    name = "web search"
    MAX_HEADING_DEPTH = 3

    async def search(self, client: httpx.AsyncClient, query: str, limit: int) -> List[SearchCandidate]:
        params = {
            "q": f"{query}{QUERY_SUFFIX} site:{platform.SITE_DOMAIN}",
            "num": str(limit + 5),
        }
        try:
            resp = await client.get(WEB_SEARCH_URL, params=params)
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"Web search request failed: {e!r}")
        if not resp.is_success:
            raise UpstreamUnavailable(f"Web search HTTP {resp.status_code}")
        return self.parse_results(resp.text, limit)

    def _heading_near(self, anchor) -> Optional[str]:
        """Heading inside the link, else one wrapping it or within a few enclosing blocks."""
        heading = anchor.find(HEADING_TAGS)
        if heading is None:
            for depth, parent in enumerate(anchor.parents):
                if depth >= self.MAX_HEADING_DEPTH or parent.name in ("body", "[document]"):
                    break
                if parent.name in HEADING_TAGS:
                    heading = parent
                    break
                heading = parent.find(HEADING_TAGS)
                if heading is not None:
                    break
        return heading.get_text(" ", strip=True) if heading is not None else None

    def parse_results(self, html: str, limit: int) -> List[SearchCandidate]:
        soup = BeautifulSoup(html, "html.parser")
        seen = set()
        results: List[SearchCandidate] = []

        for anchor in soup.find_all("a", href=True):
            match = _RESULT_LINK_RE.search(unquote(anchor["href"]))
            if not match:
                continue
            url = match.group(1)
            if url in seen:
                continue
            seen.add(url)

            title = self._heading_near(anchor) or url
            if len(title) < MIN_TITLE_LENGTH:
                continue
            results.append(SearchCandidate(title=title, url=url))
            if len(results) >= limit:
                break

        return results


class VideoSearcher:
    """Runs search strategies in order until one returns candidates."""

    def __init__(
        self,
        strategies: Optional[List[SearchStrategy]] = None,
        limit: int = config.SEARCH_RESULT_LIMIT,
        timeout: float = config.SEARCH_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        egress: EgressProxyPool = egress_pool,
    ):
        self.strategies = strategies if strategies is not None else [DailymotionApiSearch(), WebSearchScraper()]
        self.limit = limit
        self.timeout = timeout
        self.transport = transport
        self.egress = egress

    async def search(self, query: str) -> List[SearchCandidate]:
        """
        Ranked candidates for query.

        Returns an empty list when the last strategy answered with nothing.
        Raises SearchFailure when the last strategy failed outright.
        """
        query = query.strip()
        total = len(self.strategies)
        logger.info(f"🔍 Search: {query!r} ({total} strategies)")
        errors: List[str] = []
        last_failed = True

        async with build_client(self.timeout, self.egress.pick(), self.transport) as client:
            for idx, strategy in enumerate(self.strategies, 1):
                try:
                    results = await strategy.search(client, query, self.limit)
                except UpstreamUnavailable as e:
                    logger.warning(f"⚠️ Search strategy {idx}/{total} ({strategy.name}) failed: {e.message}")
                    errors.append(f"[{strategy.name}]: {e.message}")
                    last_failed = True
                    continue

                if results:
                    logger.info(f"✅ Search strategy {idx}/{total} ({strategy.name}): {len(results)} results")
                    return results
                logger.info(f"ℹ️ Search strategy {idx}/{total} ({strategy.name}) returned no results")
                last_failed = False

        # the last strategy decides between "nothing found" and "search broken"
        if not last_failed:
            return []
        logger.error(f"❌ All {total} search strategies failed for {query!r}: {errors}")
        raise SearchFailure()
