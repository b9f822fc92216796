"""
Egress proxy pool.

The platform CDN answers differently depending on the calling IP, so the
service can route upstream traffic through a pool of proxies. Sources:
  1. EGRESS_PROXY_LIST_URL: pre-authenticated list download, one
     ip:port:username:password per line
  2. EGRESS_PROXIES: comma-separated proxy URLs

One proxy is picked per pipeline invocation and used for every request of
that invocation. The next request from the client may land on another one.

Usage:
    from .egress import egress_pool

    proxy_url = egress_pool.pick()
    # -> "http://user:pass@ip:port" or None
"""

import asyncio
import logging
import random
from typing import List, Optional

import httpx

from . import config

# Keep the in-memory list small; a few hundred entries is plenty of rotation.
_MAX_PROXIES_IN_MEMORY = 1_000

logger = logging.getLogger(__name__)


class EgressProxyPool:
    """Holds proxy URLs and hands out a random one per invocation."""

    def __init__(
        self,
        static_proxies: Optional[List[str]] = None,
        list_url: Optional[str] = None,
    ) -> None:
        self._static: List[str] = list(config.EGRESS_PROXIES if static_proxies is None else static_proxies)
        self._list_url: Optional[str] = config.EGRESS_PROXY_LIST_URL if list_url is None else list_url
        self._proxies: List[str] = list(self._static)

    def __len__(self) -> int:
        return len(self._proxies)

    @staticmethod
    def parse_proxy_list(text: str) -> List[str]:
        """
        Parse a proxy list download.
        Each line: ip:port:username:password

        Randomly samples up to _MAX_PROXIES_IN_MEMORY lines.
        """
        lines = [l.strip() for l in text.strip().splitlines() if l.strip()]
        if len(lines) > _MAX_PROXIES_IN_MEMORY:
            lines = random.sample(lines, _MAX_PROXIES_IN_MEMORY)

        proxies: List[str] = []
        for line in lines:
            parts = line.split(":")
            if len(parts) >= 4 and all(parts[:4]):
                ip, port, username, password = parts[0], parts[1], parts[2], parts[3]
                proxies.append(f"http://{username}:{password}@{ip}:{port}")
        return proxies

    async def refresh(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        """
        Reload the pool. The list URL wins when it yields proxies; otherwise
        the static EGRESS_PROXIES entries are used. Network errors keep the
        service running on whatever static entries exist.
        """
        proxies: List[str] = []

        if self._list_url:
            try:
                async with httpx.AsyncClient(timeout=30, transport=transport) as client:
                    resp = await client.get(self._list_url)
                if resp.status_code == 200:
                    proxies = self.parse_proxy_list(resp.text)
                    if proxies:
                        logger.info(f"✅ Egress pool: loaded {len(proxies)} proxies from list URL")
                else:
                    logger.warning(f"⚠️ Egress proxy list returned HTTP {resp.status_code}")
            except httpx.HTTPError as e:
                logger.warning(f"⚠️ Egress proxy list download failed: {e}")

        if not proxies:
            proxies = list(self._static)
            if proxies:
                logger.info(f"✅ Egress pool: using {len(proxies)} static proxies")
            else:
                logger.info("ℹ️ Egress pool: no proxies configured, connecting directly")

        self._proxies = proxies

    def pick(self) -> Optional[str]:
        """A random proxy URL, or None when the pool is empty."""
        if not self._proxies:
            return None
        return random.choice(self._proxies)

    async def auto_refresh_loop(self, interval: int = config.EGRESS_REFRESH_SECONDS) -> None:
        """Background task: reload the pool every `interval` seconds."""
        while True:
            await asyncio.sleep(interval)
            logger.info("🔄 Egress pool: periodic refresh...")
            await self.refresh()


# Module-level singleton
egress_pool = EgressProxyPool()
