"""
Outbound HTTP helpers shared by the pipeline stages.
"""

import asyncio
import logging
from typing import Dict, Optional

import httpx

from . import config

logger = logging.getLogger(__name__)


def build_client(
    timeout: float,
    proxy: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """One client per pipeline invocation; all its requests share one egress path."""
    kwargs = {
        "timeout": httpx.Timeout(timeout),
        "follow_redirects": True,
        "headers": config.browser_headers(),
    }
    if transport is not None:
        kwargs["transport"] = transport
    elif proxy:
        kwargs["proxy"] = proxy
    return httpx.AsyncClient(**kwargs)


def _short(url: str) -> str:
    return url[:80]


async def fetch_with_retry(
    client: httpx.AsyncClient,
    url: str,
    attempts: int,
    backoff_seconds: float = 1.0,
    headers: Optional[Dict[str, str]] = None,
) -> Optional[httpx.Response]:
    """
    GET url until a 2xx arrives, at most `attempts` times.

    Sleeps backoff_seconds * attempt between tries. Returns None once the
    attempts are exhausted; transport errors are logged, not raised.
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            resp = await client.get(url, headers=headers)
            if resp.is_success:
                return resp
            logger.warning(f"⚠️ Fetch {attempt}/{attempts} {_short(url)}: HTTP {resp.status_code}")
        except httpx.HTTPError as e:
            logger.warning(f"⚠️ Fetch {attempt}/{attempts} {_short(url)}: {e!r}")
        if attempt < attempts and backoff_seconds > 0:
            await asyncio.sleep(backoff_seconds * attempt)
    logger.error(f"❌ Giving up on {_short(url)} after {attempts} attempts")
    return None
