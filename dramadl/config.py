"""
Runtime configuration read from environment variables.

Retry counts, backoff and the spoofed browser headers are tuned against the
platform CDN's behaviour toward non-browser origins. They are policy, not
constants: override them through the environment when the upstream changes.
"""

import os
from dataclasses import dataclass
from typing import Dict

# Service
VERSION = "1.0.0"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")

# Timeouts (seconds)
SEARCH_TIMEOUT_SECONDS = float(os.getenv("SEARCH_TIMEOUT_SECONDS", "15"))
EXTRACT_TIMEOUT_SECONDS = float(os.getenv("EXTRACT_TIMEOUT_SECONDS", "30"))
SEGMENT_TIMEOUT_SECONDS = float(os.getenv("SEGMENT_TIMEOUT_SECONDS", "30"))
# Hard ceiling for one download response (hosting platform request limit)
STREAM_MAX_SECONDS = float(os.getenv("STREAM_MAX_SECONDS", "300"))

SEARCH_RESULT_LIMIT = int(os.getenv("SEARCH_RESULT_LIMIT", "12"))

# Upstream request fingerprint
USER_AGENT = os.getenv(
    "UPSTREAM_USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36",
)
ACCEPT_LANGUAGE = os.getenv("UPSTREAM_ACCEPT_LANGUAGE", "en-US,en;q=0.9")

# Egress proxies
EGRESS_PROXIES = [p.strip() for p in os.getenv("EGRESS_PROXIES", "").split(",") if p.strip()]
EGRESS_PROXY_LIST_URL = os.getenv("EGRESS_PROXY_LIST_URL")
EGRESS_REFRESH_SECONDS = int(os.getenv("EGRESS_REFRESH_SECONDS", "3600"))


def browser_headers() -> Dict[str, str]:
    """Headers sent on every upstream request."""
    return {
        "User-Agent": USER_AGENT,
        "Accept-Language": ACCEPT_LANGUAGE,
    }


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt caps per fetch kind, with linear backoff between tries."""

    metadata_attempts: int = 2
    master_attempts: int = 5
    variant_attempts: int = 3
    backoff_seconds: float = 1.0

    @classmethod
    def from_env(cls) -> "RetryPolicy":
        return cls(
            metadata_attempts=int(os.getenv("METADATA_ATTEMPTS", "2")),
            master_attempts=int(os.getenv("MASTER_MANIFEST_ATTEMPTS", "5")),
            variant_attempts=int(os.getenv("VARIANT_PLAYLIST_ATTEMPTS", "3")),
            backoff_seconds=float(os.getenv("RETRY_BACKOFF_SECONDS", "1.0")),
        )


DEFAULT_RETRY_POLICY = RetryPolicy.from_env()
