"""
Shared fixtures and helpers for the pipeline tests.

Upstream traffic is simulated with httpx.MockTransport: each test registers
URL handlers on a FakeUpstream and hands its transport to the component.
"""

import json
import pathlib
import sys
from typing import Callable, Dict, List, Union

import httpx
import pytest

# ─── Path setup (must happen before any package import) ──────────────────────

_ROOT = pathlib.Path(__file__).parent.parent
sys.path.insert(0, str(_ROOT))

from dramadl.config import RetryPolicy  # noqa: E402
from dramadl.egress import EgressProxyPool  # noqa: E402

# ─── Constants ───────────────────────────────────────────────────────────────

VIDEO_ID = "x8abc12"
WATCH_URL = f"https://www.dailymotion.com/video/{VIDEO_ID}"
METADATA_URL = f"https://www.dailymotion.com/player/metadata/video/{VIDEO_ID}"
MASTER_URL = "https://cdn.example.com/hls/x8abc12/manifest.m3u8?sec=token"
CDN_BASE = "https://cdn.example.com/hls/x8abc12/"

MASTER_MANIFEST = """#EXTM3U
#EXT-X-VERSION:3
#EXT-X-STREAM-INF:BANDWIDTH=500000,CODECS="avc1.42e00d,mp4a.40.2",RESOLUTION=512x288,NAME="380"
380/playlist.m3u8
#EXT-X-STREAM-INF:BANDWIDTH=2500000,CODECS="avc1.64001f,mp4a.40.2",RESOLUTION=1280x720,NAME="720"
https://cdn2.example.com/hls/x8abc12/720/playlist.m3u8
#EXT-X-STREAM-INF:BANDWIDTH=1200000,RESOLUTION=848x480,NAME="480"
480/playlist.m3u8
"""


def segment_playlist(count: int, prefix: str = "seg") -> str:
    lines = ["#EXTM3U", "#EXT-X-TARGETDURATION:10"]
    for i in range(count):
        lines.append("#EXTINF:10.0,")
        lines.append(f"{prefix}{i}.ts")
    lines.append("#EXT-X-ENDLIST")
    return "\n".join(lines) + "\n"


def metadata_payload(**overrides) -> dict:
    payload = {
        "title": "Vincenzo Episode 1",
        "duration": 4210,
        "thumbnails": {"720": "https://img.example.com/720.jpg", "480": "https://img.example.com/480.jpg"},
        "qualities": {"auto": [{"type": "application/x-mpegURL", "url": MASTER_URL}]},
    }
    payload.update(overrides)
    return payload


# ─── Fake upstream ───────────────────────────────────────────────────────────

Responder = Union[httpx.Response, Callable[[httpx.Request], httpx.Response], Exception]


class FakeUpstream:
    """URL -> response registry behind an httpx.MockTransport, recording every request."""

    def __init__(self) -> None:
        self.routes: Dict[str, List[Responder]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, url: str, *responses: Responder) -> None:
        """Register responses for url; the last one repeats once the others are used."""
        self.routes[url] = list(responses)

    def add_json(self, url: str, payload, status: int = 200) -> None:
        self.add(url, httpx.Response(status, content=json.dumps(payload).encode(),
                                     headers={"Content-Type": "application/json"}))

    def add_text(self, url: str, text: str, status: int = 200) -> None:
        self.add(url, httpx.Response(status, text=text))

    def hits(self, url_prefix: str) -> int:
        return sum(1 for r in self.requests if str(r.url).startswith(url_prefix))

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        key = url if url in self.routes else url.split("?")[0]
        if key not in self.routes:
            # prefix routes registered with a trailing "*"
            key = next((k for k in self.routes if k.endswith("*") and url.startswith(k[:-1])), None)
        if key is None:
            return httpx.Response(404, text=f"no route for {url}")

        queue = self.routes[key]
        responder = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(responder, Exception):
            raise responder
        if callable(responder):
            return responder(request)
        return httpx.Response(responder.status_code, headers=responder.headers, content=responder.content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)


def connect_error(message: str = "connection refused") -> httpx.ConnectError:
    return httpx.ConnectError(message)


# ─── Fixtures ────────────────────────────────────────────────────────────────

@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def policy():
    """Default attempt caps without the backoff sleeps."""
    return RetryPolicy(metadata_attempts=2, master_attempts=5, variant_attempts=3, backoff_seconds=0)


@pytest.fixture
def no_egress():
    return EgressProxyPool(static_proxies=[], list_url="")
