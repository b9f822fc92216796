"""
Segment streaming.

A download is a small state machine:

    RESOLVING -> SEGMENTS_KNOWN -> STREAMING -> DONE
        |                              `-> CANCELLED
        `-> FAILED

Resolution strategies (tried in order until one yields segments):
  A. Full chain by video id: metadata -> master manifest -> variant
     playlist -> segments, every request from this session's egress path.
     CDN director responses are keyed to the caller's origin, so URLs
     resolved here are the ones most likely to be fetchable here.
  B. Pre-resolved variant playlist URL from the fetch reference
     (then, if the reference only knows the master manifest, that manifest)

Segments are then fetched strictly in order and forwarded chunk by chunk.
A segment that fails is logged and skipped; the transfer continues. The
wall-clock ceiling runs from the moment the session is opened, so slow
resolution eats into the streaming budget.
"""

import logging
import time
from enum import Enum
from typing import AsyncIterator, List, Optional
from urllib.parse import quote

import httpx

from . import config, platform
from .config import RetryPolicy
from .egress import EgressProxyPool, egress_pool
from .errors import StreamFailure
from .fetching import build_client, fetch_with_retry
from .m3u8 import is_manifest, parse_master_manifest, parse_segment_playlist, select_variant
from .models import FetchReference, IdentifierReference

logger = logging.getLogger(__name__)

CONTENT_TYPE = "video/mp2t"
CHUNK_SIZE = 64 * 1024


class StreamState(str, Enum):
    RESOLVING = "resolving"
    SEGMENTS_KNOWN = "segments_known"
    STREAMING = "streaming"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


class StreamSession:
    """
    One download invocation. Owns its HTTP client from resolution through
    the last segment, and closes it when streaming ends or is cancelled.
    """

    def __init__(
        self,
        reference: FetchReference,
        client: httpx.AsyncClient,
        policy: RetryPolicy,
        max_seconds: float = config.STREAM_MAX_SECONDS,
        started_at: Optional[float] = None,
    ):
        self.reference = reference
        self.client = client
        self.policy = policy
        self.max_seconds = max_seconds
        self.started_at = time.monotonic() if started_at is None else started_at
        self.state = StreamState.RESOLVING
        self.segments: List[str] = []
        self.resolved_title: Optional[str] = None
        self.segments_sent = 0
        self.segments_skipped = 0
        self.segments_truncated = 0
        self.bytes_sent = 0

    # =========================================================================
    # RESOLUTION
    # =========================================================================

    async def _fetch_segments(self, playlist_url: str) -> List[str]:
        resp = await fetch_with_retry(
            self.client,
            playlist_url,
            attempts=self.policy.variant_attempts,
            backoff_seconds=self.policy.backoff_seconds,
        )
        if resp is None:
            return []
        return parse_segment_playlist(resp.text, str(resp.url))

    async def _segments_from_master(
        self, manifest_url: str, quality: str, attempts: int, video_id: Optional[str] = None
    ) -> List[str]:
        resp = await fetch_with_retry(
            self.client,
            manifest_url,
            attempts=attempts,
            backoff_seconds=self.policy.backoff_seconds,
            headers=platform.referer_headers(video_id) if video_id else None,
        )
        if resp is None or not is_manifest(resp.text):
            return []

        variant = select_variant(parse_master_manifest(resp.text, str(resp.url)), quality)
        if variant is None:
            logger.warning("⚠️ Master manifest lists no variants")
            return []
        logger.info(f"📡 Variant {variant.label} ({variant.height or '?'}p) selected for quality {quality}")
        return await self._fetch_segments(variant.url)

    async def _full_chain(self, video_id: str, quality: str) -> List[str]:
        """Strategy A: everything re-derived from the video id."""
        resp = await fetch_with_retry(
            self.client,
            platform.METADATA_URL.format(video_id=video_id),
            attempts=self.policy.metadata_attempts,
            backoff_seconds=self.policy.backoff_seconds,
            headers=platform.referer_headers(video_id),
        )
        if resp is None:
            return []
        try:
            meta = resp.json()
        except ValueError:
            logger.warning(f"⚠️ Metadata for {video_id} was not JSON")
            return []
        if not isinstance(meta, dict):
            return []

        self.resolved_title = meta.get("title") or None
        manifest_url = platform.master_manifest_url(meta)
        if not manifest_url:
            logger.warning(f"⚠️ No master manifest in metadata for {video_id}")
            return []
        return await self._segments_from_master(
            manifest_url, quality, attempts=self.policy.master_attempts, video_id=video_id
        )

    async def resolve(self) -> List[str]:
        """
        Run the strategies until one yields segments.

        Raises StreamFailure (state FAILED) when none does.
        """
        ref = self.reference
        segments: List[str] = []

        if isinstance(ref, IdentifierReference):
            logger.info(f"🎯 Strategy A: full chain for {ref.video_id} @ {ref.quality}")
            segments = await self._full_chain(ref.video_id, ref.quality)

        if not segments and ref.variant_url:
            logger.info("🎯 Strategy B: direct variant URL")
            segments = await self._fetch_segments(ref.variant_url)

        if not segments and isinstance(ref, IdentifierReference) and ref.manifest_url:
            logger.info("🎯 Strategy B: pre-resolved master manifest")
            segments = await self._segments_from_master(
                ref.manifest_url, ref.quality, attempts=self.policy.variant_attempts
            )

        if not segments:
            self.state = StreamState.FAILED
            logger.error("❌ No strategy resolved any segments")
            raise StreamFailure()

        self.segments = segments
        self.state = StreamState.SEGMENTS_KNOWN
        logger.info(f"✅ Resolved {len(segments)} segments @ {ref.quality}")
        return segments

    # =========================================================================
    # RESPONSE METADATA
    # =========================================================================

    @property
    def title(self) -> str:
        return self.reference.title or self.resolved_title or "video"

    @property
    def quality_label(self) -> str:
        return platform.safe_label(platform.quality_label(self.reference.quality))

    @property
    def filename(self) -> str:
        return f"{platform.safe_title(self.title)} {self.quality_label}.ts"

    def response_headers(self) -> dict:
        utf8_name = f"{self.title} {self.quality_label}.ts"
        return {
            "Content-Disposition": (
                f'attachment; filename="{self.filename}"; '
                f"filename*=UTF-8''{quote(utf8_name, safe='')}"
            ),
            "Cache-Control": "no-cache",
        }

    # =========================================================================
    # STREAMING
    # =========================================================================

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        """
        Concatenated segment bytes, forwarded as they arrive.

        Memory stays at roughly one chunk in flight. Failed segments are
        skipped; a segment that breaks off mid-body is counted as truncated.
        Stops early once max_seconds have passed since the session opened.
        A consumer that stops reading leaves the session CANCELLED.
        """
        if self.state != StreamState.SEGMENTS_KNOWN:
            raise RuntimeError(f"cannot stream from state {self.state.value}")

        self.state = StreamState.STREAMING
        total = len(self.segments)
        deadline = self.started_at + self.max_seconds
        logger.info(f"📤 Streaming {total} segments as {self.filename!r}")

        try:
            for idx, url in enumerate(self.segments):
                if time.monotonic() > deadline:
                    logger.warning(
                        f"⚠️ Stream ceiling of {self.max_seconds:.0f}s reached at segment {idx}/{total}; closing"
                    )
                    break
                segment_bytes = 0
                try:
                    async with self.client.stream("GET", url) as resp:
                        if not resp.is_success:
                            logger.error(f"❌ Segment {idx} failed: HTTP {resp.status_code}")
                            self.segments_skipped += 1
                            continue
                        async for chunk in resp.aiter_bytes(CHUNK_SIZE):
                            segment_bytes += len(chunk)
                            self.bytes_sent += len(chunk)
                            yield chunk
                    self.segments_sent += 1
                except httpx.HTTPError as e:
                    if segment_bytes:
                        logger.error(f"❌ Segment {idx} truncated after {segment_bytes} bytes: {e!r}")
                        self.segments_truncated += 1
                    else:
                        logger.error(f"❌ Segment {idx} error: {e!r}")
                        self.segments_skipped += 1
            self.state = StreamState.DONE
            logger.info(
                f"✅ Stream done: {self.segments_sent}/{total} segments, "
                f"{self.bytes_sent / 1024 / 1024:.1f} MB, {self.segments_skipped} skipped, "
                f"{self.segments_truncated} truncated"
            )
        finally:
            if self.state == StreamState.STREAMING:
                self.state = StreamState.CANCELLED
                logger.warning(
                    f"⚠️ Stream cancelled after {self.segments_sent}/{total} segments, "
                    f"{self.bytes_sent / 1024 / 1024:.1f} MB"
                )
            await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()


class SegmentStreamer:
    """Opens resolved stream sessions for fetch references."""

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        timeout: float = config.SEGMENT_TIMEOUT_SECONDS,
        max_seconds: float = config.STREAM_MAX_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        egress: EgressProxyPool = egress_pool,
    ):
        self.policy = policy or config.DEFAULT_RETRY_POLICY
        self.timeout = timeout
        self.max_seconds = max_seconds
        self.transport = transport
        self.egress = egress

    async def open(self, reference: FetchReference) -> StreamSession:
        """
        A session whose segments are already resolved.

        Raises StreamFailure when no strategy yields segments; the session's
        client is closed in that case.
        """
        started_at = time.monotonic()
        client = build_client(self.timeout, self.egress.pick(), self.transport)
        session = StreamSession(reference, client, self.policy, self.max_seconds, started_at=started_at)
        try:
            await session.resolve()
        except BaseException:
            await session.aclose()
            raise
        return session
