"""
Video info extraction.

Turns a watch URL into metadata plus every downloadable rendition:
  1. video id from the URL (InvalidReference if absent)
  2. player metadata (title, thumbnails, duration, "auto" master manifest)
  3. master manifest variants: one rendition per #EXT-X-STREAM-INF entry,
     each reference carrying the resolved variant URL and the video id
  4. fallback: stream_formats quality keys from the metadata
  5. last resort: a single "auto" rendition
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from . import config, platform
from .config import RetryPolicy
from .egress import EgressProxyPool, egress_pool
from .errors import ExtractionFailure, InvalidReference
from .fetching import build_client, fetch_with_retry
from .m3u8 import is_manifest, parse_master_manifest, sort_by_height
from .models import IdentifierReference, ManifestVariant, Rendition, VideoMetadata

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    video_id: str
    metadata: VideoMetadata
    renditions: List[Rendition]


def metadata_from_payload(meta: Dict[str, Any]) -> VideoMetadata:
    duration = meta.get("duration")
    return VideoMetadata(
        title=meta.get("title") or "Unknown",
        thumbnail=platform.pick_thumbnail(meta),
        duration_seconds=int(duration) if isinstance(duration, (int, float)) and duration else None,
        master_manifest_url=platform.master_manifest_url(meta),
    )


def stream_format_keys(meta: Dict[str, Any]) -> List[str]:
    """Numeric quality keys of stream_formats (mapping or list), highest first."""
    formats = meta.get("stream_formats")
    if isinstance(formats, dict):
        keys = list(formats.keys())
    elif isinstance(formats, list):
        keys = [str(k) for k in formats]
    else:
        keys = []
    numeric = [k for k in keys if isinstance(k, str) and k.isdigit()]
    return sorted(numeric, key=int, reverse=True)


class VideoExtractor:
    """Fetches metadata and manifests for one video per call."""

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        timeout: float = config.EXTRACT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        egress: EgressProxyPool = egress_pool,
    ):
        self.policy = policy or config.DEFAULT_RETRY_POLICY
        self.timeout = timeout
        self.transport = transport
        self.egress = egress

    async def fetch_metadata(self, client: httpx.AsyncClient, video_id: str) -> Dict[str, Any]:
        """Raw player metadata payload; ExtractionFailure on any upstream problem."""
        resp = await fetch_with_retry(
            client,
            platform.METADATA_URL.format(video_id=video_id),
            attempts=self.policy.metadata_attempts,
            backoff_seconds=self.policy.backoff_seconds,
            headers=platform.referer_headers(video_id),
        )
        if resp is None:
            raise ExtractionFailure("Metadata fetch failed")
        try:
            meta = resp.json()
        except ValueError:
            raise ExtractionFailure("Metadata response was not JSON")
        if not isinstance(meta, dict):
            raise ExtractionFailure("Metadata response had an unexpected shape")

        error = meta.get("error")
        if error:
            message = (error.get("title") or error.get("message")) if isinstance(error, dict) else str(error)
            raise ExtractionFailure(f"Video unavailable: {message or 'unknown reason'}", tip=None)
        return meta

    async def fetch_variants(
        self, client: httpx.AsyncClient, video_id: str, manifest_url: str
    ) -> List[ManifestVariant]:
        """Variants of the master manifest, or [] when it cannot be fetched."""
        resp = await fetch_with_retry(
            client,
            manifest_url,
            attempts=self.policy.master_attempts,
            backoff_seconds=self.policy.backoff_seconds,
            headers=platform.referer_headers(video_id),
        )
        if resp is None:
            return []
        if not is_manifest(resp.text):
            logger.warning(f"⚠️ Master manifest for {video_id} is not an HLS playlist")
            return []
        return parse_master_manifest(resp.text, str(resp.url))

    async def extract(self, url: str) -> ExtractionResult:
        """Metadata and renditions for a watch URL, sorted by height descending."""
        video_id = platform.extract_video_id(url)
        if not video_id:
            raise InvalidReference("Invalid Dailymotion URL")

        logger.info(f"🎬 Extracting {video_id}")
        async with build_client(self.timeout, self.egress.pick(), self.transport) as client:
            meta = await self.fetch_metadata(client, video_id)
            metadata = metadata_from_payload(meta)

            variants: List[ManifestVariant] = []
            if metadata.master_manifest_url:
                variants = await self.fetch_variants(client, video_id, metadata.master_manifest_url)

        renditions = [
            Rendition(
                quality=platform.quality_label(v.label),
                width=v.width,
                height=v.height,
                reference=IdentifierReference(
                    video_id=video_id,
                    quality=v.label,
                    variant_url=v.url,
                    title=metadata.title,
                ),
            )
            for v in variants
        ]

        if not renditions:
            keys = stream_format_keys(meta)
            if keys:
                logger.info(f"ℹ️ No manifest variants for {video_id}, using {len(keys)} stream_formats")
            for key in keys:
                label, width, height = platform.quality_info(key)
                renditions.append(Rendition(
                    quality=label,
                    width=width,
                    height=height,
                    reference=IdentifierReference(
                        video_id=video_id,
                        quality=key,
                        manifest_url=metadata.master_manifest_url,
                        title=metadata.title,
                    ),
                ))

        if not renditions:
            logger.info(f"ℹ️ No quality information for {video_id}, offering 'auto' only")
            renditions.append(Rendition(
                quality="auto",
                reference=IdentifierReference(video_id=video_id, quality="auto", title=metadata.title),
            ))

        renditions = sort_by_height(renditions)
        logger.info(f"✅ Extracted {video_id}: {metadata.title!r} ({len(renditions)} renditions)")
        return ExtractionResult(video_id=video_id, metadata=metadata, renditions=renditions)
