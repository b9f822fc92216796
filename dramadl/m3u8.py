"""
HLS playlist parsing.

Master manifests are read in two passes per entry: the #EXT-X-STREAM-INF
attribute line is parsed first, then the next non-comment line is consumed
as that entry's URL. Relative URLs are resolved against the playlist's own
URL, so every surfaced URL is absolute.
"""

import re
from typing import Dict, Iterable, List, Optional
from urllib.parse import urljoin

from .models import ManifestVariant

MANIFEST_MARKER = "#EXTM3U"
STREAM_INF_TAG = "#EXT-X-STREAM-INF"

# KEY=value or KEY="quoted, value"
_ATTRIBUTE_RE = re.compile(r'([A-Z0-9-]+)=("[^"]*"|[^,]*)')
_RESOLUTION_RE = re.compile(r"^(\d+)x(\d+)$")


def is_manifest(text: Optional[str]) -> bool:
    return bool(text) and MANIFEST_MARKER in text


def parse_attributes(line: str) -> Dict[str, str]:
    """Attribute list of a tag line, quotes stripped."""
    _, _, attribute_list = line.partition(":")
    return {key: value.strip('"') for key, value in _ATTRIBUTE_RE.findall(attribute_list)}


def _absolute(url: str, base_url: str) -> str:
    if url.startswith(("http://", "https://")):
        return url
    return urljoin(base_url, url)


def _variant_from_attributes(attributes: Dict[str, str], url: str) -> ManifestVariant:
    width = height = None
    resolution = _RESOLUTION_RE.match(attributes.get("RESOLUTION", ""))
    if resolution:
        width, height = int(resolution.group(1)), int(resolution.group(2))
    name = attributes.get("NAME")
    label = name or (str(height) if height else "auto")
    return ManifestVariant(label=label, url=url, width=width, height=height)


def parse_master_manifest(text: str, manifest_url: str) -> List[ManifestVariant]:
    """
    One ManifestVariant per #EXT-X-STREAM-INF entry that has a URL line.

    Consecutive tags share the next URL line. Entries with no URL line
    before end of file are dropped.
    """
    variants: List[ManifestVariant] = []
    pending: List[Dict[str, str]] = []

    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue
        if line.startswith(STREAM_INF_TAG):
            pending.append(parse_attributes(line))
            continue
        if line.startswith("#"):
            continue
        url = _absolute(line, manifest_url)
        variants.extend(_variant_from_attributes(attributes, url) for attributes in pending)
        pending = []

    return variants


def parse_segment_playlist(text: str, playlist_url: str) -> List[str]:
    """Absolute segment URLs, in playlist order."""
    return [
        _absolute(line, playlist_url)
        for line in (raw.strip() for raw in text.splitlines())
        if line and not line.startswith("#")
    ]


def select_variant(variants: List[ManifestVariant], quality: str) -> Optional[ManifestVariant]:
    """
    Variant whose label or height matches quality ("720", "720p", "auto").

    Without an exact match the last variant is returned.
    """
    if not variants:
        return None
    wanted = quality.strip()
    bare = wanted[:-1] if wanted.lower().endswith("p") and wanted[:-1].isdigit() else wanted
    for variant in variants:
        if variant.label in (wanted, bare) or (variant.height is not None and str(variant.height) == bare):
            return variant
    return variants[-1]


def sort_by_height(items: Iterable) -> List:
    """Height descending, missing heights last, original order kept on ties."""
    return sorted(items, key=lambda item: (item.height is None, -(item.height or 0)))
