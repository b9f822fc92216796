"""
Dailymotion specifics: URL patterns, endpoints and quality table.
"""

import re
from typing import Any, Dict, Optional

WATCH_URL_BASE = "https://www.dailymotion.com/video/"
METADATA_URL = "https://www.dailymotion.com/player/metadata/video/{video_id}"
SEARCH_API_URL = "https://api.dailymotion.com/videos"
SITE_DOMAIN = "dailymotion.com"

WATCH_URL_RE = re.compile(r"(?:https?://)?(?:www\.)?dailymotion\.com/video/([a-zA-Z0-9]+)", re.IGNORECASE)
SHORT_URL_RE = re.compile(r"(?:https?://)?dai\.ly/([a-zA-Z0-9]+)", re.IGNORECASE)

# stream_formats key -> (label, width, height)
QUALITY_MAP = {
    "380": ("380p", 512, 288),
    "480": ("480p", 848, 480),
    "720": ("720p", 1280, 720),
    "1080": ("1080p", 1920, 1080),
}

_UNSAFE_TITLE_CHARS = re.compile(r"[^A-Za-z0-9_\s-]")
MAX_TITLE_LENGTH = 60
MAX_LABEL_LENGTH = 20


def watch_url(video_id: str) -> str:
    return f"{WATCH_URL_BASE}{video_id}"


def extract_video_id(url: str) -> Optional[str]:
    """Video id from a watch URL, or None."""
    match = WATCH_URL_RE.search(url or "")
    return match.group(1) if match else None


def normalize_watch_url(text: str) -> Optional[str]:
    """
    Canonical watch URL if text is a watch URL or short link, else None.

    Used by callers to skip search when the user pasted a link.
    """
    for pattern in (WATCH_URL_RE, SHORT_URL_RE):
        match = pattern.search(text or "")
        if match:
            return watch_url(match.group(1))
    return None


def referer_headers(video_id: str) -> Dict[str, str]:
    return {"Referer": watch_url(video_id)}


def pick_thumbnail(meta: Dict[str, Any]) -> Optional[str]:
    """Largest thumbnail advertised by the metadata payload."""
    thumbnails = meta.get("thumbnails")
    posters = meta.get("posters")
    if not isinstance(thumbnails, dict):
        thumbnails = {}
    if not isinstance(posters, dict):
        posters = {}
    return (
        thumbnails.get("720")
        or thumbnails.get("480")
        or thumbnails.get("240")
        or posters.get("720")
        or posters.get("480")
        or meta.get("thumbnail_url")
        or None
    )


def master_manifest_url(meta: Dict[str, Any]) -> Optional[str]:
    """URL of the "auto" HLS master manifest, if the metadata lists one."""
    qualities = meta.get("qualities")
    if not isinstance(qualities, dict):
        return None
    auto = qualities.get("auto")
    if isinstance(auto, list) and auto and isinstance(auto[0], dict):
        return auto[0].get("url") or None
    return None


def quality_info(key: str):
    """(label, width, height) for a numeric stream_formats key."""
    if key in QUALITY_MAP:
        return QUALITY_MAP[key]
    return f"{key}p", None, int(key)


def quality_label(name: str) -> str:
    """'720' -> '720p'; non-numeric names such as 'auto' pass through."""
    return f"{name}p" if name.isdigit() else name


def safe_title(title: Optional[str], default: str = "video") -> str:
    """Filename-safe ASCII title."""
    cleaned = _UNSAFE_TITLE_CHARS.sub("", title or "")
    cleaned = " ".join(cleaned.split())[:MAX_TITLE_LENGTH].strip()
    return cleaned or default


def safe_label(label: Optional[str], default: str = "auto") -> str:
    """Filename-safe quality label; caller-supplied labels are free text."""
    cleaned = _UNSAFE_TITLE_CHARS.sub("", label or "")
    cleaned = " ".join(cleaned.split())[:MAX_LABEL_LENGTH].strip()
    return cleaned or default
