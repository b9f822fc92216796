"""
Fetch references <-> /download query parameters.

Cross-stage context travels in the download URL instead of server-side state:
  id       video identifier
  u        base64url variant playlist URL (pre-resolved fast path)
  m        base64url master manifest URL
  t        base64url title
  q        quality (variant NAME, height, or "auto"); "quality" is accepted as an alias
"""

import base64
import binascii
import logging
from typing import Dict, Mapping, Optional
from urllib.parse import urlencode

from .errors import InvalidReference
from .models import DirectReference, FetchReference, IdentifierReference

logger = logging.getLogger(__name__)

DOWNLOAD_PATH = "/download"


def b64url_encode(value: str) -> str:
    return base64.urlsafe_b64encode(value.encode("utf-8")).decode("ascii").rstrip("=")


def b64url_decode(value: str) -> str:
    padded = value + "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")


def _decode_param(params: Mapping[str, str], key: str) -> Optional[str]:
    raw = params.get(key)
    if not raw:
        return None
    try:
        return b64url_decode(raw) or None
    except (binascii.Error, UnicodeError, ValueError) as e:
        logger.warning(f"⚠️ Ignoring undecodable '{key}' parameter: {e}")
        return None


def to_query_params(reference: FetchReference) -> Dict[str, str]:
    params: Dict[str, str] = {}
    if isinstance(reference, IdentifierReference):
        params["id"] = reference.video_id
        if reference.variant_url:
            params["u"] = b64url_encode(reference.variant_url)
        if reference.manifest_url:
            params["m"] = b64url_encode(reference.manifest_url)
    else:
        params["u"] = b64url_encode(reference.variant_url)
    if reference.title:
        params["t"] = b64url_encode(reference.title)
    params["q"] = reference.quality
    return params


def download_url(reference: FetchReference) -> str:
    return f"{DOWNLOAD_PATH}?{urlencode(to_query_params(reference))}"


def from_query_params(params: Mapping[str, str]) -> FetchReference:
    """
    Rebuild a fetch reference from download query parameters.

    Raises InvalidReference when neither a video id nor a decodable variant
    URL is present.
    """
    quality = (params.get("q") or params.get("quality") or "auto").strip() or "auto"
    title = _decode_param(params, "t")
    variant_url = _decode_param(params, "u")
    video_id = (params.get("id") or "").strip()

    if video_id:
        return IdentifierReference(
            video_id=video_id,
            quality=quality,
            variant_url=variant_url,
            manifest_url=_decode_param(params, "m"),
            title=title,
        )
    if variant_url:
        return DirectReference(variant_url=variant_url, quality=quality, title=title)
    raise InvalidReference("Missing video id or variant URL")
