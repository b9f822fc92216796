"""
Pydantic models for pipeline data and response schemas
"""

from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field


class ErrorCode(str, Enum):
    """Error code classifications"""
    INVALID_REFERENCE = "INVALID_REFERENCE"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    SEARCH_FAILED = "SEARCH_FAILED"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    NO_SEGMENTS = "NO_SEGMENTS"
    MISSING_PARAMETER = "MISSING_PARAMETER"
    SERVER_ERROR = "SERVER_ERROR"


class SearchCandidate(BaseModel):
    """One search hit pointing at a platform watch page"""
    model_config = ConfigDict(frozen=True)

    title: str
    url: str = Field(..., description="Canonical watch-page URL")
    thumbnail: Optional[str] = None
    duration: Optional[str] = Field(None, description="Duration label, M:SS")
    channel: Optional[str] = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SearchCandidate):
            return NotImplemented
        return self.url == other.url

    def __hash__(self) -> int:
        return hash(self.url)


class VideoMetadata(BaseModel):
    """Platform metadata for one video"""
    model_config = ConfigDict(frozen=True)

    title: str
    thumbnail: Optional[str] = None
    duration_seconds: Optional[int] = None
    master_manifest_url: Optional[str] = None


class ManifestVariant(BaseModel):
    """One #EXT-X-STREAM-INF entry of a master manifest (url is always absolute)"""
    label: str
    url: str
    width: Optional[int] = None
    height: Optional[int] = None


# ============================================================================
# FETCH REFERENCES
# ============================================================================


class DirectReference(BaseModel):
    """A ready-made variant playlist URL, nothing else to re-derive from"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["direct"] = "direct"
    variant_url: str
    quality: str = "auto"
    title: Optional[str] = None


class IdentifierReference(BaseModel):
    """
    Video id + quality, optionally with pre-resolved URLs.

    The streamer re-derives the segment list from video_id first; variant_url
    and manifest_url are only used when that chain fails.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["identifier"] = "identifier"
    video_id: str
    quality: str = "auto"
    variant_url: Optional[str] = None
    manifest_url: Optional[str] = None
    title: Optional[str] = None


FetchReference = Annotated[
    Union[DirectReference, IdentifierReference],
    Field(discriminator="kind"),
]


class Rendition(BaseModel):
    """One downloadable quality of a video"""
    quality: str = Field(..., description="Quality label, e.g. 720p or auto")
    width: Optional[int] = None
    height: Optional[int] = None
    reference: FetchReference = Field(..., exclude=True)

    @computed_field
    @property
    def url(self) -> str:
        """Download endpoint URL carrying the encoded fetch reference"""
        from .references import download_url

        return download_url(self.reference)


# ============================================================================
# RESPONSES
# ============================================================================


class VideoInfoResponse(BaseModel):
    """Response schema for /video"""
    model_config = ConfigDict(populate_by_name=True)

    title: str
    thumbnail: Optional[str] = None
    duration: Optional[int] = None
    streams: List[Rendition]
    master_manifest_url: Optional[str] = Field(None, alias="masterManifestUrl")
    video_id: str = Field(..., alias="videoId")


class ErrorResponse(BaseModel):
    """Error body for every non-2xx pipeline response"""
    error: str
    code: ErrorCode
    tip: Optional[str] = None
    is_transient: bool = Field(False, description="True if retry might succeed, False if permanent")


class HealthResponse(BaseModel):
    """Response schema for /health"""
    status: str
    version: str
    uptime_seconds: float
    egress_proxies: int
