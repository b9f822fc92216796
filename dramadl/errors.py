"""
Pipeline error taxonomy.

Each error knows the HTTP status and ErrorCode it is surfaced with, so the
API layer renders every failure through one handler.
"""

from typing import Optional

from .models import ErrorCode, ErrorResponse

RETRY_TIP = "Try again: each attempt may get a different server route."


class PipelineError(Exception):
    """Base class for failures surfaced to the caller."""

    code = ErrorCode.SERVER_ERROR
    status_code = 500
    is_transient = True

    def __init__(self, message: str, tip: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.tip = tip

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            error=self.message,
            code=self.code,
            tip=self.tip,
            is_transient=self.is_transient,
        )


class InvalidReference(PipelineError):
    """Input URL or reference cannot be parsed. Never retried."""

    code = ErrorCode.INVALID_REFERENCE
    status_code = 400
    is_transient = False


class UpstreamUnavailable(PipelineError):
    """Transport error or non-success status from the source platform."""

    code = ErrorCode.UPSTREAM_UNAVAILABLE
    status_code = 502


class SearchFailure(PipelineError):
    """Every search strategy failed. Distinct from a zero-result search."""

    code = ErrorCode.SEARCH_FAILED
    status_code = 502

    def __init__(self, message: str = "Search failed. Please try again.", tip: Optional[str] = RETRY_TIP):
        super().__init__(message, tip)


class ExtractionFailure(PipelineError):
    code = ErrorCode.EXTRACTION_FAILED
    status_code = 502


class StreamFailure(PipelineError):
    """No strategy produced a segment list."""

    code = ErrorCode.NO_SEGMENTS
    status_code = 502

    def __init__(
        self,
        message: str = "Could not resolve video stream. The CDN may be blocking this request.",
        tip: Optional[str] = RETRY_TIP,
    ):
        super().__init__(message, tip)
