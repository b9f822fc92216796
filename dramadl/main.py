"""
FastAPI drama download service
Search Dailymotion, list a video's renditions, and stream one back as a .ts file
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from . import config, platform
from .egress import egress_pool
from .errors import InvalidReference, PipelineError
from .extractor import VideoExtractor
from .models import ErrorCode, ErrorResponse, HealthResponse, SearchCandidate, VideoInfoResponse
from .references import from_query_params
from .search import VideoSearcher
from .streamer import CONTENT_TYPE, SegmentStreamer

# Logging configuration
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

start_time = time.time()

# Stateless pipeline stages; every call builds its own HTTP client
searcher = VideoSearcher()
extractor = VideoExtractor()
streamer = SegmentStreamer()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for startup/shutdown tasks"""
    logger.info("🚀 Starting drama download service...")
    logger.info(f"Version: {config.VERSION}")

    await egress_pool.refresh()
    refresh_task = asyncio.create_task(egress_pool.auto_refresh_loop())

    yield

    logger.info("Shutting down drama download service...")
    refresh_task.cancel()
    try:
        await refresh_task
    except asyncio.CancelledError:
        pass


# Create FastAPI app
app = FastAPI(
    title="Drama Download Service",
    description="Search, inspect and stream Dailymotion videos as single .ts files",
    version=config.VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _missing(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(error=message, code=ErrorCode.MISSING_PARAMETER).model_dump(mode='json'),
    )


# ============================================================================
# API ENDPOINTS
# ============================================================================


@app.get("/search")
async def search_videos(q: str = ""):
    """
    Search for videos matching a free-text query

    A pasted watch URL or dai.ly short link skips search and comes back as
    a single candidate.
    """
    q = q.strip()
    if not q:
        return _missing("Missing search query")

    direct_url = platform.normalize_watch_url(q)
    if direct_url:
        logger.info(f"🔗 Direct URL, skipping search: {direct_url}")
        candidates = [SearchCandidate(title=direct_url, url=direct_url)]
    else:
        candidates = await searcher.search(q)

    return JSONResponse(content=[c.model_dump(mode='json') for c in candidates])


@app.get("/video")
async def get_video_info(url: str = ""):
    """
    Get metadata and downloadable renditions for a watch URL
    """
    if not url.strip():
        return _missing("Missing url parameter")

    result = await extractor.extract(url.strip())
    response = VideoInfoResponse(
        title=result.metadata.title,
        thumbnail=result.metadata.thumbnail,
        duration=result.metadata.duration_seconds,
        streams=result.renditions,
        master_manifest_url=result.metadata.master_manifest_url,
        video_id=result.video_id,
    )
    return JSONResponse(content=response.model_dump(mode='json', by_alias=True))


@app.get("/download")
async def download_video(request: Request):
    """
    Stream a rendition as one concatenated MPEG-TS file

    **Query:** id, u (base64url variant URL), t (base64url title),
    q or quality, m (base64url master manifest URL)
    """
    reference = from_query_params(request.query_params)
    session = await streamer.open(reference)

    logger.info(f"📥 Download: {session.filename} ({len(session.segments)} segments)")
    try:
        return StreamingResponse(
            session.iter_bytes(),
            media_type=CONTENT_TYPE,
            headers=session.response_headers(),
        )
    except BaseException:
        await session.aclose()
        raise


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint for monitoring"""
    return HealthResponse(
        status="healthy",
        version=config.VERSION,
        uptime_seconds=time.time() - start_time,
        egress_proxies=len(egress_pool),
    )


@app.get("/")
async def root():
    """Root endpoint with service info"""
    return {
        "service": "Drama Download Service",
        "version": config.VERSION,
        "status": "running",
        "endpoints": {
            "search": "/search?q=<text>",
            "video": "/video?url=<watch url>",
            "download": "/download?id=<video id>&q=<quality>",
            "health": "/health",
        },
        "docs": "/docs",
    }


# ============================================================================
# ERROR HANDLERS
# ============================================================================


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError):
    """Render pipeline failures with their own status code"""
    level = logging.WARNING if isinstance(exc, InvalidReference) else logging.ERROR
    logger.log(level, f"❌ {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(mode='json'),
    )


@app.exception_handler(404)
async def not_found_handler(request, exc):
    """Custom 404 handler"""
    return JSONResponse(
        status_code=404,
        content={"detail": "Endpoint not found. See /docs for API documentation."}
    )


@app.exception_handler(500)
async def server_error_handler(request, exc):
    """Custom 500 handler"""
    logger.exception("Internal server error")
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="Internal server error. Please try again later.",
            code=ErrorCode.SERVER_ERROR,
            is_transient=True,
        ).model_dump(mode='json'),
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
