"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware

from vodstream.core.config import settings
from vodstream.core.database import async_session_maker, close_db, init_db
from vodstream.core.logging import setup_logging
from vodstream.core.metrics import get_content_type, get_metrics, set_app_info
from vodstream.core.middleware import (
    CorrelationIdMiddleware,
    MetricsMiddleware,
    RequestLoggingMiddleware,
    TracingMiddleware,
)
from vodstream.core.redis import check_redis
from vodstream.core.tracing import setup_tracing, shutdown_tracing
from vodstream.modules.video import router as video_router
from vodstream.modules.video.service import VideoService

ENVIRONMENT = "development" if settings.DEBUG else "production"


async def recover_interrupted_transcodes() -> int:
    """Fail inline transcodes that a previous run of this process never finished."""
    async with async_session_maker() as session:
        return await VideoService(session).recover_interrupted_transcodes()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create media directories and tables on startup; release resources on shutdown."""
    for directory in (settings.VIDEO_DIR, settings.HLS_DIR, settings.THUMBNAIL_DIR):
        Path(directory).mkdir(parents=True, exist_ok=True)
    await init_db()
    if not settings.TRANSCODE_IN_BACKGROUND:
        await recover_interrupted_transcodes()
    yield
    await close_db()
    shutdown_tracing()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="""
## Video ingestion and HLS delivery API

Upload a video file and receive an adaptive-bitrate HLS ladder
(360p / 720p / 1080p) with a master playlist, plus lazily derived
duration and thumbnail.

### Playback

Point an HLS player at `/api/v1/videos/{id}/master.m3u8`.
    """,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "health",
            "description": "Health check and metrics endpoints",
        },
        {
            "name": "videos",
            "description": "Video upload, HLS delivery, thumbnails, duration and deletion",
        },
    ],
)

setup_logging(
    level="DEBUG" if settings.DEBUG else settings.LOG_LEVEL,
    json_format=settings.LOG_JSON,
    include_stack_trace=True,
)

setup_tracing(
    service_name=settings.PROJECT_NAME,
    service_version=settings.VERSION,
    environment=ENVIRONMENT,
    enable_console_export=settings.DEBUG,
)

set_app_info(version=settings.VERSION, environment=ENVIRONMENT)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(TracingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(MetricsMiddleware)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint.

    Returns:
        dict: API status and Redis connectivity
    """
    return {"status": "healthy", "redis": await check_redis()}


@app.get("/metrics", tags=["health"], include_in_schema=False)
async def metrics() -> Response:
    """Prometheus scrape endpoint."""
    return Response(content=get_metrics(), media_type=get_content_type())


app.include_router(video_router, prefix=settings.API_V1_PREFIX)
