"""Video API router.

REST endpoints for uploading videos, fetching HLS artifacts and derived
metadata, legacy raw-file streaming and deletion.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, Query, UploadFile, status
from fastapi.responses import FileResponse, Response
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from vodstream.core.config import settings
from vodstream.core.database import get_db
from vodstream.core.metrics import RANGE_REQUESTS_TOTAL
from vodstream.modules.video.delivery import (
    ArtifactNotFoundError,
    DeliveryService,
    RangeNotSatisfiableError,
    parse_range_header,
    read_artifact,
    read_range,
)
from vodstream.modules.video.schemas import (
    DEFAULT_SOURCE_MEDIA_TYPE,
    HLS_PLAYLIST_MEDIA_TYPE,
    MPEG_TS_MEDIA_TYPE,
    THUMBNAIL_MEDIA_TYPE,
    DeleteVideoResponse,
    FailedArtifactResponse,
    MessageResponse,
    VideoResponse,
    VideoUploadRequest,
)
from vodstream.modules.video.service import (
    DurationUnavailableError,
    InvalidUploadError,
    ThumbnailUnavailableError,
    VideoNotFoundError,
    VideoProcessingError,
    VideoService,
    VideoStateError,
    VideoUploadError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/videos", tags=["videos"])

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "X-Content-Type-Options": "nosniff",
}


def get_video_service(db: AsyncSession = Depends(get_db)) -> VideoService:
    """Build the video service for a request."""
    return VideoService(db)


def get_delivery_service() -> DeliveryService:
    """Build the delivery service for a request."""
    return DeliveryService()


async def _artifact_response(path_lookup, media_type: str) -> Response:
    try:
        content = await asyncio.to_thread(read_artifact, path_lookup())
    except ArtifactNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return Response(content=content, media_type=media_type)


# ============================================
# Legacy raw-file streaming
# ============================================


@router.get("/stream/{video_id}")
async def stream_video(
    video_id: str,
    service: VideoService = Depends(get_video_service),
    delivery: DeliveryService = Depends(get_delivery_service),
):
    """Stream the original upload as-is."""
    try:
        video = await service.get_video(video_id)
        path = delivery.source_file(video.file_path)
    except (VideoNotFoundError, ArtifactNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return FileResponse(path, media_type=video.content_type or DEFAULT_SOURCE_MEDIA_TYPE)


@router.get("/stream/range/{video_id}")
async def stream_video_range(
    video_id: str,
    range_header: Optional[str] = Header(None, alias="Range"),
    service: VideoService = Depends(get_video_service),
    delivery: DeliveryService = Depends(get_delivery_service),
):
    """Stream one chunk of the original upload for a ``Range: bytes=S-`` request.

    Without a Range header the whole file is returned.
    """
    try:
        video = await service.get_video(video_id)
        path = delivery.source_file(video.file_path)
    except (VideoNotFoundError, ArtifactNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    media_type = video.content_type or DEFAULT_SOURCE_MEDIA_TYPE

    if range_header is None:
        RANGE_REQUESTS_TOTAL.labels(outcome="full").inc()
        return FileResponse(path, media_type=media_type)

    file_size = path.stat().st_size
    try:
        byte_range = parse_range_header(range_header, file_size, settings.RANGE_CHUNK_SIZE)
    except RangeNotSatisfiableError as e:
        RANGE_REQUESTS_TOTAL.labels(outcome="unsatisfiable").inc()
        raise HTTPException(
            status_code=status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
            detail=str(e),
            headers={"Content-Range": f"bytes */{e.file_size}"},
        )

    data = await asyncio.to_thread(read_range, path, byte_range)
    RANGE_REQUESTS_TOTAL.labels(outcome="partial").inc()

    return Response(
        content=data,
        status_code=status.HTTP_206_PARTIAL_CONTENT,
        media_type=media_type,
        headers={
            **NO_CACHE_HEADERS,
            "Content-Range": byte_range.content_range,
            "Content-Length": str(byte_range.length),
        },
    )


# ============================================
# Upload and records
# ============================================


@router.post("", response_model=VideoResponse)
async def upload_video(
    file: UploadFile = File(...),
    title: str = Form(...),
    description: Optional[str] = Form(None),
    service: VideoService = Depends(get_video_service),
):
    """Upload a video and transcode it into an HLS ladder.

    Transcoding runs before the response unless background transcoding is
    enabled, in which case the video is returned in ``uploaded`` state.
    """
    try:
        request = VideoUploadRequest(title=title, description=description)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False, include_context=False),
        )

    if file.size == 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty")

    try:
        return await service.upload_video(
            request=request,
            fileobj=file.file,
            filename=file.filename,
            content_type=file.content_type,
        )
    except InvalidUploadError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except VideoUploadError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    except VideoNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except VideoProcessingError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )


@router.get("", response_model=list[VideoResponse])
async def list_videos(service: VideoService = Depends(get_video_service)):
    """List all videos, computing missing durations on the way."""
    return await service.list_videos()


@router.get("/{video_id}", response_model=VideoResponse)
async def get_video(video_id: str, service: VideoService = Depends(get_video_service)):
    """Get a video, including its processing status."""
    try:
        return await service.get_video(video_id)
    except VideoNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/{video_id}/transcode", response_model=VideoResponse)
async def retry_transcode(video_id: str, service: VideoService = Depends(get_video_service)):
    """Transcode a failed video again."""
    try:
        return await service.retry_transcode(video_id)
    except VideoNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except VideoStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except VideoProcessingError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )


@router.get("/{video_id}/duration", response_model=MessageResponse)
async def get_duration(video_id: str, service: VideoService = Depends(get_video_service)):
    """Get the playable duration in seconds."""
    try:
        duration, cached = await service.get_duration(video_id)
    except VideoNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except DurationUnavailableError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not determine video duration",
        )

    message = (
        "Video duration fetched successfully"
        if cached
        else "Video duration calculated successfully"
    )
    return MessageResponse(message=message, success=True, data=duration)


@router.delete("/{video_id}", response_model=DeleteVideoResponse)
async def delete_video(video_id: str, service: VideoService = Depends(get_video_service)):
    """Delete a video's HLS output, thumbnail, source file and record.

    Files that could not be removed are listed under ``failed``.
    """
    try:
        result = await service.delete_video(video_id)
    except VideoNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Video not found")

    if not result.record_deleted:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete video record from database",
        )

    return DeleteVideoResponse(
        message="Video deleted successfully",
        success=True,
        video_id=result.video_id,
        record_deleted=result.record_deleted,
        deleted=result.deleted,
        failed=[FailedArtifactResponse(path=f.path, error=f.error) for f in result.failed],
    )


# ============================================
# Thumbnails
# ============================================


@router.get("/{video_id}/thumbnail")
async def get_thumbnail(video_id: str, service: VideoService = Depends(get_video_service)):
    """Serve the thumbnail, generating it first if needed."""
    try:
        path = await service.get_thumbnail(video_id)
    except VideoNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except VideoStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ThumbnailUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return FileResponse(path, media_type=THUMBNAIL_MEDIA_TYPE)


@router.post("/{video_id}/thumbnail", response_model=MessageResponse)
async def generate_thumbnail(
    video_id: str,
    force: bool = Query(False, description="Regenerate even if a thumbnail exists"),
    service: VideoService = Depends(get_video_service),
):
    """Generate the thumbnail."""
    try:
        path = await service.generate_thumbnail(video_id, force=force)
    except VideoNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except VideoStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ThumbnailUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return MessageResponse(
        message="Thumbnail generated successfully",
        success=True,
        file_name=path.name,
    )


# ============================================
# HLS artifacts
# ============================================


@router.get("/{video_id}/master.m3u8")
async def get_master_playlist(
    video_id: str,
    delivery: DeliveryService = Depends(get_delivery_service),
):
    """Serve the master playlist."""
    return await _artifact_response(
        lambda: delivery.master_playlist(video_id), HLS_PLAYLIST_MEDIA_TYPE
    )


@router.get("/{video_id}/{variant}/playlist.m3u8")
async def get_variant_playlist(
    video_id: str,
    variant: str,
    delivery: DeliveryService = Depends(get_delivery_service),
):
    """Serve one rendition's media playlist."""
    return await _artifact_response(
        lambda: delivery.variant_playlist(video_id, variant), HLS_PLAYLIST_MEDIA_TYPE
    )


@router.get("/{video_id}/{variant}/segment_{segment}.ts")
async def get_segment(
    video_id: str,
    variant: str,
    segment: str,
    delivery: DeliveryService = Depends(get_delivery_service),
):
    """Serve one MPEG-TS segment."""
    return await _artifact_response(
        lambda: delivery.segment(video_id, variant, segment), MPEG_TS_MEDIA_TYPE
    )
