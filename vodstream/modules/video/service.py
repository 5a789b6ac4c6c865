"""Video service: ingestion, derived metadata and deletion.

Coordinates three stores that are never updated atomically together: the
video record, the media files on disk and the external ffmpeg processes.
The record's ``status`` makes the outcome of each upload observable:

    uploaded -> transcoding -> ready | failed
"""

import asyncio
import logging
import mimetypes
import uuid
from pathlib import Path
from typing import BinaryIO, Optional

from kombu.exceptions import OperationalError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from vodstream.core.config import settings
from vodstream.core.logging import bind_video_id, log_error, log_warning
from vodstream.core.singleflight import SingleFlight
from vodstream.core.storage import MediaStorage, UnsafePathError, clean_filename
from vodstream.modules.transcoding.duration import DurationResolver
from vodstream.modules.transcoding.service import TranscodeError, TranscodingService
from vodstream.modules.transcoding.tasks import transcode_video_task
from vodstream.modules.transcoding.thumbnail import ThumbnailError, ThumbnailGenerator
from vodstream.modules.video.lifecycle import DeleteResult, VideoLifecycleManager
from vodstream.modules.video.models import Video, VideoStatus
from vodstream.modules.video.repository import VideoRepository
from vodstream.modules.video.schemas import VideoUploadRequest

logger = logging.getLogger(__name__)

# Shared by every request handled by this process
duration_flight = SingleFlight("duration")
thumbnail_flight = SingleFlight("thumbnail")

INTERRUPTED_TRANSCODE_ERROR = "Transcoding interrupted by a server restart"


class VideoServiceError(Exception):
    """Base exception for video service errors."""

    pass


class VideoNotFoundError(VideoServiceError):
    """Raised when video is not found."""

    pass


class InvalidUploadError(VideoServiceError):
    """Raised when the upload is missing or unusable; no state is created."""

    pass


class VideoUploadError(VideoServiceError):
    """Raised when the upload could not be written to disk."""

    pass


class VideoProcessingError(VideoServiceError):
    """Raised when transcoding failed; the record is kept in ``failed`` state."""

    def __init__(self, message: str, video_id: Optional[str] = None):
        super().__init__(message)
        self.video_id = video_id


class VideoStateError(VideoServiceError):
    """Raised when an operation is not allowed in the video's current state."""

    pass


class DurationUnavailableError(VideoServiceError):
    """Raised when the duration cannot be determined."""

    pass


class ThumbnailUnavailableError(VideoServiceError):
    """Raised when a thumbnail could not be generated."""

    pass


class VideoService:
    """Service for video pipeline operations."""

    def __init__(
        self,
        session: AsyncSession,
        storage: Optional[MediaStorage] = None,
        transcoding_service: Optional[TranscodingService] = None,
        duration_resolver: Optional[DurationResolver] = None,
        thumbnail_generator: Optional[ThumbnailGenerator] = None,
        transcode_in_background: Optional[bool] = None,
    ):
        """Initialize service with database session and pipeline collaborators."""
        self.session = session
        self.storage = storage or MediaStorage()
        self.video_repo = VideoRepository(session)
        self.transcoding_service = transcoding_service or TranscodingService(storage=self.storage)
        self.duration_resolver = duration_resolver or DurationResolver(storage=self.storage)
        self.thumbnail_generator = thumbnail_generator or ThumbnailGenerator(storage=self.storage)
        self.lifecycle = VideoLifecycleManager(session, storage=self.storage)
        self.transcode_in_background = (
            transcode_in_background
            if transcode_in_background is not None
            else settings.TRANSCODE_IN_BACKGROUND
        )

    # ============================================
    # Lookup
    # ============================================

    async def get_video(self, video_id: str) -> Video:
        """Get a video or raise VideoNotFoundError."""
        video = await self.video_repo.get_by_id(video_id)
        if not video:
            raise VideoNotFoundError(f"Video {video_id} not found")
        return video

    async def list_videos(self) -> list[Video]:
        """List all videos, filling in missing durations of ready videos.

        A duration that still cannot be determined is left empty; listing
        never fails because of it.
        """
        videos = await self.video_repo.list_all()

        updated = False
        for video in videos:
            if video.duration is not None or not video.is_ready():
                continue
            duration = await duration_flight.do(video.id, self._resolve_duration, video.id)
            if duration is not None:
                await self.video_repo.update(video, duration=duration)
                updated = True

        if updated:
            await self.session.commit()
        return videos

    # ============================================
    # Ingestion
    # ============================================

    async def upload_video(
        self,
        request: VideoUploadRequest,
        fileobj: Optional[BinaryIO],
        filename: Optional[str],
        content_type: Optional[str] = None,
    ) -> Video:
        """Store an upload, create its record and transcode it.

        Args:
            request: Title and description
            fileobj: Upload byte stream
            filename: Client-supplied filename; decides the source path
            content_type: MIME type reported by the client

        Returns:
            Video: ``ready`` when transcoded inline, ``uploaded`` when queued

        Raises:
            InvalidUploadError: No usable file; nothing was stored
            VideoUploadError: Writing the source failed; no record was created
            VideoProcessingError: Transcoding failed; record kept as ``failed``
            VideoNotFoundError: Record deleted while the transcode ran
        """
        if fileobj is None:
            raise InvalidUploadError("No file uploaded")
        try:
            name = clean_filename(filename)
        except UnsafePathError as e:
            raise InvalidUploadError(str(e)) from e

        video_id = str(uuid.uuid4())

        result = await asyncio.to_thread(self.storage.save_upload, fileobj, name)
        if not result.success:
            raise VideoUploadError(f"Video not uploaded: {result.error_message}")

        video = await self.video_repo.create(
            video_id=video_id,
            title=request.title,
            description=request.description,
            content_type=content_type or mimetypes.guess_type(name)[0],
            file_path=str(result.path),
        )
        await self.session.commit()

        with bind_video_id(video.id):
            logger.info(f"Stored upload {name} ({result.file_size} bytes) as video {video.id}")

        if self.transcode_in_background:
            await self._enqueue_transcode(video)
            return video

        return await self.process_video(video.id)

    async def process_video(self, video_id: str) -> Video:
        """Run the transcode for a video and record the outcome.

        Raises:
            VideoNotFoundError: Unknown video, or deleted while transcoding
            VideoStateError: Video is already transcoding or ready
            VideoProcessingError: Transcoding failed
        """
        video = await self.get_video(video_id)

        if not await self.video_repo.claim_for_transcoding(video.id):
            raise VideoStateError(f"Video {video.id} is {video.status}; cannot transcode")
        await self.session.commit()
        await self.session.refresh(video)

        with bind_video_id(video.id):
            try:
                await asyncio.to_thread(
                    self.transcoding_service.transcode, video.id, video.file_path
                )
            except (TranscodeError, OSError) as e:
                log_error(
                    logger,
                    f"Transcoding failed for video {video.id}: {e}",
                    returncode=getattr(e, "returncode", None),
                )
                await self._record_outcome(video, VideoStatus.FAILED, error=str(e))
                raise VideoProcessingError(str(e), video_id=video.id) from e
            except BaseException as e:
                log_error(logger, f"Transcoding of video {video.id} was interrupted: {e!r}", exception=e)
                await self._abandon_transcode(video, f"Transcoding interrupted: {e!r}")
                raise

            await self._record_outcome(video, VideoStatus.READY)
            logger.info(f"Video {video.id} is ready")

        return video

    async def _record_outcome(
        self,
        video: Video,
        status: VideoStatus,
        error: Optional[str] = None,
    ) -> None:
        """Store the result of a transcode.

        If the record was deleted while ffmpeg ran, the HLS tree written for
        it is removed and VideoNotFoundError is raised.
        """
        try:
            await self.video_repo.update_status(video, status, error=error)
            await self.session.commit()
        except StaleDataError as e:
            await self.session.rollback()
            log_warning(logger, f"Video {video.id} was deleted while transcoding")
            await asyncio.to_thread(self.storage.remove_tree, self.storage.hls_dir(video.id))
            raise VideoNotFoundError(f"Video {video.id} not found") from e

    async def _abandon_transcode(self, video: Video, error: str) -> None:
        try:
            await self.video_repo.update_status(video, VideoStatus.FAILED, error=error)
            await self.session.commit()
        except SQLAlchemyError as e:
            # Left in transcoding; the startup sweep fails it later.
            log_error(logger, f"Could not record interrupted transcode of video {video.id}: {e}")

    async def recover_interrupted_transcodes(self) -> int:
        """Fail every video left in ``transcoding`` by a stopped process.

        Must only run while no transcode is in progress against the same
        database, i.e. at startup of a single inline-transcoding process.

        Returns:
            int: Number of videos moved to ``failed``
        """
        count = await self.video_repo.fail_all_transcoding(INTERRUPTED_TRANSCODE_ERROR)
        await self.session.commit()
        if count:
            log_warning(logger, f"Marked {count} interrupted transcode(s) as failed", count=count)
        return count

    async def retry_transcode(self, video_id: str) -> Video:
        """Start a new transcode for a failed (or never started) video."""
        video = await self.get_video(video_id)
        if not video.can_transcode():
            raise VideoStateError(f"Video {video.id} is {video.status}; cannot transcode")

        if self.transcode_in_background:
            await self._enqueue_transcode(video)
            return video
        return await self.process_video(video.id)

    async def mark_failed_if_transcoding(self, video_id: str, error: str) -> None:
        """Record a failure for a video whose transcode was abandoned."""
        video = await self.video_repo.get_by_id(video_id)
        if video and video.status == VideoStatus.TRANSCODING.value:
            await self.video_repo.update_status(video, VideoStatus.FAILED, error=error)
            await self.session.commit()

    async def _enqueue_transcode(self, video: Video) -> None:
        try:
            transcode_video_task.delay(video.id)
        except OperationalError as e:
            logger.error(f"Could not queue transcode for video {video.id}: {e}")
            await self.video_repo.update_status(
                video, VideoStatus.FAILED, error=f"Could not queue transcode: {e}"
            )
            await self.session.commit()
            raise VideoProcessingError("Could not queue transcode", video_id=video.id) from e
        logger.info(f"Queued transcode for video {video.id}")

    # ============================================
    # Duration
    # ============================================

    async def _resolve_duration(self, video_id: str) -> Optional[float]:
        return await asyncio.to_thread(self.duration_resolver.resolve, video_id)

    async def get_duration(self, video_id: str) -> tuple[float, bool]:
        """Return a video's duration, computing and caching it on first use.

        Returns:
            (duration in seconds, whether it was already cached)

        Raises:
            VideoNotFoundError: Unknown video
            DurationUnavailableError: Not ready, or neither strategy worked
        """
        video = await self.get_video(video_id)
        if video.duration is not None:
            return video.duration, True

        if not video.is_ready():
            raise DurationUnavailableError(f"Video {video.id} is {video.status}")

        duration = await duration_flight.do(video.id, self._resolve_duration, video.id)
        if duration is None:
            raise DurationUnavailableError("Could not determine video duration")

        await self.video_repo.update(video, duration=duration)
        await self.session.commit()
        return duration, False

    # ============================================
    # Thumbnail
    # ============================================

    async def get_thumbnail(self, video_id: str) -> Path:
        """Return a thumbnail path, generating the thumbnail if none exists.

        A stored path whose file has disappeared is replaced by the canonical
        path when that file exists.
        """
        video = await self.get_video(video_id)

        if video.thumbnail_path and Path(video.thumbnail_path).is_file():
            return Path(video.thumbnail_path)

        canonical = self.thumbnail_generator.canonical_path(video.id)
        if canonical.is_file():
            if video.thumbnail_path != str(canonical):
                logger.info(f"Repairing thumbnail reference of video {video.id}")
                await self.video_repo.update(video, thumbnail_path=str(canonical))
                await self.session.commit()
            return canonical

        return await self._generate_thumbnail(video, force=False)

    async def generate_thumbnail(self, video_id: str, force: bool = False) -> Path:
        """Generate the thumbnail; with ``force`` an existing one is replaced."""
        video = await self.get_video(video_id)
        return await self._generate_thumbnail(video, force=force)

    async def _generate_thumbnail(self, video: Video, force: bool) -> Path:
        if not video.is_ready():
            raise VideoStateError(f"Video {video.id} is {video.status}; no thumbnail available")

        with bind_video_id(video.id):
            try:
                # A forced regeneration must not join a plain one.
                key = f"{video.id}:force" if force else video.id
                path = await thumbnail_flight.do(
                    key,
                    asyncio.to_thread,
                    self.thumbnail_generator.generate,
                    video.id,
                    force,
                )
            except ThumbnailError as e:
                raise ThumbnailUnavailableError(str(e)) from e

        if video.thumbnail_path != str(path):
            await self.video_repo.update(video, thumbnail_path=str(path))
            await self.session.commit()
        return path

    # ============================================
    # Deletion
    # ============================================

    async def delete_video(self, video_id: str) -> DeleteResult:
        """Delete a known video and everything stored for it."""
        video = await self.get_video(video_id)
        with bind_video_id(video.id):
            return await self.lifecycle.delete(video.id)
