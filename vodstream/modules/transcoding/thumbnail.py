"""Thumbnail extraction from the HLS master playlist."""

import logging
from pathlib import Path
from typing import Optional

from vodstream.core.config import settings
from vodstream.core.storage import MediaStorage
from vodstream.modules.transcoding.ffmpeg import FFmpegTranscoder
from vodstream.modules.transcoding.models import MediaTool

logger = logging.getLogger(__name__)


class ThumbnailError(Exception):
    """Raised when a thumbnail could not be produced."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


class ThumbnailGenerator:
    """Produce ``<THUMBNAIL_DIR>/<video_id>.jpg`` from a transcoded video.

    Generation is idempotent: an existing canonical file is returned as-is
    unless ``force`` is requested.
    """

    def __init__(
        self,
        storage: Optional[MediaStorage] = None,
        transcoder: Optional[FFmpegTranscoder] = None,
        offset_seconds: Optional[int] = None,
    ):
        self.storage = storage or MediaStorage()
        self.transcoder = transcoder or FFmpegTranscoder(
            ffmpeg_path=settings.FFMPEG_PATH,
            ffprobe_path=settings.FFPROBE_PATH,
        )
        self.offset_seconds = (
            offset_seconds if offset_seconds is not None else settings.THUMBNAIL_OFFSET_SECONDS
        )

    def canonical_path(self, video_id: str) -> Path:
        return self.storage.thumbnail_path(video_id)

    def generate(self, video_id: str, force: bool = False) -> Path:
        """Ensure the canonical thumbnail exists and return its path.

        Args:
            video_id: Video to take the frame from
            force: Re-extract even if the file already exists

        Returns:
            Path of the JPEG

        Raises:
            ThumbnailError: ffmpeg failed or produced no file
        """
        target = self.canonical_path(video_id)
        if target.exists() and not force:
            return target

        master = self.storage.master_playlist_path(video_id)
        if not master.exists():
            raise ThumbnailError(f"No HLS output to take a thumbnail from for video {video_id}")

        target.parent.mkdir(parents=True, exist_ok=True)
        cmd = self.transcoder.build_thumbnail_command(
            str(master), str(target), offset_seconds=self.offset_seconds
        )

        logger.info(f"Generating thumbnail for video {video_id}")
        result = self.transcoder.run(cmd, MediaTool.THUMBNAIL)

        if not result.success:
            logger.error(
                f"Thumbnail extraction failed for {video_id} "
                f"(exit {result.returncode}): {result.stderr_tail(5)}"
            )
            raise ThumbnailError(
                f"Thumbnail generation failed with exit code: {result.returncode}",
                returncode=result.returncode,
            )

        if not target.exists():
            raise ThumbnailError("Thumbnail generation reported success but file not found")

        return target
