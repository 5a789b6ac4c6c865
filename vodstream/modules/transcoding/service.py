"""HLS transcoding of uploaded sources."""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from vodstream.core.config import settings
from vodstream.core.metrics import (
    TRANSCODE_DURATION_SECONDS,
    TRANSCODE_JOBS_TOTAL,
    TRANSCODES_IN_PROGRESS,
)
from vodstream.core.storage import MediaStorage
from vodstream.modules.transcoding.abr import ABRLadder, validate_abr_config
from vodstream.modules.transcoding.ffmpeg import FFmpegTranscoder
from vodstream.modules.transcoding.models import MediaTool

logger = logging.getLogger(__name__)


class TranscodeError(Exception):
    """Raised when the encoder could not produce the HLS ladder.

    Output already written is left on disk.
    """

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
    ):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


@dataclass
class TranscodeResult:
    """Result of a successful ladder encode."""
    video_id: str
    output_dir: Path
    master_playlist: Path
    variant_dirs: list[Path] = field(default_factory=list)
    elapsed_seconds: float = 0.0


class TranscodingService:
    """Run one ffmpeg encode producing the full ABR ladder for a video."""

    def __init__(
        self,
        storage: Optional[MediaStorage] = None,
        transcoder: Optional[FFmpegTranscoder] = None,
        ladder: Optional[ABRLadder] = None,
    ):
        self.storage = storage or MediaStorage()
        self.transcoder = transcoder or FFmpegTranscoder(
            ffmpeg_path=settings.FFMPEG_PATH,
            ffprobe_path=settings.FFPROBE_PATH,
        )
        self.ladder = ladder or ABRLadder.create_default_ladder(
            segment_duration=settings.HLS_SEGMENT_SECONDS
        )

        is_valid, errors = validate_abr_config(self.ladder)
        if not is_valid:
            raise ValueError(f"Invalid ABR ladder: {'; '.join(errors)}")

    def prepare_output(self, video_id: str) -> list[Path]:
        """Create the video's HLS root and one directory per rendition.

        Returns:
            Rendition directories in ladder order
        """
        variant_dirs = [
            self.storage.variant_dir(video_id, name) for name in self.ladder.variant_names()
        ]
        for variant_dir in variant_dirs:
            variant_dir.mkdir(parents=True, exist_ok=True)
        return variant_dirs

    def transcode(self, video_id: str, source_path: str) -> TranscodeResult:
        """Encode ``source_path`` into ``<HLS_DIR>/<video_id>/``.

        Blocks until ffmpeg exits. Not retried on failure.

        Args:
            video_id: ID of the video, used as the output namespace
            source_path: Uploaded source file

        Returns:
            TranscodeResult describing the written tree

        Raises:
            TranscodeError: Source missing or ffmpeg exited non-zero
        """
        if not Path(source_path).is_file():
            TRANSCODE_JOBS_TOTAL.labels(status="failed").inc()
            raise TranscodeError(f"Source file not found: {source_path}")

        output_dir = self.storage.hls_dir(video_id)
        variant_dirs = self.prepare_output(video_id)
        cmd = self.transcoder.build_hls_command(source_path, str(output_dir), self.ladder)

        logger.info(
            f"Transcoding video {video_id} into {len(self.ladder.variants)} renditions"
        )
        logger.debug(f"ffmpeg command: {' '.join(cmd)}")

        start_time = time.perf_counter()
        TRANSCODES_IN_PROGRESS.inc()
        try:
            result = self.transcoder.run(cmd, MediaTool.TRANSCODE)
        finally:
            TRANSCODES_IN_PROGRESS.dec()
        elapsed = time.perf_counter() - start_time

        if not result.success:
            TRANSCODE_JOBS_TOTAL.labels(status="failed").inc()
            stderr_tail = result.stderr_tail()
            logger.error(
                f"ffmpeg exited with code {result.returncode} for video {video_id}: {stderr_tail}"
            )
            raise TranscodeError(
                f"Video processing failed: ffmpeg exited with code {result.returncode}",
                returncode=result.returncode,
                stderr=stderr_tail,
            )

        TRANSCODE_JOBS_TOTAL.labels(status="completed").inc()
        TRANSCODE_DURATION_SECONDS.observe(elapsed)
        logger.info(f"Transcoded video {video_id} in {elapsed:.1f}s")

        return TranscodeResult(
            video_id=video_id,
            output_dir=output_dir,
            master_playlist=self.storage.master_playlist_path(video_id),
            variant_dirs=variant_dirs,
            elapsed_seconds=elapsed,
        )
