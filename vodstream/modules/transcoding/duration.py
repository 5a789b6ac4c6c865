"""Playable-duration resolution for transcoded videos."""

import logging
from pathlib import Path
from typing import Optional

from vodstream.core.config import settings
from vodstream.core.metrics import DURATION_RESOLUTIONS_TOTAL
from vodstream.core.storage import MediaStorage
from vodstream.modules.transcoding.ffmpeg import FFmpegTranscoder
from vodstream.modules.transcoding.playlist import first_variant_uri, sum_segment_durations

logger = logging.getLogger(__name__)


class DurationResolver:
    """Determine how long a transcoded video plays.

    Asks ffprobe about the master playlist first. When that yields nothing,
    falls back to summing the ``#EXTINF`` durations of the first variant
    playlist listed in the master. "Unknown" is reported as ``None``; it is
    never an error.
    """

    def __init__(
        self,
        storage: Optional[MediaStorage] = None,
        transcoder: Optional[FFmpegTranscoder] = None,
        probe_timeout: Optional[float] = None,
    ):
        self.storage = storage or MediaStorage()
        self.transcoder = transcoder or FFmpegTranscoder(
            ffmpeg_path=settings.FFMPEG_PATH,
            ffprobe_path=settings.FFPROBE_PATH,
        )
        self.probe_timeout = (
            probe_timeout if probe_timeout is not None else settings.PROBE_TIMEOUT_SECONDS
        )

    def resolve(self, video_id: str) -> Optional[float]:
        """Return the duration in seconds, or None if it cannot be determined."""
        master = self.storage.master_playlist_path(video_id)

        if master.exists():
            duration = self.transcoder.probe_duration(str(master), timeout=self.probe_timeout)
            if duration is not None:
                DURATION_RESOLUTIONS_TOTAL.labels(strategy="probe").inc()
                return duration
            logger.info(f"ffprobe gave no duration for {video_id}, parsing playlists")

        duration = self.from_playlists(video_id)
        DURATION_RESOLUTIONS_TOTAL.labels(
            strategy="playlist" if duration is not None else "unknown"
        ).inc()
        return duration

    def from_playlists(self, video_id: str) -> Optional[float]:
        """Sum segment durations of the first variant listed in the master playlist."""
        master = self.storage.master_playlist_path(video_id)
        try:
            master_text = master.read_text()
        except OSError:
            logger.info(f"Master playlist not readable for {video_id}")
            return None

        uri = first_variant_uri(master_text)
        if uri is None:
            logger.warning(f"Master playlist for {video_id} lists no variants")
            return None

        variant_playlist = self._resolve_variant(master.parent, uri)
        if variant_playlist is None:
            logger.warning(f"Ignoring variant URI outside the HLS tree: {uri!r}")
            return None

        try:
            return sum_segment_durations(variant_playlist.read_text())
        except OSError:
            logger.info(f"Variant playlist {variant_playlist} not readable")
            return None

    def _resolve_variant(self, hls_dir: Path, uri: str) -> Optional[Path]:
        """Map a relative playlist URI to a file inside ``hls_dir``."""
        if "://" in uri or uri.startswith("/"):
            return None
        candidate = (hls_dir / uri).resolve()
        if not candidate.is_relative_to(hls_dir.resolve()):
            return None
        return candidate
