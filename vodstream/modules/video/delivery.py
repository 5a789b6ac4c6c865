"""Artifact resolution and byte-range handling for playback.

Nothing here transcodes or touches video records; the delivery layer only
maps request parameters to files under the media roots and reads them.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from vodstream.core.storage import MediaStorage, UnsafePathError

logger = logging.getLogger(__name__)

_RANGE_RE = re.compile(r"^\s*bytes\s*=\s*(\d+)\s*-\s*(\d*)\s*$", re.IGNORECASE)


class DeliveryError(Exception):
    """Base exception for delivery errors."""

    pass


class ArtifactNotFoundError(DeliveryError):
    """Raised when a requested file does not exist."""

    pass


class RangeNotSatisfiableError(DeliveryError):
    """Raised for a Range header that cannot be served from the file."""

    def __init__(self, message: str, file_size: int):
        super().__init__(message)
        self.file_size = file_size


@dataclass(frozen=True)
class ByteRange:
    """Inclusive byte window ``[start, end]`` of a file of ``total`` bytes."""

    start: int
    end: int
    total: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    @property
    def content_range(self) -> str:
        return f"bytes {self.start}-{self.end}/{self.total}"


def parse_range_header(header: str, file_size: int, chunk_size: int) -> ByteRange:
    """Compute the response window for a ``Range: bytes=S-`` request.

    The window starts at ``S`` and spans at most ``chunk_size`` bytes,
    clamped to the end of the file. An explicit end (``bytes=S-E``) can only
    shrink the window. Suffix ranges and multiple ranges are not supported.

    Args:
        header: Raw Range header value
        file_size: Length of the file in bytes
        chunk_size: Maximum window length

    Returns:
        ByteRange to serve

    Raises:
        RangeNotSatisfiableError: Malformed or unsupported expression, or a
            start at or beyond the end of the file
    """
    match = _RANGE_RE.match(header)
    if match is None:
        raise RangeNotSatisfiableError(f"Unsupported Range header: {header!r}", file_size)

    start = int(match.group(1))
    if start >= file_size:
        raise RangeNotSatisfiableError(
            f"Range start {start} is beyond end of file ({file_size} bytes)", file_size
        )

    end = min(start + chunk_size - 1, file_size - 1)
    if match.group(2):
        requested_end = int(match.group(2))
        if requested_end < start:
            raise RangeNotSatisfiableError(f"Invalid range: {header!r}", file_size)
        end = min(end, requested_end)

    return ByteRange(start=start, end=end, total=file_size)


def read_range(path: Path, byte_range: ByteRange) -> bytes:
    """Read the window with a single seek and read.

    A file truncated concurrently yields fewer bytes; the read is not retried.
    """
    with open(path, "rb") as f:
        f.seek(byte_range.start)
        return f.read(byte_range.length)


def read_artifact(path: Path) -> bytes:
    """Read a whole playlist or segment.

    Raises:
        ArtifactNotFoundError: The file vanished or is unreadable
    """
    try:
        return path.read_bytes()
    except OSError as e:
        logger.info(f"Artifact {path} not readable: {e}")
        raise ArtifactNotFoundError(f"File not found: {path.name}") from e


class DeliveryService:
    """Resolve HLS artifacts and source files to existing paths."""

    def __init__(self, storage: Optional[MediaStorage] = None):
        self.storage = storage or MediaStorage()

    def _existing(self, path: Path, description: str) -> Path:
        if not path.is_file():
            raise ArtifactNotFoundError(f"{description} not found")
        return path

    def master_playlist(self, video_id: str) -> Path:
        """Path of ``<HLS_DIR>/<id>/master.m3u8``."""
        try:
            path = self.storage.master_playlist_path(video_id)
        except UnsafePathError as e:
            raise ArtifactNotFoundError("Master playlist not found") from e
        return self._existing(path, "Master playlist")

    def variant_playlist(self, video_id: str, variant: str) -> Path:
        """Path of ``<HLS_DIR>/<id>/<variant>/playlist.m3u8``."""
        try:
            path = self.storage.variant_playlist_path(video_id, variant)
        except UnsafePathError as e:
            raise ArtifactNotFoundError("Variant playlist not found") from e
        return self._existing(path, "Variant playlist")

    def segment(self, video_id: str, variant: str, index: str) -> Path:
        """Path of ``<HLS_DIR>/<id>/<variant>/segment_<index>.ts``."""
        try:
            path = self.storage.segment_path(video_id, variant, index)
        except UnsafePathError as e:
            raise ArtifactNotFoundError("Segment not found") from e
        return self._existing(path, "Segment")

    def source_file(self, file_path: str) -> Path:
        """Path of an uploaded source file recorded on a video."""
        return self._existing(Path(file_path), "Video file")
