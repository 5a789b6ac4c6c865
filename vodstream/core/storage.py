"""Local media storage layout.

All media lives on the local filesystem under three roots:

    <VIDEO_DIR>/<filename>                         uploaded sources
    <HLS_DIR>/<video_id>/master.m3u8               HLS ladder
    <HLS_DIR>/<video_id>/<variant>/playlist.m3u8
    <HLS_DIR>/<video_id>/<variant>/segment_<n>.ts
    <THUMBNAIL_DIR>/<video_id>.jpg                 thumbnails

This module only knows about paths and bytes; it has no notion of video
records or transcoding.
"""

import logging
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Optional, Union

from vodstream.core.config import settings

logger = logging.getLogger(__name__)

MASTER_PLAYLIST_NAME = "master.m3u8"
VARIANT_PLAYLIST_NAME = "playlist.m3u8"
THUMBNAIL_EXTENSION = ".jpg"

_SAFE_COMPONENT_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class UnsafePathError(ValueError):
    """Raised when a path component could escape its media root."""


def is_safe_component(name: str) -> bool:
    """Check that ``name`` is a single plain path component."""
    return bool(name) and _SAFE_COMPONENT_RE.match(name) is not None


def clean_filename(filename: Optional[str]) -> str:
    """Reduce a client-supplied filename to its final path component.

    Raises:
        UnsafePathError: If nothing usable remains
    """
    if not filename:
        raise UnsafePathError("Upload has no filename")
    normalized = filename.replace("\\", "/")
    name = Path(normalized).name.strip()
    if normalized.endswith("/") or name in ("", ".", ".."):
        raise UnsafePathError(f"Unusable filename: {filename!r}")
    return name


@dataclass
class StorageResult:
    """Result of a storage write."""

    success: bool
    path: Optional[Path] = None
    file_size: int = 0
    error_message: Optional[str] = None


@dataclass
class FailedRemoval:
    """A path that could not be removed, with the reason."""

    path: str
    error: str


@dataclass
class RemovalReport:
    """Outcome of a best-effort removal."""

    deleted: list[str] = field(default_factory=list)
    failed: list[FailedRemoval] = field(default_factory=list)

    def merge(self, other: "RemovalReport") -> None:
        self.deleted.extend(other.deleted)
        self.failed.extend(other.failed)


@dataclass
class StorageConfig:
    """Root directories for media artifacts."""

    video_dir: str
    hls_dir: str
    thumbnail_dir: str

    @classmethod
    def from_settings(cls) -> "StorageConfig":
        return cls(
            video_dir=settings.VIDEO_DIR,
            hls_dir=settings.HLS_DIR,
            thumbnail_dir=settings.THUMBNAIL_DIR,
        )


class MediaStorage:
    """Resolves artifact paths and performs filesystem writes and deletes."""

    def __init__(self, config: Optional[StorageConfig] = None):
        self.config = config or StorageConfig.from_settings()
        self.video_root = Path(self.config.video_dir)
        self.hls_root = Path(self.config.hls_dir)
        self.thumbnail_root = Path(self.config.thumbnail_dir)

    def _component(self, name: str) -> str:
        if not is_safe_component(name):
            raise UnsafePathError(f"Invalid path component: {name!r}")
        return name

    # ============================================
    # Path resolution
    # ============================================

    def source_path(self, filename: str) -> Path:
        """Deterministic location of an uploaded source file."""
        return self.video_root / clean_filename(filename)

    def hls_dir(self, video_id: str) -> Path:
        return self.hls_root / self._component(video_id)

    def master_playlist_path(self, video_id: str) -> Path:
        return self.hls_dir(video_id) / MASTER_PLAYLIST_NAME

    def variant_dir(self, video_id: str, variant: str) -> Path:
        return self.hls_dir(video_id) / self._component(variant)

    def variant_playlist_path(self, video_id: str, variant: str) -> Path:
        return self.variant_dir(video_id, variant) / VARIANT_PLAYLIST_NAME

    def segment_path(self, video_id: str, variant: str, index: Union[int, str]) -> Path:
        """Path of a segment; a digit string is used as written, leading zeros included."""
        if not (str(index).isascii() and str(index).isdigit()):
            raise UnsafePathError(f"Invalid segment index: {index!r}")
        return self.variant_dir(video_id, variant) / f"segment_{index}.ts"

    def thumbnail_path(self, video_id: str) -> Path:
        return self.thumbnail_root / f"{self._component(video_id)}{THUMBNAIL_EXTENSION}"

    # ============================================
    # Writes
    # ============================================

    def save_upload(self, fileobj: BinaryIO, filename: str) -> StorageResult:
        """Copy an upload stream verbatim to its source path.

        An existing file with the same name is overwritten.
        """
        try:
            dest_path = self.source_path(filename)
        except UnsafePathError as e:
            return StorageResult(success=False, error_message=str(e))

        try:
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            with open(dest_path, "wb") as f:
                shutil.copyfileobj(fileobj, f)
            file_size = dest_path.stat().st_size
        except OSError as e:
            logger.error(f"Failed to store upload {filename!r}: {e}")
            return StorageResult(success=False, path=dest_path, error_message=str(e))

        return StorageResult(success=True, path=dest_path, file_size=file_size)

    # ============================================
    # Deletes
    # ============================================

    def remove_file(self, path: Path) -> RemovalReport:
        """Remove a single file; a missing file is not an error."""
        report = RemovalReport()
        self._remove_path(path, report)
        return report

    def remove_tree(self, root: Path) -> RemovalReport:
        """Remove every path under ``root`` deepest first, then ``root`` itself.

        Failures are logged and collected; they never stop the walk.
        """
        report = RemovalReport()
        if not root.exists():
            return report

        try:
            paths = sorted(root.rglob("*"), key=lambda p: len(p.parts), reverse=True)
        except OSError as e:
            logger.error(f"Failed to walk {root}: {e}")
            report.failed.append(FailedRemoval(path=str(root), error=str(e)))
            return report

        paths.append(root)
        for path in paths:
            self._remove_path(path, report)
        return report

    def _remove_path(self, path: Path, report: RemovalReport) -> None:
        try:
            if path.is_dir() and not path.is_symlink():
                path.rmdir()
            else:
                path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            logger.error(f"Failed to delete {path}: {e}")
            report.failed.append(FailedRemoval(path=str(path), error=str(e)))
            return
        report.deleted.append(str(path))
