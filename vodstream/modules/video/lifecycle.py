"""Video deletion.

Removes a video's HLS tree, thumbnail and source file, then its record.
File removal is best-effort: each failure is logged and reported, and the
record is removed regardless.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from vodstream.core.logging import log_warning
from vodstream.core.metrics import ARTIFACT_DELETION_FAILURES_TOTAL
from vodstream.core.storage import FailedRemoval, MediaStorage, RemovalReport, UnsafePathError
from vodstream.modules.video.repository import VideoRepository

logger = logging.getLogger(__name__)


@dataclass
class DeleteResult:
    """Aggregated outcome of a video deletion."""

    video_id: str
    record_deleted: bool = False
    deleted: list[str] = field(default_factory=list)
    failed: list[FailedRemoval] = field(default_factory=list)

    @property
    def fully_deleted(self) -> bool:
        """True when the record and every artifact are gone."""
        return self.record_deleted and not self.failed


class VideoLifecycleManager:
    """Tear down everything stored for a video."""

    def __init__(self, session: AsyncSession, storage: Optional[MediaStorage] = None):
        self.session = session
        self.storage = storage or MediaStorage()
        self.video_repo = VideoRepository(session)

    async def delete(self, video_id: str) -> DeleteResult:
        """Delete all artifacts and the record of ``video_id``.

        Safe to call repeatedly: artifacts or a record that are already gone
        are skipped without error.

        Args:
            video_id: Video to delete

        Returns:
            DeleteResult listing removed paths and per-path failures
        """
        video = await self.video_repo.get_by_id(video_id)
        report = RemovalReport()

        try:
            hls_dir = self.storage.hls_dir(video_id)
            canonical_thumbnail: Optional[Path] = self.storage.thumbnail_path(video_id)
        except UnsafePathError:
            hls_dir = None
            canonical_thumbnail = None

        if hls_dir is not None:
            report.merge(await asyncio.to_thread(self.storage.remove_tree, hls_dir))

        thumbnails = set()
        if canonical_thumbnail is not None:
            thumbnails.add(canonical_thumbnail)
        if video is not None and video.thumbnail_path:
            thumbnails.add(Path(video.thumbnail_path))
        for thumbnail in thumbnails:
            if thumbnail.exists():
                report.merge(await asyncio.to_thread(self.storage.remove_file, thumbnail))

        if video is not None:
            await self._remove_source(video.id, video.file_path, report)

        record_deleted = await self.video_repo.delete_by_id(video_id)
        await self.session.commit()

        if report.failed:
            ARTIFACT_DELETION_FAILURES_TOTAL.inc(len(report.failed))
            log_warning(
                logger,
                f"Deleted video {video_id} with {len(report.failed)} artifact(s) left behind",
                failed_paths=[f.path for f in report.failed],
            )
        else:
            logger.info(f"Deleted video {video_id} ({len(report.deleted)} paths removed)")

        return DeleteResult(
            video_id=video_id,
            record_deleted=record_deleted,
            deleted=report.deleted,
            failed=report.failed,
        )

    async def _remove_source(self, video_id: str, file_path: str, report: RemovalReport) -> None:
        # Uploads with the same filename share one source path.
        others = await self.video_repo.count_by_file_path(file_path, exclude_id=video_id)
        if others:
            logger.info(f"Keeping source {file_path}: referenced by {others} other video(s)")
            return

        source = Path(file_path)
        if source.exists():
            report.merge(await asyncio.to_thread(self.storage.remove_file, source))
