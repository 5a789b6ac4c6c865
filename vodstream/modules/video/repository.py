"""Video repository for database operations."""

from typing import Optional

from sqlalchemy import delete, func as sql_func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vodstream.modules.video.models import TRANSCODABLE_STATUSES, Video, VideoStatus


class VideoRepository:
    """Repository for Video CRUD operations."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def create(
        self,
        video_id: str,
        title: str,
        file_path: str,
        description: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> Video:
        """Create a new video record in ``uploaded`` state.

        Args:
            video_id: Pre-generated video ID
            title: Video title
            file_path: Stored source file
            description: Video description
            content_type: MIME type reported for the upload

        Returns:
            Video: Created video instance
        """
        video = Video(
            id=video_id,
            title=title,
            description=description,
            content_type=content_type,
            file_path=file_path,
            status=VideoStatus.UPLOADED.value,
        )
        self.session.add(video)
        await self.session.flush()
        return video

    async def get_by_id(self, video_id: str) -> Optional[Video]:
        """Get video by ID.

        Returns:
            Optional[Video]: Video if found, None otherwise
        """
        result = await self.session.execute(select(Video).where(Video.id == video_id))
        return result.scalar_one_or_none()

    async def list_all(self) -> list[Video]:
        """Get every video, oldest first."""
        result = await self.session.execute(
            select(Video).order_by(Video.created_at.asc(), Video.id.asc())
        )
        return list(result.scalars().all())

    async def update(self, video: Video, **kwargs) -> Video:
        """Update video attributes.

        Args:
            video: Video instance to update
            **kwargs: Attributes to update

        Returns:
            Video: Updated video instance
        """
        for key, value in kwargs.items():
            if hasattr(video, key):
                setattr(video, key, value)
        await self.session.flush()
        return video

    async def update_status(
        self,
        video: Video,
        status: VideoStatus,
        error: Optional[str] = None,
    ) -> Video:
        """Move a video to ``status``; the error is cleared unless given."""
        video.status = status.value
        video.error_message = error
        await self.session.flush()
        return video

    async def claim_for_transcoding(self, video_id: str) -> bool:
        """Atomically move a video from a transcodable state to ``transcoding``.

        Returns:
            bool: False if the video is missing or already transcoding/ready
        """
        result = await self.session.execute(
            update(Video)
            .where(Video.id == video_id, Video.status.in_(sorted(TRANSCODABLE_STATUSES)))
            .values(status=VideoStatus.TRANSCODING.value, error_message=None)
        )
        await self.session.flush()
        return result.rowcount > 0

    async def fail_all_transcoding(self, error: str) -> int:
        """Move every video still in ``transcoding`` to ``failed``.

        Returns:
            int: Number of videos updated
        """
        result = await self.session.execute(
            update(Video)
            .where(Video.status == VideoStatus.TRANSCODING.value)
            .values(status=VideoStatus.FAILED.value, error_message=error)
        )
        await self.session.flush()
        return result.rowcount

    async def count_by_file_path(self, file_path: str, exclude_id: Optional[str] = None) -> int:
        """Count records pointing at the same source file."""
        query = select(sql_func.count()).select_from(Video).where(Video.file_path == file_path)
        if exclude_id is not None:
            query = query.where(Video.id != exclude_id)
        result = await self.session.execute(query)
        return result.scalar_one()

    async def delete_by_id(self, video_id: str) -> bool:
        """Delete a video row.

        Returns:
            bool: True if a row was removed
        """
        result = await self.session.execute(delete(Video).where(Video.id == video_id))
        await self.session.flush()
        return result.rowcount > 0
