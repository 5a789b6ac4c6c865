"""Celery tasks for background transcoding.

Used when ``TRANSCODE_IN_BACKGROUND`` is enabled: the upload request returns
as soon as the source file and the video record exist, and a worker runs the
encode. Progress is observable through the record's ``status``.
"""

import asyncio
import logging

from celery import Task

from vodstream.core.celery_app import celery_app
from vodstream.core.database import async_session_maker, engine
from vodstream.core.logging import bind_video_id

logger = logging.getLogger(__name__)


class TranscodeTask(Task):
    """Base task for transcoding operations.

    Encodes are not retried automatically; a failed video is retried through
    the API once the cause is fixed.
    """
    abstract = True
    max_retries = 0

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        """Make sure a video whose task died is not left in ``transcoding``."""
        video_id = args[0] if args else kwargs.get("video_id")
        logger.error(f"Transcode task {task_id} failed for video {video_id}: {exc}")
        if video_id:
            asyncio.run(_mark_failed(video_id, str(exc)))


async def _mark_failed(video_id: str, error: str) -> None:
    # Deferred import: the video service imports this module to dispatch tasks.
    from vodstream.modules.video.service import VideoService

    try:
        async with async_session_maker() as session:
            await VideoService(session).mark_failed_if_transcoding(video_id, error)
    finally:
        await engine.dispose()


async def _transcode_video(video_id: str) -> dict:
    from vodstream.modules.video.service import VideoService

    try:
        async with async_session_maker() as session:
            video = await VideoService(session).process_video(video_id)
            return {"video_id": video.id, "status": video.status}
    finally:
        # Pooled connections belong to this task's event loop.
        await engine.dispose()


@celery_app.task(bind=True, base=TranscodeTask, name="vodstream.transcode_video")
def transcode_video_task(self, video_id: str) -> dict:
    """Transcode an uploaded video into its HLS ladder.

    Args:
        video_id: ID of a video in ``uploaded`` or ``failed`` state

    Returns:
        dict with the video ID and its final status
    """
    with bind_video_id(video_id):
        logger.info(f"Worker picked up transcode for video {video_id}")
        return asyncio.run(_transcode_video(video_id))
