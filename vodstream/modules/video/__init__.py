"""Video module for upload, delivery and lifecycle management.

Handles ingestion of uploaded files, lazy duration and thumbnail metadata,
HLS artifact delivery, legacy raw-file streaming and deletion.
"""

from vodstream.modules.video.models import Video, VideoStatus
from vodstream.modules.video.router import router
from vodstream.modules.video.service import (
    VideoNotFoundError,
    VideoProcessingError,
    VideoService,
    VideoServiceError,
)

__all__ = [
    "Video",
    "VideoStatus",
    "router",
    "VideoService",
    "VideoServiceError",
    "VideoNotFoundError",
    "VideoProcessingError",
]
