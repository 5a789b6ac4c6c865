"""vodstream - HLS video ingestion and delivery service.

Accepts whole-file video uploads, transcodes them into an adaptive-bitrate
HLS ladder with ffmpeg, and serves playlists, segments and derived metadata.

Modules:
    - core: Configuration, database, Redis, Celery, logging, metrics, tracing
    - modules.transcoding: ffmpeg/ffprobe wrappers, ABR ladder, duration, thumbnails
    - modules.video: Video records, ingestion, delivery and deletion
"""

__version__ = "0.1.0"
