"""Application configuration settings.

All configuration values are loaded from environment variables (.env file).
Media directories and tool paths default to a local layout suitable for
development; production deployments override them via the environment.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    PROJECT_NAME: str = "vodstream"
    VERSION: str = "0.1.0"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./vodstream.db"
    DATABASE_ECHO: bool = False

    # Redis (Celery broker/backend and health checks)
    REDIS_URL: str = "redis://localhost:6379/0"

    # CORS
    CORS_ORIGINS: list[str] = []

    # Media storage layout
    VIDEO_DIR: str = "./media/videos"
    HLS_DIR: str = "./media/hls"
    THUMBNAIL_DIR: str = "./media/thumbnails"

    # External tools
    FFMPEG_PATH: str = "ffmpeg"
    FFPROBE_PATH: str = "ffprobe"
    PROBE_TIMEOUT_SECONDS: float = 10.0

    # HLS output
    HLS_SEGMENT_SECONDS: int = 10

    # Thumbnails
    THUMBNAIL_OFFSET_SECONDS: int = 3

    # Legacy byte-range streaming window (1 MiB)
    RANGE_CHUNK_SIZE: int = 1024 * 1024

    # Transcoding
    # When enabled, uploads return immediately and a Celery worker transcodes.
    TRANSCODE_IN_BACKGROUND: bool = False
    TRANSCODE_TASK_TIME_LIMIT: int = 6 * 3600

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
