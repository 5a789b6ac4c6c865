"""Pydantic schemas for the video module."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Media types used when serving artifacts
HLS_PLAYLIST_MEDIA_TYPE = "application/vnd.apple.mpegurl"
MPEG_TS_MEDIA_TYPE = "video/mp2t"
THUMBNAIL_MEDIA_TYPE = "image/jpeg"
DEFAULT_SOURCE_MEDIA_TYPE = "application/octet-stream"

MAX_TITLE_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 5000


class VideoUploadRequest(BaseModel):
    """Metadata accompanying an upload."""

    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    description: Optional[str] = Field(None, max_length=MAX_DESCRIPTION_LENGTH)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title must not be blank")
        return v


class VideoResponse(BaseModel):
    """Response schema for a video record."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: Optional[str]
    content_type: Optional[str]
    file_path: str
    duration: Optional[float]
    thumbnail_path: Optional[str]
    status: str
    error_message: Optional[str]
    created_at: datetime
    updated_at: datetime


class MessageResponse(BaseModel):
    """Generic outcome message, optionally carrying a number or a file name."""

    message: str
    success: bool
    data: Optional[float] = None
    file_name: Optional[str] = None


class FailedArtifactResponse(BaseModel):
    """A file that could not be removed."""

    path: str
    error: str


class DeleteVideoResponse(BaseModel):
    """Aggregated outcome of deleting a video."""

    message: str
    success: bool
    video_id: str
    record_deleted: bool
    deleted: list[str] = Field(default_factory=list)
    failed: list[FailedArtifactResponse] = Field(default_factory=list)
