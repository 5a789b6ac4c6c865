"""Video record model.

One row per uploaded video. The row's ``id`` also names the video's HLS
directory and thumbnail file, so it never changes once assigned.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from vodstream.core.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VideoStatus(str, Enum):
    """Processing state of a video.

    uploaded -> transcoding -> ready | failed; failed (or a never-started
    uploaded video) may go back to transcoding on retry.
    """

    UPLOADED = "uploaded"
    TRANSCODING = "transcoding"
    READY = "ready"
    FAILED = "failed"


# States from which a transcode may be (re)started
TRANSCODABLE_STATUSES = frozenset({VideoStatus.UPLOADED.value, VideoStatus.FAILED.value})


class Video(Base):
    """Uploaded video and its lazily derived metadata."""

    __tablename__ = "videos"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)

    # User-supplied metadata
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Source upload
    content_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    file_path: Mapped[str] = mapped_column(String(1024), nullable=False, index=True)

    # Derived metadata, filled lazily
    duration: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # in seconds
    thumbnail_path: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    # Processing state
    status: Mapped[str] = mapped_column(
        String(20), default=VideoStatus.UPLOADED.value, nullable=False, index=True
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    def is_ready(self) -> bool:
        """Check if the HLS ladder was produced successfully."""
        return self.status == VideoStatus.READY.value

    def can_transcode(self) -> bool:
        """Check if a transcode may be started for this video."""
        return self.status in TRANSCODABLE_STATUSES

    def __repr__(self) -> str:
        return f"<Video(id={self.id}, title={self.title}, status={self.status})>"
