"""Shared fixtures for the vodstream test suite.

Provides a temporary media layout, a throwaway SQLite database and a fake
transcoding service that writes a small but well-formed HLS tree without
running ffmpeg.
"""

from pathlib import Path
from typing import Callable, Optional
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from vodstream.core.database import Base
from vodstream.core.storage import MediaStorage, StorageConfig
from vodstream.modules.transcoding.ffmpeg import FFmpegTranscoder, ToolResult
from vodstream.modules.transcoding.service import TranscodeError, TranscodeResult
from vodstream.modules.transcoding.thumbnail import ThumbnailGenerator
from vodstream.modules.video.models import Video  # noqa: F401  (registers the table)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "e2e: end-to-end tests that run the real ffmpeg/ffprobe binaries"
    )


def write_fake_hls(
    storage: MediaStorage,
    video_id: str,
    segment_durations: tuple[float, ...] = (10.0, 10.0, 4.5),
    variants: int = 3,
) -> Path:
    """Write a master playlist, ``variants`` media playlists and empty segments."""
    hls_dir = storage.hls_dir(video_id)
    master_lines = ["#EXTM3U", "#EXT-X-VERSION:3"]
    for index in range(variants):
        variant_dir = hls_dir / str(index)
        variant_dir.mkdir(parents=True, exist_ok=True)
        lines = ["#EXTM3U", "#EXT-X-VERSION:3", "#EXT-X-TARGETDURATION:10"]
        for n, duration in enumerate(segment_durations):
            (variant_dir / f"segment_{n}.ts").write_bytes(b"\x47" * 188)
            lines.extend([f"#EXTINF:{duration:.6f},", f"segment_{n}.ts"])
        lines.append("#EXT-X-ENDLIST")
        (variant_dir / "playlist.m3u8").write_text("\n".join(lines) + "\n")
        master_lines.extend([
            f"#EXT-X-STREAM-INF:BANDWIDTH={(index + 1) * 1000000}",
            f"{index}/playlist.m3u8",
        ])
    master = hls_dir / "master.m3u8"
    master.write_text("\n".join(master_lines) + "\n")
    return master


class FakeTranscodingService:
    """Stands in for TranscodingService; records calls and writes a fake tree."""

    def __init__(
        self,
        storage: MediaStorage,
        fail: bool = False,
        error: Optional[BaseException] = None,
        on_transcode: Optional[Callable[[str], None]] = None,
    ):
        self.storage = storage
        self.fail = fail
        self.error = error
        self.on_transcode = on_transcode
        self.calls: list[tuple[str, str]] = []

    def transcode(self, video_id: str, source_path: str) -> TranscodeResult:
        self.calls.append((video_id, source_path))
        if self.on_transcode is not None:
            self.on_transcode(video_id)
        if self.error is not None:
            raise self.error
        if self.fail:
            # Partial output stays behind, like a real failed encode.
            self.storage.variant_dir(video_id, "0").mkdir(parents=True, exist_ok=True)
            raise TranscodeError("Video processing failed: ffmpeg exited with code 1", returncode=1)
        master = write_fake_hls(self.storage, video_id)
        return TranscodeResult(
            video_id=video_id,
            output_dir=self.storage.hls_dir(video_id),
            master_playlist=master,
        )


def make_thumbnail_generator(storage: MediaStorage, returncode: int = 0) -> ThumbnailGenerator:
    """ThumbnailGenerator whose ffmpeg run is a mock that writes a tiny JPEG."""
    transcoder = FFmpegTranscoder()

    def fake_run(cmd, tool, timeout=None):
        if returncode == 0:
            Path(cmd[-1]).write_bytes(b"\xff\xd8\xff\xe0jpeg")
        return ToolResult(returncode=returncode)

    transcoder.run = MagicMock(side_effect=fake_run)
    return ThumbnailGenerator(storage=storage, transcoder=transcoder, offset_seconds=3)


class CountingDurationResolver:
    """Duration resolver returning a fixed value and counting invocations."""

    def __init__(self, value: Optional[float] = 24.5):
        self.value = value
        self.calls = 0

    def resolve(self, video_id: str) -> Optional[float]:
        self.calls += 1
        return self.value


@pytest.fixture
def media_storage(tmp_path: Path) -> MediaStorage:
    """MediaStorage rooted in a temporary directory."""
    return MediaStorage(
        StorageConfig(
            video_dir=str(tmp_path / "videos"),
            hls_dir=str(tmp_path / "hls"),
            thumbnail_dir=str(tmp_path / "thumbnails"),
        )
    )


@pytest_asyncio.fixture
async def session_factory(tmp_path: Path):
    """Session factory bound to a fresh SQLite database file."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory):
    """A single session for tests that need only one."""
    async with session_factory() as session:
        yield session
