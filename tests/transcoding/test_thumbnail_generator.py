"""Tests for thumbnail extraction."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from conftest import write_fake_hls
from vodstream.core.storage import MediaStorage
from vodstream.modules.transcoding.ffmpeg import FFmpegTranscoder, ToolResult
from vodstream.modules.transcoding.models import MediaTool
from vodstream.modules.transcoding.thumbnail import ThumbnailError, ThumbnailGenerator


def make_generator(storage: MediaStorage, returncode: int = 0, writes_file: bool = True):
    transcoder = FFmpegTranscoder()

    def fake_run(cmd, tool, timeout=None):
        if writes_file and returncode == 0:
            Path(cmd[-1]).write_bytes(b"\xff\xd8\xff\xe0fakejpeg")
        return ToolResult(returncode=returncode, stderr="error")

    transcoder.run = MagicMock(side_effect=fake_run)
    return ThumbnailGenerator(storage=storage, transcoder=transcoder, offset_seconds=3), transcoder.run


class TestThumbnailGeneration:

    def test_generates_canonical_file(self, media_storage: MediaStorage) -> None:
        write_fake_hls(media_storage, "vid")
        generator, run = make_generator(media_storage)

        path = generator.generate("vid")

        assert path == media_storage.thumbnail_path("vid")
        assert path.stat().st_size > 0
        cmd, tool = run.call_args.args[:2]
        assert tool == MediaTool.THUMBNAIL
        assert cmd[cmd.index("-i") + 1] == str(media_storage.master_playlist_path("vid"))
        assert cmd[cmd.index("-ss") + 1] == "00:00:03"
        assert cmd[cmd.index("-vframes") + 1] == "1"

    def test_existing_thumbnail_not_regenerated(self, media_storage: MediaStorage) -> None:
        write_fake_hls(media_storage, "vid")
        generator, run = make_generator(media_storage)

        first = generator.generate("vid")
        second = generator.generate("vid")

        assert first == second
        run.assert_called_once()

    def test_force_regenerates(self, media_storage: MediaStorage) -> None:
        write_fake_hls(media_storage, "vid")
        generator, run = make_generator(media_storage)

        generator.generate("vid")
        generator.generate("vid", force=True)

        assert run.call_count == 2

    def test_nonzero_exit(self, media_storage: MediaStorage) -> None:
        write_fake_hls(media_storage, "vid")
        generator, _ = make_generator(media_storage, returncode=1)

        with pytest.raises(ThumbnailError, match="exit code: 1") as exc_info:
            generator.generate("vid")
        assert exc_info.value.returncode == 1

    def test_success_without_file(self, media_storage: MediaStorage) -> None:
        write_fake_hls(media_storage, "vid")
        generator, _ = make_generator(media_storage, writes_file=False)

        with pytest.raises(ThumbnailError, match="file not found"):
            generator.generate("vid")

    def test_no_hls_output(self, media_storage: MediaStorage) -> None:
        generator, run = make_generator(media_storage)

        with pytest.raises(ThumbnailError):
            generator.generate("vid")
        run.assert_not_called()
