"""Tests for duration resolution: ffprobe first, playlist sum as fallback."""

import subprocess
from unittest.mock import MagicMock

import pytest

from conftest import write_fake_hls
from vodstream.core.storage import MediaStorage
from vodstream.modules.transcoding.duration import DurationResolver
from vodstream.modules.transcoding.ffmpeg import FFmpegTranscoder, ToolResult


def make_resolver(storage: MediaStorage, probe_result: ToolResult) -> tuple[DurationResolver, MagicMock]:
    transcoder = FFmpegTranscoder()
    transcoder.run = MagicMock(return_value=probe_result)
    return DurationResolver(storage=storage, transcoder=transcoder, probe_timeout=5.0), transcoder.run


class TestProbeStrategy:

    def test_probe_result_used(self, media_storage: MediaStorage) -> None:
        write_fake_hls(media_storage, "vid")
        resolver, run = make_resolver(
            media_storage, ToolResult(returncode=0, stdout='{"format": {"duration": "29.97"}}')
        )

        assert resolver.resolve("vid") == pytest.approx(29.97)
        cmd = run.call_args.args[0]
        assert cmd[-1] == str(media_storage.master_playlist_path("vid"))
        assert run.call_args.kwargs["timeout"] == 5.0

    def test_probe_failure_falls_back_to_playlist(self, media_storage: MediaStorage) -> None:
        write_fake_hls(media_storage, "vid", segment_durations=(10.0, 10.0, 4.5))
        resolver, _ = make_resolver(media_storage, ToolResult(returncode=1, stderr="Invalid data"))

        assert resolver.resolve("vid") == pytest.approx(24.5)

    def test_probe_timeout_falls_back_to_playlist(self, media_storage: MediaStorage, monkeypatch) -> None:
        write_fake_hls(media_storage, "vid", segment_durations=(10.0, 2.0))

        def hang(cmd, **kwargs):
            raise subprocess.TimeoutExpired(cmd, kwargs.get("timeout"))

        monkeypatch.setattr(subprocess, "run", hang)
        resolver = DurationResolver(storage=media_storage, transcoder=FFmpegTranscoder(), probe_timeout=0.01)

        assert resolver.resolve("vid") == pytest.approx(12.0)

    def test_no_output_is_unknown(self, media_storage: MediaStorage) -> None:
        resolver, run = make_resolver(media_storage, ToolResult(returncode=0))

        assert resolver.resolve("missing") is None
        run.assert_not_called()


class TestPlaylistFallback:

    def test_first_variant_used(self, media_storage: MediaStorage) -> None:
        write_fake_hls(media_storage, "vid", segment_durations=(6.0, 6.0))
        # A different rendition with other timings must not be consulted
        (media_storage.variant_playlist_path("vid", "1")).write_text("#EXTM3U\n#EXTINF:99,\nsegment_0.ts\n")
        resolver, _ = make_resolver(media_storage, ToolResult(returncode=1))

        assert resolver.from_playlists("vid") == pytest.approx(12.0)

    def test_master_without_variants(self, media_storage: MediaStorage) -> None:
        hls_dir = media_storage.hls_dir("vid")
        hls_dir.mkdir(parents=True)
        media_storage.master_playlist_path("vid").write_text("#EXTM3U\n")
        resolver, _ = make_resolver(media_storage, ToolResult(returncode=1))

        assert resolver.resolve("vid") is None

    @pytest.mark.parametrize(
        "uri", ["../other/0/playlist.m3u8", "/etc/passwd", "http://example.com/playlist.m3u8"]
    )
    def test_variant_outside_tree_ignored(self, media_storage: MediaStorage, uri: str) -> None:
        other = media_storage.hls_dir("other")
        write_fake_hls(media_storage, "other")
        hls_dir = media_storage.hls_dir("vid")
        hls_dir.mkdir(parents=True)
        media_storage.master_playlist_path("vid").write_text(f"#EXTM3U\n{uri}\n")
        resolver, _ = make_resolver(media_storage, ToolResult(returncode=1))

        assert other.exists()
        assert resolver.from_playlists("vid") is None

    def test_missing_variant_playlist(self, media_storage: MediaStorage) -> None:
        hls_dir = media_storage.hls_dir("vid")
        hls_dir.mkdir(parents=True)
        media_storage.master_playlist_path("vid").write_text("#EXTM3U\n0/playlist.m3u8\n")
        resolver, _ = make_resolver(media_storage, ToolResult(returncode=1))

        assert resolver.from_playlists("vid") is None
