"""Tests for the media storage layout and best-effort removal.

**Feature: vodstream, Property: Artifacts live at deterministic paths under their roots**
"""

import io
import os
import tempfile
from pathlib import Path

import pytest
from hypothesis import given, settings, strategies as st

from vodstream.core.storage import (
    MediaStorage,
    StorageConfig,
    UnsafePathError,
    clean_filename,
    is_safe_component,
)


def make_storage(root: Path) -> MediaStorage:
    return MediaStorage(
        StorageConfig(
            video_dir=str(root / "videos"),
            hls_dir=str(root / "hls"),
            thumbnail_dir=str(root / "thumbnails"),
        )
    )


class TestArtifactPaths:
    """Path resolution for HLS artifacts and thumbnails."""

    def test_layout(self, media_storage: MediaStorage) -> None:
        root = media_storage.hls_root
        assert media_storage.master_playlist_path("abc") == root / "abc" / "master.m3u8"
        assert media_storage.variant_playlist_path("abc", "1") == root / "abc" / "1" / "playlist.m3u8"
        assert media_storage.segment_path("abc", "2", 7) == root / "abc" / "2" / "segment_7.ts"
        assert media_storage.thumbnail_path("abc") == media_storage.thumbnail_root / "abc.jpg"

    @pytest.mark.parametrize("component", ["..", ".", "a/b", "", "a\\b", "../etc", "x y"])
    def test_unsafe_components_rejected(self, media_storage: MediaStorage, component: str) -> None:
        with pytest.raises(UnsafePathError):
            media_storage.variant_playlist_path("abc", component)
        with pytest.raises(UnsafePathError):
            media_storage.hls_dir(component)

    @pytest.mark.parametrize("index", [-1, "-1", "1a", "", "+3"])
    def test_invalid_segment_index_rejected(self, media_storage: MediaStorage, index) -> None:
        with pytest.raises(UnsafePathError):
            media_storage.segment_path("abc", "0", index)

    def test_segment_digits_kept_as_written(self, media_storage: MediaStorage) -> None:
        variant_dir = media_storage.variant_dir("abc", "0")
        assert media_storage.segment_path("abc", "0", "007") == variant_dir / "segment_007.ts"
        assert media_storage.segment_path("abc", "0", "7") == variant_dir / "segment_7.ts"

    @given(name=st.text(alphabet="abcdefABC0123456789-_", min_size=1, max_size=36))
    @settings(max_examples=100)
    def test_safe_components_stay_under_root(self, name: str) -> None:
        """For any accepted component, the resolved path SHALL be a direct child of the root."""
        storage = make_storage(Path("/media"))
        assert is_safe_component(name)
        assert storage.hls_dir(name).parent == storage.hls_root


class TestUploadFilenames:
    """Client filenames are reduced to their last component."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("clip.mp4", "clip.mp4"),
            ("../../etc/passwd", "passwd"),
            ("C:\\Users\\me\\movie.mov", "movie.mov"),
            ("/abs/path/video.webm", "video.webm"),
        ],
    )
    def test_clean_filename(self, raw: str, expected: str) -> None:
        assert clean_filename(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "..", ".", "dir/", "uploads\\dir\\", "clips/../"])
    def test_unusable_filenames(self, raw) -> None:
        with pytest.raises(UnsafePathError):
            clean_filename(raw)

    @given(payload=st.binary(max_size=4096))
    @settings(max_examples=50)
    def test_save_upload_is_byte_identical(self, payload: bytes) -> None:
        """For any upload, the stored source SHALL equal the uploaded bytes."""
        with tempfile.TemporaryDirectory() as tmp:
            storage = make_storage(Path(tmp))
            result = storage.save_upload(io.BytesIO(payload), "clip.mp4")

            assert result.success
            assert result.path == storage.video_root / "clip.mp4"
            assert result.file_size == len(payload)
            assert result.path.read_bytes() == payload

    def test_same_filename_overwrites(self, media_storage: MediaStorage) -> None:
        media_storage.save_upload(io.BytesIO(b"first"), "clip.mp4")
        result = media_storage.save_upload(io.BytesIO(b"second"), "clip.mp4")

        assert result.path.read_bytes() == b"second"

    def test_write_failure_reported(self, tmp_path: Path) -> None:
        blocker = tmp_path / "videos"
        blocker.write_text("not a directory")
        storage = make_storage(tmp_path)

        result = storage.save_upload(io.BytesIO(b"data"), "clip.mp4")

        assert not result.success
        assert result.error_message


class TestRemoval:
    """Best-effort deletion of files and trees."""

    def test_remove_tree_deletes_everything(self, media_storage: MediaStorage) -> None:
        root = media_storage.hls_dir("vid")
        (root / "0").mkdir(parents=True)
        (root / "0" / "segment_0.ts").write_bytes(b"x")
        (root / "master.m3u8").write_text("#EXTM3U\n")

        report = media_storage.remove_tree(root)

        assert not root.exists()
        assert not report.failed
        assert str(root) in report.deleted
        assert str(root / "0" / "segment_0.ts") in report.deleted

    def test_remove_missing_paths_is_quiet(self, media_storage: MediaStorage) -> None:
        assert media_storage.remove_tree(media_storage.hls_dir("gone")).deleted == []
        report = media_storage.remove_file(media_storage.thumbnail_path("gone"))
        assert report.deleted == [] and report.failed == []

    @pytest.mark.skipif(os.geteuid() == 0, reason="root ignores directory permissions")
    def test_failures_collected_and_walk_continues(self, media_storage: MediaStorage) -> None:
        root = media_storage.hls_dir("vid")
        locked = root / "0"
        locked.mkdir(parents=True)
        (locked / "segment_0.ts").write_bytes(b"x")
        (root / "master.m3u8").write_text("#EXTM3U\n")
        locked.chmod(0o500)
        try:
            report = media_storage.remove_tree(root)
        finally:
            locked.chmod(0o700)

        assert report.failed
        assert str(root / "master.m3u8") in report.deleted
