"""Tests for metric path normalization and structured logging context."""

import json
import logging

from vodstream.core.logging import (
    CorrelationIdFilter,
    StructuredFormatter,
    bind_video_id,
    get_video_id,
)
from vodstream.core.middleware import normalize_path


class TestNormalizePath:
    """Per-video path components collapse to placeholders."""

    def test_segment_path(self) -> None:
        path = "/api/v1/videos/3f2b8c1e-4a5d-4e6f-8a9b-0c1d2e3f4a5b/1/segment_42.ts"
        assert normalize_path(path) == "/api/v1/videos/{id}/{variant}/segment_{n}.ts"

    def test_variant_playlist_path(self) -> None:
        path = "/api/v1/videos/3f2b8c1e-4a5d-4e6f-8a9b-0c1d2e3f4a5b/0/playlist.m3u8"
        assert normalize_path(path) == "/api/v1/videos/{id}/{variant}/playlist.m3u8"

    def test_static_paths_unchanged(self) -> None:
        assert normalize_path("/health") == "/health"
        assert normalize_path("/api/v1/videos") == "/api/v1/videos"


class TestVideoLogContext:
    """Log records carry the video being processed."""

    def _record(self) -> logging.LogRecord:
        record = logging.LogRecord("vodstream.test", logging.INFO, __file__, 1, "hello", None, None)
        CorrelationIdFilter().filter(record)
        return record

    def test_bound_video_id_in_json(self) -> None:
        with bind_video_id("vid-1"):
            assert get_video_id() == "vid-1"
            payload = json.loads(StructuredFormatter().format(self._record()))

        assert payload["video_id"] == "vid-1"
        assert payload["message"] == "hello"
        assert get_video_id() is None

    def test_unbound_video_id_placeholder(self) -> None:
        assert self._record().video_id == "-"
