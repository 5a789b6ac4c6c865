"""Property-based tests for byte-range streaming of source files.

**Feature: vodstream, Property: A range response is the exact byte window of the stored source**
"""

import os
import tempfile
from pathlib import Path

import pytest
from hypothesis import assume, given, settings, strategies as st

from vodstream.modules.video.delivery import (
    ByteRange,
    RangeNotSatisfiableError,
    parse_range_header,
    read_range,
)

CHUNK_SIZE = 1024 * 1024

file_size_strategy = st.integers(min_value=1, max_value=50 * CHUNK_SIZE)


class TestRangeWindow:
    """The served window for ``bytes=S-``."""

    @given(file_size=file_size_strategy, data=st.data())
    @settings(max_examples=200)
    def test_window_bounds(self, file_size: int, data) -> None:
        """**Feature: vodstream, Property: A range response is the exact byte window of the stored source**

        For any S < L, the window SHALL start at S and end at min(S + CHUNK - 1, L - 1).
        """
        start = data.draw(st.integers(min_value=0, max_value=file_size - 1))

        byte_range = parse_range_header(f"bytes={start}-", file_size, CHUNK_SIZE)

        assert byte_range.start == start
        assert byte_range.end == min(start + CHUNK_SIZE - 1, file_size - 1)
        assert 1 <= byte_range.length <= CHUNK_SIZE
        assert byte_range.content_range == f"bytes {start}-{byte_range.end}/{file_size}"

    @given(file_size=file_size_strategy, overshoot=st.integers(min_value=0, max_value=10**9))
    @settings(max_examples=100)
    def test_start_past_end_unsatisfiable(self, file_size: int, overshoot: int) -> None:
        """For any S >= L, the request SHALL be rejected with the file size attached."""
        with pytest.raises(RangeNotSatisfiableError) as exc_info:
            parse_range_header(f"bytes={file_size + overshoot}-", file_size, CHUNK_SIZE)

        assert exc_info.value.file_size == file_size

    @given(file_size=file_size_strategy, data=st.data())
    @settings(max_examples=100)
    def test_explicit_end_only_shrinks(self, file_size: int, data) -> None:
        """An explicit end SHALL never extend the window beyond one chunk."""
        start = data.draw(st.integers(min_value=0, max_value=file_size - 1))
        end = data.draw(st.integers(min_value=start, max_value=start + 3 * CHUNK_SIZE))

        byte_range = parse_range_header(f"bytes={start}-{end}", file_size, CHUNK_SIZE)

        assert byte_range.end == min(end, start + CHUNK_SIZE - 1, file_size - 1)

    @pytest.mark.parametrize(
        "header",
        ["bytes=-500", "bytes=0-10,20-30", "items=0-", "bytes=abc-", "", "bytes=10-5"],
    )
    def test_unsupported_headers(self, header: str) -> None:
        with pytest.raises(RangeNotSatisfiableError):
            parse_range_header(header, 1000, CHUNK_SIZE)

    def test_small_chunk_window(self) -> None:
        assert parse_range_header("bytes=0-", 100, 10) == ByteRange(start=0, end=9, total=100)
        assert parse_range_header("bytes=95-", 100, 10) == ByteRange(start=95, end=99, total=100)


class TestReadRange:
    """Reading the window returns exactly those bytes."""

    @given(
        payload=st.binary(min_size=1, max_size=8192),
        chunk_size=st.integers(min_value=1, max_value=4096),
        data=st.data(),
    )
    @settings(max_examples=100)
    def test_read_matches_slice(self, payload: bytes, chunk_size: int, data) -> None:
        start = data.draw(st.integers(min_value=0, max_value=len(payload) - 1))
        fd, name = tempfile.mkstemp()
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
            byte_range = parse_range_header(f"bytes={start}-", len(payload), chunk_size)

            chunk = read_range(Path(name), byte_range)
        finally:
            os.unlink(name)

        assert chunk == payload[start:start + chunk_size]
        assert len(chunk) == byte_range.length
