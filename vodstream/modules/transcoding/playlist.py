"""Minimal m3u8 parsing for the duration fallback.

Only the two facts the fallback needs are extracted: which variant playlist
a master playlist lists first, and the ``#EXTINF`` segment durations of a
media playlist. Anything else in the playlists is ignored.
"""

import logging
import math
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

EXTINF_TAG = "#EXTINF:"


def first_variant_uri(master_text: str) -> Optional[str]:
    """Return the first URI line of a master playlist.

    URI lines are the non-blank lines that do not start with ``#``.
    """
    for line in master_text.splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            return line
    return None


def parse_extinf_durations(lines: Iterable[str]) -> list[float]:
    """Collect segment durations from ``#EXTINF:<seconds>[,<title>]`` lines.

    Lines whose duration does not parse as a finite, non-negative number are
    skipped.
    """
    durations = []
    for line in lines:
        line = line.strip()
        if not line.startswith(EXTINF_TAG):
            continue

        value = line[len(EXTINF_TAG):].split(",", 1)[0].strip()
        try:
            duration = float(value)
        except ValueError:
            logger.debug(f"Skipping unparsable EXTINF line: {line!r}")
            continue

        if math.isfinite(duration) and duration >= 0:
            durations.append(duration)
    return durations


def sum_segment_durations(playlist_text: str) -> Optional[float]:
    """Total playable duration of a media playlist.

    Returns:
        Sum of segment durations, or None if there are no segments or the
        sum is zero
    """
    total = sum(parse_extinf_durations(playlist_text.splitlines()))
    if total <= 0:
        return None
    return total
