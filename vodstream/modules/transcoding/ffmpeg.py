"""FFmpeg and ffprobe invocation.

Builds the argument lists for the three operations the pipeline needs
(HLS ladder encode, single-frame extraction, duration probe) and runs them
as blocking subprocesses. Callers that live on the event loop push these
calls onto a worker thread.
"""

import json
import logging
import math
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from vodstream.core.metrics import MEDIA_TOOL_INVOCATIONS_TOTAL, PROBE_TIMEOUTS_TOTAL
from vodstream.core.storage import MASTER_PLAYLIST_NAME, VARIANT_PLAYLIST_NAME
from vodstream.core.tracing import add_span_attributes, create_span
from vodstream.modules.transcoding.abr import ABRLadder, get_ffmpeg_args_for_ladder
from vodstream.modules.transcoding.models import MediaTool

logger = logging.getLogger(__name__)

# Conventional exit status for "command not found"
TOOL_NOT_FOUND_EXIT_CODE = 127


@dataclass
class ToolResult:
    """Outcome of one external tool invocation."""
    returncode: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    def stderr_tail(self, lines: int = 20) -> str:
        """Last few lines of stderr, where ffmpeg reports the actual error."""
        return "\n".join(self.stderr.strip().splitlines()[-lines:])


def format_timestamp(seconds: int) -> str:
    """Format whole seconds as ``HH:MM:SS`` for ``-ss``."""
    hours, remainder = divmod(max(seconds, 0), 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def parse_probe_duration(output: str) -> Optional[float]:
    """Extract ``format.duration`` from ffprobe JSON output.

    Returns:
        Duration in seconds, or None when absent, unparsable or not positive
    """
    try:
        data = json.loads(output)
        duration = float(data["format"]["duration"])
    except (ValueError, KeyError, TypeError):
        return None

    if not math.isfinite(duration) or duration <= 0:
        return None
    return duration


class FFmpegTranscoder:
    """Thin wrapper around the ffmpeg and ffprobe binaries."""

    def __init__(self, ffmpeg_path: str = "ffmpeg", ffprobe_path: str = "ffprobe"):
        """Initialize transcoder.

        Args:
            ffmpeg_path: Path to ffmpeg binary
            ffprobe_path: Path to ffprobe binary
        """
        self.ffmpeg_path = ffmpeg_path
        self.ffprobe_path = ffprobe_path

    # ============================================
    # Command builders
    # ============================================

    def build_hls_command(
        self,
        source_path: str,
        output_dir: str,
        ladder: ABRLadder,
    ) -> list[str]:
        """Build the single ffmpeg command that writes the whole HLS ladder.

        Output layout: ``<output_dir>/master.m3u8`` referencing
        ``<output_dir>/<i>/playlist.m3u8`` with ``segment_<n>.ts`` files.

        Args:
            source_path: Uploaded source file
            output_dir: The video's HLS root
            ladder: Renditions to produce

        Returns:
            FFmpeg command as list of arguments
        """
        out = Path(output_dir)
        segment_seconds = ladder.segment_duration

        return [
            self.ffmpeg_path,
            "-y",
            "-nostdin",
            "-i", str(source_path),
            *get_ffmpeg_args_for_ladder(ladder),
            # Keyframe on every segment boundary so segments are uniform
            "-force_key_frames", f"expr:gte(t,n_forced*{segment_seconds})",
            "-var_stream_map", ladder.var_stream_map(),
            "-master_pl_name", MASTER_PLAYLIST_NAME,
            "-f", "hls",
            "-hls_time", str(segment_seconds),
            "-hls_list_size", "0",
            "-hls_playlist_type", "vod",
            "-hls_segment_filename", str(out / "%v" / "segment_%d.ts"),
            str(out / "%v" / VARIANT_PLAYLIST_NAME),
        ]

    def build_thumbnail_command(
        self,
        input_path: str,
        output_path: str,
        offset_seconds: int = 3,
    ) -> list[str]:
        """Build an ffmpeg command extracting one JPEG frame at ``offset_seconds``."""
        return [
            self.ffmpeg_path,
            "-y",
            "-nostdin",
            "-i", str(input_path),
            "-ss", format_timestamp(offset_seconds),
            "-vframes", "1",
            "-q:v", "2",
            str(output_path),
        ]

    def build_probe_command(self, input_path: str) -> list[str]:
        """Build an ffprobe command reporting the container duration as JSON."""
        return [
            self.ffprobe_path,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "json",
            str(input_path),
        ]

    # ============================================
    # Execution
    # ============================================

    def run(
        self,
        cmd: list[str],
        tool: MediaTool,
        timeout: Optional[float] = None,
    ) -> ToolResult:
        """Run a tool to completion and capture its output.

        Blocks until the process exits. With ``timeout`` set, an overrunning
        process is killed and a timed-out result is returned.

        Args:
            cmd: Command and arguments
            tool: Which invocation this is, for metrics and tracing
            timeout: Optional wall-clock limit in seconds

        Returns:
            ToolResult; a missing binary yields exit code 127
        """
        with create_span(f"media.{tool.value}", attributes={"media.tool": tool.value}):
            try:
                completed = subprocess.run(
                    cmd,
                    stdin=subprocess.DEVNULL,
                    capture_output=True,
                    text=True,
                    errors="replace",
                    timeout=timeout,
                )
            except subprocess.TimeoutExpired:
                logger.warning(f"{tool.value} exceeded {timeout}s and was killed")
                MEDIA_TOOL_INVOCATIONS_TOTAL.labels(tool=tool.value, outcome="timeout").inc()
                add_span_attributes({"media.timed_out": True})
                return ToolResult(returncode=-1, timed_out=True)
            except FileNotFoundError as e:
                logger.error(f"{tool.value} binary not found: {cmd[0]}")
                MEDIA_TOOL_INVOCATIONS_TOTAL.labels(tool=tool.value, outcome="missing").inc()
                return ToolResult(returncode=TOOL_NOT_FOUND_EXIT_CODE, stderr=str(e))

            outcome = "success" if completed.returncode == 0 else "failure"
            MEDIA_TOOL_INVOCATIONS_TOTAL.labels(tool=tool.value, outcome=outcome).inc()
            add_span_attributes({"media.returncode": completed.returncode})

            return ToolResult(
                returncode=completed.returncode,
                stdout=completed.stdout or "",
                stderr=completed.stderr or "",
            )

    def probe_duration(self, input_path: str, timeout: float) -> Optional[float]:
        """Ask ffprobe for the duration of ``input_path``.

        Returns:
            Duration in seconds, or None on timeout, failure or unusable output
        """
        result = self.run(self.build_probe_command(input_path), MediaTool.PROBE, timeout=timeout)

        if result.timed_out:
            PROBE_TIMEOUTS_TOTAL.inc()
            return None
        if not result.success:
            logger.warning(
                f"ffprobe exited with code {result.returncode}: {result.stderr_tail(5)}"
            )
            return None

        return parse_probe_duration(result.stdout)
