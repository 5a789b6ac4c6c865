"""Transcoding module.

Wraps ffmpeg/ffprobe to produce an adaptive-bitrate HLS ladder, resolve
playable duration and extract thumbnails.
"""

from vodstream.modules.transcoding.abr import ABRLadder, ABRVariant
from vodstream.modules.transcoding.duration import DurationResolver
from vodstream.modules.transcoding.ffmpeg import FFmpegTranscoder, ToolResult
from vodstream.modules.transcoding.service import (
    TranscodeError,
    TranscodeResult,
    TranscodingService,
)
from vodstream.modules.transcoding.thumbnail import ThumbnailError, ThumbnailGenerator

__all__ = [
    "ABRLadder",
    "ABRVariant",
    "DurationResolver",
    "FFmpegTranscoder",
    "ToolResult",
    "TranscodeError",
    "TranscodeResult",
    "TranscodingService",
    "ThumbnailError",
    "ThumbnailGenerator",
]
