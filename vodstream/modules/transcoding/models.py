"""Value types shared by the transcoding module."""

from enum import Enum


class Resolution(str, Enum):
    """Output resolutions of the HLS ladder."""
    RES_360P = "360p"
    RES_720P = "720p"
    RES_1080P = "1080p"


# Resolution dimensions mapping
RESOLUTION_DIMENSIONS = {
    Resolution.RES_360P: (640, 360),
    Resolution.RES_720P: (1280, 720),
    Resolution.RES_1080P: (1920, 1080),
}


class MediaTool(str, Enum):
    """External tool invocations, used as metric labels."""
    TRANSCODE = "ffmpeg_transcode"
    THUMBNAIL = "ffmpeg_thumbnail"
    PROBE = "ffprobe"
