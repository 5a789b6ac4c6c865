"""Adaptive bitrate (ABR) ladder for HLS output.

The default ladder has three renditions: 360p at 800 kbps, 720p at
2800 kbps and 1080p at 5000 kbps. Each rendition is written to its own
numbered sub-directory (``0``, ``1``, ``2``) below the video's HLS root,
in ladder order.
"""

from dataclasses import dataclass, field

from vodstream.modules.transcoding.models import RESOLUTION_DIMENSIONS, Resolution


@dataclass
class ABRVariant:
    """A single rendition in an ABR ladder."""
    resolution: Resolution
    bitrate: int  # bps

    @property
    def dimensions(self) -> tuple[int, int]:
        return RESOLUTION_DIMENSIONS[self.resolution]

    @property
    def size(self) -> str:
        width, height = self.dimensions
        return f"{width}x{height}"

    @property
    def bitrate_arg(self) -> str:
        """Bitrate in the ``<n>k`` form ffmpeg accepts."""
        return f"{self.bitrate // 1000}k"


@dataclass
class ABRLadder:
    """Complete ABR ladder configuration."""
    variants: list[ABRVariant] = field(default_factory=list)
    segment_duration: int = 10  # seconds
    video_codec: str = "libx264"
    audio_codec: str = "aac"
    audio_bitrate: int = 128000  # bps

    @classmethod
    def create_default_ladder(cls, segment_duration: int = 10) -> "ABRLadder":
        """Create the standard three-rendition VOD ladder."""
        return cls(
            variants=[
                ABRVariant(resolution=Resolution.RES_360P, bitrate=800000),
                ABRVariant(resolution=Resolution.RES_720P, bitrate=2800000),
                ABRVariant(resolution=Resolution.RES_1080P, bitrate=5000000),
            ],
            segment_duration=segment_duration,
        )

    def variant_names(self) -> list[str]:
        """Sub-directory names for each rendition, in ladder order."""
        return [str(index) for index in range(len(self.variants))]

    def var_stream_map(self) -> str:
        """Value for ffmpeg's ``-var_stream_map`` pairing video and audio per rendition."""
        return " ".join(f"v:{i},a:{i}" for i in range(len(self.variants)))


def get_ffmpeg_args_for_ladder(ladder: ABRLadder) -> list[str]:
    """Get the stream mapping and per-rendition encoder arguments.

    Every rendition maps the first video and first audio stream of the input
    once, so output stream ``v:i``/``a:i`` belongs to rendition ``i``.

    Args:
        ladder: ABR ladder

    Returns:
        List of FFmpeg arguments
    """
    args: list[str] = []
    for _ in ladder.variants:
        args.extend(["-map", "0:v:0", "-map", "0:a:0"])

    args.extend([
        "-c:v", ladder.video_codec,
        "-c:a", ladder.audio_codec,
        "-b:a", f"{ladder.audio_bitrate // 1000}k",
    ])

    for index, variant in enumerate(ladder.variants):
        args.extend([
            f"-s:v:{index}", variant.size,
            f"-b:v:{index}", variant.bitrate_arg,
        ])

    return args


def validate_abr_config(ladder: ABRLadder) -> tuple[bool, list[str]]:
    """Validate ABR ladder configuration.

    Args:
        ladder: ABR ladder to validate

    Returns:
        Tuple of (is_valid, error_messages)
    """
    errors = []

    if not ladder.variants:
        errors.append("ABR ladder must have at least one variant")

    if ladder.segment_duration < 1:
        errors.append("Segment duration must be at least 1 second")

    prev_bitrate = 0
    for variant in ladder.variants:
        if variant.bitrate <= prev_bitrate:
            errors.append("Variants must be ordered by increasing bitrate")
            break
        prev_bitrate = variant.bitrate

    return len(errors) == 0, errors
