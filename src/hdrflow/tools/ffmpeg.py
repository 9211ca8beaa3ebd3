"""Adapters for ffmpeg (bitstream extraction) and ffprobe (stream metadata)."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from hdrflow.errors import ProbeParseError
from hdrflow.tools.models import ToolInfo
from hdrflow.tools.runner import ToolRunner

logger = logging.getLogger(__name__)

HDR_STREAM_ENTRIES = (
    "stream=color_space,color_transfer,color_primaries,bits_per_raw_sample,"
    "chroma_location:stream_side_data"
)
DOLBY_VISION_STREAM_ENTRIES = (
    "stream=codec_name,profile,codec_tag_string,color_space,color_transfer,"
    "color_primaries:stream_side_data"
)


def build_hdr_probe_args(input_path: Path, frames: int = 3) -> list[str]:
    """Return ffprobe arguments reporting HDR signalling for the first video stream.

    Frame side data for the first frames is included because some muxers
    only carry HDR10+ markers there.
    """
    args = [
        "-v",
        "quiet",
        "-select_streams",
        "v:0",
        "-show_entries",
        HDR_STREAM_ENTRIES,
    ]
    if frames > 0:
        args.extend(["-show_frames", "-read_intervals", f"%+#{frames}"])
    args.extend(["-print_format", "json", str(input_path)])
    return args


def build_dolby_vision_probe_args(input_path: Path) -> list[str]:
    """Return ffprobe arguments reporting Dolby Vision configuration."""
    return [
        "-v",
        "quiet",
        "-select_streams",
        "v:0",
        "-show_entries",
        DOLBY_VISION_STREAM_ENTRIES,
        "-print_format",
        "json",
        str(input_path),
    ]


def parse_probe_json(text: str) -> dict[str, Any]:
    """Parse ffprobe JSON output.

    Raises:
        ProbeParseError: If the text is not a JSON object.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ProbeParseError(f"Invalid ffprobe JSON output: {e}") from e
    if not isinstance(data, dict):
        raise ProbeParseError("ffprobe output is not a JSON object")
    return data


class FFprobe:
    """Runs the two metadata probes used for content analysis."""

    def __init__(
        self, path: Path | None = None, timeout: float = 60, frames: int = 3
    ) -> None:
        self.runner = ToolRunner("ffprobe", path, timeout)
        self.frames = frames

    def check_availability(self, timeout: float = 10) -> ToolInfo:
        return self.runner.check_availability("-version", ("ffprobe",), timeout=timeout)

    def probe_hdr(self, input_path: Path) -> dict[str, Any]:
        """Probe color signalling and side data of the first video stream.

        Raises:
            ProbeParseError: If ffprobe output is not valid JSON.
            ToolError: If ffprobe fails.
        """
        stdout = self.runner.run(build_hdr_probe_args(input_path, self.frames))
        return parse_probe_json(stdout)

    def probe_dolby_vision(self, input_path: Path) -> dict[str, Any]:
        """Probe codec profile strings and Dolby Vision side data.

        Raises:
            ProbeParseError: If ffprobe output is not valid JSON.
            ToolError: If ffprobe fails.
        """
        stdout = self.runner.run(build_dolby_vision_probe_args(input_path))
        return parse_probe_json(stdout)


class FFmpegTool:
    """Runs ffmpeg for bitstream format conversion."""

    def __init__(self, path: Path | None = None, timeout: float = 300) -> None:
        self.runner = ToolRunner("ffmpeg", path, timeout)

    def check_availability(self, timeout: float = 10) -> ToolInfo:
        return self.runner.check_availability("-version", ("ffmpeg",), timeout=timeout)

    def extract_hevc_annexb(self, input_mkv: Path, output_hevc: Path) -> None:
        """Copy the video stream of a container into a raw Annex-B HEVC file.

        Raises:
            ToolError: If ffmpeg fails or does not write the output.
        """
        logger.info("Extracting HEVC bitstream: %s -> %s", input_mkv, output_hevc)
        self.runner.run(
            [
                "-i",
                input_mkv,
                "-c:v",
                "copy",
                "-bsf:v",
                "hevc_mp4toannexb",
                "-f",
                "hevc",
                "-y",
                output_hevc,
            ],
            output_file=output_hevc,
        )
