"""Adapter for mkvmerge, used to rebuild containers around injected streams."""

from __future__ import annotations

import logging
from pathlib import Path

from hdrflow.errors import ToolError
from hdrflow.tools.models import ToolInfo
from hdrflow.tools.runner import ToolRunner

logger = logging.getLogger(__name__)

TOOL_NAME = "mkvmerge"


def format_fps(fps: float) -> str:
    """Render a framerate without a trailing ".0" (23.976, 24, 59.94)."""
    return f"{fps:g}"


class MkvMergeTool:
    """Runs mkvmerge remux operations."""

    def __init__(self, path: Path | None = None, timeout: float = 300) -> None:
        self.runner = ToolRunner(TOOL_NAME, path, timeout)

    def check_availability(self, timeout: float = 10) -> ToolInfo:
        return self.runner.check_availability(
            "--version", ("mkvmerge",), timeout=timeout
        )

    def remux_hevc_with_streams(
        self,
        hevc_file: Path,
        source_mkv: Path,
        output_mkv: Path,
        fps: float,
    ) -> None:
        """Combine a raw HEVC stream with every non-video track of a container.

        Audio, subtitles, chapters and container metadata come from
        source_mkv; its video track is dropped. Raw HEVC has no timing, so
        the framerate must be given explicitly.

        Args:
            hevc_file: Annex-B HEVC elementary stream.
            source_mkv: Container providing every other track.
            output_mkv: Output path.
            fps: Video framerate.

        Raises:
            ToolError: If mkvmerge fails.
        """
        if fps <= 0:
            raise ValueError(f"fps must be positive, got {fps}")

        logger.info(
            "Remuxing HEVC with mkvmerge: %s + %s -> %s",
            hevc_file,
            source_mkv,
            output_mkv,
        )
        logger.debug("Video framerate: %s fps", fps)
        args = [
            "-o",
            output_mkv,
            "--default-duration",
            f"0:{format_fps(fps)}fps",
            "--no-audio",
            "--no-subtitles",
            "--no-chapters",
            hevc_file,
            "-D",
            source_mkv,
        ]
        try:
            self.runner.run(args, output_file=output_mkv)
        except ToolError as e:
            # Exit code 1 means mkvmerge finished with warnings
            if e.returncode == 1 and output_mkv.exists():
                logger.warning(
                    "mkvmerge completed with warnings: %s",
                    (e.stdout or e.stderr).strip(),
                )
                return
            raise

    def version(self) -> str | None:
        return self.runner.version()
