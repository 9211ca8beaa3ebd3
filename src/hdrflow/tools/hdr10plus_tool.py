"""Adapter for hdr10plus_tool (HDR10+ dynamic metadata extraction and injection)."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from pathlib import Path

from hdrflow.errors import NoDynamicMetadataError, ToolError
from hdrflow.tools.models import ToolInfo
from hdrflow.tools.runner import ToolRunner

logger = logging.getLogger(__name__)

TOOL_NAME = "hdr10plus_tool"

# Messages hdr10plus_tool prints when the input simply has no HDR10+ data
NO_METADATA_MESSAGES = (
    "File doesn't contain dynamic metadata",
    "No dynamic metadata found",
)


def is_no_dynamic_metadata(error: ToolError) -> bool:
    """Return True if a failed extraction means "no HDR10+ in this file"."""
    output = f"{error.stderr}\n{error.stdout}"
    if any(message in output for message in NO_METADATA_MESSAGES):
        return True
    return error.returncode == 1 and not error.stderr.strip()


class Hdr10PlusTool:
    """Runs hdr10plus_tool subcommands."""

    def __init__(
        self,
        path: Path | None = None,
        timeout: float = 300,
        extract_args: Sequence[str] = (),
        inject_args: Sequence[str] = (),
    ) -> None:
        self.runner = ToolRunner(TOOL_NAME, path, timeout)
        self.extract_args = list(extract_args)
        self.inject_args = list(inject_args)

    def check_availability(self, timeout: float = 10) -> ToolInfo:
        return self.runner.check_availability(
            "--help", ("extract", "inject"), timeout=timeout
        )

    def extract_metadata(self, input_video: Path, output_json: Path) -> None:
        """Extract HDR10+ metadata from a video into a JSON document.

        Raises:
            NoDynamicMetadataError: If the video carries no HDR10+ metadata.
            ToolError: On any other failure.
        """
        logger.info("Extracting HDR10+ metadata: %s -> %s", input_video, output_json)
        args = ["extract", input_video, "-o", output_json, *self.extract_args]
        try:
            self.runner.run(args, output_file=output_json)
        except ToolError as e:
            if e.returncode not in (None, 0) and is_no_dynamic_metadata(e):
                raise NoDynamicMetadataError(
                    TOOL_NAME,
                    "input contains no HDR10+ dynamic metadata",
                    args=e.command,
                    returncode=e.returncode,
                    stdout=e.stdout,
                    stderr=e.stderr,
                ) from e
            raise

    def inject_metadata(
        self, input_video: Path, metadata_json: Path, output_video: Path
    ) -> None:
        logger.info(
            "Injecting HDR10+ metadata: %s + %s -> %s",
            input_video,
            metadata_json,
            output_video,
        )
        args = [
            "inject",
            "-i",
            input_video,
            "-j",
            metadata_json,
            "-o",
            output_video,
            *self.inject_args,
        ]
        self.runner.run(args, output_file=output_video)

    def remove_metadata(self, input_video: Path, output_video: Path) -> None:
        logger.info("Removing HDR10+ metadata: %s -> %s", input_video, output_video)
        self.runner.run(
            ["remove", "-i", input_video, "-o", output_video], output_file=output_video
        )

    def plot_metadata(self, metadata_json: Path, output_image: Path) -> None:
        logger.info("Plotting HDR10+ metadata: %s -> %s", metadata_json, output_image)
        self.runner.run(
            ["plot", metadata_json, "-o", output_image], output_file=output_image
        )

    def validate_metadata(self, metadata_json: Path) -> bool:
        """Check that hdr10plus_tool can read a metadata document.

        Plots the document to a throwaway image next to it; the image is
        removed whatever the outcome.

        Returns:
            True if the document plotted successfully.
        """
        temp_plot = metadata_json.with_name(
            f"{metadata_json.stem}_validation_{uuid.uuid4().hex}.png"
        )
        try:
            self.plot_metadata(metadata_json, temp_plot)
        except ToolError as e:
            logger.warning("HDR10+ metadata validation failed: %s", e)
            return False
        finally:
            temp_plot.unlink(missing_ok=True)
        logger.debug("HDR10+ metadata validation: valid (%s)", metadata_json)
        return True
