"""Adapter for dovi_tool (Dolby Vision RPU extraction, injection and conversion)."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from hdrflow.tools.models import ToolInfo
from hdrflow.tools.runner import ToolRunner

logger = logging.getLogger(__name__)

TOOL_NAME = "dovi_tool"


class DoviTool:
    """Runs dovi_tool subcommands."""

    def __init__(
        self,
        path: Path | None = None,
        timeout: float = 300,
        extract_args: Sequence[str] = (),
        inject_args: Sequence[str] = (),
    ) -> None:
        """Initialize the adapter.

        Args:
            path: Explicit dovi_tool path; PATH lookup when None.
            timeout: Timeout for extraction and injection. Profile
                conversion gets twice this.
            extract_args: Extra arguments appended to extract-rpu.
            inject_args: Extra arguments appended to inject-rpu.
        """
        self.runner = ToolRunner(TOOL_NAME, path, timeout)
        self.extract_args = list(extract_args)
        self.inject_args = list(inject_args)

    def check_availability(self, timeout: float = 10) -> ToolInfo:
        return self.runner.check_availability(
            "--help", ("extract-rpu", "inject-rpu"), timeout=timeout
        )

    def extract_rpu(self, input_video: Path, output_rpu: Path) -> None:
        """Extract the RPU stream of a Dolby Vision video to a binary file.

        Raises:
            ToolError: If dovi_tool fails or does not write the RPU file.
        """
        logger.info("Extracting Dolby Vision RPU: %s -> %s", input_video, output_rpu)
        self.runner.run(
            ["extract-rpu", input_video, "-o", output_rpu, *self.extract_args],
            output_file=output_rpu,
        )

    def inject_rpu(self, input_hevc: Path, rpu_file: Path, output_hevc: Path) -> None:
        """Merge an RPU file into a raw HEVC elementary stream.

        Raises:
            ToolError: If dovi_tool fails or does not write the output.
        """
        logger.info(
            "Injecting Dolby Vision RPU: %s + %s -> %s",
            input_hevc,
            rpu_file,
            output_hevc,
        )
        self.runner.run(
            [
                "inject-rpu",
                "-i",
                input_hevc,
                "--rpu-in",
                rpu_file,
                "-o",
                output_hevc,
                *self.inject_args,
            ],
            output_file=output_hevc,
        )

    def convert_profile(
        self, input_rpu: Path, output_rpu: Path, target_profile: str
    ) -> None:
        """Convert an RPU to another Dolby Vision profile (e.g. 7 -> 8.1)."""
        logger.info(
            "Converting Dolby Vision RPU to profile %s: %s -> %s",
            target_profile,
            input_rpu,
            output_rpu,
        )
        self.runner.run(
            ["convert", input_rpu, "-o", output_rpu, "--profile", target_profile],
            output_file=output_rpu,
            timeout=self.runner.timeout * 2,
        )

    def version(self) -> str | None:
        return self.runner.version()
