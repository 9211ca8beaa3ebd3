"""Dolby Vision RPU extraction and post-encode injection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from hdrflow.dolby_vision.analyzer import DolbyVisionInfo, DolbyVisionProfile
from hdrflow.errors import TempFileError, ToolError
from hdrflow.temp_files import (
    TempArtifact,
    hevc_rpu_temp_path,
    hevc_temp_path,
    rpu_temp_path,
)
from hdrflow.tools.dovi_tool import DoviTool
from hdrflow.tools.ffmpeg import FFmpegTool
from hdrflow.tools.mkvmerge import MkvMergeTool

logger = logging.getLogger(__name__)


@dataclass
class RpuMetadata:
    """An extracted RPU file owned by one workflow run."""

    artifact: TempArtifact
    profile: DolbyVisionProfile
    extracted_successfully: bool = False
    file_size: int | None = None

    @property
    def path(self) -> Path:
        return self.artifact.path

    def validate(self) -> None:
        """Check the RPU file exists and is not empty.

        Raises:
            TempFileError: If the file is missing or empty.
        """
        try:
            size = self.path.stat().st_size
        except OSError as e:
            raise TempFileError(self.path, f"RPU file not found ({e})") from e
        self.file_size = size
        if size == 0:
            raise TempFileError(
                self.path, "RPU file is empty, extraction may have failed"
            )
        self.extracted_successfully = True
        logger.debug("Validated RPU file: %s (%d bytes)", self.path, size)

    def cleanup(self) -> None:
        self.artifact.release()


class RpuManager:
    """Runs the RPU lifecycle: extract, optionally convert, inject."""

    def __init__(
        self,
        dovi_tool: DoviTool,
        ffmpeg: FFmpegTool,
        mkvmerge: MkvMergeTool,
        temp_dir: Path | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            dovi_tool: RPU tool adapter.
            ffmpeg: Used to pull the raw HEVC stream out of the encode.
            mkvmerge: Used to rebuild the final container.
            temp_dir: Temp file directory; alongside the inputs when None.
        """
        self.dovi_tool = dovi_tool
        self.ffmpeg = ffmpeg
        self.mkvmerge = mkvmerge
        self.temp_dir = temp_dir

    def extract_rpu(
        self, input_path: Path, dv_info: DolbyVisionInfo
    ) -> RpuMetadata | None:
        """Extract the RPU of a Dolby Vision source.

        Returns:
            Validated RPU metadata, or None when the stream has no RPU.

        Raises:
            ToolError: If dovi_tool fails.
            TempFileError: If the RPU file is missing or empty.
        """
        if not dv_info.needs_rpu_processing():
            logger.debug("No RPU processing needed for %s", input_path)
            return None

        artifact = TempArtifact(rpu_temp_path(input_path, self.temp_dir), "rpu")
        logger.info("Extracting RPU metadata from: %s", input_path)
        try:
            self.dovi_tool.extract_rpu(input_path, artifact.path)
            rpu = RpuMetadata(artifact=artifact, profile=dv_info.profile)
            rpu.validate()
        except (ToolError, TempFileError):
            artifact.release()
            raise

        logger.info(
            "Extracted RPU metadata for Profile %s (%d bytes)",
            dv_info.profile.value,
            rpu.file_size,
            extra={"dv_profile": dv_info.profile.value, "rpu_path": str(rpu.path)},
        )
        return rpu

    def convert_rpu(self, rpu: RpuMetadata, target: DolbyVisionProfile) -> RpuMetadata:
        """Convert an RPU to another profile.

        On success the original RPU file is released and the converted one
        returned; on failure the original is returned unchanged.
        """
        if target is rpu.profile:
            return rpu

        artifact = TempArtifact(rpu_temp_path(rpu.path, self.temp_dir), "rpu")
        try:
            self.dovi_tool.convert_profile(rpu.path, artifact.path, target.value)
            converted = RpuMetadata(artifact=artifact, profile=target)
            converted.validate()
        except (ToolError, TempFileError) as e:
            artifact.release()
            details = e.details() if isinstance(e, ToolError) else str(e)
            logger.warning(
                "RPU conversion to profile %s failed, keeping profile %s:\n%s",
                target.value,
                rpu.profile.value,
                details,
            )
            return rpu

        logger.info(
            "Converted RPU from profile %s to %s", rpu.profile.value, target.value
        )
        rpu.cleanup()
        return converted

    def inject_rpu(
        self,
        encoded_mkv: Path,
        rpu: RpuMetadata,
        final_output: Path,
        fps: float,
    ) -> None:
        """Inject an RPU into an encoded file, producing final_output.

        Runs ffmpeg Annex-B extraction, dovi_tool inject-rpu and a mkvmerge
        remux that restores every non-video track from encoded_mkv. Each
        transitional file is removed as soon as the next step has run.

        Raises:
            ToolError: If any step fails; transitional files are already gone.
            TempFileError: If the RPU is not usable.
        """
        if not rpu.extracted_successfully or not rpu.path.exists():
            raise TempFileError(
                rpu.path, "Cannot inject RPU: extraction was not successful"
            )

        logger.info("Injecting RPU metadata into: %s", encoded_mkv)

        temp_hevc = TempArtifact(
            hevc_temp_path(encoded_mkv, self.temp_dir), "rpu-inject"
        )
        hevc_with_rpu = TempArtifact(
            hevc_rpu_temp_path(encoded_mkv, self.temp_dir), "rpu-inject"
        )
        try:
            logger.info(
                "Step 1/3: Extracting raw HEVC bitstream from %s", encoded_mkv.name
            )
            self.ffmpeg.extract_hevc_annexb(encoded_mkv, temp_hevc.path)

            logger.info("Step 2/3: Injecting RPU metadata into HEVC bitstream")
            try:
                self.dovi_tool.inject_rpu(temp_hevc.path, rpu.path, hevc_with_rpu.path)
            finally:
                temp_hevc.release()

            logger.info(
                "Step 3/3: Remuxing HEVC with all streams from %s", encoded_mkv.name
            )
            try:
                self.mkvmerge.remux_hevc_with_streams(
                    hevc_with_rpu.path, encoded_mkv, final_output, fps
                )
            finally:
                hevc_with_rpu.release()
        finally:
            temp_hevc.release()
            hevc_with_rpu.release()

        logger.info(
            "Injected Dolby Vision RPU (profile %s) into %s",
            rpu.profile.value,
            final_output,
            extra={"dv_profile": rpu.profile.value},
        )
