"""HDR10+ dynamic metadata extraction and x265 parameter generation."""

from __future__ import annotations

import logging
from pathlib import Path

from hdrflow.dolby_vision.analyzer import DolbyVisionInfo, DolbyVisionProfile
from hdrflow.errors import (
    MetadataValidationError,
    NoDynamicMetadataError,
    ProbeParseError,
    ToolError,
)
from hdrflow.hdr.encoding import EncoderParams
from hdrflow.hdr.types import HdrAnalysisResult, HdrFormat
from hdrflow.hdr10plus.models import Hdr10PlusMetadata, Hdr10PlusProcessingResult
from hdrflow.temp_files import TempArtifact, hdr10plus_temp_path
from hdrflow.tools.hdr10plus_tool import Hdr10PlusTool

logger = logging.getLogger(__name__)


class Hdr10PlusManager:
    """Extracts HDR10+ metadata and turns it into encoder parameters."""

    def __init__(
        self,
        tool: Hdr10PlusTool,
        temp_dir: Path | None = None,
        verify_with_plot: bool = False,
    ) -> None:
        """Initialize the manager.

        Args:
            tool: hdr10plus_tool adapter.
            temp_dir: Directory for extracted JSON; alongside the source when None.
            verify_with_plot: Also check extracted documents with
                hdr10plus_tool plot.
        """
        self.tool = tool
        self.temp_dir = temp_dir
        self.verify_with_plot = verify_with_plot

    def extract_metadata(self, input_video: Path) -> Hdr10PlusProcessingResult | None:
        """Extract, parse and validate HDR10+ metadata from a video.

        Every failure is recovered into None: a file without dynamic
        metadata is logged at info level, anything else as a warning with
        the full tool diagnostic. The JSON file is removed whenever None
        is returned.
        """
        artifact = TempArtifact(
            hdr10plus_temp_path(input_video, self.temp_dir), "hdr10plus"
        )
        logger.info("Extracting HDR10+ dynamic metadata from: %s", input_video)

        try:
            self.tool.extract_metadata(input_video, artifact.path)
        except NoDynamicMetadataError:
            logger.info("No HDR10+ dynamic metadata detected (standard HDR10 content)")
            artifact.release()
            return None
        except ToolError as e:
            logger.warning(
                "HDR10+ metadata extraction failed:\n%s",
                e.details(),
                extra={"tool": e.tool, "returncode": e.returncode},
            )
            artifact.release()
            return None

        try:
            metadata = Hdr10PlusMetadata.from_json_file(artifact.path)
            metadata.validate_structure()
        except (ProbeParseError, MetadataValidationError) as e:
            logger.warning("Discarding extracted HDR10+ metadata: %s", e)
            artifact.release()
            return None

        if self.verify_with_plot and not self.tool.validate_metadata(artifact.path):
            logger.warning("hdr10plus_tool could not read the extracted metadata")
            artifact.release()
            return None

        try:
            file_size = artifact.path.stat().st_size
        except OSError:
            file_size = None

        result = Hdr10PlusProcessingResult(
            artifact=artifact, metadata=metadata, file_size=file_size
        )
        logger.info(
            "Extracted HDR10+ metadata: %d frames, %d scenes, %d curves",
            metadata.frame_count,
            result.scene_count,
            result.curve_count,
            extra={"metadata_file": str(artifact.path)},
        )
        return result


def build_hdr10plus_x265_params(result: Hdr10PlusProcessingResult) -> EncoderParams:
    """Return x265 parameters that embed HDR10+ metadata during the encode.

    Raises:
        MetadataValidationError: If the extraction did not succeed.
    """
    if not result.extraction_successful:
        raise MetadataValidationError(
            "Cannot build x265 params, HDR10+ extraction failed"
        )
    params: EncoderParams = {
        "dhdr10-info": str(result.metadata_file),
        "hdr10plus-opt": "1",
        "rc-lookahead": "60",
        "bframes": "8",
        "b-adapt": "2",
        "psy-rd": "2.5",
        "psy-rdoq": "1.0",
        "aq-mode": "3",
        "aq-strength": "1.0",
        "me": "umh",
        "subme": "5",
        "merange": "64",
        "rect": "",
        "amp": "",
        "strong-intra-smoothing": "",
        "weightb": "",
        "weightp": "2",
    }
    logger.debug("Generated %d HDR10+ x265 parameters", len(params))
    return params


def build_dual_format_x265_params(
    dv_info: DolbyVisionInfo,
    result: Hdr10PlusProcessingResult,
    rpu_path: Path | None = None,
) -> EncoderParams:
    """Return x265 parameters for content carrying both Dolby Vision and HDR10+.

    Raises:
        MetadataValidationError: If the HDR10+ extraction did not succeed.
    """
    params: EncoderParams = {}
    if rpu_path is not None:
        # x265 only writes single-layer profiles
        profile = dv_info.profile
        if profile is DolbyVisionProfile.PROFILE_7:
            profile = DolbyVisionProfile.PROFILE_8_1
        params["dolby-vision-rpu"] = str(rpu_path)
        params["dolby-vision-profile"] = profile.value

    params.update(build_hdr10plus_x265_params(result))
    params.update(
        {
            "crf": "16",
            "preset": "veryslow",
            "rd": "6",
            "rdoq-level": "2",
            "bframes": "10",
            "b-pyramid": "",
            "b-adapt": "2",
        }
    )
    logger.debug("Generated %d dual format x265 parameters", len(params))
    return params


def estimate_processing_overhead(
    hdr_result: HdrAnalysisResult, result: Hdr10PlusProcessingResult | None
) -> float:
    """Relative encode cost of HDR10+ handling for a file."""
    if hdr_result.format is not HdrFormat.HDR10_PLUS:
        return 1.0
    if result is None:
        return 1.4
    return result.estimate_processing_overhead()
