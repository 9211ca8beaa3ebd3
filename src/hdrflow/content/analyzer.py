"""Per-file content analysis combining HDR, Dolby Vision and HDR10+ signals."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from hdrflow.config.models import HdrFlowConfig
from hdrflow.content.approach import (
    ContentEncodingApproach,
    DolbyVisionApproach,
    DualFormatApproach,
    EncodingAdjustments,
    HdrApproach,
    RateMode,
    calculate_adjustments,
    recommended_bitrate,
    recommended_crf,
    resolve_approach,
    resolve_vbv_settings,
)
from hdrflow.dolby_vision.analyzer import DolbyVisionAnalyzer, DolbyVisionInfo
from hdrflow.hdr.detection import ENCODING_COMPLEXITY, HdrDetector
from hdrflow.hdr.encoding import EncoderParams, ensure_sdr_params
from hdrflow.hdr.formats.registry import HdrFormatRegistry
from hdrflow.hdr.metadata import get_metadata_summary
from hdrflow.hdr.types import HdrAnalysisResult, HdrFormat
from hdrflow.hdr10plus.manager import (
    Hdr10PlusManager,
    build_dual_format_x265_params,
    build_hdr10plus_x265_params,
)
from hdrflow.hdr10plus.models import Hdr10PlusProcessingResult
from hdrflow.tools.ffmpeg import FFprobe

logger = logging.getLogger(__name__)


@dataclass
class ContentAnalysisResult:
    """Everything the encoder stage needs to know about one input file.

    Owns the HDR10+ metadata file when one was extracted; call cleanup()
    (or hand the result to the workflow manager) when done.
    """

    path: Path
    hdr: HdrAnalysisResult
    dolby_vision: DolbyVisionInfo
    hdr10plus: Hdr10PlusProcessingResult | None
    approach: ContentEncodingApproach
    adjustments: EncodingAdjustments
    hdr10plus_extraction_attempted: bool = False

    def final_crf(self, base_crf: float) -> float:
        return recommended_crf(self.adjustments, base_crf)

    def final_bitrate(self, base_bitrate: int) -> int:
        return recommended_bitrate(self.adjustments, base_bitrate)

    def cleanup(self) -> None:
        if self.hdr10plus is not None:
            self.hdr10plus.cleanup()

    def to_dict(self) -> dict[str, Any]:
        """Serialize the analysis for JSON output."""
        low, high = self.adjustments.recommended_crf_range
        data: dict[str, Any] = {
            "path": str(self.path),
            "hdr": {
                "format": self.hdr.format.value,
                "summary": get_metadata_summary(self.hdr.metadata),
                "confidence": round(self.hdr.confidence_score, 3),
                "requires_tone_mapping": self.hdr.requires_tone_mapping,
                "encoding_complexity": self.hdr.encoding_complexity,
            },
            "dolby_vision": {
                "profile": self.dolby_vision.profile.value,
                "rpu_present": self.dolby_vision.rpu_present,
                "el_present": self.dolby_vision.el_present,
                "bl_compatible_id": self.dolby_vision.bl_compatible_id,
                "codec_profile": self.dolby_vision.codec_profile,
            },
            "hdr10plus": None,
            "approach": {
                "kind": self.approach.kind.value,
                "description": self.approach.describe(),
            },
            "adjustments": {
                "crf_adjustment": self.adjustments.crf_adjustment,
                "bitrate_multiplier": round(self.adjustments.bitrate_multiplier, 4),
                "encoding_complexity": round(self.adjustments.encoding_complexity, 4),
                "requires_vbv": self.adjustments.requires_vbv,
                "recommended_crf_range": [low, high],
            },
        }
        if self.hdr10plus is not None:
            metadata = self.hdr10plus.metadata
            data["hdr10plus"] = {
                "metadata_file": str(self.hdr10plus.metadata_file),
                "version": metadata.version,
                "frame_count": metadata.frame_count,
                "scene_count": self.hdr10plus.scene_count,
                "curve_count": self.hdr10plus.curve_count,
                "average_brightness": metadata.average_brightness(),
                "peak_brightness": metadata.peak_brightness(),
                "source": metadata.source_info,
            }
        return data


class ContentAnalyzer:
    """Runs detection, optional HDR10+ extraction and approach resolution."""

    def __init__(
        self,
        config: HdrFlowConfig,
        probe: FFprobe,
        hdr10plus_manager: Hdr10PlusManager | None = None,
        registry: HdrFormatRegistry | None = None,
    ) -> None:
        """Initialize the analyzer.

        Args:
            config: Application configuration.
            probe: ffprobe adapter shared by both detectors.
            hdr10plus_manager: Extraction manager; None disables extraction
                (for example when hdr10plus_tool is unavailable).
            registry: Format registry; built from config when None.
        """
        self.config = config
        self.hdr_detector = HdrDetector(config.hdr, probe)
        self.dv_analyzer = DolbyVisionAnalyzer(config.dolby_vision, probe)
        self.hdr10plus_manager = hdr10plus_manager
        self.registry = registry or HdrFormatRegistry(config.workflow.max_cll_padding)

    def analyze(self, path: Path) -> ContentAnalysisResult:
        """Analyze one input file.

        Raises:
            ProbeParseError: If probe output is malformed.
            ToolError: If ffprobe fails.
        """
        hdr_result = self.hdr_detector.analyze_file(path)
        dv_info = self.dv_analyzer.analyze_file(path)

        hdr10plus: Hdr10PlusProcessingResult | None = None
        attempted = self._should_extract_hdr10plus(hdr_result, dv_info)
        if attempted:
            hdr10plus = self.hdr10plus_manager.extract_metadata(path)
            hdr_result = self._reconcile_hdr10plus(hdr_result, hdr10plus)

        approach = resolve_approach(
            dv_info,
            hdr_result,
            hdr10plus is not None or hdr_result.format is HdrFormat.HDR10_PLUS,
            self.config.dolby_vision,
        )
        adjustments = calculate_adjustments(
            approach, self.config.dolby_vision, self.registry
        )
        logger.info(
            "Content analysis for %s: %s",
            path.name,
            approach.describe(),
            extra={
                "approach": approach.kind.value,
                "hdr_format": hdr_result.format.value,
                "dv_profile": dv_info.profile.value,
            },
        )
        return ContentAnalysisResult(
            path=path,
            hdr=hdr_result,
            dolby_vision=dv_info,
            hdr10plus=hdr10plus,
            approach=approach,
            adjustments=adjustments,
            hdr10plus_extraction_attempted=attempted,
        )

    def _should_extract_hdr10plus(
        self, hdr_result: HdrAnalysisResult, dv_info: DolbyVisionInfo
    ) -> bool:
        if self.hdr10plus_manager is None or not self.config.hdr10plus.enabled:
            return False
        if hdr_result.format is HdrFormat.HDR10_PLUS or dv_info.is_dolby_vision():
            return True
        return (
            hdr_result.format is HdrFormat.HDR10
            and self.config.hdr10plus.probe_hdr10_content
        )

    @staticmethod
    def _reconcile_hdr10plus(
        hdr_result: HdrAnalysisResult, hdr10plus: Hdr10PlusProcessingResult | None
    ) -> HdrAnalysisResult:
        """Align the HDR classification with the extraction outcome."""
        if hdr10plus is None and hdr_result.format is HdrFormat.HDR10_PLUS:
            logger.info("No HDR10+ metadata could be extracted, treating as HDR10")
            return _with_format(hdr_result, HdrFormat.HDR10)
        if hdr10plus is not None and hdr_result.format is HdrFormat.HDR10:
            logger.info("HDR10+ dynamic metadata found in HDR10 content")
            return _with_format(hdr_result, HdrFormat.HDR10_PLUS)
        return hdr_result

    def build_encoder_params(
        self,
        result: ContentAnalysisResult,
        base_params: EncoderParams | None = None,
        rate_mode: RateMode = RateMode.CRF,
        bitrate_kbps: int | None = None,
    ) -> EncoderParams:
        """Return the x265 parameters for an analyzed file.

        The Dolby Vision RPU is never passed to the encoder; it is injected
        after the encode.

        Keys in base_params always win over HDR10+ and dual-format tuning.
        Static metadata from the source that fails validation is replaced
        by the format defaults.

        Raises:
            MetadataValidationError: If the HDR metadata does not validate.
        """
        base = dict(base_params or {})
        approach = result.approach
        hdr: HdrAnalysisResult | None = None
        if isinstance(approach, (HdrApproach, DualFormatApproach)):
            hdr = approach.hdr
        elif isinstance(approach, DolbyVisionApproach):
            # Base layer of HDR10-compatible profiles carries static metadata
            hdr = result.hdr

        if hdr is None or not hdr.format.is_hdr():
            params = ensure_sdr_params(base)
        else:
            params = self.registry.build_params_for_source(
                hdr.format, hdr.metadata, base
            )
            if result.hdr10plus is not None:
                if isinstance(approach, DualFormatApproach):
                    tuning = build_dual_format_x265_params(
                        result.dolby_vision, result.hdr10plus
                    )
                else:
                    tuning = build_hdr10plus_x265_params(result.hdr10plus)
                params.update(
                    (key, value) for key, value in tuning.items() if key not in base
                )
                params["dhdr10-info"] = tuning["dhdr10-info"]

        vbv = resolve_vbv_settings(
            result.adjustments, rate_mode, bitrate_kbps, self.config.dolby_vision
        )
        if vbv is not None:
            params.update(vbv.to_params())
        return params


def _with_format(
    hdr_result: HdrAnalysisResult, hdr_format: HdrFormat
) -> HdrAnalysisResult:
    return replace(
        hdr_result,
        metadata=replace(hdr_result.metadata, format=hdr_format),
        encoding_complexity=ENCODING_COMPLEXITY[hdr_format],
    )
