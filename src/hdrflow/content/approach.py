"""Encoding approach resolution and rate-control adjustments.

A file is encoded with exactly one approach:

    SdrApproach           no HDR handling
    HdrApproach           static HDR10, HDR10+ or HLG parameters
    DolbyVisionApproach   RPU extracted before and injected after the encode
    DualFormatApproach    Dolby Vision RPU plus HDR10+ dynamic metadata

resolve_approach() is a pure function of the detected formats and the
Dolby Vision configuration. calculate_adjustments() turns an approach into
the CRF offset, bitrate multiplier and VBV requirement the encoder stage
applies to its base profile.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from hdrflow.config.models import DolbyVisionConfig
from hdrflow.dolby_vision.analyzer import (
    DolbyVisionAnalyzer,
    DolbyVisionInfo,
    DolbyVisionProfile,
)
from hdrflow.hdr.formats.registry import HdrFormatRegistry
from hdrflow.hdr.types import HdrAnalysisResult, HdrFormat

logger = logging.getLogger(__name__)

# Full x265 CRF range; SDR adjustments never clamp
SDR_CRF_RANGE = (0.0, 51.0)
HDR_CRF_RANGE = (18.0, 24.0)


class ApproachKind(Enum):
    """Discriminator of ContentEncodingApproach."""

    SDR = "sdr"
    HDR = "hdr"
    DOLBY_VISION = "dolby_vision"
    DOLBY_VISION_WITH_HDR10_PLUS = "dolby_vision_hdr10plus"


@dataclass(frozen=True)
class SdrApproach:
    """Plain SDR encode."""

    @property
    def kind(self) -> ApproachKind:
        return ApproachKind.SDR

    def describe(self) -> str:
        return "SDR"


@dataclass(frozen=True)
class HdrApproach:
    """Static HDR encode for the detected format."""

    hdr: HdrAnalysisResult

    @property
    def kind(self) -> ApproachKind:
        return ApproachKind.HDR

    def describe(self) -> str:
        return f"HDR ({self.hdr.format.display_name})"


@dataclass(frozen=True)
class DolbyVisionApproach:
    """Dolby Vision preservation through post-encode RPU injection."""

    dv: DolbyVisionInfo

    @property
    def kind(self) -> ApproachKind:
        return ApproachKind.DOLBY_VISION

    def describe(self) -> str:
        return f"Dolby Vision (Profile {self.dv.profile.value})"


@dataclass(frozen=True)
class DualFormatApproach:
    """Dolby Vision preservation combined with HDR10+ dynamic metadata."""

    dv: DolbyVisionInfo
    hdr: HdrAnalysisResult

    @property
    def kind(self) -> ApproachKind:
        return ApproachKind.DOLBY_VISION_WITH_HDR10_PLUS

    def describe(self) -> str:
        return f"Dolby Vision (Profile {self.dv.profile.value}) + HDR10+"


ContentEncodingApproach = (
    SdrApproach | HdrApproach | DolbyVisionApproach | DualFormatApproach
)


class RateMode(Enum):
    """Rate control mode of the encode the adjustments are applied to."""

    CRF = "crf"
    ABR = "abr"
    CBR = "cbr"


@dataclass(frozen=True)
class EncodingAdjustments:
    """Changes applied to the base encoding profile for one file."""

    crf_adjustment: float
    bitrate_multiplier: float
    encoding_complexity: float
    requires_vbv: bool
    recommended_crf_range: tuple[float, float]

    @classmethod
    def sdr_default(cls) -> EncodingAdjustments:
        """Identity adjustments."""
        return cls(
            crf_adjustment=0.0,
            bitrate_multiplier=1.0,
            encoding_complexity=1.0,
            requires_vbv=False,
            recommended_crf_range=SDR_CRF_RANGE,
        )


@dataclass(frozen=True)
class VbvSettings:
    """x265 VBV constraints in kbit/s and kbit."""

    maxrate: int
    bufsize: int

    def to_params(self) -> dict[str, str]:
        return {"vbv-maxrate": str(self.maxrate), "vbv-bufsize": str(self.bufsize)}


@dataclass(frozen=True)
class _ProfileTuning:
    crf_range: tuple[float, float]
    complexity: float


_DV_PROFILE_TUNING: dict[DolbyVisionProfile, _ProfileTuning] = {
    DolbyVisionProfile.PROFILE_7: _ProfileTuning((16.0, 19.0), 1.8),
    DolbyVisionProfile.PROFILE_8_1: _ProfileTuning((16.0, 20.0), 1.5),
    DolbyVisionProfile.PROFILE_8_2: _ProfileTuning((16.0, 19.0), 1.6),
    DolbyVisionProfile.PROFILE_8_4: _ProfileTuning((16.0, 20.0), 1.5),
    DolbyVisionProfile.PROFILE_5: _ProfileTuning((17.0, 21.0), 1.4),
}
_DV_UNKNOWN_TUNING = _ProfileTuning((16.0, 18.0), 1.8)
_DV_GENERIC_TUNING = _ProfileTuning((16.0, 20.0), 1.5)

# Extra cost of carrying HDR10+ on top of Dolby Vision
DUAL_FORMAT_CRF_OFFSET = -0.5
DUAL_FORMAT_BITRATE_FACTOR = 1.2
DUAL_FORMAT_COMPLEXITY_FACTOR = 1.3

ABR_MAXRATE_FACTOR = 1.10
VBV_BUFSIZE_FACTOR = 2.0


def resolve_approach(
    dv_info: DolbyVisionInfo,
    hdr_result: HdrAnalysisResult,
    hdr10plus_present: bool,
    config: DolbyVisionConfig,
) -> ContentEncodingApproach:
    """Choose the encoding approach for a file.

    Args:
        dv_info: Dolby Vision detection result.
        hdr_result: HDR classification.
        hdr10plus_present: True when HDR10+ metadata was detected or extracted.
        config: Dolby Vision preservation settings.

    Returns:
        The single approach the file is encoded with.
    """
    if dv_info.is_dolby_vision():
        if DolbyVisionAnalyzer(config).should_preserve(dv_info):
            if hdr10plus_present:
                return DualFormatApproach(dv=dv_info, hdr=hdr_result)
            return DolbyVisionApproach(dv=dv_info)
        if hdr_result.format.is_hdr():
            logger.info(
                "Dolby Vision Profile %s detected but not preservable, "
                "falling back to %s",
                dv_info.profile.value,
                hdr_result.format.display_name,
            )
            return HdrApproach(hdr=hdr_result)
        logger.info(
            "Dolby Vision Profile %s detected but not preservable, encoding as SDR",
            dv_info.profile.value,
        )
        return SdrApproach()

    if hdr_result.format is HdrFormat.NONE:
        return SdrApproach()
    return HdrApproach(hdr=hdr_result)


def _dv_tuning(
    profile: DolbyVisionProfile, config: DolbyVisionConfig
) -> _ProfileTuning:
    if not config.profile_specific_adjustments:
        return _DV_GENERIC_TUNING
    tuning = _DV_PROFILE_TUNING.get(profile)
    if tuning is None:
        logger.warning(
            "No tuning for Dolby Vision profile %s, using conservative settings",
            profile.value,
        )
        return _DV_UNKNOWN_TUNING
    return tuning


def calculate_adjustments(
    approach: ContentEncodingApproach,
    config: DolbyVisionConfig,
    registry: HdrFormatRegistry | None = None,
) -> EncodingAdjustments:
    """Compute the encoding adjustments for an approach.

    Args:
        approach: Resolved approach.
        config: Dolby Vision settings (CRF adjustment, bitrate multiplier).
        registry: Format registry providing HDR recommendations.

    Returns:
        Adjustments to apply to the base profile.
    """
    if isinstance(approach, SdrApproach):
        return EncodingAdjustments.sdr_default()

    if isinstance(approach, HdrApproach):
        registry = registry or HdrFormatRegistry()
        recommendations = registry.get_recommendations(approach.hdr.format)
        if recommendations is None:
            return EncodingAdjustments.sdr_default()
        return EncodingAdjustments(
            crf_adjustment=recommendations.crf_adjustment,
            bitrate_multiplier=recommendations.bitrate_multiplier,
            encoding_complexity=approach.hdr.encoding_complexity,
            requires_vbv=False,
            recommended_crf_range=HDR_CRF_RANGE,
        )

    tuning = _dv_tuning(approach.dv.profile, config)
    if isinstance(approach, DolbyVisionApproach):
        return EncodingAdjustments(
            crf_adjustment=config.crf_adjustment,
            bitrate_multiplier=config.bitrate_multiplier,
            encoding_complexity=tuning.complexity,
            requires_vbv=True,
            recommended_crf_range=tuning.crf_range,
        )

    floor, ceiling = tuning.crf_range
    return EncodingAdjustments(
        crf_adjustment=config.crf_adjustment + DUAL_FORMAT_CRF_OFFSET,
        bitrate_multiplier=config.bitrate_multiplier * DUAL_FORMAT_BITRATE_FACTOR,
        encoding_complexity=tuning.complexity * DUAL_FORMAT_COMPLEXITY_FACTOR,
        requires_vbv=True,
        recommended_crf_range=(floor - 1.0, ceiling - 0.5),
    )


def recommended_crf(adjustments: EncodingAdjustments, base_crf: float) -> float:
    """Adjusted CRF clamped to the recommended range."""
    low, high = adjustments.recommended_crf_range
    return max(low, min(high, base_crf + adjustments.crf_adjustment))


def recommended_bitrate(adjustments: EncodingAdjustments, base_bitrate: int) -> int:
    """Adjusted bitrate in kbit/s."""
    return round(base_bitrate * adjustments.bitrate_multiplier)


def resolve_vbv_settings(
    adjustments: EncodingAdjustments,
    rate_mode: RateMode,
    bitrate_kbps: int | None,
    config: DolbyVisionConfig,
) -> VbvSettings | None:
    """Return the VBV constraints for an encode, or None if none are needed.

    CRF encodes use the configured buffer; ABR and CBR encodes derive the
    buffer from the target bitrate.

    Raises:
        ValueError: If a bitrate mode is requested without a bitrate.
    """
    if not adjustments.requires_vbv:
        return None
    if rate_mode is RateMode.CRF:
        return VbvSettings(maxrate=config.vbv_maxrate, bufsize=config.vbv_bufsize)
    if not bitrate_kbps or bitrate_kbps <= 0:
        raise ValueError(f"{rate_mode.value} mode requires a positive bitrate")
    bufsize = round(bitrate_kbps * VBV_BUFSIZE_FACTOR)
    if rate_mode is RateMode.ABR:
        maxrate = round(bitrate_kbps * ABR_MAXRATE_FACTOR)
        return VbvSettings(maxrate=maxrate, bufsize=bufsize)
    return VbvSettings(maxrate=bitrate_kbps, bufsize=bufsize)
