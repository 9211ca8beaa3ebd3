"""HDR10 encoder parameter builder."""

from __future__ import annotations

from collections.abc import Mapping

from hdrflow.errors import MetadataValidationError
from hdrflow.hdr.encoding import EncoderParams, merge_missing
from hdrflow.hdr.formats.base import (
    EncodingRecommendations,
    apply_pq_static_params,
    chromaticity_problems,
    format_problems,
    max_fall_problems,
    min_luminance_problems,
)
from hdrflow.hdr.metadata import MAX_PEAK_LUMINANCE, MIN_PEAK_LUMINANCE
from hdrflow.hdr.types import HdrFormat, HdrMetadata, TransferFunction

HDR10_OPTIMIZATIONS: dict[str, str] = {
    "psy-rd": "2.0",
    "psy-rdoq": "1.0",
    "rd": "4",
    "me": "umh",
    "subme": "3",
    "aq-mode": "3",
    "aq-strength": "0.8",
    "deblock": "1,1",
    "sao": "",
    "rect": "",
    "amp": "",
    "rc-lookahead": "25",
    "bframes": "4",
    "b-adapt": "2",
    # Noise reduction destroys highlight detail in PQ content
    "nr-intra": "0",
    "nr-inter": "0",
    "strong-intra-smoothing": "",
    "constrained-intra": "",
}


def pq_luminance_problems(metadata: HdrMetadata, label: str) -> list[str]:
    """Strict HDR10-family range checks on static metadata."""
    problems = []
    md = metadata.mastering_display
    if md is not None and not (
        MIN_PEAK_LUMINANCE <= md.max_luminance <= MAX_PEAK_LUMINANCE
    ):
        problems.append(
            f"{label} max luminance {md.max_luminance} out of range "
            f"[{MIN_PEAK_LUMINANCE}, {MAX_PEAK_LUMINANCE}] nits"
        )
    problems.extend(min_luminance_problems(metadata, label))

    cll = metadata.content_light_level
    if cll is not None and not 1 <= cll.max_cll <= MAX_PEAK_LUMINANCE:
        problems.append(
            f"{label} max CLL {cll.max_cll} out of range [1, {MAX_PEAK_LUMINANCE}] nits"
        )
    problems.extend(max_fall_problems(metadata, label))
    return problems


class Hdr10Handler:
    """Builds x265 parameters for static-metadata HDR10."""

    def __init__(self, max_cll_padding: int = 0) -> None:
        """Initialize the handler.

        Args:
            max_cll_padding: Added to MaxFALL when emitting max-cll.
        """
        self.max_cll_padding = max_cll_padding

    def format(self) -> HdrFormat:
        return HdrFormat.HDR10

    def build_encoding_params(
        self, metadata: HdrMetadata, base_params: Mapping[str, str]
    ) -> EncoderParams:
        params = dict(base_params)
        apply_pq_static_params(params, metadata, self.max_cll_padding)
        return merge_missing(params, HDR10_OPTIMIZATIONS)

    def validate_metadata(self, metadata: HdrMetadata) -> None:
        """Reject records that are not well-formed HDR10.

        Raises:
            MetadataValidationError: Listing every problem found.
        """
        problems = format_problems(
            metadata, HdrFormat.HDR10, TransferFunction.SMPTE2084
        )
        problems.extend(pq_luminance_problems(metadata, "HDR10"))
        problems.extend(chromaticity_problems(metadata, "HDR10"))
        if problems:
            raise MetadataValidationError(problems)

    def get_recommendations(self) -> EncodingRecommendations:
        return EncodingRecommendations(
            crf_adjustment=2.0,
            bitrate_multiplier=1.3,
            minimum_bit_depth=10,
            recommended_preset="slow",
            special_params={
                "psy-rd": "2.0",
                "psy-rdoq": "1.0",
                "aq-mode": "3",
                "aq-strength": "0.8",
                "deblock": "1,1",
            },
        )
