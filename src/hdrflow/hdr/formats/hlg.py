"""HLG encoder parameter builder.

HLG needs no static metadata; mastering display and content light level
are carried through only when the source has them, and luminance range
checks are advisory.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from hdrflow.errors import MetadataValidationError
from hdrflow.hdr.encoding import EncoderParams, merge_missing
from hdrflow.hdr.formats.base import (
    EncodingRecommendations,
    chromaticity_problems,
    format_problems,
    max_fall_problems,
    min_luminance_problems,
)
from hdrflow.hdr.metadata import format_content_light_level, format_master_display
from hdrflow.hdr.types import HdrFormat, HdrMetadata, TransferFunction

logger = logging.getLogger(__name__)

HLG_OPTIMIZATIONS: dict[str, str] = {
    "psy-rd": "1.8",
    "psy-rdoq": "0.8",
    "rd": "3",
    "me": "hex",
    "subme": "2",
    "aq-mode": "2",
    "aq-strength": "0.7",
    "deblock": "0,0",
    "sao": "",
    "rect": "",
    "rc-lookahead": "20",
    "bframes": "3",
    "b-adapt": "1",
    "nr-intra": "0",
    "nr-inter": "0",
    "strong-intra-smoothing": "",
    "weightp": "2",
    "weightb": "",
    "keyint": "250",
    "min-keyint": "25",
    "qcomp": "0.6",
    "ip-ratio": "1.4",
    "pb-ratio": "1.3",
    "max-merge": "3",
    "early-skip": "",
}

# Typical HLG peak range; values outside only warn
HLG_MIN_PEAK = 50
HLG_MAX_PEAK = 4000


class HlgHandler:
    """Builds x265 parameters for Hybrid Log-Gamma content."""

    def __init__(self, max_cll_padding: int = 0) -> None:
        self.max_cll_padding = max_cll_padding

    def format(self) -> HdrFormat:
        return HdrFormat.HLG

    def build_encoding_params(
        self, metadata: HdrMetadata, base_params: Mapping[str, str]
    ) -> EncoderParams:
        params = dict(base_params)
        params["colorprim"] = "bt2020"
        params["transfer"] = "arib-std-b67"
        params["colormatrix"] = "bt2020nc"

        if metadata.mastering_display is not None:
            params["master-display"] = format_master_display(
                metadata.mastering_display
            )
            logger.debug("Preserving mastering display metadata for HLG content")
        if metadata.content_light_level is not None:
            params["max-cll"] = format_content_light_level(
                metadata.content_light_level, self.max_cll_padding
            )

        params["output-depth"] = "10"
        return merge_missing(params, HLG_OPTIMIZATIONS)

    def validate_metadata(self, metadata: HdrMetadata) -> None:
        """Reject records that are not HLG or carry broken static metadata.

        Raises:
            MetadataValidationError: Listing every problem found.
        """
        problems = format_problems(
            metadata, HdrFormat.HLG, TransferFunction.ARIB_STD_B67
        )

        md = metadata.mastering_display
        if md is not None and not HLG_MIN_PEAK <= md.max_luminance <= HLG_MAX_PEAK:
            logger.warning(
                "HLG max luminance %d outside typical range [%d, %d] nits",
                md.max_luminance,
                HLG_MIN_PEAK,
                HLG_MAX_PEAK,
            )
        problems.extend(min_luminance_problems(metadata, "HLG"))
        problems.extend(chromaticity_problems(metadata, "HLG"))

        cll = metadata.content_light_level
        if cll is not None and not 1 <= cll.max_cll <= HLG_MAX_PEAK:
            logger.warning(
                "HLG max CLL %d outside typical range [1, %d] nits",
                cll.max_cll,
                HLG_MAX_PEAK,
            )
        problems.extend(max_fall_problems(metadata, "HLG"))

        if problems:
            raise MetadataValidationError(problems)

    def get_recommendations(self) -> EncodingRecommendations:
        return EncodingRecommendations(
            crf_adjustment=1.5,
            bitrate_multiplier=1.2,
            minimum_bit_depth=10,
            recommended_preset="medium",
            special_params={
                "psy-rd": "1.8",
                "psy-rdoq": "0.8",
                "aq-mode": "2",
                "aq-strength": "0.7",
                "deblock": "0,0",
            },
        )
