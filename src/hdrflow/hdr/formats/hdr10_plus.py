"""HDR10+ encoder parameter builder.

Only the static HDR10 baseline and HDR10+ tuning are produced here. The
dynamic-metadata file (dhdr10-info) is added by the HDR10+ manager once the
metadata has been extracted.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from hdrflow.errors import MetadataValidationError
from hdrflow.hdr.encoding import EncoderParams, merge_missing
from hdrflow.hdr.formats.base import (
    EncodingRecommendations,
    apply_pq_static_params,
    chromaticity_problems,
    format_problems,
)
from hdrflow.hdr.formats.hdr10 import pq_luminance_problems
from hdrflow.hdr.types import HdrFormat, HdrMetadata, TransferFunction

logger = logging.getLogger(__name__)

HDR10_PLUS_OPTIMIZATIONS: dict[str, str] = {
    "psy-rd": "2.2",
    "psy-rdoq": "1.2",
    "rd": "4",
    "me": "umh",
    "subme": "4",
    "aq-mode": "3",
    "aq-strength": "0.9",
    "deblock": "1,1",
    "sao": "",
    "rect": "",
    "amp": "",
    "rc-lookahead": "40",
    "bframes": "6",
    "b-adapt": "2",
    "b-pyramid": "",
    "nr-intra": "0",
    "nr-inter": "0",
    "strong-intra-smoothing": "",
    "constrained-intra": "",
    "weightb": "",
    "weightp": "2",
    "cutree": "",
    "no-open-gop": "",
}


class Hdr10PlusHandler:
    """Builds the static x265 baseline for HDR10+ content."""

    def __init__(self, max_cll_padding: int = 0) -> None:
        self.max_cll_padding = max_cll_padding

    def format(self) -> HdrFormat:
        return HdrFormat.HDR10_PLUS

    def build_encoding_params(
        self, metadata: HdrMetadata, base_params: Mapping[str, str]
    ) -> EncoderParams:
        params = dict(base_params)
        apply_pq_static_params(
            params, metadata, self.max_cll_padding, warn_on_default=False
        )
        merge_missing(params, HDR10_PLUS_OPTIMIZATIONS)
        logger.debug(
            "HDR10+ baseline built; dynamic metadata is applied after extraction"
        )
        return params

    def validate_metadata(self, metadata: HdrMetadata) -> None:
        """Reject records that are not well-formed HDR10+.

        A missing mastering display only logs a warning.

        Raises:
            MetadataValidationError: Listing every problem found.
        """
        problems = format_problems(
            metadata, HdrFormat.HDR10_PLUS, TransferFunction.SMPTE2084
        )
        if metadata.mastering_display is None:
            logger.warning("HDR10+ content missing static mastering display metadata")
        problems.extend(pq_luminance_problems(metadata, "HDR10+"))
        problems.extend(chromaticity_problems(metadata, "HDR10+"))
        if problems:
            raise MetadataValidationError(problems)

    def get_recommendations(self) -> EncodingRecommendations:
        return EncodingRecommendations(
            crf_adjustment=2.5,
            bitrate_multiplier=1.4,
            minimum_bit_depth=10,
            recommended_preset="slower",
            special_params={
                "psy-rd": "2.2",
                "psy-rdoq": "1.2",
                "aq-mode": "3",
                "aq-strength": "0.9",
                "deblock": "1,1",
                "rc-lookahead": "40",
            },
        )
