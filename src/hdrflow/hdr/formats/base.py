"""Shared interface and helpers for format-specific encoder parameter builders."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol

from hdrflow.hdr.encoding import EncoderParams
from hdrflow.hdr.metadata import format_content_light_level, format_master_display
from hdrflow.hdr.types import (
    DEFAULT_CONTENT_LIGHT_LEVEL,
    DEFAULT_MASTERING_DISPLAY,
    ColorSpace,
    HdrFormat,
    HdrMetadata,
    TransferFunction,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncodingRecommendations:
    """Encoder settings a format handler recommends on top of the base profile."""

    crf_adjustment: float
    """Added to the base CRF."""

    bitrate_multiplier: float
    """Applied to the base bitrate."""

    minimum_bit_depth: int
    recommended_preset: str | None = None
    special_params: dict[str, str] = field(default_factory=dict)


class HdrFormatHandler(Protocol):
    """Capability interface every format handler implements."""

    def format(self) -> HdrFormat: ...

    def build_encoding_params(
        self, metadata: HdrMetadata, base_params: Mapping[str, str]
    ) -> EncoderParams: ...

    def validate_metadata(self, metadata: HdrMetadata) -> None: ...

    def get_recommendations(self) -> EncodingRecommendations: ...


def format_problems(
    metadata: HdrMetadata,
    expected_format: HdrFormat,
    expected_transfer: TransferFunction,
) -> list[str]:
    """Check the format tag, transfer function and color space of a record."""
    name = expected_format.display_name
    problems = []
    if metadata.format is not expected_format:
        problems.append(f"Expected {name} format, got {metadata.format.display_name}")
    if metadata.transfer_function is not expected_transfer:
        problems.append(
            f"{name} requires {expected_transfer.display_name} transfer function, "
            f"got {metadata.transfer_function.display_name}"
        )
    if metadata.color_space is not ColorSpace.BT2020:
        problems.append(
            f"{name} requires BT.2020 color space, "
            f"got {metadata.color_space.display_name}"
        )
    return problems


def chromaticity_problems(metadata: HdrMetadata, label: str) -> list[str]:
    """Return chromaticity components outside [0, 1]."""
    md = metadata.mastering_display
    if md is None:
        return []
    return [
        f"{label} chromaticity {name} out of range [0.0, 1.0]: {value}"
        for name, value in md.coordinates()
        if not 0.0 <= value <= 1.0
    ]


def min_luminance_problems(metadata: HdrMetadata, label: str) -> list[str]:
    # Masters report a black level of 0 as "0/10000"
    md = metadata.mastering_display
    if md is not None and not 0.0 <= md.min_luminance <= 1.0:
        return [f"{label} min luminance {md.min_luminance} out of range [0, 1.0] nits"]
    return []


def max_fall_problems(metadata: HdrMetadata, label: str) -> list[str]:
    cll = metadata.content_light_level
    if cll is not None and (cll.max_fall <= 0 or cll.max_fall > cll.max_cll):
        return [
            f"{label} max FALL {cll.max_fall} invalid "
            f"(must be > 0 and <= max CLL {cll.max_cll})"
        ]
    return []


def apply_pq_static_params(
    params: EncoderParams,
    metadata: HdrMetadata,
    max_cll_padding: int,
    warn_on_default: bool = True,
) -> None:
    """Set the PQ color signalling and static metadata used by HDR10 and HDR10+.

    Missing source metadata is replaced by the reference mastering display
    and the 1000/400 content light level.
    """
    params["colorprim"] = "bt2020"
    params["transfer"] = "smpte2084"
    params["colormatrix"] = "bt2020nc"

    if metadata.mastering_display is not None:
        params["master-display"] = format_master_display(metadata.mastering_display)
    else:
        params["master-display"] = format_master_display(DEFAULT_MASTERING_DISPLAY)
        if warn_on_default:
            logger.warning("Using default HDR10 mastering display metadata")

    if metadata.content_light_level is not None:
        params["max-cll"] = format_content_light_level(
            metadata.content_light_level, max_cll_padding
        )
    else:
        params["max-cll"] = format_content_light_level(DEFAULT_CONTENT_LIGHT_LEVEL)
        if warn_on_default:
            logger.warning("Using default HDR10 content light level")

    params["hdr"] = ""
    params["hdr-opt"] = ""
    params["output-depth"] = "10"
