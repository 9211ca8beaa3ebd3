"""Static HDR metadata parsing, formatting and validation.

Wire formats follow the x265 command line:
- master-display: G(gx,gy)B(bx,by)R(rx,ry)WP(wx,wy)L(max,min)
- max-cll: <max_cll>,<max_fall>
"""

from __future__ import annotations

import logging
import re

from hdrflow.errors import MetadataValidationError, ProbeParseError
from hdrflow.hdr.types import (
    DEFAULT_CONTENT_LIGHT_LEVEL,
    DEFAULT_MASTERING_DISPLAY,
    Chromaticity,
    ColorSpace,
    ContentLightLevelInfo,
    HdrFormat,
    HdrMetadata,
    MasteringDisplayColorVolume,
    TransferFunction,
)

logger = logging.getLogger(__name__)

_NUM = r"\s*([0-9]*\.?[0-9]+)\s*"
_MASTER_DISPLAY_RE = re.compile(
    rf"G\({_NUM},{_NUM}\)"
    rf"B\({_NUM},{_NUM}\)"
    rf"R\({_NUM},{_NUM}\)"
    rf"WP\({_NUM},{_NUM}\)"
    rf"L\({_NUM},{_NUM}\)"
)

# Luminance bounds shared by the HDR10 family (nits)
MIN_PEAK_LUMINANCE = 100
MAX_PEAK_LUMINANCE = 10000

# Smaller gamut areas are rounding noise from collinear primaries
MIN_PRIMARIES_AREA = 1e-9


def parse_master_display(value: str) -> MasteringDisplayColorVolume:
    """Parse an x265 master-display string.

    Args:
        value: String such as
            "G(0.17,0.797)B(0.131,0.046)R(0.708,0.292)WP(0.3127,0.329)L(1000,0.01)".

    Returns:
        Parsed mastering display color volume.

    Raises:
        ProbeParseError: If the string does not match the expected layout or
            the maximum luminance is not an integer.
    """
    match = _MASTER_DISPLAY_RE.fullmatch(value.strip())
    if not match:
        raise ProbeParseError(f"Invalid master-display string: {value!r}")

    gx, gy, bx, by, rx, ry, wx, wy, max_lum, min_lum = match.groups()
    max_value = float(max_lum)
    if not max_value.is_integer():
        raise ProbeParseError(
            f"master-display maximum luminance must be an integer: {max_lum}"
        )

    return MasteringDisplayColorVolume(
        red=Chromaticity(float(rx), float(ry)),
        green=Chromaticity(float(gx), float(gy)),
        blue=Chromaticity(float(bx), float(by)),
        white_point=Chromaticity(float(wx), float(wy)),
        max_luminance=int(max_value),
        min_luminance=float(min_lum),
    )


def format_master_display(md: MasteringDisplayColorVolume) -> str:
    """Format a mastering display as an x265 master-display value."""
    return (
        f"G({md.green.x:.4f},{md.green.y:.4f})"
        f"B({md.blue.x:.4f},{md.blue.y:.4f})"
        f"R({md.red.x:.4f},{md.red.y:.4f})"
        f"WP({md.white_point.x:.4f},{md.white_point.y:.4f})"
        f"L({md.max_luminance},{md.min_luminance:.4f})"
    )


def parse_content_light_level(value: str) -> ContentLightLevelInfo:
    """Parse a "max_cll,max_fall" string.

    A single value is accepted as max_cll with the default max_fall of 400.

    Raises:
        ProbeParseError: If a component is not an integer.
    """
    parts = [p.strip() for p in value.split(",")]
    try:
        if len(parts) == 1:
            return ContentLightLevelInfo(
                max_cll=int(parts[0]),
                max_fall=DEFAULT_CONTENT_LIGHT_LEVEL.max_fall,
            )
        if len(parts) == 2:
            return ContentLightLevelInfo(max_cll=int(parts[0]), max_fall=int(parts[1]))
    except ValueError as e:
        raise ProbeParseError(f"Invalid content light level {value!r}: {e}") from e
    raise ProbeParseError(f"Invalid content light level: {value!r}")


def format_content_light_level(
    cll: ContentLightLevelInfo, fall_padding: int = 0
) -> str:
    """Format content light level as an x265 max-cll value.

    Args:
        cll: Content light level.
        fall_padding: Constant added to max_fall on output. Legacy encode
            pipelines used 400; correct output uses 0.
    """
    return f"{cll.max_cll},{cll.max_fall + fall_padding}"


# =============================================================================
# Validation
# =============================================================================


def mastering_display_problems(
    md: MasteringDisplayColorVolume,
    min_peak: float = MIN_PEAK_LUMINANCE,
    max_peak: float = MAX_PEAK_LUMINANCE,
) -> list[str]:
    """Return every range problem found in a mastering display record."""
    problems: list[str] = []
    for name, component in md.coordinates():
        if not 0.0 <= component <= 1.0:
            problems.append(f"{name} chromaticity {component} outside [0, 1]")

    if md.max_luminance <= 0:
        problems.append(f"max luminance must be positive, got {md.max_luminance}")
    elif not min_peak <= md.max_luminance <= max_peak:
        problems.append(
            f"max luminance {md.max_luminance} outside "
            f"[{min_peak:g}, {max_peak:g}] nits"
        )
    if md.min_luminance < 0:
        problems.append(f"min luminance must be >= 0, got {md.min_luminance}")
    if md.min_luminance >= md.max_luminance:
        problems.append(
            f"min luminance {md.min_luminance} must be below max {md.max_luminance}"
        )
    if md.primaries_area() <= MIN_PRIMARIES_AREA:
        problems.append("RGB primaries are collinear (zero gamut area)")
    return problems


def content_light_level_problems(
    cll: ContentLightLevelInfo,
    min_cll: int = MIN_PEAK_LUMINANCE,
    max_cll: int = MAX_PEAK_LUMINANCE,
) -> list[str]:
    """Return every range problem found in a content light level record."""
    problems: list[str] = []
    if cll.max_cll <= 0 or cll.max_fall <= 0:
        problems.append(
            f"MaxCLL and MaxFALL must be positive, got {cll.max_cll}/{cll.max_fall}"
        )
    if cll.max_fall > cll.max_cll:
        problems.append(f"MaxFALL {cll.max_fall} exceeds MaxCLL {cll.max_cll}")
    if cll.max_cll > 0 and not min_cll <= cll.max_cll <= max_cll:
        problems.append(f"MaxCLL {cll.max_cll} outside [{min_cll}, {max_cll}] nits")
    return problems


def validate_hdr_metadata(metadata: HdrMetadata) -> None:
    """Validate a metadata record against the generic HDR rules.

    Raises:
        MetadataValidationError: Listing every problem found.
    """
    problems: list[str] = []
    if metadata.format is HdrFormat.NONE:
        if metadata.mastering_display is not None:
            problems.append("SDR content must not carry mastering display metadata")
        if metadata.content_light_level is not None:
            problems.append("SDR content must not carry content light level metadata")
    else:
        if metadata.mastering_display is not None:
            problems.extend(mastering_display_problems(metadata.mastering_display))
        if metadata.content_light_level is not None:
            problems.extend(content_light_level_problems(metadata.content_light_level))

    if problems:
        raise MetadataValidationError(problems)


def get_default_metadata_for_format(hdr_format: HdrFormat) -> HdrMetadata:
    """Return reasonable metadata for a format when the source provides none."""
    if hdr_format is HdrFormat.NONE:
        return HdrMetadata.sdr_default()
    if hdr_format is HdrFormat.HLG:
        return HdrMetadata(
            format=HdrFormat.HLG,
            color_space=ColorSpace.BT2020,
            transfer_function=TransferFunction.ARIB_STD_B67,
            color_primaries=ColorSpace.BT2020,
            raw_color_space="bt2020nc",
            raw_transfer="arib-std-b67",
            raw_primaries="bt2020",
        )
    base = HdrMetadata.hdr10_default()
    if hdr_format is HdrFormat.HDR10_PLUS:
        return HdrMetadata(
            format=HdrFormat.HDR10_PLUS,
            color_space=base.color_space,
            transfer_function=base.transfer_function,
            color_primaries=base.color_primaries,
            mastering_display=DEFAULT_MASTERING_DISPLAY,
            content_light_level=DEFAULT_CONTENT_LIGHT_LEVEL,
            raw_color_space=base.raw_color_space,
            raw_transfer=base.raw_transfer,
            raw_primaries=base.raw_primaries,
        )
    return base


def get_metadata_summary(metadata: HdrMetadata) -> str:
    """Return a one-line description such as "HDR10 [BT.2020/SMPTE-2084 | ...]"."""
    parts = [
        f"{metadata.color_space.display_name}/"
        f"{metadata.transfer_function.display_name}"
    ]
    md = metadata.mastering_display
    if md is not None:
        parts.append(f"MD: L({md.max_luminance}-{md.min_luminance:g})")
    cll = metadata.content_light_level
    if cll is not None:
        parts.append(f"CLL: {cll.max_cll}/{cll.max_fall}")
    return f"{metadata.format.display_name} [{' | '.join(parts)}]"
