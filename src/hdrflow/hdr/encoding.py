"""x265 parameter helpers shared by every dynamic-range format.

Encoder parameters are kept as an ordered dict of key to string value. An
empty value marks a bare flag (e.g. "hdr-opt"), which is emitted without
"=" on the command line.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from hdrflow.errors import MetadataValidationError
from hdrflow.hdr.types import HdrFormat

logger = logging.getLogger(__name__)

EncoderParams = dict[str, str]

# Keys that only make sense for HDR output
HDR_ONLY_KEYS: frozenset[str] = frozenset(
    {
        "master-display",
        "max-cll",
        "hdr",
        "hdr-opt",
        "hdr10",
        "hdr10-opt",
        "dhdr10-info",
        "hdr10plus-opt",
    }
)

_EXPECTED_TRANSFER: dict[HdrFormat, str] = {
    HdrFormat.HDR10: "smpte2084",
    HdrFormat.HDR10_PLUS: "smpte2084",
    HdrFormat.HLG: "arib-std-b67",
}


def format_params_for_command_line(params: Mapping[str, str]) -> str:
    """Join parameters into an x265 "-x265-params" string.

    Args:
        params: Ordered parameter mapping. Empty values become bare flags.

    Returns:
        Colon-separated tokens in insertion order.

    Example:
        >>> format_params_for_command_line({"hdr-opt": "", "crf": "18"})
        'hdr-opt:crf=18'
    """
    tokens = []
    for key, value in params.items():
        if value == "" or value is None:
            tokens.append(key)
        else:
            tokens.append(f"{key}={value}")
    return ":".join(tokens)


def merge_missing(params: EncoderParams, defaults: Mapping[str, str]) -> EncoderParams:
    """Add every default whose key the caller has not already set."""
    for key, value in defaults.items():
        params.setdefault(key, value)
    return params


def ensure_sdr_params(params: Mapping[str, str]) -> EncoderParams:
    """Return a copy of params stripped of HDR keys and forced to BT.709."""
    result = {
        key: value
        for key, value in params.items()
        if key not in HDR_ONLY_KEYS and not key.startswith("dolby-vision-")
    }
    removed = sorted(set(params) - set(result))
    if removed:
        logger.debug("Removed HDR parameters for SDR output: %s", removed)

    result["colorprim"] = "bt709"
    result["transfer"] = "bt709"
    result["colormatrix"] = "bt709"
    result.setdefault("output-depth", "8")
    return result


def validate_hdr_encoding_params(
    params: Mapping[str, str], hdr_format: HdrFormat
) -> None:
    """Check that an encoder parameter set is consistent with a format.

    Raises:
        MetadataValidationError: Listing every inconsistency found.
    """
    if not hdr_format.is_hdr():
        return

    problems: list[str] = []
    if params.get("colorprim") != "bt2020":
        problems.append(f"colorprim must be bt2020, got {params.get('colorprim')}")
    expected_transfer = _EXPECTED_TRANSFER[hdr_format]
    if params.get("transfer") != expected_transfer:
        problems.append(
            f"transfer must be {expected_transfer} for "
            f"{hdr_format.display_name}, got {params.get('transfer')}"
        )
    if params.get("colormatrix") not in ("bt2020nc", "bt2020c"):
        problems.append(
            f"colormatrix must be bt2020nc or bt2020c, got {params.get('colormatrix')}"
        )

    depth = params.get("output-depth")
    if depth is not None:
        try:
            if int(depth) < 10:
                problems.append(f"output-depth must be >= 10 for HDR, got {depth}")
        except ValueError:
            problems.append(f"output-depth is not an integer: {depth}")

    if problems:
        raise MetadataValidationError(problems)
