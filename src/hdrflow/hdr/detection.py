"""HDR classification from ffprobe output.

HdrDetector turns probe JSON for the primary video stream into an
HdrAnalysisResult. Classification is a pure function of the probe data;
probing the file itself is delegated to FFprobe.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from fractions import Fraction
from pathlib import Path
from typing import TYPE_CHECKING, Any

from hdrflow.config.models import HdrDetectionConfig
from hdrflow.errors import ProbeParseError
from hdrflow.hdr.types import (
    Chromaticity,
    ColorSpace,
    ContentLightLevelInfo,
    HdrAnalysisResult,
    HdrFormat,
    HdrMetadata,
    MasteringDisplayColorVolume,
    TransferFunction,
)

if TYPE_CHECKING:
    from hdrflow.tools.ffmpeg import FFprobe

logger = logging.getLogger(__name__)

MASTERING_DISPLAY_SIDE_DATA = "Mastering display metadata"
CONTENT_LIGHT_LEVEL_SIDE_DATA = "Content light level metadata"

# Side-data labels different ffmpeg builds and muxers use for SMPTE 2094-40
KNOWN_DYNAMIC_METADATA_LABELS: frozenset[str] = frozenset(
    {
        "HDR dynamic metadata (SMPTE 2094-40)",
        "HDR dynamic metadata SMPTE2094-40",
        "HDR Dynamic Metadata SMPTE2094-40 (HDR10+)",
        "HDR10+ dynamic metadata",
        "Dynamic HDR10+ metadata",
        "SMPTE2094-40",
        "SMPTE 2094-40",
    }
)

ENCODING_COMPLEXITY: dict[HdrFormat, float] = {
    HdrFormat.NONE: 1.0,
    HdrFormat.HDR10: 1.2,
    HdrFormat.HDR10_PLUS: 1.4,
    HdrFormat.HLG: 1.15,
}


def is_dynamic_metadata_label(
    side_data_type: str, extra_labels: Iterable[str] = ()
) -> bool:
    """Return True if a side-data type names HDR10+ dynamic metadata.

    Exact labels are checked first, then case-insensitive patterns.
    """
    if side_data_type in KNOWN_DYNAMIC_METADATA_LABELS or side_data_type in set(
        extra_labels
    ):
        return True

    lowered = side_data_type.lower()
    if "smpte2094-40" in lowered or "smpte 2094-40" in lowered:
        return True
    if "smpte2094_40" in lowered:
        return True
    if "hdr10+" in lowered and "dynamic" in lowered:
        return True
    return (
        "dynamic" in lowered
        and "metadata" in lowered
        and ("2094" in lowered or "hdr10+" in lowered)
    )


def parse_color_space(raw: str | None) -> ColorSpace:
    """Map an ffprobe color_space / color_primaries string to ColorSpace."""
    value = (raw or "").lower()
    if "bt2020" in value or "rec2020" in value:
        return ColorSpace.BT2020
    if "bt709" in value or "rec709" in value:
        return ColorSpace.BT709
    if "dci-p3" in value:
        return ColorSpace.DCI_P3
    if "display-p3" in value:
        return ColorSpace.DISPLAY_P3
    return ColorSpace.BT709


def parse_transfer_function(raw: str | None) -> TransferFunction:
    """Map an ffprobe color_transfer string to TransferFunction."""
    value = (raw or "").lower()
    if "smpte2084" in value:
        return TransferFunction.SMPTE2084
    if "arib-std-b67" in value:
        return TransferFunction.ARIB_STD_B67
    if "bt2020-10" in value:
        return TransferFunction.BT2020_10
    if "bt2020-12" in value:
        return TransferFunction.BT2020_12
    return TransferFunction.BT709


def parse_rational(value: Any) -> float | None:
    """Parse an ffprobe rational ("34000/50000") or plain number."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(Fraction(str(value).strip()))
    except (ValueError, ZeroDivisionError):
        return None


def parse_mastering_display_side_data(
    entry: Mapping[str, Any],
) -> MasteringDisplayColorVolume | None:
    """Build a mastering display record from an ffprobe side-data entry.

    Returns None when any component is missing or unparseable.
    """
    keys = (
        "red_x", "red_y", "green_x", "green_y", "blue_x", "blue_y",
        "white_point_x", "white_point_y", "max_luminance", "min_luminance",
    )  # fmt: skip
    values = {key: parse_rational(entry.get(key)) for key in keys}
    missing = [key for key, value in values.items() if value is None]
    if missing:
        logger.debug("Incomplete mastering display side data, missing %s", missing)
        return None

    return MasteringDisplayColorVolume(
        red=Chromaticity(values["red_x"], values["red_y"]),
        green=Chromaticity(values["green_x"], values["green_y"]),
        blue=Chromaticity(values["blue_x"], values["blue_y"]),
        white_point=Chromaticity(values["white_point_x"], values["white_point_y"]),
        max_luminance=int(round(values["max_luminance"])),
        min_luminance=values["min_luminance"],
    )


def parse_content_light_side_data(
    entry: Mapping[str, Any],
) -> ContentLightLevelInfo | None:
    """Build a content light level record from an ffprobe side-data entry."""
    try:
        return ContentLightLevelInfo(
            max_cll=int(entry["max_content"]),
            max_fall=int(entry["max_average"]),
        )
    except (KeyError, TypeError, ValueError):
        logger.debug("Incomplete content light level side data: %s", entry)
        return None


def calculate_confidence(
    transfer: TransferFunction,
    color_space: ColorSpace,
    has_mastering_display: bool,
    has_content_light_level: bool,
) -> float:
    """Score how strongly the signals support an HDR classification.

    Each corroborating signal adds weight, so the score never decreases as
    signals are added. The result is clamped to [0.0, 1.0].
    """
    score = 0.0
    if transfer in (TransferFunction.SMPTE2084, TransferFunction.ARIB_STD_B67):
        score += 0.8
    elif transfer in (TransferFunction.BT2020_10, TransferFunction.BT2020_12):
        score += 0.6
    if color_space is ColorSpace.BT2020:
        score += 0.2
    if has_mastering_display:
        score += 0.15
    if has_content_light_level:
        score += 0.15
    return min(score, 1.0)


def _side_data(container: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    entries = container.get("side_data_list") or []
    return [entry for entry in entries if isinstance(entry, Mapping)]


class HdrDetector:
    """Classifies the dynamic-range format of the primary video stream."""

    def __init__(
        self,
        config: HdrDetectionConfig | None = None,
        probe: FFprobe | None = None,
    ) -> None:
        """Initialize the detector.

        Args:
            config: Detection configuration. Defaults apply when None.
            probe: ffprobe adapter used by analyze_file().
        """
        self.config = config or HdrDetectionConfig()
        self._probe = probe

    def analyze_file(self, path: Path) -> HdrAnalysisResult:
        """Probe a file and classify it.

        Raises:
            ProbeParseError: If the probe output is malformed.
            ToolError: If ffprobe fails.
        """
        if not self.config.enabled:
            logger.debug("HDR detection disabled, reporting SDR for %s", path)
            return HdrAnalysisResult.sdr()
        if self._probe is None:
            raise ValueError("HdrDetector.analyze_file requires an FFprobe adapter")
        return self.analyze(self._probe.probe_hdr(path))

    def analyze(self, probe_data: Mapping[str, Any]) -> HdrAnalysisResult:
        """Classify probe JSON.

        Args:
            probe_data: Parsed ffprobe output with a streams list and,
                optionally, frames with side data.

        Returns:
            Classification with confidence score.

        Raises:
            ProbeParseError: If there is no video stream in the data.
        """
        if not self.config.enabled:
            return HdrAnalysisResult.sdr()

        stream = self._primary_stream(probe_data)
        raw_color_space = stream.get("color_space")
        raw_transfer = stream.get("color_transfer")
        raw_primaries = stream.get("color_primaries")

        stream_side_data = _side_data(stream)
        mastering_display = None
        content_light = None
        for entry in stream_side_data:
            side_type = str(entry.get("side_data_type", ""))
            if side_type == MASTERING_DISPLAY_SIDE_DATA and mastering_display is None:
                mastering_display = parse_mastering_display_side_data(entry)
            elif side_type == CONTENT_LIGHT_LEVEL_SIDE_DATA and content_light is None:
                content_light = parse_content_light_side_data(entry)

        frames = probe_data.get("frames") or []
        frame_side_data = [
            entry
            for frame in frames[: self.config.probe_frames]
            if isinstance(frame, Mapping)
            for entry in _side_data(frame)
        ]
        # ffprobe often reports static metadata on frames only
        for entry in frame_side_data:
            side_type = str(entry.get("side_data_type", ""))
            if side_type == MASTERING_DISPLAY_SIDE_DATA and mastering_display is None:
                mastering_display = parse_mastering_display_side_data(entry)
            elif side_type == CONTENT_LIGHT_LEVEL_SIDE_DATA and content_light is None:
                content_light = parse_content_light_side_data(entry)

        has_dynamic = self._has_dynamic_metadata(stream_side_data)
        if not has_dynamic and frame_side_data:
            has_dynamic = self._has_dynamic_metadata(frame_side_data)
            if has_dynamic:
                logger.debug("HDR10+ dynamic metadata found in frame side data")

        transfer = parse_transfer_function(raw_transfer)
        color_space = parse_color_space(raw_color_space)
        primaries = parse_color_space(raw_primaries)
        hdr_format = self._determine_format(
            raw_transfer, raw_color_space, raw_primaries, has_dynamic
        )

        if hdr_format is HdrFormat.NONE:
            # SDR records never carry static HDR metadata
            mastering_display = None
            content_light = None

        signalled_transfer = transfer
        if hdr_format is HdrFormat.HDR10 and transfer is not TransferFunction.SMPTE2084:
            # Encodes of BT.2020 content without a PQ/HLG transfer are signalled as PQ
            signalled_transfer = TransferFunction.SMPTE2084

        metadata = HdrMetadata(
            format=hdr_format,
            color_space=color_space,
            transfer_function=signalled_transfer,
            color_primaries=primaries,
            mastering_display=mastering_display,
            content_light_level=content_light,
            raw_color_space=raw_color_space,
            raw_transfer=raw_transfer,
            raw_primaries=raw_primaries,
        )
        confidence = calculate_confidence(
            transfer,
            color_space,
            mastering_display is not None,
            content_light is not None,
        )
        result = HdrAnalysisResult(
            metadata=metadata,
            confidence_score=confidence,
            requires_tone_mapping=hdr_format.is_hdr(),
            encoding_complexity=ENCODING_COMPLEXITY[hdr_format],
        )
        logger.info(
            "HDR detection: %s (confidence %.2f)",
            hdr_format.display_name,
            confidence,
            extra={
                "hdr_format": hdr_format.value,
                "color_transfer": raw_transfer,
                "color_space": raw_color_space,
            },
        )
        return result

    @staticmethod
    def _primary_stream(probe_data: Mapping[str, Any]) -> Mapping[str, Any]:
        if not isinstance(probe_data, Mapping):
            raise ProbeParseError("Probe output is not a JSON object")
        streams = probe_data.get("streams")
        if not isinstance(streams, list) or not streams:
            raise ProbeParseError("Probe output contains no video stream")
        stream = streams[0]
        if not isinstance(stream, Mapping):
            raise ProbeParseError("Probe stream entry is not a JSON object")
        return stream

    def _has_dynamic_metadata(self, entries: list[Mapping[str, Any]]) -> bool:
        extra = self.config.extra_dynamic_metadata_labels
        for entry in entries:
            side_type = entry.get("side_data_type")
            if side_type and is_dynamic_metadata_label(str(side_type), extra):
                logger.debug("Dynamic metadata side data: %s", side_type)
                return True
        return False

    @staticmethod
    def _determine_format(
        raw_transfer: str | None,
        raw_color_space: str | None,
        raw_primaries: str | None,
        has_dynamic: bool,
    ) -> HdrFormat:
        transfer = (raw_transfer or "").lower()
        if "smpte2084" in transfer:
            return HdrFormat.HDR10_PLUS if has_dynamic else HdrFormat.HDR10
        if "arib-std-b67" in transfer:
            return HdrFormat.HLG

        if (
            parse_color_space(raw_color_space) is ColorSpace.BT2020
            and parse_color_space(raw_primaries) is ColorSpace.BT2020
        ):
            logger.warning(
                "BT.2020 color space without a PQ/HLG transfer (%s), assuming HDR10",
                raw_transfer,
            )
            return HdrFormat.HDR10

        return HdrFormat.NONE
