"""Dolby Vision detection from ffprobe output.

Three signals are combined, in increasing order of authority:
1. The HEVC profile string (e.g. "dvhe.08.06") or the codec tag.
2. DOVI configuration side data (dv_profile, el/rpu present flags),
   which overrides anything derived from (1).
3. A BT.2020 + PQ color heuristic, which is only ever logged as a hint
   and never marks a stream as Dolby Vision.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from hdrflow.config.models import DolbyVisionConfig
from hdrflow.errors import ProbeParseError

if TYPE_CHECKING:
    from hdrflow.tools.ffmpeg import FFprobe

logger = logging.getLogger(__name__)


class DolbyVisionProfile(Enum):
    """Dolby Vision bitstream profile."""

    NONE = "none"
    """Not Dolby Vision."""

    PROFILE_5 = "5"
    """Single layer, IPTPQc2, no cross-compatibility."""

    PROFILE_7 = "7"
    """Dual layer: base layer, enhancement layer and RPU."""

    PROFILE_8_1 = "8.1"
    """Single layer, HDR10 compatible."""

    PROFILE_8_2 = "8.2"
    """Single layer, SDR compatible."""

    PROFILE_8_4 = "8.4"
    """Single layer, HLG compatible."""

    @classmethod
    def from_string(cls, value: str) -> DolbyVisionProfile | None:
        """Map a profile alias ("8.1", "dvhe.08.06", ...) to a profile.

        Returns:
            The profile, or None for unknown strings.
        """
        return _PROFILE_ALIASES.get(value.strip())

    @property
    def is_dolby_vision(self) -> bool:
        return self is not DolbyVisionProfile.NONE

    def is_dual_layer(self) -> bool:
        return self is DolbyVisionProfile.PROFILE_7

    def supports_hdr10_compatibility(self) -> bool:
        return self in (DolbyVisionProfile.PROFILE_8_1, DolbyVisionProfile.PROFILE_8_4)


_PROFILE_ALIASES: dict[str, DolbyVisionProfile] = {
    "5": DolbyVisionProfile.PROFILE_5,
    "dvhe.05": DolbyVisionProfile.PROFILE_5,
    "7": DolbyVisionProfile.PROFILE_7,
    "dvhe.07": DolbyVisionProfile.PROFILE_7,
    "8.1": DolbyVisionProfile.PROFILE_8_1,
    "dvhe.08": DolbyVisionProfile.PROFILE_8_1,
    "dvhe.08.06": DolbyVisionProfile.PROFILE_8_1,
    "8.2": DolbyVisionProfile.PROFILE_8_2,
    "dvhe.08.09": DolbyVisionProfile.PROFILE_8_2,
    "8.4": DolbyVisionProfile.PROFILE_8_4,
    "dvhe.08.04": DolbyVisionProfile.PROFILE_8_4,
}

# Most specific codes first so dvhe.08.09 / dvhe.08.04 never match dvhe.08
_PROFILE_SUBSTRINGS: tuple[tuple[str, DolbyVisionProfile], ...] = (
    ("dvhe.05", DolbyVisionProfile.PROFILE_5),
    ("dvhe.07", DolbyVisionProfile.PROFILE_7),
    ("dvhe.08.09", DolbyVisionProfile.PROFILE_8_2),
    ("dvhe.08.04", DolbyVisionProfile.PROFILE_8_4),
    ("dvhe.08.06", DolbyVisionProfile.PROFILE_8_1),
    ("dvhe.08", DolbyVisionProfile.PROFILE_8_1),
)

_NUMERIC_PROFILES: dict[int, DolbyVisionProfile] = {
    5: DolbyVisionProfile.PROFILE_5,
    7: DolbyVisionProfile.PROFILE_7,
    # Profile 8 without a sub-profile is almost always 8.1
    8: DolbyVisionProfile.PROFILE_8_1,
}

_CONVERSION_TARGETS: dict[str, DolbyVisionProfile] = {
    "8.1": DolbyVisionProfile.PROFILE_8_1,
    "8.2": DolbyVisionProfile.PROFILE_8_2,
    "8.4": DolbyVisionProfile.PROFILE_8_4,
}


def extract_profile(profile_string: str) -> DolbyVisionProfile | None:
    """Find a dvhe.NN[.MM] code anywhere in a profile or codec tag string."""
    for code, profile in _PROFILE_SUBSTRINGS:
        if code in profile_string:
            return profile
    return None


@dataclass(frozen=True)
class DolbyVisionInfo:
    """Dolby Vision configuration of one video stream."""

    profile: DolbyVisionProfile = DolbyVisionProfile.NONE
    rpu_present: bool = False
    el_present: bool = False
    bl_compatible_id: int | None = None
    codec_profile: str | None = None

    @classmethod
    def none(cls) -> DolbyVisionInfo:
        """Return the "not Dolby Vision" record."""
        return cls()

    @classmethod
    def for_profile(
        cls, profile: DolbyVisionProfile, codec_profile: str | None = None
    ) -> DolbyVisionInfo:
        """Return the layer flags implied by a profile.

        Profile 7 carries an enhancement layer; every profile carries an RPU.
        """
        if not profile.is_dolby_vision:
            return cls.none()
        return cls(
            profile=profile,
            rpu_present=True,
            el_present=profile.is_dual_layer(),
            codec_profile=codec_profile,
        )

    def is_dolby_vision(self) -> bool:
        return self.profile.is_dolby_vision

    def needs_rpu_processing(self) -> bool:
        return self.rpu_present and self.is_dolby_vision()


def _flag(value: Any) -> bool | None:
    """Interpret a present flag that ffprobe reports as a bool or an int."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    return None


class DolbyVisionAnalyzer:
    """Detects Dolby Vision and answers preservation questions."""

    def __init__(
        self,
        config: DolbyVisionConfig | None = None,
        probe: FFprobe | None = None,
    ) -> None:
        self.config = config or DolbyVisionConfig()
        self._probe = probe

    def analyze_file(self, path: Path) -> DolbyVisionInfo:
        """Probe a file and return its Dolby Vision configuration.

        Raises:
            ProbeParseError: If the probe output is malformed.
            ToolError: If ffprobe fails.
        """
        if not self.config.enabled:
            logger.debug("Dolby Vision detection disabled")
            return DolbyVisionInfo.none()
        if self._probe is None:
            raise ValueError(
                "DolbyVisionAnalyzer.analyze_file requires an FFprobe adapter"
            )
        return self.analyze(self._probe.probe_dolby_vision(path))

    def analyze(self, probe_data: Mapping[str, Any]) -> DolbyVisionInfo:
        """Derive Dolby Vision information from probe JSON.

        Absent fields are never an error; a stream without Dolby Vision
        markers yields DolbyVisionInfo.none().

        Raises:
            ProbeParseError: If the data has no streams list.
        """
        if not self.config.enabled:
            return DolbyVisionInfo.none()

        streams = probe_data.get("streams") if isinstance(probe_data, Mapping) else None
        if not isinstance(streams, list):
            raise ProbeParseError("No streams found in ffprobe output")
        if not streams or not isinstance(streams[0], Mapping):
            return DolbyVisionInfo.none()

        stream = streams[0]
        codec_name = str(stream.get("codec_name") or "")
        profile = str(stream.get("profile") or "")
        codec_tag = str(stream.get("codec_tag_string") or "")
        logger.debug(
            "Stream info - codec: %s, profile: %s, tag: %s",
            codec_name,
            profile,
            codec_tag,
        )

        info = self._detect_from_codec_info(codec_name, profile, codec_tag)

        for side_data in stream.get("side_data_list") or []:
            if not isinstance(side_data, Mapping):
                continue
            side_type = str(side_data.get("side_data_type", ""))
            lowered = side_type.lower()
            if "dovi" in lowered or "dolby_vision" in lowered:
                logger.debug("Found Dolby Vision side data: %s", side_type)
                info = self._apply_side_data(info, side_data)

        if not info.is_dolby_vision():
            self._log_color_hint(stream)
            logger.debug("No Dolby Vision metadata detected")
            return DolbyVisionInfo.none()

        logger.info(
            "Detected Dolby Vision Profile %s: RPU=%s, EL=%s",
            info.profile.value,
            info.rpu_present,
            info.el_present,
            extra={"dv_profile": info.profile.value},
        )
        return info

    @staticmethod
    def _detect_from_codec_info(
        codec_name: str, profile: str, codec_tag: str
    ) -> DolbyVisionInfo:
        if codec_name in ("hevc", "h265"):
            dv_profile = extract_profile(profile)
            if dv_profile is not None:
                return DolbyVisionInfo.for_profile(dv_profile, codec_profile=profile)

        if "dvh" in codec_tag:
            dv_profile = DolbyVisionProfile.from_string(codec_tag) or extract_profile(
                codec_tag
            )
            if dv_profile is None:
                logger.debug(
                    "Dolby Vision codec tag %s without profile code, assuming 8.1",
                    codec_tag,
                )
                dv_profile = DolbyVisionProfile.PROFILE_8_1
            return DolbyVisionInfo.for_profile(dv_profile, codec_profile=codec_tag)

        return DolbyVisionInfo.none()

    @staticmethod
    def _apply_side_data(
        info: DolbyVisionInfo, side_data: Mapping[str, Any]
    ) -> DolbyVisionInfo:
        changes: dict[str, Any] = {}

        raw_profile = side_data.get("dv_profile")
        if isinstance(raw_profile, int) and not isinstance(raw_profile, bool):
            profile = _NUMERIC_PROFILES.get(raw_profile)
            if profile is None:
                logger.debug("Unknown Dolby Vision profile number: %s", raw_profile)
                profile = DolbyVisionProfile.NONE
            changes["profile"] = profile
        elif isinstance(raw_profile, str):
            profile = DolbyVisionProfile.from_string(raw_profile)
            if profile is not None:
                changes["profile"] = profile

        bl_compatible_id = side_data.get("bl_compatible_id")
        if isinstance(bl_compatible_id, int) and 0 <= bl_compatible_id <= 255:
            changes["bl_compatible_id"] = bl_compatible_id

        el_present = _flag(side_data.get("el_present_flag"))
        if el_present is not None:
            changes["el_present"] = el_present
        rpu_present = _flag(side_data.get("rpu_present_flag"))
        if rpu_present is not None:
            changes["rpu_present"] = rpu_present

        if not changes:
            return info
        if "profile" in changes and not info.is_dolby_vision():
            # Layer flags default from the profile when the codec gave no hint
            info = DolbyVisionInfo.for_profile(changes["profile"])
        return replace(info, **changes)

    @staticmethod
    def _log_color_hint(stream: Mapping[str, Any]) -> None:
        color_space = str(stream.get("color_space") or "")
        transfer = str(stream.get("color_transfer") or "")
        primaries = str(stream.get("color_primaries") or "")

        def is_bt2020(value: str) -> bool:
            return "bt2020" in value or "rec2020" in value

        if is_bt2020(color_space) and is_bt2020(primaries) and "smpte2084" in transfer:
            logger.info(
                "BT.2020 PQ content without Dolby Vision markers; treating as HDR10"
            )

    def should_preserve(self, info: DolbyVisionInfo) -> bool:
        """Return True if Dolby Vision metadata should be carried into the encode.

        Profile 7 is gated by preserve_profile_7; every other profile is
        preserved whenever Dolby Vision handling is enabled.
        """
        if not self.config.enabled or not info.is_dolby_vision():
            return False
        if info.profile is DolbyVisionProfile.PROFILE_7:
            return self.config.preserve_profile_7
        return True

    def get_target_profile(self, source: DolbyVisionProfile) -> DolbyVisionProfile:
        """Return the profile the output should carry.

        Profile 7 is converted to the configured single-layer target when
        automatic conversion is enabled; other profiles are kept.
        """
        if (
            self.config.auto_profile_conversion
            and source is DolbyVisionProfile.PROFILE_7
        ):
            return _CONVERSION_TARGETS.get(
                self.config.target_profile, DolbyVisionProfile.PROFILE_8_1
            )
        return source


def estimate_processing_overhead(info: DolbyVisionInfo) -> float:
    """Relative processing cost of preserving Dolby Vision for a profile."""
    return {
        DolbyVisionProfile.PROFILE_7: 1.8,
        DolbyVisionProfile.PROFILE_8_1: 1.3,
        DolbyVisionProfile.PROFILE_8_2: 1.3,
        DolbyVisionProfile.PROFILE_5: 1.2,
    }.get(info.profile, 1.0)
