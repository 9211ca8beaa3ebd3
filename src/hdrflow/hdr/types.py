"""Data model for dynamic-range formats and static HDR metadata.

All records are frozen dataclasses: they are produced once by the detector
for one analysis pass of one file and never mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class HdrFormat(Enum):
    """Dynamic-range format of a video stream."""

    NONE = "none"
    """Standard dynamic range."""

    HDR10 = "hdr10"
    """PQ transfer with static mastering metadata."""

    HDR10_PLUS = "hdr10plus"
    """HDR10 with SMPTE ST 2094-40 dynamic metadata."""

    HLG = "hlg"
    """Hybrid Log-Gamma broadcast HDR."""

    @property
    def display_name(self) -> str:
        return _FORMAT_NAMES[self]

    def is_hdr(self) -> bool:
        """Return True for every format other than NONE."""
        return self is not HdrFormat.NONE


_FORMAT_NAMES = {
    HdrFormat.NONE: "SDR",
    HdrFormat.HDR10: "HDR10",
    HdrFormat.HDR10_PLUS: "HDR10+",
    HdrFormat.HLG: "HLG",
}


class ColorSpace(Enum):
    """Color space / color primaries family."""

    BT709 = "bt709"
    BT2020 = "bt2020"
    DCI_P3 = "dci-p3"
    DISPLAY_P3 = "display-p3"

    @property
    def display_name(self) -> str:
        return {
            ColorSpace.BT709: "BT.709",
            ColorSpace.BT2020: "BT.2020",
            ColorSpace.DCI_P3: "DCI-P3",
            ColorSpace.DISPLAY_P3: "Display-P3",
        }[self]


class TransferFunction(Enum):
    """Opto-electronic transfer characteristic."""

    BT709 = "bt709"
    SMPTE2084 = "smpte2084"
    """Perceptual quantizer (PQ)."""

    ARIB_STD_B67 = "arib-std-b67"
    """Hybrid Log-Gamma."""

    BT2020_10 = "bt2020-10"
    BT2020_12 = "bt2020-12"

    @property
    def display_name(self) -> str:
        return {
            TransferFunction.BT709: "BT.709",
            TransferFunction.SMPTE2084: "SMPTE-2084",
            TransferFunction.ARIB_STD_B67: "ARIB-STD-B67",
            TransferFunction.BT2020_10: "BT.2020-10",
            TransferFunction.BT2020_12: "BT.2020-12",
        }[self]


@dataclass(frozen=True)
class Chromaticity:
    """A CIE 1931 xy chromaticity coordinate."""

    x: float
    y: float


@dataclass(frozen=True)
class MasteringDisplayColorVolume:
    """Mastering display color volume (SMPTE ST 2086).

    Chromaticity components are in [0.0, 1.0]. max_luminance is an integer
    number of nits; min_luminance is fractional.
    """

    red: Chromaticity
    green: Chromaticity
    blue: Chromaticity
    white_point: Chromaticity
    max_luminance: int
    min_luminance: float

    def primaries_area(self) -> float:
        """Return the area of the triangle spanned by the RGB primaries."""
        r, g, b = self.red, self.green, self.blue
        return abs(
            (r.x * (g.y - b.y) + g.x * (b.y - r.y) + b.x * (r.y - g.y)) / 2.0
        )

    def coordinates(self) -> tuple[tuple[str, float], ...]:
        """Return every chromaticity component labelled by name."""
        return (
            ("red_x", self.red.x),
            ("red_y", self.red.y),
            ("green_x", self.green.x),
            ("green_y", self.green.y),
            ("blue_x", self.blue.x),
            ("blue_y", self.blue.y),
            ("white_x", self.white_point.x),
            ("white_y", self.white_point.y),
        )


@dataclass(frozen=True)
class ContentLightLevelInfo:
    """Content light level (MaxCLL / MaxFALL) in nits."""

    max_cll: int
    max_fall: int


# Reference BT.2020 mastering display used when source metadata is absent
DEFAULT_MASTERING_DISPLAY = MasteringDisplayColorVolume(
    red=Chromaticity(0.708, 0.292),
    green=Chromaticity(0.17, 0.797),
    blue=Chromaticity(0.131, 0.046),
    white_point=Chromaticity(0.3127, 0.329),
    max_luminance=1000,
    min_luminance=0.01,
)

DEFAULT_CONTENT_LIGHT_LEVEL = ContentLightLevelInfo(max_cll=1000, max_fall=400)


@dataclass(frozen=True)
class HdrMetadata:
    """Classified dynamic-range metadata for one video stream.

    The raw_* fields echo the probe strings for diagnostics.
    """

    format: HdrFormat
    color_space: ColorSpace
    transfer_function: TransferFunction
    color_primaries: ColorSpace
    mastering_display: MasteringDisplayColorVolume | None = None
    content_light_level: ContentLightLevelInfo | None = None
    raw_color_space: str | None = None
    raw_transfer: str | None = None
    raw_primaries: str | None = None

    @classmethod
    def sdr_default(cls) -> HdrMetadata:
        """Return BT.709 SDR metadata."""
        return cls(
            format=HdrFormat.NONE,
            color_space=ColorSpace.BT709,
            transfer_function=TransferFunction.BT709,
            color_primaries=ColorSpace.BT709,
            raw_color_space="bt709",
            raw_transfer="bt709",
            raw_primaries="bt709",
        )

    @classmethod
    def hdr10_default(cls) -> HdrMetadata:
        """Return HDR10 metadata with the reference mastering display."""
        return cls(
            format=HdrFormat.HDR10,
            color_space=ColorSpace.BT2020,
            transfer_function=TransferFunction.SMPTE2084,
            color_primaries=ColorSpace.BT2020,
            mastering_display=DEFAULT_MASTERING_DISPLAY,
            content_light_level=DEFAULT_CONTENT_LIGHT_LEVEL,
            raw_color_space="bt2020nc",
            raw_transfer="smpte2084",
            raw_primaries="bt2020",
        )

    def is_hdr(self) -> bool:
        return self.format.is_hdr()


@dataclass(frozen=True)
class HdrAnalysisResult:
    """Outcome of HDR detection for one file."""

    metadata: HdrMetadata
    """Classified metadata."""

    confidence_score: float
    """Detection confidence in [0.0, 1.0]."""

    requires_tone_mapping: bool
    """True for every HDR format."""

    encoding_complexity: float
    """Relative encoding cost multiplier (1.0 for SDR)."""

    @property
    def format(self) -> HdrFormat:
        return self.metadata.format

    @classmethod
    def sdr(cls, confidence: float = 1.0) -> HdrAnalysisResult:
        """Return a plain SDR result."""
        return cls(
            metadata=HdrMetadata.sdr_default(),
            confidence_score=confidence,
            requires_tone_mapping=False,
            encoding_complexity=1.0,
        )
