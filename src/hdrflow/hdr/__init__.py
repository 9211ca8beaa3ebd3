"""HDR format model, detection and static metadata handling."""

from hdrflow.hdr.detection import HdrDetector
from hdrflow.hdr.types import (
    ColorSpace,
    ContentLightLevelInfo,
    HdrAnalysisResult,
    HdrFormat,
    HdrMetadata,
    MasteringDisplayColorVolume,
    TransferFunction,
)

__all__ = [
    "ColorSpace",
    "ContentLightLevelInfo",
    "HdrAnalysisResult",
    "HdrDetector",
    "HdrFormat",
    "HdrMetadata",
    "MasteringDisplayColorVolume",
    "TransferFunction",
]
