"""Dolby Vision detection and RPU handling."""

from hdrflow.dolby_vision.analyzer import (
    DolbyVisionAnalyzer,
    DolbyVisionInfo,
    DolbyVisionProfile,
    estimate_processing_overhead,
)
from hdrflow.dolby_vision.rpu import RpuManager, RpuMetadata

__all__ = [
    "DolbyVisionAnalyzer",
    "DolbyVisionInfo",
    "DolbyVisionProfile",
    "RpuManager",
    "RpuMetadata",
    "estimate_processing_overhead",
]
