"""Content analysis and encoding approach resolution."""

from hdrflow.content.analyzer import ContentAnalysisResult, ContentAnalyzer
from hdrflow.content.approach import (
    ApproachKind,
    ContentEncodingApproach,
    DolbyVisionApproach,
    DualFormatApproach,
    EncodingAdjustments,
    HdrApproach,
    RateMode,
    SdrApproach,
    VbvSettings,
    calculate_adjustments,
    recommended_bitrate,
    recommended_crf,
    resolve_approach,
    resolve_vbv_settings,
)

__all__ = [
    "ApproachKind",
    "ContentAnalysisResult",
    "ContentAnalyzer",
    "ContentEncodingApproach",
    "DolbyVisionApproach",
    "DualFormatApproach",
    "EncodingAdjustments",
    "HdrApproach",
    "RateMode",
    "SdrApproach",
    "VbvSettings",
    "calculate_adjustments",
    "recommended_bitrate",
    "recommended_crf",
    "resolve_approach",
    "resolve_vbv_settings",
]
