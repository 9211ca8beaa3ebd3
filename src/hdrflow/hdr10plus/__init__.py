"""HDR10+ dynamic metadata handling."""

from hdrflow.hdr10plus.manager import (
    Hdr10PlusManager,
    build_dual_format_x265_params,
    build_hdr10plus_x265_params,
    estimate_processing_overhead,
)
from hdrflow.hdr10plus.models import Hdr10PlusMetadata, Hdr10PlusProcessingResult

__all__ = [
    "Hdr10PlusManager",
    "Hdr10PlusMetadata",
    "Hdr10PlusProcessingResult",
    "build_dual_format_x265_params",
    "build_hdr10plus_x265_params",
    "estimate_processing_overhead",
]
