"""Format-specific x265 parameter builders."""

from hdrflow.hdr.formats.base import EncodingRecommendations, HdrFormatHandler
from hdrflow.hdr.formats.hdr10 import Hdr10Handler
from hdrflow.hdr.formats.hdr10_plus import Hdr10PlusHandler
from hdrflow.hdr.formats.hlg import HlgHandler
from hdrflow.hdr.formats.registry import HdrFormatRegistry

__all__ = [
    "EncodingRecommendations",
    "Hdr10Handler",
    "Hdr10PlusHandler",
    "HdrFormatHandler",
    "HdrFormatRegistry",
    "HlgHandler",
]
