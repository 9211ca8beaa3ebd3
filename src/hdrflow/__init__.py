"""hdrflow: HDR, HDR10+ and Dolby Vision metadata workflow for x265 encodes."""

__version__ = "0.1.0"
