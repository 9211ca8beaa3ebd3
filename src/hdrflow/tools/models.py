"""Data models for external metadata tool availability."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path


class ToolStatus(Enum):
    """Status of an external tool."""

    AVAILABLE = "available"  # Tool found and help/version output as expected
    MISSING = "missing"  # Tool not found in PATH or configured location
    ERROR = "error"  # Tool found but probe failed or output unexpected


@dataclass
class ToolInfo:
    """Detection result for one external tool."""

    name: str
    path: Path | None = None
    version: str | None = None
    version_tuple: tuple[int, ...] | None = None
    status: ToolStatus = ToolStatus.MISSING
    status_message: str | None = None
    detected_at: datetime | None = None

    def is_available(self) -> bool:
        """Return True if the tool is available and usable."""
        return self.status == ToolStatus.AVAILABLE

    def meets_version(self, min_version: tuple[int, ...]) -> bool:
        """Check if tool version meets minimum requirement.

        Args:
            min_version: Minimum version as tuple (e.g., (2, 1) for 2.1).

        Returns:
            True if tool version >= min_version, False otherwise.
        """
        if self.version_tuple is None:
            return False
        max_len = max(len(self.version_tuple), len(min_version))
        v1 = self.version_tuple + (0,) * (max_len - len(self.version_tuple))
        v2 = min_version + (0,) * (max_len - len(min_version))
        return v1 >= v2


@dataclass(frozen=True)
class ToolAvailability:
    """Which metadata tools can be used for this run.

    Probed once at startup and shared read-only by every file in a batch.
    """

    dovi_tool: bool = False
    hdr10plus_tool: bool = False
    mkvmerge: bool = False
    ffmpeg: bool = False
    tools: dict[str, ToolInfo] = field(default_factory=dict, compare=False)

    @classmethod
    def none(cls) -> ToolAvailability:
        """Return an availability record with every tool missing."""
        return cls()

    @property
    def can_inject_rpu(self) -> bool:
        """True when the full RPU injection pipeline can run."""
        return self.dovi_tool and self.mkvmerge and self.ffmpeg

    @property
    def all_available(self) -> bool:
        return self.dovi_tool and self.hdr10plus_tool and self.mkvmerge and self.ffmpeg

    def missing(self) -> list[str]:
        """Return the names of tools that are not available."""
        flags = {
            "dovi_tool": self.dovi_tool,
            "hdr10plus_tool": self.hdr10plus_tool,
            "mkvmerge": self.mkvmerge,
            "ffmpeg": self.ffmpeg,
        }
        return [name for name, available in flags.items() if not available]
