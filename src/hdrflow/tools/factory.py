"""Construction of tool adapters from configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from hdrflow.config.models import HdrFlowConfig
from hdrflow.tools.dovi_tool import DoviTool
from hdrflow.tools.ffmpeg import FFmpegTool, FFprobe
from hdrflow.tools.hdr10plus_tool import Hdr10PlusTool
from hdrflow.tools.mkvmerge import MkvMergeTool


@dataclass(frozen=True)
class ToolSet:
    """Every external tool adapter hdrflow uses, configured for one run."""

    ffprobe: FFprobe
    ffmpeg: FFmpegTool
    mkvmerge: MkvMergeTool
    dovi_tool: DoviTool
    hdr10plus_tool: Hdr10PlusTool

    def as_dict(self) -> dict[str, Any]:
        return {
            "ffprobe": self.ffprobe,
            "ffmpeg": self.ffmpeg,
            "mkvmerge": self.mkvmerge,
            "dovi_tool": self.dovi_tool,
            "hdr10plus_tool": self.hdr10plus_tool,
        }


def build_tool_set(config: HdrFlowConfig) -> ToolSet:
    """Create adapters with the configured paths, timeouts and extra args."""
    paths = config.tools
    timeouts = config.timeouts
    args = config.tool_args
    return ToolSet(
        ffprobe=FFprobe(
            paths.ffprobe,
            timeout=timeouts.probe_seconds,
            frames=config.hdr.probe_frames,
        ),
        ffmpeg=FFmpegTool(paths.ffmpeg, timeout=timeouts.remux_seconds),
        mkvmerge=MkvMergeTool(paths.mkvmerge, timeout=timeouts.remux_seconds),
        dovi_tool=DoviTool(
            paths.dovi_tool,
            timeout=timeouts.extraction_seconds,
            extract_args=args.dovi_extract_args,
            inject_args=args.dovi_inject_args,
        ),
        hdr10plus_tool=Hdr10PlusTool(
            paths.hdr10plus_tool,
            timeout=timeouts.extraction_seconds,
            extract_args=args.hdr10plus_extract_args,
            inject_args=args.hdr10plus_inject_args,
        ),
    )
