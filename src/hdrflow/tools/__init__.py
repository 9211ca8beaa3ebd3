"""External tool adapters and availability detection."""

from hdrflow.tools.detection import detect_all_tools, probe_tool_availability
from hdrflow.tools.dovi_tool import DoviTool
from hdrflow.tools.factory import ToolSet, build_tool_set
from hdrflow.tools.ffmpeg import FFmpegTool, FFprobe
from hdrflow.tools.hdr10plus_tool import Hdr10PlusTool
from hdrflow.tools.mkvmerge import MkvMergeTool
from hdrflow.tools.models import ToolAvailability, ToolInfo, ToolStatus
from hdrflow.tools.runner import ToolRunner, parse_version_string, run_command

__all__ = [
    "DoviTool",
    "FFmpegTool",
    "FFprobe",
    "Hdr10PlusTool",
    "MkvMergeTool",
    "ToolAvailability",
    "ToolInfo",
    "ToolRunner",
    "ToolSet",
    "ToolStatus",
    "build_tool_set",
    "detect_all_tools",
    "parse_version_string",
    "probe_tool_availability",
    "run_command",
]
