"""Startup detection of the external metadata tools.

probe_tool_availability() runs once per process. The resulting
ToolAvailability is passed to the workflow manager and reused for every
file, so a missing tool is logged once and never re-probed.
"""

from __future__ import annotations

import logging

from hdrflow.config.models import HdrFlowConfig
from hdrflow.tools.factory import ToolSet, build_tool_set
from hdrflow.tools.models import ToolAvailability, ToolInfo

logger = logging.getLogger(__name__)

# Consequence of each tool being absent, for the one-time log line
_MISSING_IMPACT = {
    "dovi_tool": "Dolby Vision RPU preservation disabled",
    "hdr10plus_tool": "HDR10+ dynamic metadata preservation disabled",
    "mkvmerge": "Dolby Vision RPU injection disabled",
    "ffmpeg": "Dolby Vision RPU injection disabled",
    "ffprobe": "content analysis unavailable",
}


def detect_all_tools(
    config: HdrFlowConfig, tools: ToolSet | None = None
) -> dict[str, ToolInfo]:
    """Probe every external tool hdrflow uses.

    Args:
        config: Configuration providing tool paths and the detection timeout.
        tools: Adapters to probe; built from config when None.

    Returns:
        ToolInfo per tool name, in a stable order.
    """
    tools = tools or build_tool_set(config)
    timeout = config.timeouts.detection_seconds
    return {
        name: tool.check_availability(timeout=timeout)
        for name, tool in tools.as_dict().items()
    }


def probe_tool_availability(
    config: HdrFlowConfig, tools: ToolSet | None = None
) -> ToolAvailability:
    """Detect which metadata tools can be used for this run.

    Never raises; an unusable tool only disables its branch of the
    workflow.
    """
    detected = detect_all_tools(config, tools)
    for name, info in detected.items():
        if info.is_available():
            logger.debug(
                "%s available at %s (version %s)", name, info.path, info.version
            )
        else:
            logger.warning(
                "%s unavailable (%s): %s",
                name,
                info.status_message,
                _MISSING_IMPACT[name],
                extra={"tool": name, "tool_status": info.status.value},
            )

    availability = ToolAvailability(
        dovi_tool=detected["dovi_tool"].is_available(),
        hdr10plus_tool=detected["hdr10plus_tool"].is_available(),
        mkvmerge=detected["mkvmerge"].is_available(),
        ffmpeg=detected["ffmpeg"].is_available(),
        tools=detected,
    )
    logger.info(
        "Metadata tools: dovi_tool=%s hdr10plus_tool=%s mkvmerge=%s ffmpeg=%s",
        availability.dovi_tool,
        availability.hdr10plus_tool,
        availability.mkvmerge,
        availability.ffmpeg,
    )
    return availability
