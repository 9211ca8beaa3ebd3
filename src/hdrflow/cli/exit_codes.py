"""Exit codes for hdrflow CLI commands."""

from enum import IntEnum


class ExitCode(IntEnum):
    """Process exit codes shared by every command."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    ANALYSIS_ERROR = 2
    TOOL_NOT_AVAILABLE = 3
