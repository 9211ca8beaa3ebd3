"""Exception hierarchy for hdrflow.

Errors fall into four families:
- ProbeParseError: probe output or metadata text could not be parsed.
- MetadataValidationError: parsed metadata is out of range or inconsistent.
- ToolError: an external tool is missing, timed out or failed.
- TempFileError: a temporary or final output file could not be managed.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path


class HdrFlowError(Exception):
    """Base class for all hdrflow errors."""

    pass


class ProbeParseError(HdrFlowError):
    """Raised when probe JSON, metadata JSON or a metadata string is malformed."""

    pass


class MetadataValidationError(HdrFlowError):
    """Raised when HDR metadata fails validation.

    Attributes:
        problems: Individual validation failures, in the order found.
    """

    def __init__(self, problems: Sequence[str] | str) -> None:
        """Initialize the error.

        Args:
            problems: A single message or a list of validation failures.
        """
        if isinstance(problems, str):
            problems = [problems]
        self.problems: tuple[str, ...] = tuple(problems)
        super().__init__("; ".join(self.problems))


class ToolError(HdrFlowError):
    """Raised when an external tool invocation fails.

    Carries enough detail (argv, exit code, captured output) to diagnose
    the failure from the log alone.
    """

    def __init__(
        self,
        tool: str,
        message: str,
        args: Sequence[str] | None = None,
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        """Initialize the error.

        Args:
            tool: Tool name (e.g., "dovi_tool").
            message: Human-readable description of the failure.
            args: Command line that was executed.
            returncode: Process exit code, if the process ran.
            stdout: Captured standard output.
            stderr: Captured standard error.
        """
        self.tool = tool
        self.message = message
        self.command = list(args) if args else []
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(f"{tool}: {message}")

    def details(self) -> str:
        """Return a multi-line diagnostic description of the failure."""
        lines = [str(self)]
        if self.command:
            lines.append(f"Command: {' '.join(self.command)}")
        if self.returncode is not None:
            lines.append(f"Exit code: {self.returncode}")
        if self.stderr.strip():
            lines.append(f"Stderr: {self.stderr.strip()}")
        if self.stdout.strip():
            lines.append(f"Stdout: {self.stdout.strip()}")
        return "\n".join(lines)


class ToolNotFoundError(ToolError):
    """Raised when the tool executable cannot be found or started."""

    pass


class ToolTimeoutError(ToolError):
    """Raised when a tool does not finish within its timeout."""

    def __init__(
        self, tool: str, timeout: float, args: Sequence[str] | None = None
    ) -> None:
        self.timeout = timeout
        super().__init__(tool, f"timed out after {timeout:g} seconds", args=args)


class NoDynamicMetadataError(ToolError):
    """The dynamic-metadata tool reported that the input has no HDR10+ data.

    This is the expected outcome for plain HDR10 content and is not a
    failure; callers treat it as "no metadata available".
    """

    pass


class TempFileError(HdrFlowError):
    """Raised when a temporary or output file cannot be created, moved or removed."""

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        super().__init__(f"{message}: {path}")


class WorkflowStateError(HdrFlowError):
    """Raised when a workflow step is called out of order."""

    pass
