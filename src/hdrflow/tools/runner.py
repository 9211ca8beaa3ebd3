"""Subprocess execution for external metadata tools.

run_command() is the single place hdrflow starts a process. ToolRunner
layers tool lookup, timeouts and error classification on top of it, so
adapters only build argument lists and interpret results.
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess  # nosec B404 - subprocess is required for tool invocation
import time
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path

from hdrflow.errors import ToolError, ToolNotFoundError, ToolTimeoutError
from hdrflow.tools.models import ToolInfo, ToolStatus

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300


def run_command(
    args: Sequence[str | Path],
    timeout: float = DEFAULT_TIMEOUT,
) -> tuple[str, str, int]:
    """Run an external command and capture its output.

    Args:
        args: Command and arguments. Path objects are converted to strings.
        timeout: Timeout in seconds.

    Returns:
        Tuple of (stdout, stderr, returncode).

    Raises:
        subprocess.TimeoutExpired: If the command times out. subprocess.run()
            kills the child before raising.
        OSError: If the executable cannot be started.
    """
    str_args = [str(arg) for arg in args]
    command_name = Path(str_args[0]).name if str_args else "unknown"

    logger.debug(
        "Executing command: %s",
        " ".join(str_args),
        extra={"command": command_name, "arg_count": len(str_args)},
    )
    start_time = time.monotonic()

    try:
        result = subprocess.run(  # nosec B603 - args are tool paths and fixed flags
            str_args,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        logger.warning(
            "Command timed out after %ss: %s",
            timeout,
            " ".join(str_args[:3]) + ("..." if len(str_args) > 3 else ""),
            extra={
                "command": command_name,
                "timeout_seconds": timeout,
                "elapsed_seconds": round(time.monotonic() - start_time, 3),
            },
        )
        raise

    logger.debug(
        "Command completed",
        extra={
            "command": command_name,
            "elapsed_seconds": round(time.monotonic() - start_time, 3),
            "returncode": result.returncode,
        },
    )
    return result.stdout or "", result.stderr or "", result.returncode


def parse_version_string(version_str: str) -> tuple[int, ...] | None:
    """Parse a version string into a comparable tuple.

    Handles "2.1.2" -> (2, 1, 2), "v81.0" -> (81, 0) and
    "dovi_tool 2.1.2" -> (2, 1, 2).

    Returns:
        Tuple of version components, or None if no version is found.
    """
    if not version_str:
        return None
    match = re.search(r"(\d+(?:\.\d+)+|\d+)", version_str)
    if not match:
        return None
    return tuple(int(part) for part in match.group(1).split("."))


def find_tool(name: str, configured_path: Path | None = None) -> Path | None:
    """Find a tool executable.

    Args:
        name: Tool name (e.g., "dovi_tool").
        configured_path: Optional configured path override.

    Returns:
        Path to the executable, or None if not found.
    """
    if configured_path:
        if configured_path.is_file():
            return configured_path
        logger.warning(
            "Configured path for %s is not a file: %s", name, configured_path
        )

    which_result = shutil.which(name)
    if which_result:
        return Path(which_result)
    return None


class ToolRunner:
    """Runs one external tool with a default timeout."""

    def __init__(
        self,
        name: str,
        path: Path | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the runner.

        Args:
            name: Tool name, used for PATH lookup and in diagnostics.
            path: Explicit executable path; PATH lookup when None.
            timeout: Default timeout in seconds for run().
        """
        self.name = name
        self.path = path
        self.timeout = timeout

    @property
    def executable(self) -> str:
        return str(self.path) if self.path else self.name

    def run(
        self,
        args: Sequence[str | Path],
        output_file: Path | None = None,
        timeout: float | None = None,
    ) -> str:
        """Run the tool and return its stdout.

        Args:
            args: Arguments after the executable.
            output_file: File the tool promises to create; its absence after
                a zero exit is a failure.
            timeout: Override of the default timeout.

        Raises:
            ToolNotFoundError: If the executable cannot be started.
            ToolTimeoutError: If the tool does not finish in time.
            ToolError: On non-zero exit or missing output file.
        """
        argv = [self.executable, *(str(arg) for arg in args)]
        effective_timeout = timeout if timeout is not None else self.timeout
        try:
            stdout, stderr, returncode = run_command(argv, timeout=effective_timeout)
        except subprocess.TimeoutExpired as e:
            raise ToolTimeoutError(self.name, effective_timeout, argv) from e
        except FileNotFoundError as e:
            raise ToolNotFoundError(
                self.name, f"executable not found: {self.executable}", argv
            ) from e
        except OSError as e:
            raise ToolNotFoundError(self.name, f"could not start: {e}", argv) from e

        if returncode != 0:
            raise ToolError(
                self.name,
                f"exited with code {returncode}",
                args=argv,
                returncode=returncode,
                stdout=stdout,
                stderr=stderr,
            )
        if output_file is not None and not output_file.exists():
            raise ToolError(
                self.name,
                f"completed but did not create {output_file}",
                args=argv,
                returncode=returncode,
                stdout=stdout,
                stderr=stderr,
            )
        return stdout

    def check_availability(
        self,
        help_flag: str = "--help",
        expected: Sequence[str] = (),
        timeout: float = 10,
    ) -> ToolInfo:
        """Probe the tool's help output for the expected subcommands.

        Never raises; problems are reported through the returned status.

        Args:
            help_flag: Flag printing help or version text.
            expected: Words that must all appear in stdout.
            timeout: Probe timeout in seconds.
        """
        info = ToolInfo(name=self.name, detected_at=datetime.now(timezone.utc))
        path = find_tool(self.name, self.path)
        if path is None:
            info.status = ToolStatus.MISSING
            info.status_message = f"{self.name} not found in PATH"
            return info
        info.path = path

        try:
            stdout, stderr, returncode = run_command(
                [path, help_flag], timeout=timeout
            )
        except subprocess.TimeoutExpired:
            info.status = ToolStatus.ERROR
            info.status_message = f"{self.name} {help_flag} timed out"
            return info
        except OSError as e:
            info.status = ToolStatus.ERROR
            info.status_message = f"{self.name} could not be started: {e}"
            return info

        if returncode != 0:
            info.status = ToolStatus.ERROR
            info.status_message = (
                f"{self.name} {help_flag} exited with code {returncode}: "
                f"{stderr.strip()}"
            )
            return info

        missing = [word for word in expected if word not in stdout]
        if missing:
            info.status = ToolStatus.ERROR
            info.status_message = (
                f"{self.name} output does not mention {', '.join(missing)}"
            )
            return info

        first_line = stdout.strip().splitlines()[0] if stdout.strip() else ""
        info.version_tuple = parse_version_string(first_line)
        if info.version_tuple is not None:
            info.version = ".".join(str(part) for part in info.version_tuple)
        info.status = ToolStatus.AVAILABLE
        return info

    def version(self) -> str | None:
        """Return the tool's version string, or None if it cannot be determined."""
        try:
            stdout = self.run(["--version"], timeout=10)
        except ToolError as e:
            logger.debug("Could not get %s version: %s", self.name, e)
            return None
        version_tuple = parse_version_string(stdout)
        if version_tuple is None:
            return None
        return ".".join(str(part) for part in version_tuple)
