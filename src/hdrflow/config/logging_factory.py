"""Logging configuration factory.

Builds LoggingConfig instances with CLI overrides applied to a base
configuration.
"""

from __future__ import annotations

from pathlib import Path

from hdrflow.config.models import LoggingConfig


def build_logging_config(
    base: LoggingConfig,
    *,
    level: str | None = None,
    file: Path | None = None,
    format: str | None = None,
    include_stderr: bool | None = None,
) -> LoggingConfig:
    """Build LoggingConfig by merging base config with CLI overrides.

    Args:
        base: Base logging configuration (typically from config file).
        level: Override log level. If None, uses base.level.
        file: Override log file path. If None, uses base.file.
        format: Override log format (text, json). If None, uses base.format.
        include_stderr: Override stderr inclusion. If None, uses base.include_stderr.

    Returns:
        New LoggingConfig with overrides applied. Validation runs via
        LoggingConfig.__post_init__, so invalid values raise ValueError.
    """
    return LoggingConfig(
        level=level if level is not None else base.level,
        file=file if file is not None else base.file,
        format=format if format is not None else base.format,
        include_stderr=(
            include_stderr if include_stderr is not None else base.include_stderr
        ),
        max_bytes=base.max_bytes,
        backup_count=base.backup_count,
    )
