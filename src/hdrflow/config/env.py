"""Environment variable reader with dependency injection support.

EnvReader reads HDRFLOW_* variables with type conversion. Tests pass a plain
mapping instead of touching os.environ.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("true", "1", "yes", "on")


class EnvReader:
    """Environment variable reader with type conversion.

    Example:
        reader = EnvReader(env={"HDRFLOW_DV_ENABLED": "false"})
        reader.get_bool("HDRFLOW_DV_ENABLED", True)  # False
    """

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        """Initialize the environment reader.

        Args:
            env: Optional mapping to use instead of os.environ.
        """
        self._env: Mapping[str, str] = env if env is not None else os.environ

    def get_str(self, var: str, default: str | None = None) -> str | None:
        """Get a string, or default if the variable is not set."""
        value = self._env.get(var)
        if value is None:
            return default
        return value

    def get_int(self, var: str, default: int | None = None) -> int | None:
        """Get an integer.

        Logs a warning and returns default if the value cannot be parsed.
        """
        value = self._env.get(var)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            logger.warning("Invalid integer value for %s: %s", var, value)
            return default

    def get_float(self, var: str, default: float | None = None) -> float | None:
        """Get a float.

        Logs a warning and returns default if the value cannot be parsed.
        """
        value = self._env.get(var)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            logger.warning("Invalid float value for %s: %s", var, value)
            return default

    def get_bool(self, var: str, default: bool | None = None) -> bool | None:
        """Get a boolean.

        "true", "1", "yes" and "on" (case-insensitive) are true; any other
        value is false.
        """
        value = self._env.get(var)
        if value is None:
            return default
        return value.lower() in _TRUE_VALUES

    def get_path(
        self, var: str, must_exist: bool = True, default: Path | None = None
    ) -> Path | None:
        """Get a path with tilde expansion.

        Args:
            var: Environment variable name.
            must_exist: If True, a path that does not exist is logged and
                replaced by default.
            default: Value returned when unset or rejected.
        """
        value = self._env.get(var)
        if value is None:
            return default

        path = Path(value).expanduser()
        if must_exist and not path.exists():
            logger.warning(
                "Environment variable %s points to non-existent path: %s",
                var,
                value,
            )
            return default
        return path

    def get_list(
        self, var: str, separator: str = ",", default: list[str] | None = None
    ) -> list[str]:
        """Get a separator-delimited list of non-empty, stripped strings."""
        value = self._env.get(var)
        if value is None:
            return list(default) if default is not None else []
        return [part.strip() for part in value.split(separator) if part.strip()]
