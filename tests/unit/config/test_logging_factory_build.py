"""Unit tests for build_logging_config()."""

from pathlib import Path

import pytest

from hdrflow.config.logging_factory import build_logging_config
from hdrflow.config.models import LoggingConfig


class TestBuildLoggingConfig:
    """Tests for CLI overrides applied to a base LoggingConfig."""

    def test_no_overrides_keeps_base(self) -> None:
        base = LoggingConfig(level="warning", format="json", backup_count=2)
        assert build_logging_config(base) == base

    def test_overrides(self, temp_dir: Path) -> None:
        base = LoggingConfig()
        log_file = temp_dir / "hdrflow.log"

        config = build_logging_config(
            base, level="debug", file=log_file, format="json", include_stderr=True
        )

        assert config.level == "debug"
        assert config.file == log_file
        assert config.format == "json"
        assert config.include_stderr
        assert config.max_bytes == base.max_bytes

    def test_invalid_override_raises(self) -> None:
        with pytest.raises(ValueError):
            build_logging_config(LoggingConfig(), level="loud")
