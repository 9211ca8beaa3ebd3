"""Fixtures shared by CLI integration tests."""

from unittest.mock import patch

import pytest

from hdrflow.config.models import HdrFlowConfig


@pytest.fixture(autouse=True)
def keep_root_logger():
    """Stop the CLI from replacing the root logger handlers."""
    with patch("hdrflow.cli.configure_logging"):
        yield


@pytest.fixture
def cli_obj(temp_dir) -> dict:
    """Click context object carrying a config that keeps temp files local."""
    config = HdrFlowConfig()
    config.workflow.temp_dir = temp_dir / "tmp"
    return {"config": config}

