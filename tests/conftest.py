"""Shared test fixtures for hdrflow."""

import json
import shutil
import tempfile
from pathlib import Path

import pytest

from hdrflow.config.models import HdrFlowConfig
from hdrflow.tools.models import ToolAvailability

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test isolation."""
    dir_path = tempfile.mkdtemp()
    yield Path(dir_path)
    shutil.rmtree(dir_path, ignore_errors=True)


@pytest.fixture
def ffprobe_fixtures_dir() -> Path:
    """Return the path to the ffprobe fixtures directory."""
    return FIXTURES_DIR / "ffprobe"


def load_ffprobe_fixture(name: str) -> dict:
    """Load an ffprobe JSON fixture by name.

    Args:
        name: Name of the fixture file (without .json extension).

    Returns:
        Parsed JSON data from the fixture.
    """
    fixture_path = FIXTURES_DIR / "ffprobe" / f"{name}.json"
    return json.loads(fixture_path.read_text())


def load_hdr10plus_fixture_text() -> str:
    """Return the sample hdr10plus_tool metadata document."""
    return (FIXTURES_DIR / "hdr10plus" / "metadata.json").read_text()


@pytest.fixture
def hdr10plus_json_text() -> str:
    """Sample hdr10plus_tool metadata document."""
    return load_hdr10plus_fixture_text()


@pytest.fixture
def default_config() -> HdrFlowConfig:
    """Configuration with every default."""
    return HdrFlowConfig()


@pytest.fixture
def all_tools_available() -> ToolAvailability:
    """Availability record with every metadata tool present."""
    return ToolAvailability(
        dovi_tool=True, hdr10plus_tool=True, mkvmerge=True, ffmpeg=True
    )


@pytest.fixture
def probe_fixture():
    """Loader for ffprobe fixtures, for tests that need several of them."""
    return load_ffprobe_fixture


@pytest.fixture
def sdr_probe_data() -> dict:
    """Probe output of a BT.709 H.264 stream."""
    return load_ffprobe_fixture("sdr")


@pytest.fixture
def hdr10_probe_data() -> dict:
    """Probe output of HDR10 with stream-level static metadata."""
    return load_ffprobe_fixture("hdr10")


@pytest.fixture
def hdr10plus_probe_data() -> dict:
    """Probe output of HDR10+ with metadata on frames only."""
    return load_ffprobe_fixture("hdr10plus")


@pytest.fixture
def dv_p7_probe_data() -> dict:
    """Probe output of a Dolby Vision Profile 7 stream (codec tag only)."""
    return load_ffprobe_fixture("dv_p7")


@pytest.fixture
def dv_p81_probe_data() -> dict:
    """Probe output of a Dolby Vision Profile 8.1 stream (DOVI side data)."""
    return load_ffprobe_fixture("dv_p81")
