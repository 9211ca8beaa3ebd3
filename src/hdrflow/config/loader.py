"""Configuration loader with precedence handling.

Configuration is loaded with the following precedence (highest to lowest):
1. CLI arguments (passed directly to get_config)
2. Environment variables (HDRFLOW_*)
3. Config file (~/.hdrflow/config.toml)
4. Default values

Environment variables:
- HDRFLOW_CONFIG_PATH: Path to config file (overrides default location)
- HDRFLOW_FFPROBE_PATH, HDRFLOW_FFMPEG_PATH, HDRFLOW_MKVMERGE_PATH,
  HDRFLOW_DOVI_TOOL_PATH, HDRFLOW_HDR10PLUS_TOOL_PATH: tool paths
- HDRFLOW_TEMP_DIR: Directory for temporary metadata files
- HDRFLOW_EXTRACTION_TIMEOUT: Seconds allowed for extraction/injection
- HDRFLOW_HDR_ENABLED, HDRFLOW_DV_ENABLED, HDRFLOW_HDR10PLUS_ENABLED: feature flags
- HDRFLOW_PRESERVE_PROFILE_7: Keep Dolby Vision Profile 7 content as DV
- HDRFLOW_DV_AUTO_CONVERT: Convert Dolby Vision profiles x265 cannot write
- HDRFLOW_DV_CRF_ADJUSTMENT, HDRFLOW_DV_BITRATE_MULTIPLIER: Dolby Vision rate
  control adjustments
- HDRFLOW_DYNAMIC_METADATA_LABELS: Comma-separated extra HDR10+ side-data labels
- HDRFLOW_MAX_CLL_PADDING: Constant added to MaxFALL in max-cll
- HDRFLOW_LOG_LEVEL, HDRFLOW_LOG_FORMAT, HDRFLOW_LOG_FILE: logging
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

from hdrflow.config.env import EnvReader
from hdrflow.config.models import (
    DolbyVisionConfig,
    Hdr10PlusConfig,
    HdrDetectionConfig,
    HdrFlowConfig,
    LoggingConfig,
    ToolArgsConfig,
    ToolPathsConfig,
    ToolTimeoutsConfig,
    WorkflowConfig,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".hdrflow"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.toml"

_TOOL_NAMES = ("ffprobe", "ffmpeg", "mkvmerge", "dovi_tool", "hdr10plus_tool")


def get_default_config_path(env: EnvReader | None = None) -> Path:
    """Get the config file path, honouring HDRFLOW_CONFIG_PATH."""
    env = env or EnvReader()
    env_path = env.get_str("HDRFLOW_CONFIG_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_FILE


def load_config_file(path: Path | None = None, env: EnvReader | None = None) -> dict:
    """Load configuration from a TOML file.

    Args:
        path: Path to config file. If None, uses the default location.
        env: Environment reader used to resolve the default location.

    Returns:
        Parsed configuration dict. Empty dict if the file doesn't exist or
        cannot be parsed (a warning is logged).
    """
    if path is None:
        path = get_default_config_path(env)

    if not path.exists():
        logger.debug("Config file not found: %s", path)
        return {}

    try:
        with path.open("rb") as f:
            config = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning("Failed to load config file %s: %s", path, e)
        return {}

    logger.debug("Loaded config from %s", path)
    return config


def _path_or_none(value: Any) -> Path | None:
    return Path(str(value)).expanduser() if value else None


def _build_tool_paths(
    section: dict, env: EnvReader, overrides: dict[str, Path | None]
) -> ToolPathsConfig:
    paths: dict[str, Path | None] = {}
    for name in _TOOL_NAMES:
        paths[name] = (
            overrides.get(name)
            or env.get_path(f"HDRFLOW_{name.upper()}_PATH")
            or _path_or_none(section.get(name))
        )
    return ToolPathsConfig(**paths)


def get_config(
    config_path: Path | None = None,
    env: EnvReader | None = None,
    # CLI overrides (highest precedence)
    tool_paths: dict[str, Path | None] | None = None,
    temp_dir: Path | None = None,
) -> HdrFlowConfig:
    """Get hdrflow configuration with full precedence handling.

    Args:
        config_path: Path to config file (overrides HDRFLOW_CONFIG_PATH).
        env: Environment reader. Defaults to os.environ.
        tool_paths: CLI overrides for tool paths, keyed by tool name.
        temp_dir: CLI override for the temp directory.

    Returns:
        HdrFlowConfig with merged configuration.

    Raises:
        ValueError: If a merged value fails model validation.
    """
    env = env or EnvReader()
    file_config = load_config_file(config_path, env)

    tools = _build_tool_paths(file_config.get("tools", {}), env, tool_paths or {})

    timeouts_file = file_config.get("timeouts", {})
    timeouts = ToolTimeoutsConfig(
        probe_seconds=env.get_int(
            "HDRFLOW_PROBE_TIMEOUT", timeouts_file.get("probe_seconds", 60)
        ),
        extraction_seconds=env.get_int(
            "HDRFLOW_EXTRACTION_TIMEOUT",
            timeouts_file.get("extraction_seconds", 300),
        ),
        remux_seconds=env.get_int(
            "HDRFLOW_REMUX_TIMEOUT", timeouts_file.get("remux_seconds", 300)
        ),
        detection_seconds=timeouts_file.get("detection_seconds", 10),
    )

    args_file = file_config.get("tool_args", {})
    tool_args = ToolArgsConfig(
        dovi_extract_args=list(args_file.get("dovi_extract_args", [])),
        dovi_inject_args=list(args_file.get("dovi_inject_args", [])),
        hdr10plus_extract_args=list(args_file.get("hdr10plus_extract_args", [])),
        hdr10plus_inject_args=list(args_file.get("hdr10plus_inject_args", [])),
    )

    hdr_file = file_config.get("hdr", {})
    hdr = HdrDetectionConfig(
        enabled=env.get_bool("HDRFLOW_HDR_ENABLED", hdr_file.get("enabled", True)),
        extra_dynamic_metadata_labels=tuple(
            env.get_list(
                "HDRFLOW_DYNAMIC_METADATA_LABELS",
                default=hdr_file.get("extra_dynamic_metadata_labels", []),
            )
        ),
        probe_frames=hdr_file.get("probe_frames", 3),
    )

    dv_file = file_config.get("dolby_vision", {})
    dolby_vision = DolbyVisionConfig(
        enabled=env.get_bool("HDRFLOW_DV_ENABLED", dv_file.get("enabled", True)),
        preserve_profile_7=env.get_bool(
            "HDRFLOW_PRESERVE_PROFILE_7", dv_file.get("preserve_profile_7", True)
        ),
        profile_specific_adjustments=dv_file.get("profile_specific_adjustments", True),
        crf_adjustment=env.get_float(
            "HDRFLOW_DV_CRF_ADJUSTMENT", float(dv_file.get("crf_adjustment", 1.0))
        ),
        bitrate_multiplier=env.get_float(
            "HDRFLOW_DV_BITRATE_MULTIPLIER",
            float(dv_file.get("bitrate_multiplier", 1.8)),
        ),
        vbv_bufsize=int(dv_file.get("vbv_bufsize", 160_000)),
        vbv_maxrate=int(dv_file.get("vbv_maxrate", 160_000)),
        auto_profile_conversion=env.get_bool(
            "HDRFLOW_DV_AUTO_CONVERT", dv_file.get("auto_profile_conversion", False)
        ),
        target_profile=str(dv_file.get("target_profile", "8.1")),
    )

    hdr10plus_file = file_config.get("hdr10plus", {})
    hdr10plus = Hdr10PlusConfig(
        enabled=env.get_bool(
            "HDRFLOW_HDR10PLUS_ENABLED", hdr10plus_file.get("enabled", True)
        ),
        probe_hdr10_content=hdr10plus_file.get("probe_hdr10_content", True),
        verify_with_plot=hdr10plus_file.get("verify_with_plot", False),
    )

    workflow_file = file_config.get("workflow", {})
    workflow = WorkflowConfig(
        temp_dir=(
            temp_dir
            or env.get_path("HDRFLOW_TEMP_DIR", must_exist=False)
            or _path_or_none(workflow_file.get("temp_dir"))
        ),
        sweep_on_startup=workflow_file.get("sweep_on_startup", True),
        max_cll_padding=env.get_int(
            "HDRFLOW_MAX_CLL_PADDING", workflow_file.get("max_cll_padding", 0)
        ),
    )

    logging_file = file_config.get("logging", {})
    logging_config = LoggingConfig(
        level=env.get_str("HDRFLOW_LOG_LEVEL", logging_file.get("level", "info")),
        file=(
            env.get_path("HDRFLOW_LOG_FILE", must_exist=False)
            or _path_or_none(logging_file.get("file"))
        ),
        format=env.get_str("HDRFLOW_LOG_FORMAT", logging_file.get("format", "text")),
        include_stderr=logging_file.get("include_stderr", False),
        max_bytes=logging_file.get("max_bytes", 10_485_760),
        backup_count=logging_file.get("backup_count", 5),
    )

    return HdrFlowConfig(
        tools=tools,
        timeouts=timeouts,
        tool_args=tool_args,
        hdr=hdr,
        dolby_vision=dolby_vision,
        hdr10plus=hdr10plus,
        workflow=workflow,
        logging=logging_config,
    )
