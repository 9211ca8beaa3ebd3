"""Configuration management for hdrflow.

Configuration is loaded with precedence handling:
1. CLI flags (highest priority)
2. Environment variables (HDRFLOW_*)
3. Config file (~/.hdrflow/config.toml)
4. Default values (lowest priority)
"""

from hdrflow.config.env import EnvReader
from hdrflow.config.loader import (
    get_config,
    get_default_config_path,
    load_config_file,
)
from hdrflow.config.logging_factory import build_logging_config
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

__all__ = [
    # Models
    "DolbyVisionConfig",
    "Hdr10PlusConfig",
    "HdrDetectionConfig",
    "HdrFlowConfig",
    "LoggingConfig",
    "ToolArgsConfig",
    "ToolPathsConfig",
    "ToolTimeoutsConfig",
    "WorkflowConfig",
    # Loader
    "EnvReader",
    "build_logging_config",
    "get_config",
    "get_default_config_path",
    "load_config_file",
]
