"""Configuration data models.

This module defines dataclasses for hdrflow configuration options.
"""

from dataclasses import dataclass, field
from pathlib import Path

VALID_DV_TARGET_PROFILES = frozenset({"8.1", "8.2", "8.4"})


@dataclass
class ToolPathsConfig:
    """Configuration for external tool paths.

    All paths are optional. If not specified, tools are looked up in PATH.
    """

    ffprobe: Path | None = None
    ffmpeg: Path | None = None
    mkvmerge: Path | None = None
    dovi_tool: Path | None = None
    hdr10plus_tool: Path | None = None

    def get(self, tool_name: str) -> Path | None:
        """Return the configured path for a tool name, or None."""
        return getattr(self, tool_name, None)


@dataclass
class ToolTimeoutsConfig:
    """Timeouts (seconds) for external tool invocations."""

    # ffprobe calls
    probe_seconds: int = 60

    # dovi_tool / hdr10plus_tool extraction and injection
    extraction_seconds: int = 300

    # mkvmerge remux and ffmpeg bitstream extraction
    remux_seconds: int = 300

    # help/version probes at startup
    detection_seconds: int = 10

    def __post_init__(self) -> None:
        """Validate configuration."""
        for name in (
            "probe_seconds",
            "extraction_seconds",
            "remux_seconds",
            "detection_seconds",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")

    @property
    def conversion_seconds(self) -> int:
        """Profile conversion rewrites the whole RPU and gets twice as long."""
        return self.extraction_seconds * 2


@dataclass
class ToolArgsConfig:
    """Extra arguments appended to metadata tool invocations."""

    dovi_extract_args: list[str] = field(default_factory=list)
    dovi_inject_args: list[str] = field(default_factory=list)
    hdr10plus_extract_args: list[str] = field(default_factory=list)
    hdr10plus_inject_args: list[str] = field(default_factory=list)


@dataclass
class HdrDetectionConfig:
    """Configuration for HDR classification."""

    # When False every file is reported as SDR with full confidence
    enabled: bool = True

    # Additional side-data labels treated as HDR10+ dynamic metadata
    extra_dynamic_metadata_labels: tuple[str, ...] = ()

    # Decoded frames inspected when stream-level side data is inconclusive
    probe_frames: int = 3

    def __post_init__(self) -> None:
        """Validate configuration."""
        self.extra_dynamic_metadata_labels = tuple(self.extra_dynamic_metadata_labels)
        if self.probe_frames < 0:
            raise ValueError(f"probe_frames must be >= 0, got {self.probe_frames}")


@dataclass
class DolbyVisionConfig:
    """Configuration for Dolby Vision preservation."""

    enabled: bool = True

    # Profile 7 (dual layer) loses its enhancement layer when re-encoded
    preserve_profile_7: bool = True

    # When False every profile uses the generic 16-20 CRF window
    profile_specific_adjustments: bool = True

    crf_adjustment: float = 1.0
    bitrate_multiplier: float = 1.8

    # VBV used in CRF mode (kbit)
    vbv_bufsize: int = 160_000
    vbv_maxrate: int = 160_000

    # Convert Profile 7 RPUs to target_profile before injection
    auto_profile_conversion: bool = False
    target_profile: str = "8.1"

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.target_profile not in VALID_DV_TARGET_PROFILES:
            raise ValueError(
                f"target_profile must be one of {sorted(VALID_DV_TARGET_PROFILES)}, "
                f"got {self.target_profile}"
            )
        if self.bitrate_multiplier <= 0:
            raise ValueError(
                f"bitrate_multiplier must be positive, got {self.bitrate_multiplier}"
            )
        if self.vbv_bufsize <= 0 or self.vbv_maxrate <= 0:
            raise ValueError("vbv_bufsize and vbv_maxrate must be positive")


@dataclass
class Hdr10PlusConfig:
    """Configuration for HDR10+ dynamic metadata handling."""

    enabled: bool = True

    # Also run extraction on content classified as plain HDR10
    probe_hdr10_content: bool = True

    # Have hdr10plus_tool plot extracted metadata as a readability check
    verify_with_plot: bool = False


@dataclass
class WorkflowConfig:
    """Configuration for the metadata workflow."""

    # None places temp files alongside the source file
    temp_dir: Path | None = None

    # Remove orphaned temp files before processing
    sweep_on_startup: bool = True

    # Added to MaxFALL when emitting max-cll (legacy pipelines used 400)
    max_cll_padding: int = 0

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.max_cll_padding < 0:
            raise ValueError(
                f"max_cll_padding must be >= 0, got {self.max_cll_padding}"
            )


@dataclass
class LoggingConfig:
    """Configuration for structured logging."""

    # Log level: debug, info, warning, error
    level: str = "info"

    # Log file path (None = stderr only)
    file: Path | None = None

    # Log format: text or json
    format: str = "text"

    # Also log to stderr when file is set
    include_stderr: bool = False

    # Rotation threshold in bytes (default 10MB)
    max_bytes: int = 10_485_760

    # Number of rotated files to keep
    backup_count: int = 5

    def __post_init__(self) -> None:
        """Validate configuration."""
        valid_levels = {"debug", "info", "warning", "error"}
        if self.level.lower() not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}, got {self.level}")
        valid_formats = {"text", "json"}
        if self.format.lower() not in valid_formats:
            raise ValueError(
                f"format must be one of {valid_formats}, got {self.format}"
            )


@dataclass
class HdrFlowConfig:
    """Main configuration container for hdrflow.

    Aggregates all configuration sections.
    """

    tools: ToolPathsConfig = field(default_factory=ToolPathsConfig)
    timeouts: ToolTimeoutsConfig = field(default_factory=ToolTimeoutsConfig)
    tool_args: ToolArgsConfig = field(default_factory=ToolArgsConfig)
    hdr: HdrDetectionConfig = field(default_factory=HdrDetectionConfig)
    dolby_vision: DolbyVisionConfig = field(default_factory=DolbyVisionConfig)
    hdr10plus: Hdr10PlusConfig = field(default_factory=Hdr10PlusConfig)
    workflow: WorkflowConfig = field(default_factory=WorkflowConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
