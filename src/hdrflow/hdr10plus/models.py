"""Pydantic models for hdr10plus_tool metadata documents.

The JSON layout is the one hdr10plus_tool writes on extract:

    {
      "JSONInfo": {"HDR10plusProfile": "B", "Version": "1.0"},
      "SceneInfo": [{"SceneId": 0, "SequenceFrameIndex": 0, ...}, ...],
      "SceneInfoSummary": {"SceneFirstFrameIndex": [...], "SceneFrameNumbers": [...]},
      "ToolInfo": {"Tool": "hdr10plus_tool", "Version": "1.6.0"}
    }

Parsing only checks types. Structural rules (sequential frames, anchor
counts, declared frame count) are checked by Hdr10PlusMetadata.validate()
so every problem can be reported at once.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from hdrflow.errors import MetadataValidationError, ProbeParseError
from hdrflow.temp_files import TempArtifact

logger = logging.getLogger(__name__)

# Anchors are 10-bit values, knee points 12-bit (ST 2094-40)
ANCHOR_SCALE = 1023
MAX_ANCHORS = 15
MAX_KNEE_POINT = 4095


class _Hdr10PlusModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class JsonInfo(_Hdr10PlusModel):
    hdr10plus_profile: str = Field(alias="HDR10plusProfile")
    version: str = Field(alias="Version")


class SourceToolInfo(_Hdr10PlusModel):
    """Tool that produced the document."""

    tool: str = Field(alias="Tool")
    version: str = Field(alias="Version")


class BezierCurveData(_Hdr10PlusModel):
    knee_point_x: int = Field(alias="KneePointX")
    knee_point_y: int = Field(alias="KneePointY")
    anchors: list[int] = Field(default_factory=list, alias="Anchors")

    def normalized_anchors(self) -> list[float]:
        """Anchors scaled to [0.0, 1.0] luminance."""
        return [anchor / ANCHOR_SCALE for anchor in self.anchors]


class LuminanceDistributions(_Hdr10PlusModel):
    distribution_index: list[int] = Field(alias="DistributionIndex")
    distribution_values: list[int] = Field(alias="DistributionValues")


class LuminanceParameters(_Hdr10PlusModel):
    average_rgb: int = Field(alias="AverageRGB")
    max_scl: list[int] = Field(alias="MaxScl")
    luminance_distributions: LuminanceDistributions | None = Field(
        default=None, alias="LuminanceDistributions"
    )


class FrameMetadata(_Hdr10PlusModel):
    """Tone-mapping record for one frame (a "SceneInfo" entry)."""

    scene_id: int = Field(alias="SceneId")
    scene_frame_index: int = Field(alias="SceneFrameIndex")
    sequence_frame_index: int = Field(alias="SequenceFrameIndex")
    number_of_windows: int = Field(default=1, alias="NumberOfWindows")
    targeted_system_display_maximum_luminance: int = Field(
        default=0, alias="TargetedSystemDisplayMaximumLuminance"
    )
    bezier_curve_data: BezierCurveData | None = Field(
        default=None, alias="BezierCurveData"
    )
    luminance_parameters: LuminanceParameters = Field(alias="LuminanceParameters")

    @property
    def has_curve(self) -> bool:
        return self.bezier_curve_data is not None and bool(
            self.bezier_curve_data.anchors
        )


class SceneInfoSummary(_Hdr10PlusModel):
    scene_first_frame_index: list[int] = Field(alias="SceneFirstFrameIndex")
    scene_frame_numbers: list[int] = Field(alias="SceneFrameNumbers")


class Hdr10PlusMetadata(_Hdr10PlusModel):
    """A complete HDR10+ dynamic metadata document."""

    json_info: JsonInfo = Field(alias="JSONInfo")
    frames: list[FrameMetadata] = Field(default_factory=list, alias="SceneInfo")
    scene_info_summary: SceneInfoSummary | None = Field(
        default=None, alias="SceneInfoSummary"
    )
    tool_info: SourceToolInfo | None = Field(default=None, alias="ToolInfo")

    @classmethod
    def from_json(cls, text: str) -> Hdr10PlusMetadata:
        """Parse a metadata document.

        Raises:
            ProbeParseError: If the text is not a valid document.
        """
        try:
            return cls.model_validate_json(text)
        except ValidationError as e:
            raise ProbeParseError(f"Failed to parse HDR10+ metadata JSON: {e}") from e

    @classmethod
    def from_json_file(cls, path: Path) -> Hdr10PlusMetadata:
        """Read and parse a metadata document.

        Raises:
            ProbeParseError: If the file cannot be read or parsed.
        """
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ProbeParseError(f"Cannot read HDR10+ metadata {path}: {e}") from e
        return cls.from_json(text)

    def to_json(self) -> str:
        return json.dumps(self.model_dump(by_alias=True, exclude_none=True), indent=2)

    @property
    def version(self) -> str:
        return self.json_info.version

    @property
    def frame_count(self) -> int:
        return len(self.frames)

    @property
    def declared_frame_count(self) -> int:
        """Frame count the document claims: the scene summary total when present."""
        if self.scene_info_summary is not None:
            return sum(self.scene_info_summary.scene_frame_numbers)
        return len(self.frames)

    @property
    def scene_count(self) -> int:
        if not self.frames:
            return 0
        return max(frame.scene_id for frame in self.frames) + 1

    @property
    def scene_cuts(self) -> list[int]:
        """First frame index of every scene."""
        if self.scene_info_summary is not None:
            return list(self.scene_info_summary.scene_first_frame_index)
        return [
            frame.sequence_frame_index
            for frame in self.frames
            if frame.scene_frame_index == 0
        ]

    @property
    def source_info(self) -> str | None:
        if self.tool_info is None:
            return None
        return f"{self.tool_info.tool} {self.tool_info.version}"

    def average_brightness(self) -> float | None:
        if not self.frames:
            return None
        total = sum(frame.luminance_parameters.average_rgb for frame in self.frames)
        return total / len(self.frames)

    def peak_brightness(self) -> int | None:
        values = [
            value
            for frame in self.frames
            for value in frame.luminance_parameters.max_scl
        ]
        return max(values) if values else None

    def has_tone_mapping_curves(self) -> bool:
        return any(frame.has_curve for frame in self.frames)

    def tone_mapping_frame_count(self) -> int:
        return sum(1 for frame in self.frames if frame.has_curve)

    def validation_problems(self) -> list[str]:
        """Return every structural problem in the document."""
        if not self.frames:
            return ["HDR10+ metadata contains no frame data"]

        problems: list[str] = []
        expected_anchor_count: int | None = None
        for index, frame in enumerate(self.frames):
            if frame.sequence_frame_index != index:
                problems.append(
                    f"Frame {index} has SequenceFrameIndex "
                    f"{frame.sequence_frame_index}, expected {index}"
                )
            max_scl = frame.luminance_parameters.max_scl
            if len(max_scl) != 3:
                problems.append(
                    f"Frame {index} MaxScl should have 3 components, "
                    f"found {len(max_scl)}"
                )

            curve = frame.bezier_curve_data
            if curve is None:
                continue
            knees = (
                ("KneePointX", curve.knee_point_x),
                ("KneePointY", curve.knee_point_y),
            )
            for name, knee in knees:
                if not 0 <= knee <= MAX_KNEE_POINT:
                    problems.append(
                        f"Frame {index} {name} {knee} outside [0, {MAX_KNEE_POINT}]"
                    )
            if not curve.anchors:
                continue
            if len(curve.anchors) > MAX_ANCHORS:
                problems.append(
                    f"Frame {index} has {len(curve.anchors)} anchors, "
                    f"at most {MAX_ANCHORS} allowed"
                )
            if expected_anchor_count is None:
                expected_anchor_count = len(curve.anchors)
            elif len(curve.anchors) != expected_anchor_count:
                problems.append(
                    f"Frame {index} has {len(curve.anchors)} anchors, "
                    f"expected {expected_anchor_count}"
                )
            out_of_range = [
                a for a in curve.normalized_anchors() if not 0.0 <= a <= 1.0
            ]
            if out_of_range:
                problems.append(
                    f"Frame {index} has anchors outside [0, 1]: {out_of_range}"
                )

        if self.declared_frame_count != len(self.frames):
            problems.append(
                f"Declared frame count {self.declared_frame_count} does not match "
                f"{len(self.frames)} frame records"
            )
        return problems

    def validate_structure(self) -> None:
        """Check the structural invariants of the document.

        Raises:
            MetadataValidationError: Listing every problem found.
        """
        problems = self.validation_problems()
        if problems:
            raise MetadataValidationError(problems)


def _curve_overhead(curve_count: int) -> float:
    if curve_count == 0:
        return 0.0
    if curve_count <= 100:
        return 0.1
    if curve_count <= 500:
        return 0.2
    if curve_count <= 1000:
        return 0.3
    return 0.4


@dataclass
class Hdr10PlusProcessingResult:
    """Extracted HDR10+ metadata and the temp file that holds it."""

    artifact: TempArtifact
    metadata: Hdr10PlusMetadata
    extraction_successful: bool = True
    file_size: int | None = None
    curve_count: int = field(init=False)
    scene_count: int = field(init=False)

    def __post_init__(self) -> None:
        self.curve_count = self.metadata.tone_mapping_frame_count()
        self.scene_count = self.metadata.scene_count

    @property
    def metadata_file(self) -> Path:
        return self.artifact.path

    def estimate_processing_overhead(self) -> float:
        """Relative encode cost of carrying this metadata."""
        if not self.extraction_successful:
            return 1.0
        scene_overhead = min(self.scene_count * 0.02, 0.2)
        return 1.4 + _curve_overhead(self.curve_count) + scene_overhead

    def cleanup(self) -> None:
        self.artifact.release()
