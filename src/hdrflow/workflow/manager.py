"""Metadata workflow: extract before the encode, inject after it.

One MetadataWorkflowManager serves a whole batch. Tool availability is
probed once by the caller and passed in; every file then moves through

    IDLE -> TOOLS_PROBED -> METADATA_EXTRACTED -> PARAMS_SUPPLIED
         -> ENCODED -> INJECTED | FALLBACK -> CLEANED_UP

Extraction and injection failures degrade the file (no metadata, or the
plain encode as final output) and never abort it. Temp files owned by a
run are removed on every exit path.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from hdrflow.config.models import HdrFlowConfig
from hdrflow.content.analyzer import ContentAnalysisResult
from hdrflow.content.approach import (
    DolbyVisionApproach,
    DualFormatApproach,
    HdrApproach,
)
from hdrflow.dolby_vision.analyzer import DolbyVisionAnalyzer, DolbyVisionInfo
from hdrflow.dolby_vision.rpu import RpuManager, RpuMetadata
from hdrflow.errors import TempFileError, ToolError, WorkflowStateError
from hdrflow.hdr.encoding import EncoderParams
from hdrflow.hdr.types import HdrFormat
from hdrflow.hdr10plus.manager import Hdr10PlusManager
from hdrflow.hdr10plus.models import Hdr10PlusProcessingResult
from hdrflow.logging.context import run_context
from hdrflow.temp_files import (
    TempArtifact,
    encode_temp_path,
    sweep_temp_files,
    temp_directory_for,
)
from hdrflow.tools.factory import ToolSet, build_tool_set
from hdrflow.tools.models import ToolAvailability

logger = logging.getLogger(__name__)

# Encoder stage: called with the path to write and the parameters to add
EncodeCallback = Callable[[Path, EncoderParams], None]


class WorkflowState(Enum):
    """Position of one file run in the metadata workflow."""

    IDLE = "idle"
    TOOLS_PROBED = "tools_probed"
    METADATA_EXTRACTED = "metadata_extracted"
    PARAMS_SUPPLIED = "params_supplied"
    ENCODED = "encoded"
    INJECTED = "injected"
    FALLBACK = "fallback"
    CLEANED_UP = "cleaned_up"


_TRANSITIONS: dict[WorkflowState, frozenset[WorkflowState]] = {
    WorkflowState.IDLE: frozenset({WorkflowState.TOOLS_PROBED}),
    WorkflowState.TOOLS_PROBED: frozenset({WorkflowState.METADATA_EXTRACTED}),
    WorkflowState.METADATA_EXTRACTED: frozenset({WorkflowState.PARAMS_SUPPLIED}),
    WorkflowState.PARAMS_SUPPLIED: frozenset({WorkflowState.ENCODED}),
    WorkflowState.ENCODED: frozenset(
        {WorkflowState.INJECTED, WorkflowState.FALLBACK}
    ),
    WorkflowState.INJECTED: frozenset(),
    WorkflowState.FALLBACK: frozenset(),
    WorkflowState.CLEANED_UP: frozenset(),
}


@dataclass
class ExtractedMetadata:
    """Metadata files owned by one workflow run.

    cleanup() removes both files regardless of which extraction succeeded
    and may be called from any state.
    """

    temp_dir: Path | None = None
    rpu: RpuMetadata | None = None
    hdr10plus: Hdr10PlusProcessingResult | None = None
    state: WorkflowState = WorkflowState.TOOLS_PROBED
    history: list[WorkflowState] = field(default_factory=list)

    @property
    def has_rpu(self) -> bool:
        return self.rpu is not None and self.rpu.extracted_successfully

    @property
    def has_hdr10plus(self) -> bool:
        return self.hdr10plus is not None and self.hdr10plus.extraction_successful

    def advance(self, new_state: WorkflowState) -> None:
        """Move to the next state.

        Raises:
            WorkflowStateError: If the transition is not allowed.
        """
        if new_state not in _TRANSITIONS[self.state]:
            raise WorkflowStateError(
                f"Invalid workflow transition {self.state.value} -> {new_state.value}"
            )
        logger.debug("Workflow state %s -> %s", self.state.value, new_state.value)
        self.history.append(self.state)
        self.state = new_state

    def cleanup(self) -> None:
        if self.state is WorkflowState.CLEANED_UP:
            return
        if self.rpu is not None:
            self.rpu.cleanup()
        if self.hdr10plus is not None:
            self.hdr10plus.cleanup()
        self.history.append(self.state)
        self.state = WorkflowState.CLEANED_UP
        logger.debug("Workflow temp files cleaned up")


@dataclass(frozen=True)
class WorkflowResult:
    """Outcome of process_file()."""

    output_path: Path
    final_state: WorkflowState
    encoder_params: EncoderParams
    rpu_injected: bool
    hdr10plus_applied: bool


class MetadataWorkflowManager:
    """Coordinates metadata extraction, encoding and post-encode injection."""

    def __init__(
        self,
        config: HdrFlowConfig,
        availability: ToolAvailability,
        rpu_manager: RpuManager,
        hdr10plus_manager: Hdr10PlusManager,
    ) -> None:
        """Initialize the manager.

        Args:
            config: Application configuration.
            availability: Tool availability probed once for the whole run.
            rpu_manager: Dolby Vision RPU lifecycle manager.
            hdr10plus_manager: HDR10+ extraction manager.
        """
        self.config = config
        self.availability = availability
        self.rpu_manager = rpu_manager
        self.hdr10plus_manager = hdr10plus_manager
        self.dv_analyzer = DolbyVisionAnalyzer(config.dolby_vision)
        self._swept: set[Path] = set()

    @classmethod
    def from_config(
        cls,
        config: HdrFlowConfig,
        availability: ToolAvailability,
        tools: ToolSet | None = None,
    ) -> MetadataWorkflowManager:
        """Build a manager with tool adapters created from config."""
        tools = tools or build_tool_set(config)
        temp_dir = config.workflow.temp_dir
        return cls(
            config,
            availability,
            RpuManager(tools.dovi_tool, tools.ffmpeg, tools.mkvmerge, temp_dir),
            Hdr10PlusManager(
                tools.hdr10plus_tool,
                temp_dir,
                verify_with_plot=config.hdr10plus.verify_with_plot,
            ),
        )

    @property
    def temp_dir(self) -> Path | None:
        return self.config.workflow.temp_dir

    def sweep_orphans(self, near: Path) -> list[Path]:
        """Remove orphaned temp files from the directory used for near.

        Each directory is swept at most once per manager.
        """
        directory = temp_directory_for(near, self.temp_dir)
        if directory in self._swept:
            return []
        self._swept.add(directory)
        return sweep_temp_files(directory)

    def temp_output_path(self, final_output: Path) -> Path:
        """Path the encoder writes to when injection will follow."""
        return encode_temp_path(final_output)

    def needs_post_processing(self, extracted: ExtractedMetadata) -> bool:
        """True if the encode must be followed by RPU injection."""
        return extracted.has_rpu and self.availability.can_inject_rpu

    def extract_metadata(
        self, input_path: Path, analysis: ContentAnalysisResult
    ) -> ExtractedMetadata:
        """Extract the metadata the resolved approach needs.

        HDR10+ metadata already extracted during analysis is reused and
        its ownership moves to the returned record.
        """
        extracted = ExtractedMetadata(temp_dir=self.temp_dir)
        approach = analysis.approach

        try:
            if isinstance(approach, (DolbyVisionApproach, DualFormatApproach)):
                extracted.rpu = self._extract_rpu(input_path, approach.dv)

            if isinstance(approach, (HdrApproach, DualFormatApproach)):
                extracted.hdr10plus = analysis.hdr10plus
                if extracted.hdr10plus is None and self._should_extract_hdr10plus(
                    analysis
                ):
                    extracted.hdr10plus = self.hdr10plus_manager.extract_metadata(
                        input_path
                    )
            elif analysis.hdr10plus is not None:
                # Not used by this approach
                analysis.hdr10plus.cleanup()
        except BaseException:
            extracted.cleanup()
            raise

        extracted.advance(WorkflowState.METADATA_EXTRACTED)
        logger.info(
            "Metadata extraction complete: RPU=%s HDR10+=%s",
            extracted.has_rpu,
            extracted.has_hdr10plus,
        )
        return extracted

    def _should_extract_hdr10plus(self, analysis: ContentAnalysisResult) -> bool:
        if analysis.hdr10plus_extraction_attempted or not self.config.hdr10plus.enabled:
            return False
        if analysis.hdr.format is not HdrFormat.HDR10_PLUS:
            return False
        if not self.availability.hdr10plus_tool:
            logger.info("hdr10plus_tool unavailable, skipping HDR10+ extraction")
            return False
        return True

    def _extract_rpu(
        self, input_path: Path, dv_info: DolbyVisionInfo
    ) -> RpuMetadata | None:
        if not dv_info.needs_rpu_processing():
            return None
        if not self.availability.dovi_tool:
            logger.info(
                "dovi_tool unavailable, skipping RPU extraction for Profile %s",
                dv_info.profile.value,
            )
            return None

        try:
            rpu = self.rpu_manager.extract_rpu(input_path, dv_info)
        except ToolError as e:
            logger.warning(
                "RPU extraction failed for Profile %s, continuing without "
                "Dolby Vision metadata:\n%s",
                dv_info.profile.value,
                e.details(),
                extra={"tool": e.tool, "returncode": e.returncode},
            )
            return None
        except TempFileError as e:
            logger.warning("RPU extraction produced no usable file: %s", e)
            return None

        if rpu is not None:
            target = self.dv_analyzer.get_target_profile(rpu.profile)
            if target is not rpu.profile:
                rpu = self.rpu_manager.convert_rpu(rpu, target)
        return rpu

    def supply_encoder_params(self, extracted: ExtractedMetadata) -> EncoderParams:
        """Return the parameters the encoder must add for this run.

        Only the HDR10+ metadata file is passed to the encoder; the RPU is
        injected after the encode.
        """
        params: EncoderParams = {}
        if extracted.has_hdr10plus:
            params["dhdr10-info"] = str(extracted.hdr10plus.metadata_file)
        extracted.advance(WorkflowState.PARAMS_SUPPLIED)
        return params

    def finalize(
        self,
        extracted: ExtractedMetadata,
        encoded_path: Path,
        final_output: Path,
        fps: float,
    ) -> WorkflowState:
        """Produce final_output from the encode.

        Injects the RPU when one was extracted and the pipeline tools are
        available; otherwise, or when injection fails, the plain encode
        becomes the final output.

        Raises:
            TempFileError: If the encode cannot be moved to final_output.
        """
        if self.needs_post_processing(extracted):
            try:
                self.rpu_manager.inject_rpu(
                    encoded_path, extracted.rpu, final_output, fps
                )
            except (ToolError, TempFileError) as e:
                details = e.details() if isinstance(e, ToolError) else str(e)
                logger.warning(
                    "RPU injection failed, keeping the encode without Dolby "
                    "Vision metadata:\n%s",
                    details,
                    extra={"dv_profile": extracted.rpu.profile.value},
                )
            else:
                if encoded_path != final_output:
                    TempArtifact(encoded_path, "encode").release()
                extracted.advance(WorkflowState.INJECTED)
                return WorkflowState.INJECTED
        elif extracted.has_rpu:
            logger.info("RPU injection tools unavailable, using the plain encode")

        self._move_into_place(encoded_path, final_output)
        extracted.advance(WorkflowState.FALLBACK)
        return WorkflowState.FALLBACK

    @staticmethod
    def _move_into_place(encoded_path: Path, final_output: Path) -> None:
        if encoded_path == final_output:
            return
        try:
            encoded_path.replace(final_output)
        except OSError as e:
            raise TempFileError(
                final_output, f"Cannot move encode {encoded_path} into place ({e})"
            ) from e
        logger.debug("Moved %s to %s", encoded_path, final_output)

    def process_file(
        self,
        input_path: Path,
        analysis: ContentAnalysisResult,
        encode: EncodeCallback,
        final_output: Path,
        fps: float,
    ) -> WorkflowResult:
        """Run the whole metadata workflow for one file.

        Args:
            input_path: Source video.
            analysis: Content analysis of the source.
            encode: Encoder stage; writes the encode to the given path.
            final_output: Where the finished file must end up.
            fps: Source frame rate, needed to remux a raw HEVC stream.

        Returns:
            The workflow outcome.

        Raises:
            TempFileError: If the final output cannot be written.
            Exception: Whatever the encode callback raises.
        """
        run_id = uuid.uuid4().hex[:8]
        with run_context(run_id, input_path):
            if self.config.workflow.sweep_on_startup:
                self.sweep_orphans(input_path)

            extracted = self.extract_metadata(input_path, analysis)
            encode_artifact: TempArtifact | None = None
            try:
                params = self.supply_encoder_params(extracted)

                encode_target = final_output
                if self.needs_post_processing(extracted):
                    if fps <= 0:
                        raise ValueError(f"fps must be positive for injection: {fps}")
                    encode_target = self.temp_output_path(final_output)
                    encode_artifact = TempArtifact(encode_target, "encode")

                logger.info("Encoding %s -> %s", input_path.name, encode_target)
                encode(encode_target, params)
                extracted.advance(WorkflowState.ENCODED)

                state = self.finalize(extracted, encode_target, final_output, fps)
            finally:
                extracted.cleanup()
                analysis.cleanup()
                if encode_artifact is not None:
                    encode_artifact.release()

            logger.info(
                "Workflow finished for %s: %s",
                input_path.name,
                state.value,
                extra={"workflow_state": state.value},
            )
            return WorkflowResult(
                output_path=final_output,
                final_state=state,
                encoder_params=params,
                rpu_injected=state is WorkflowState.INJECTED,
                hdr10plus_applied="dhdr10-info" in params,
            )
