"""hdrflow analyze command: classify a file and show encoder adjustments."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click

from hdrflow.cli.exit_codes import ExitCode
from hdrflow.cli.output import error_exit
from hdrflow.config.models import HdrFlowConfig
from hdrflow.content import ContentAnalysisResult, ContentAnalyzer, RateMode
from hdrflow.errors import (
    MetadataValidationError,
    ProbeParseError,
    ToolError,
    ToolNotFoundError,
)
from hdrflow.hdr.encoding import format_params_for_command_line
from hdrflow.hdr10plus import Hdr10PlusManager
from hdrflow.tools import build_tool_set, probe_tool_availability


def build_analyzer(config: HdrFlowConfig) -> ContentAnalyzer:
    """Create a content analyzer, enabling HDR10+ extraction when possible."""
    tools = build_tool_set(config)
    availability = probe_tool_availability(config, tools)
    hdr10plus_manager = None
    if availability.hdr10plus_tool:
        hdr10plus_manager = Hdr10PlusManager(
            tools.hdr10plus_tool,
            config.workflow.temp_dir,
            verify_with_plot=config.hdr10plus.verify_with_plot,
        )
    return ContentAnalyzer(config, tools.ffprobe, hdr10plus_manager)


def run_analysis(
    analyzer: ContentAnalyzer, path: Path, json_output: bool
) -> ContentAnalysisResult:
    """Analyze a file, exiting with the matching code on failure."""
    try:
        return analyzer.analyze(path)
    except ToolNotFoundError as e:
        error_exit(str(e), ExitCode.TOOL_NOT_AVAILABLE, json_output)
    except (ProbeParseError, MetadataValidationError) as e:
        error_exit(f"Analysis failed: {e}", ExitCode.ANALYSIS_ERROR, json_output)
    except ToolError as e:
        error_exit(f"Analysis failed: {e}", ExitCode.ANALYSIS_ERROR, json_output)


def _print_text(data: dict[str, Any]) -> None:
    hdr = data["hdr"]
    dv = data["dolby_vision"]
    adjustments = data["adjustments"]
    low, high = adjustments["recommended_crf_range"]

    click.echo(f"File: {data['path']}")
    click.echo(f"  HDR:           {hdr['summary']}")
    click.echo(f"  Confidence:    {hdr['confidence']:.2f}")
    if dv["profile"] != "none":
        click.echo(
            f"  Dolby Vision:  Profile {dv['profile']} "
            f"(RPU={dv['rpu_present']}, EL={dv['el_present']})"
        )
    hdr10plus = data["hdr10plus"]
    if hdr10plus is not None:
        click.echo(
            f"  HDR10+:        {hdr10plus['frame_count']} frames, "
            f"{hdr10plus['scene_count']} scenes"
        )
    click.echo(f"  Approach:      {data['approach']['description']}")
    click.echo(
        f"  Adjustments:   CRF {adjustments['crf_adjustment']:+.1f}, "
        f"bitrate x{adjustments['bitrate_multiplier']:.2f}, "
        f"complexity x{adjustments['encoding_complexity']:.2f}"
    )
    click.echo(f"  CRF range:     {low:g}-{high:g}")
    click.echo(f"  Final CRF:     {data['final_crf']:g}")
    if data["final_bitrate"] is not None:
        click.echo(f"  Final bitrate: {data['final_bitrate']} kbit/s")
    click.echo(f"  x265 params:   {data['x265_params']}")


@click.command("analyze")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "json_output", is_flag=True, help="Output results as JSON")
@click.option(
    "--base-crf",
    type=float,
    default=20.0,
    show_default=True,
    help="CRF of the base encoding profile.",
)
@click.option(
    "--base-bitrate",
    type=click.IntRange(min=1),
    default=None,
    help="Bitrate of the base encoding profile in kbit/s.",
)
@click.option(
    "--rate-mode",
    type=click.Choice([mode.value for mode in RateMode], case_sensitive=False),
    default=RateMode.CRF.value,
    show_default=True,
    help="Rate control mode used to derive VBV settings.",
)
@click.pass_context
def analyze_command(
    ctx: click.Context,
    file: Path,
    json_output: bool,
    base_crf: float,
    base_bitrate: int | None,
    rate_mode: str,
) -> None:
    """Classify FILE and print the encoding approach and parameters.

    Exit codes:
      0 - Analysis succeeded
      2 - Probe output or metadata could not be parsed or validated
      3 - ffprobe is not available
    """
    config: HdrFlowConfig = ctx.obj["config"]
    mode = RateMode(rate_mode.lower())
    if mode is not RateMode.CRF and base_bitrate is None:
        error_exit(
            f"--base-bitrate is required with --rate-mode {mode.value}",
            ExitCode.GENERAL_ERROR,
            json_output,
        )

    analyzer = build_analyzer(config)
    result = run_analysis(analyzer, file, json_output)
    try:
        final_bitrate = (
            result.final_bitrate(base_bitrate) if base_bitrate is not None else None
        )
        try:
            params = analyzer.build_encoder_params(
                result, rate_mode=mode, bitrate_kbps=final_bitrate
            )
        except MetadataValidationError as e:
            error_exit(
                f"Metadata failed validation: {e}", ExitCode.ANALYSIS_ERROR, json_output
            )

        data = result.to_dict()
        data["final_crf"] = result.final_crf(base_crf)
        data["final_bitrate"] = final_bitrate
        data["encoder_params"] = params
        data["x265_params"] = format_params_for_command_line(params)
    finally:
        # Analysis only: extracted metadata is not kept
        result.cleanup()

    if json_output:
        click.echo(json.dumps(data, indent=2))
    else:
        _print_text(data)
