"""hdrflow inject command: carry source metadata into a finished encode."""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import replace
from pathlib import Path

import click

from hdrflow.cli.analyze import run_analysis
from hdrflow.cli.exit_codes import ExitCode
from hdrflow.cli.output import error_exit
from hdrflow.config.models import HdrFlowConfig
from hdrflow.content import ContentAnalyzer
from hdrflow.errors import TempFileError
from hdrflow.hdr.encoding import EncoderParams
from hdrflow.tools import build_tool_set, probe_tool_availability
from hdrflow.workflow import MetadataWorkflowManager

logger = logging.getLogger(__name__)


@click.command("inject")
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("encoded", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
@click.option(
    "--fps",
    type=click.FloatRange(min=0, min_open=True),
    required=True,
    help="Frame rate of the encode (needed to remux a raw HEVC stream).",
)
@click.option("--json", "json_output", is_flag=True, help="Output results as JSON")
@click.pass_context
def inject_command(
    ctx: click.Context,
    source: Path,
    encoded: Path,
    output: Path,
    fps: float,
    json_output: bool,
) -> None:
    """Inject Dolby Vision metadata from SOURCE into ENCODED, writing OUTPUT.

    ENCODED is consumed: it becomes OUTPUT unchanged when there is nothing
    to inject or injection fails.

    Exit codes:
      0 - OUTPUT written
      1 - OUTPUT could not be written
      2 - SOURCE could not be analyzed
      3 - ffprobe is not available
    """
    config: HdrFlowConfig = ctx.obj["config"]
    if encoded.resolve() == output.resolve():
        error_exit(
            "ENCODED and OUTPUT must be different files",
            ExitCode.GENERAL_ERROR,
            json_output,
        )

    # HDR10+ is applied at encode time and the encode already exists
    config = replace(config, hdr10plus=replace(config.hdr10plus, enabled=False))
    tools = build_tool_set(config)
    availability = probe_tool_availability(config, tools)
    manager = MetadataWorkflowManager.from_config(config, availability, tools)
    analyzer = ContentAnalyzer(config, tools.ffprobe)
    analysis = run_analysis(analyzer, source, json_output)

    def use_existing_encode(target: Path, params: EncoderParams) -> None:
        if params:
            logger.info(
                "Encode already exists, ignoring encoder params: %s", sorted(params)
            )
        if target != encoded:
            shutil.move(encoded, target)

    try:
        result = manager.process_file(
            source, analysis, use_existing_encode, output, fps
        )
    except (OSError, TempFileError) as e:
        error_exit(f"Cannot write {output}: {e}", ExitCode.GENERAL_ERROR, json_output)

    if json_output:
        click.echo(
            json.dumps(
                {
                    "output": str(result.output_path),
                    "state": result.final_state.value,
                    "approach": analysis.approach.describe(),
                    "rpu_injected": result.rpu_injected,
                },
                indent=2,
            )
        )
        return

    click.echo(f"Approach: {analysis.approach.describe()}")
    if result.rpu_injected:
        click.echo(f"Dolby Vision RPU injected: {result.output_path}")
    else:
        click.echo(f"Wrote encode without injected metadata: {result.output_path}")
