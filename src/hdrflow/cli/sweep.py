"""hdrflow sweep command: remove orphaned temp files."""

from pathlib import Path

import click

from hdrflow.config.models import HdrFlowConfig
from hdrflow.temp_files import sweep_temp_files


@click.command("sweep")
@click.argument(
    "directory",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    required=False,
)
@click.pass_context
def sweep_command(ctx: click.Context, directory: Path | None) -> None:
    """Remove temp files left behind by interrupted runs.

    DIRECTORY defaults to the configured temp directory, or the current
    directory when none is configured.
    """
    config: HdrFlowConfig = ctx.obj["config"]
    if directory is None:
        directory = config.workflow.temp_dir or Path.cwd()

    removed = sweep_temp_files(directory)
    for path in removed:
        click.echo(f"  removed {path.name}")
    click.echo(f"Removed {len(removed)} orphaned temp file(s) from {directory}")
