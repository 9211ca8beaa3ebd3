"""hdrflow doctor command for checking external tool availability."""

import json

import click

from hdrflow.cli.exit_codes import ExitCode
from hdrflow.config.models import HdrFlowConfig
from hdrflow.tools import ToolInfo, probe_tool_availability

_INSTALL_HINTS = {
    "ffprobe": "Install ffmpeg: https://ffmpeg.org/download.html",
    "ffmpeg": "Install ffmpeg: https://ffmpeg.org/download.html",
    "mkvmerge": "Install mkvtoolnix: https://mkvtoolnix.download/",
    "dovi_tool": "Install dovi_tool: https://github.com/quietvoid/dovi_tool",
    "hdr10plus_tool": (
        "Install hdr10plus_tool: https://github.com/quietvoid/hdr10plus_tool"
    ),
}


def _format_status(available: bool) -> str:
    """Format status for display."""
    return "✓" if available else "✗"


def _format_version(version: str | None) -> str:
    """Format version for display."""
    return version if version else "not found"


def _tool_to_dict(info: ToolInfo) -> dict:
    return {
        "status": info.status.value,
        "path": str(info.path) if info.path else None,
        "version": info.version,
        "message": info.status_message,
    }


@click.command("doctor")
@click.option("--json", "json_output", is_flag=True, help="Output results as JSON")
@click.pass_context
def doctor_command(ctx: click.Context, json_output: bool) -> None:
    """Check the external tools used for HDR metadata handling.

    Exit codes:
      0 - All metadata tools available
      1 - Some tools missing (the matching features are disabled)
    """
    config: HdrFlowConfig = ctx.obj["config"]
    availability = probe_tool_availability(config)
    exit_code = (
        ExitCode.SUCCESS if availability.all_available else ExitCode.GENERAL_ERROR
    )

    if json_output:
        data = {
            "tools": {
                name: _tool_to_dict(info) for name, info in availability.tools.items()
            },
            "features": {
                "dolby_vision_injection": availability.can_inject_rpu,
                "hdr10plus_extraction": availability.hdr10plus_tool,
            },
            "missing": availability.missing(),
        }
        click.echo(json.dumps(data, indent=2))
        ctx.exit(int(exit_code))

    click.echo("hdrflow External Tool Health Check")
    click.echo("=" * 40)
    click.echo()

    width = max(len(name) for name in availability.tools)
    for name, info in availability.tools.items():
        status = _format_status(info.is_available())
        version = _format_version(info.version)
        click.echo(f"  {status} {name.ljust(width)}  {version}")
        if not info.is_available():
            if info.status_message:
                click.echo(f"    ├─ {info.status_message}")
            click.echo(f"    └─ {_INSTALL_HINTS[name]}")
    click.echo()

    click.echo("Features:")
    click.echo("-" * 20)
    click.echo(
        f"  {_format_status(availability.can_inject_rpu)} "
        "Dolby Vision RPU preservation"
    )
    click.echo(
        f"  {_format_status(availability.hdr10plus_tool)} "
        "HDR10+ dynamic metadata preservation"
    )

    ctx.exit(int(exit_code))
