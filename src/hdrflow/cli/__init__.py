"""CLI module for hdrflow."""

import logging
from pathlib import Path

import click

from hdrflow.cli.exit_codes import ExitCode
from hdrflow.cli.output import error_exit
from hdrflow.config import build_logging_config, get_config
from hdrflow.config.models import HdrFlowConfig
from hdrflow.logging import configure_logging

logger = logging.getLogger(__name__)


def _load_config(config_path: Path | None) -> HdrFlowConfig:
    try:
        return get_config(config_path=config_path)
    except ValueError as e:
        error_exit(f"Invalid configuration: {e}", ExitCode.GENERAL_ERROR)


def _configure_logging(
    config: HdrFlowConfig,
    log_level: str | None,
    log_format: str | None,
    log_file: Path | None,
) -> None:
    """Configure logging from the loaded config and CLI overrides."""
    logging_config = build_logging_config(
        config.logging,
        level=log_level,
        file=log_file,
        format=log_format,
    )
    configure_logging(logging_config)
    logger.debug(
        "hdrflow starting: log_level=%s, log_format=%s, log_file=%s",
        logging_config.level,
        logging_config.format,
        logging_config.file or "stderr",
    )


@click.group()
@click.version_option(package_name="hdrflow")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Config file (default: ~/.hdrflow/config.toml).",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Override log level (default: info).",
)
@click.option(
    "--log-format",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default=None,
    help="Override log format.",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Override log file path.",
)
@click.pass_context
def main(
    ctx: click.Context,
    config_path: Path | None,
    log_level: str | None,
    log_format: str | None,
    log_file: Path | None,
) -> None:
    """hdrflow - HDR, Dolby Vision and HDR10+ metadata workflow for encodes."""
    ctx.ensure_object(dict)

    # Preserve a config injected by tests
    if "config" not in ctx.obj:
        ctx.obj["config"] = _load_config(config_path)

    _configure_logging(ctx.obj["config"], log_level, log_format, log_file)


# Defer import to avoid circular dependency
def _register_commands():
    from hdrflow.cli.analyze import analyze_command
    from hdrflow.cli.doctor import doctor_command
    from hdrflow.cli.inject import inject_command
    from hdrflow.cli.sweep import sweep_command

    main.add_command(analyze_command)
    main.add_command(doctor_command)
    main.add_command(inject_command)
    main.add_command(sweep_command)


_register_commands()
