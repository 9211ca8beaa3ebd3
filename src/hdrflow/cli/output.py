"""Error output shared by CLI commands."""

from __future__ import annotations

import json
import sys
from typing import NoReturn

import click

from hdrflow.cli.exit_codes import ExitCode


def error_exit(
    message: str,
    code: ExitCode,
    json_output: bool = False,
) -> NoReturn:
    """Print an error in the requested format and exit.

    Args:
        message: Error message to display.
        code: Exit code to use.
        json_output: Whether to format output as JSON.
    """
    if json_output:
        click.echo(
            json.dumps(
                {
                    "status": "failed",
                    "error": {"code": code.name, "message": message},
                }
            ),
            err=True,
        )
    else:
        click.echo(f"Error: {message}", err=True)

    sys.exit(int(code))
