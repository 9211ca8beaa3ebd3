"""Structured logging for hdrflow.

Configurable text or JSON output with file rotation, plus a per-file run
context so concurrent workflow runs produce attributable logs.
"""

from hdrflow.logging.config import configure_logging
from hdrflow.logging.context import RunContextFilter, get_run_context, run_context
from hdrflow.logging.handlers import JSONFormatter

__all__ = [
    "JSONFormatter",
    "RunContextFilter",
    "configure_logging",
    "get_run_context",
    "run_context",
]
