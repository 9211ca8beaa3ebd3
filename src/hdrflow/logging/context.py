"""Per-file run context for structured logging.

A batch driver may process several files concurrently. Each workflow run
sets a context (worker id, run id, source file) through contextvars, and
RunContextFilter copies it onto every log record emitted inside the run.
"""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator

_worker_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "worker_id", default=None
)
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_source_path: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "source_path", default=None
)


def get_run_context() -> tuple[str | None, str | None, str | None]:
    """Return (worker_id, run_id, source_path); any may be None."""
    return _worker_id.get(), _run_id.get(), _source_path.get()


@contextmanager
def run_context(
    run_id: str,
    source_path: Path | str | None = None,
    worker_id: str | None = None,
) -> Generator[None, None, None]:
    """Tag log records emitted inside the block with the current file run.

    The previous context is restored on exit, so runs may nest.

    Args:
        run_id: Short identifier of the workflow run.
        source_path: File being processed.
        worker_id: Identifier of the batch worker, when there is one.

    Example:
        with run_context("3f2a1c", "/media/movie.mkv"):
            logger.info("Extracting RPU")
    """
    tokens = (
        _worker_id.set(worker_id),
        _run_id.set(run_id),
        _source_path.set(str(source_path) if source_path is not None else None),
    )
    try:
        yield
    finally:
        _source_path.reset(tokens[2])
        _run_id.reset(tokens[1])
        _worker_id.reset(tokens[0])


class RunContextFilter(logging.Filter):
    """Logging filter that injects the run context into log records.

    Adds worker_id, run_id and source_path attributes for JSON output and
    a compact run_tag such as "[W01:3f2a1c] " for text output.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        worker_id, run_id, source_path = get_run_context()

        record.worker_id = worker_id
        record.run_id = run_id
        record.source_path = source_path

        if run_id and worker_id:
            record.run_tag = f"[W{worker_id}:{run_id}] "
        elif run_id:
            record.run_tag = f"[{run_id}] "
        else:
            record.run_tag = ""

        return True
