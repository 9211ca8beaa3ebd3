"""Temporary artifact naming, ownership and cleanup.

Every transitional file hdrflow creates is named with the source stem and
a random UUID, so concurrent runs never collide, and is wrapped in a
TempArtifact that its owner releases explicitly on every exit path.
Orphans left by a killed process are removed by sweep_temp_files().
"""

from __future__ import annotations

import logging
import re
import uuid
from pathlib import Path

from hdrflow.errors import TempFileError

logger = logging.getLogger(__name__)

_UUID = r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"

TEMP_FILE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf".+_rpu_{_UUID}\.bin"),
    re.compile(rf".+_hdr10plus_metadata_{_UUID}\.json"),
    re.compile(rf"temp_hevc_{_UUID}\.hevc"),
    re.compile(rf"temp_hevc_rpu_{_UUID}\.hevc"),
)

ENCODE_TEMP_PREFIX = "temp_encode_"


class TempArtifact:
    """A temporary file with an explicit owner and an idempotent release()."""

    def __init__(self, path: Path, owner: str) -> None:
        """Initialize the artifact.

        Args:
            path: File location. The file need not exist yet.
            owner: Component responsible for releasing it, for diagnostics.
        """
        self.path = path
        self.owner = owner
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def exists(self) -> bool:
        return not self._released and self.path.exists()

    def release(self) -> bool:
        """Delete the file if present. Safe to call any number of times.

        Returns:
            False if the file existed and could not be removed.
        """
        if self._released:
            return True
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(
                "Failed to remove temp file %s (owner %s): %s",
                self.path,
                self.owner,
                e,
            )
            return False
        self._released = True
        logger.debug("Released temp file %s (owner %s)", self.path, self.owner)
        return True

    def __repr__(self) -> str:
        state = "released" if self._released else "held"
        return f"TempArtifact({str(self.path)!r}, owner={self.owner!r}, {state})"


def temp_directory_for(source: Path, temp_dir: Path | None = None) -> Path:
    """Return the directory temp files for source are placed in.

    Raises:
        TempFileError: If the configured temp directory cannot be created.
    """
    if temp_dir is None:
        return source.parent
    try:
        temp_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise TempFileError(temp_dir, f"Cannot create temp directory ({e})") from e
    return temp_dir


def rpu_temp_path(source: Path, temp_dir: Path | None = None) -> Path:
    """<stem>_rpu_<uuid>.bin"""
    name = f"{source.stem}_rpu_{uuid.uuid4()}.bin"
    return temp_directory_for(source, temp_dir) / name


def hdr10plus_temp_path(source: Path, temp_dir: Path | None = None) -> Path:
    """<stem>_hdr10plus_metadata_<uuid>.json"""
    return (
        temp_directory_for(source, temp_dir)
        / f"{source.stem}_hdr10plus_metadata_{uuid.uuid4()}.json"
    )


def hevc_temp_path(near: Path, temp_dir: Path | None = None) -> Path:
    """temp_hevc_<uuid>.hevc"""
    return temp_directory_for(near, temp_dir) / f"temp_hevc_{uuid.uuid4()}.hevc"


def hevc_rpu_temp_path(near: Path, temp_dir: Path | None = None) -> Path:
    """temp_hevc_rpu_<uuid>.hevc"""
    return temp_directory_for(near, temp_dir) / f"temp_hevc_rpu_{uuid.uuid4()}.hevc"


def encode_temp_path(final_output: Path) -> Path:
    """Where the encoder writes when post-encode injection is pending."""
    return final_output.with_name(f"{ENCODE_TEMP_PREFIX}{final_output.name}")


def is_temp_file_name(name: str) -> bool:
    """Return True if name matches one of the temp artifact patterns."""
    return any(pattern.fullmatch(name) for pattern in TEMP_FILE_PATTERNS)


def sweep_temp_files(directory: Path) -> list[Path]:
    """Remove orphaned temp artifacts from a directory (not recursive).

    Best effort: files that cannot be removed are logged and skipped.

    Returns:
        Paths that were removed.
    """
    if not directory.is_dir():
        logger.debug("Sweep skipped, not a directory: %s", directory)
        return []

    removed: list[Path] = []
    for path in sorted(directory.iterdir()):
        if not path.is_file() or not is_temp_file_name(path.name):
            continue
        try:
            path.unlink()
        except OSError as e:
            logger.warning("Failed to remove orphaned temp file %s: %s", path, e)
            continue
        removed.append(path)
        logger.debug("Removed orphaned temp file %s", path)

    if removed:
        logger.info("Removed %d orphaned temp files from %s", len(removed), directory)
    return removed
