"""Integration tests for the hdrflow sweep command."""

from pathlib import Path

from click.testing import CliRunner

from hdrflow.cli import main
from hdrflow.temp_files import hdr10plus_temp_path, rpu_temp_path


class TestSweepCommand:
    """Tests for sweep."""

    def test_sweeps_given_directory(self, cli_obj, temp_dir: Path) -> None:
        source = temp_dir / "movie.mkv"
        source.write_bytes(b"x")
        rpu_temp_path(source).write_bytes(b"rpu")
        hdr10plus_temp_path(source).write_text("{}")

        result = CliRunner().invoke(main, ["sweep", str(temp_dir)], obj=cli_obj)

        assert result.exit_code == 0, result.output
        assert "Removed 2 orphaned temp file(s)" in result.output
        assert [p.name for p in temp_dir.iterdir()] == ["movie.mkv"]

    def test_defaults_to_configured_temp_dir(self, cli_obj) -> None:
        temp = cli_obj["config"].workflow.temp_dir
        temp.mkdir()
        orphan = rpu_temp_path(Path("/media/movie.mkv"), temp)
        orphan.write_bytes(b"rpu")

        result = CliRunner().invoke(main, ["sweep"], obj=cli_obj)

        assert result.exit_code == 0, result.output
        assert f"removed {orphan.name}" in result.output
        assert not orphan.exists()
