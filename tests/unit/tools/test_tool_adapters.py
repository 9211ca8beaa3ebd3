"""Unit tests for the dovi_tool, hdr10plus_tool, mkvmerge and ffmpeg adapters."""

import logging
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from hdrflow.errors import (
    NoDynamicMetadataError,
    ProbeParseError,
    ToolError,
    ToolNotFoundError,
)
from hdrflow.tools.dovi_tool import DoviTool
from hdrflow.tools.ffmpeg import (
    FFmpegTool,
    FFprobe,
    build_dolby_vision_probe_args,
    build_hdr_probe_args,
    parse_probe_json,
)
from hdrflow.tools.hdr10plus_tool import Hdr10PlusTool, is_no_dynamic_metadata
from hdrflow.tools.mkvmerge import MkvMergeTool, format_fps

SOURCE = Path("/media/movie.mkv")


def _mock_runner(adapter) -> MagicMock:
    runner = MagicMock()
    runner.timeout = adapter.runner.timeout
    adapter.runner = runner
    return runner


# =============================================================================
# dovi_tool
# =============================================================================


class TestDoviTool:
    """Tests for DoviTool argument construction."""

    def test_extract_rpu(self) -> None:
        tool = DoviTool(extract_args=["--crop"])
        runner = _mock_runner(tool)
        out = Path("/tmp/movie_rpu.bin")

        tool.extract_rpu(SOURCE, out)

        runner.run.assert_called_once_with(
            ["extract-rpu", SOURCE, "-o", out, "--crop"], output_file=out
        )

    def test_inject_rpu(self) -> None:
        tool = DoviTool()
        runner = _mock_runner(tool)
        hevc, rpu, out = Path("/t/in.hevc"), Path("/t/rpu.bin"), Path("/t/out.hevc")

        tool.inject_rpu(hevc, rpu, out)

        runner.run.assert_called_once_with(
            ["inject-rpu", "-i", hevc, "--rpu-in", rpu, "-o", out], output_file=out
        )

    def test_convert_gets_double_timeout(self) -> None:
        tool = DoviTool(timeout=120)
        runner = _mock_runner(tool)
        src, out = Path("/t/p7.bin"), Path("/t/p81.bin")

        tool.convert_profile(src, out, "8.1")

        runner.run.assert_called_once_with(
            ["convert", src, "-o", out, "--profile", "8.1"],
            output_file=out,
            timeout=240,
        )

    def test_check_availability_expects_subcommands(self) -> None:
        tool = DoviTool()
        runner = _mock_runner(tool)
        tool.check_availability(timeout=5)
        runner.check_availability.assert_called_once_with(
            "--help", ("extract-rpu", "inject-rpu"), timeout=5
        )


# =============================================================================
# hdr10plus_tool
# =============================================================================


def _tool_error(
    returncode: int | None, stderr: str = "", stdout: str = ""
) -> ToolError:
    return ToolError(
        "hdr10plus_tool",
        "failed",
        args=["hdr10plus_tool", "extract"],
        returncode=returncode,
        stdout=stdout,
        stderr=stderr,
    )


class TestIsNoDynamicMetadata:
    """Tests for is_no_dynamic_metadata()."""

    @pytest.mark.parametrize(
        "error",
        [
            _tool_error(1, stderr="Error: File doesn't contain dynamic metadata"),
            _tool_error(2, stdout="No dynamic metadata found"),
            _tool_error(1),
        ],
    )
    def test_recognized(self, error: ToolError) -> None:
        assert is_no_dynamic_metadata(error)

    def test_real_failure(self) -> None:
        assert not is_no_dynamic_metadata(_tool_error(1, stderr="invalid NAL unit"))


class TestHdr10PlusTool:
    """Tests for Hdr10PlusTool."""

    def test_extract_metadata(self) -> None:
        tool = Hdr10PlusTool(extract_args=["--skip-validation"])
        runner = _mock_runner(tool)
        out = Path("/tmp/meta.json")

        tool.extract_metadata(SOURCE, out)

        runner.run.assert_called_once_with(
            ["extract", SOURCE, "-o", out, "--skip-validation"], output_file=out
        )

    def test_no_metadata_is_classified(self) -> None:
        tool = Hdr10PlusTool()
        runner = _mock_runner(tool)
        runner.run.side_effect = _tool_error(
            1, stderr="File doesn't contain dynamic metadata"
        )

        with pytest.raises(NoDynamicMetadataError) as exc_info:
            tool.extract_metadata(SOURCE, Path("/tmp/meta.json"))
        assert exc_info.value.returncode == 1

    def test_other_failures_propagate(self) -> None:
        tool = Hdr10PlusTool()
        runner = _mock_runner(tool)
        runner.run.side_effect = _tool_error(2, stderr="invalid NAL unit")

        with pytest.raises(ToolError) as exc_info:
            tool.extract_metadata(SOURCE, Path("/tmp/meta.json"))
        assert not isinstance(exc_info.value, NoDynamicMetadataError)

    def test_missing_tool_is_not_no_metadata(self) -> None:
        tool = Hdr10PlusTool()
        runner = _mock_runner(tool)
        runner.run.side_effect = ToolNotFoundError("hdr10plus_tool", "not found")

        with pytest.raises(ToolNotFoundError):
            tool.extract_metadata(SOURCE, Path("/tmp/meta.json"))

    def test_inject_metadata(self) -> None:
        tool = Hdr10PlusTool()
        runner = _mock_runner(tool)
        hevc, meta, out = Path("/t/in.hevc"), Path("/t/m.json"), Path("/t/o.hevc")

        tool.inject_metadata(hevc, meta, out)

        runner.run.assert_called_once_with(
            ["inject", "-i", hevc, "-j", meta, "-o", out], output_file=out
        )

    def test_remove_metadata(self) -> None:
        tool = Hdr10PlusTool()
        runner = _mock_runner(tool)
        src, out = Path("/t/in.hevc"), Path("/t/clean.hevc")

        tool.remove_metadata(src, out)

        runner.run.assert_called_once_with(
            ["remove", "-i", src, "-o", out], output_file=out
        )

    def test_plot_metadata(self) -> None:
        tool = Hdr10PlusTool()
        runner = _mock_runner(tool)
        meta, image = Path("/t/m.json"), Path("/t/plot.png")

        tool.plot_metadata(meta, image)

        runner.run.assert_called_once_with(
            ["plot", meta, "-o", image], output_file=image
        )

    def test_validate_metadata_removes_plot(self, temp_dir: Path) -> None:
        tool = Hdr10PlusTool()
        runner = _mock_runner(tool)
        plots: list[Path] = []

        def write_plot(args, output_file):
            plots.append(output_file)
            output_file.write_bytes(b"png")

        runner.run.side_effect = write_plot

        assert tool.validate_metadata(temp_dir / "meta.json")
        assert len(plots) == 1
        assert plots[0].parent == temp_dir
        assert not plots[0].exists()

    def test_validate_metadata_failure(self, temp_dir: Path) -> None:
        tool = Hdr10PlusTool()
        runner = _mock_runner(tool)
        runner.run.side_effect = _tool_error(1, stderr="parse error")

        assert not tool.validate_metadata(temp_dir / "meta.json")


# =============================================================================
# mkvmerge
# =============================================================================


class TestMkvMergeTool:
    """Tests for MkvMergeTool.remux_hevc_with_streams()."""

    @pytest.mark.parametrize(
        ("fps", "expected"), [(23.976, "23.976"), (24.0, "24"), (59.94, "59.94")]
    )
    def test_format_fps(self, fps: float, expected: str) -> None:
        assert format_fps(fps) == expected

    def test_remux_arguments(self) -> None:
        tool = MkvMergeTool()
        runner = _mock_runner(tool)
        hevc, out = Path("/t/rpu.hevc"), Path("/t/final.mkv")

        tool.remux_hevc_with_streams(hevc, SOURCE, out, 23.976)

        runner.run.assert_called_once_with(
            [
                "-o",
                out,
                "--default-duration",
                "0:23.976fps",
                "--no-audio",
                "--no-subtitles",
                "--no-chapters",
                hevc,
                "-D",
                SOURCE,
            ],
            output_file=out,
        )

    @pytest.mark.parametrize("fps", [0, -24.0])
    def test_invalid_fps(self, fps: float) -> None:
        tool = MkvMergeTool()
        runner = _mock_runner(tool)
        with pytest.raises(ValueError, match="fps must be positive"):
            tool.remux_hevc_with_streams(Path("a"), SOURCE, Path("b"), fps)
        runner.run.assert_not_called()

    def test_exit_code_1_with_output_is_warning(self, temp_dir: Path, caplog) -> None:
        tool = MkvMergeTool()
        runner = _mock_runner(tool)
        out = temp_dir / "final.mkv"

        def warn(args, output_file):
            output_file.write_bytes(b"mkv")
            raise ToolError(
                "mkvmerge", "exited with code 1", returncode=1, stdout="Warning: x"
            )

        runner.run.side_effect = warn

        with caplog.at_level(logging.WARNING):
            tool.remux_hevc_with_streams(Path("/t/a.hevc"), SOURCE, out, 24)

        assert "completed with warnings" in caplog.text

    def test_exit_code_1_without_output_fails(self, temp_dir: Path) -> None:
        tool = MkvMergeTool()
        runner = _mock_runner(tool)
        runner.run.side_effect = ToolError("mkvmerge", "exited", returncode=1)

        with pytest.raises(ToolError):
            tool.remux_hevc_with_streams(
                Path("/t/a.hevc"), SOURCE, temp_dir / "final.mkv", 24
            )

    def test_exit_code_2_fails(self, temp_dir: Path) -> None:
        tool = MkvMergeTool()
        runner = _mock_runner(tool)
        out = temp_dir / "final.mkv"
        out.write_bytes(b"partial")
        runner.run.side_effect = ToolError("mkvmerge", "exited", returncode=2)

        with pytest.raises(ToolError):
            tool.remux_hevc_with_streams(Path("/t/a.hevc"), SOURCE, out, 24)


# =============================================================================
# ffmpeg / ffprobe
# =============================================================================


class TestProbeArgs:
    """Tests for ffprobe argument builders."""

    def test_hdr_probe_reads_frames(self) -> None:
        args = build_hdr_probe_args(SOURCE, frames=3)
        assert args[:4] == ["-v", "quiet", "-select_streams", "v:0"]
        assert "-show_frames" in args
        assert args[args.index("-read_intervals") + 1] == "%+#3"
        assert args[-1] == str(SOURCE)

    def test_hdr_probe_without_frames(self) -> None:
        args = build_hdr_probe_args(SOURCE, frames=0)
        assert "-show_frames" not in args

    def test_dolby_vision_probe(self) -> None:
        args = build_dolby_vision_probe_args(SOURCE)
        entries = args[args.index("-show_entries") + 1]
        assert "codec_tag_string" in entries
        assert "stream_side_data" in entries
        assert args[-1] == str(SOURCE)


class TestParseProbeJson:
    """Tests for parse_probe_json()."""

    def test_object(self) -> None:
        assert parse_probe_json('{"streams": []}') == {"streams": []}

    @pytest.mark.parametrize("text", ["", "not json", "[1, 2]"])
    def test_invalid(self, text: str) -> None:
        with pytest.raises(ProbeParseError):
            parse_probe_json(text)


class TestFFprobe:
    """Tests for FFprobe."""

    def test_probe_hdr(self) -> None:
        probe = FFprobe(frames=5)
        with patch.object(
            probe.runner, "run", return_value='{"streams": [{"codec_name": "hevc"}]}'
        ) as mock_run:
            data = probe.probe_hdr(SOURCE)
        assert data["streams"][0]["codec_name"] == "hevc"
        assert "%+#5" in mock_run.call_args.args[0]

    def test_probe_dolby_vision_invalid_output(self) -> None:
        probe = FFprobe()
        with patch.object(probe.runner, "run", return_value="garbage"):
            with pytest.raises(ProbeParseError):
                probe.probe_dolby_vision(SOURCE)


class TestFFmpegTool:
    """Tests for FFmpegTool."""

    def test_extract_hevc_annexb(self) -> None:
        tool = FFmpegTool()
        runner = _mock_runner(tool)
        out = Path("/t/temp.hevc")

        tool.extract_hevc_annexb(SOURCE, out)

        args = runner.run.call_args.args[0]
        assert args[:2] == ["-i", SOURCE]
        assert "hevc_mp4toannexb" in args
        assert args[-1] == out
        assert runner.run.call_args.kwargs == {"output_file": out}
