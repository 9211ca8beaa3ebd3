"""Unit tests for shared x265 parameter helpers."""

import pytest

from hdrflow.errors import MetadataValidationError
from hdrflow.hdr.encoding import (
    ensure_sdr_params,
    format_params_for_command_line,
    merge_missing,
    validate_hdr_encoding_params,
)
from hdrflow.hdr.types import HdrFormat

VALID_PQ_PARAMS = {
    "colorprim": "bt2020",
    "transfer": "smpte2084",
    "colormatrix": "bt2020nc",
    "output-depth": "10",
}


class TestFormatParams:
    """Tests for format_params_for_command_line()."""

    def test_keeps_insertion_order(self) -> None:
        params = {"crf": "18", "preset": "slow", "rd": "4"}
        assert format_params_for_command_line(params) == "crf=18:preset=slow:rd=4"

    def test_empty_value_is_bare_flag(self) -> None:
        params = {"hdr-opt": "", "crf": "18", "sao": ""}
        assert format_params_for_command_line(params) == "hdr-opt:crf=18:sao"

    def test_empty_mapping(self) -> None:
        assert format_params_for_command_line({}) == ""


class TestMergeMissing:
    """Tests for merge_missing()."""

    def test_caller_values_win(self) -> None:
        params = {"psy-rd": "1.0"}
        merge_missing(params, {"psy-rd": "2.0", "rd": "4"})
        assert params == {"psy-rd": "1.0", "rd": "4"}


class TestEnsureSdrParams:
    """Tests for ensure_sdr_params()."""

    def test_strips_hdr_keys(self) -> None:
        params = {
            "crf": "20",
            "master-display": "G(0,0)",
            "max-cll": "1000,400",
            "hdr-opt": "",
            "dhdr10-info": "/tmp/meta.json",
            "dolby-vision-profile": "8.1",
            "dolby-vision-rpu": "/tmp/rpu.bin",
        }
        result = ensure_sdr_params(params)
        assert result["crf"] == "20"
        for key in (
            "master-display",
            "max-cll",
            "hdr-opt",
            "dhdr10-info",
            "dolby-vision-profile",
            "dolby-vision-rpu",
        ):
            assert key not in result

    def test_forces_bt709(self) -> None:
        result = ensure_sdr_params({"colorprim": "bt2020", "transfer": "smpte2084"})
        assert result["colorprim"] == "bt709"
        assert result["transfer"] == "bt709"
        assert result["colormatrix"] == "bt709"
        assert result["output-depth"] == "8"

    def test_keeps_caller_depth(self) -> None:
        assert ensure_sdr_params({"output-depth": "10"})["output-depth"] == "10"

    def test_does_not_mutate_input(self) -> None:
        params = {"hdr-opt": ""}
        ensure_sdr_params(params)
        assert params == {"hdr-opt": ""}


class TestValidateHdrEncodingParams:
    """Tests for validate_hdr_encoding_params()."""

    def test_valid_pq(self) -> None:
        validate_hdr_encoding_params(VALID_PQ_PARAMS, HdrFormat.HDR10)
        validate_hdr_encoding_params(VALID_PQ_PARAMS, HdrFormat.HDR10_PLUS)

    def test_sdr_never_checked(self) -> None:
        validate_hdr_encoding_params({}, HdrFormat.NONE)

    def test_hlg_requires_hlg_transfer(self) -> None:
        with pytest.raises(MetadataValidationError, match="arib-std-b67"):
            validate_hdr_encoding_params(VALID_PQ_PARAMS, HdrFormat.HLG)

    def test_reports_every_problem(self) -> None:
        params = {
            "colorprim": "bt709",
            "transfer": "bt709",
            "colormatrix": "bt709",
            "output-depth": "8",
        }
        with pytest.raises(MetadataValidationError) as exc_info:
            validate_hdr_encoding_params(params, HdrFormat.HDR10)
        assert len(exc_info.value.problems) == 4

    def test_non_integer_depth(self) -> None:
        params = dict(VALID_PQ_PARAMS, **{"output-depth": "ten"})
        with pytest.raises(MetadataValidationError, match="not an integer"):
            validate_hdr_encoding_params(params, HdrFormat.HDR10)
