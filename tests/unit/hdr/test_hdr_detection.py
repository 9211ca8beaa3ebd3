"""Unit tests for HDR classification from ffprobe output."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from hdrflow.config.models import HdrDetectionConfig
from hdrflow.errors import ProbeParseError
from hdrflow.hdr.detection import (
    HdrDetector,
    calculate_confidence,
    is_dynamic_metadata_label,
    parse_color_space,
    parse_rational,
    parse_transfer_function,
)
from hdrflow.hdr.formats.hdr10 import Hdr10Handler
from hdrflow.hdr.types import ColorSpace, HdrFormat, TransferFunction


# =============================================================================
# Helpers
# =============================================================================


def _stream(**fields) -> dict:
    return {"streams": [fields]}


# =============================================================================
# Tests
# =============================================================================


class TestDynamicMetadataLabels:
    """Tests for is_dynamic_metadata_label()."""

    @pytest.mark.parametrize(
        "label",
        [
            "HDR dynamic metadata (SMPTE 2094-40)",
            "HDR Dynamic Metadata SMPTE2094-40 (HDR10+)",
            "SMPTE2094-40",
            "hdr10+ dynamic metadata",
            "Dynamic metadata smpte2094_40",
            "Something with Dynamic Metadata 2094 in it",
        ],
    )
    def test_recognized(self, label: str) -> None:
        assert is_dynamic_metadata_label(label)

    @pytest.mark.parametrize(
        "label",
        [
            "Mastering display metadata",
            "Content light level metadata",
            "DOVI configuration record",
            "HDR10+",
        ],
    )
    def test_not_recognized(self, label: str) -> None:
        assert not is_dynamic_metadata_label(label)

    def test_extra_labels(self) -> None:
        assert is_dynamic_metadata_label("Vendor HDR blob", ["Vendor HDR blob"])


class TestParsers:
    """Tests for color and rational parsing helpers."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("bt2020nc", ColorSpace.BT2020),
            ("bt2020c", ColorSpace.BT2020),
            ("BT709", ColorSpace.BT709),
            ("dci-p3", ColorSpace.DCI_P3),
            ("display-p3", ColorSpace.DISPLAY_P3),
            ("unknown", ColorSpace.BT709),
            (None, ColorSpace.BT709),
        ],
    )
    def test_parse_color_space(self, raw, expected) -> None:
        assert parse_color_space(raw) is expected

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("smpte2084", TransferFunction.SMPTE2084),
            ("arib-std-b67", TransferFunction.ARIB_STD_B67),
            ("bt2020-10", TransferFunction.BT2020_10),
            ("bt2020-12", TransferFunction.BT2020_12),
            ("bt709", TransferFunction.BT709),
            (None, TransferFunction.BT709),
        ],
    )
    def test_parse_transfer_function(self, raw, expected) -> None:
        assert parse_transfer_function(raw) is expected

    def test_parse_rational(self) -> None:
        assert parse_rational("34000/50000") == pytest.approx(0.68)
        assert parse_rational(1000) == 1000.0
        assert parse_rational("0.005") == pytest.approx(0.005)
        assert parse_rational("1/0") is None
        assert parse_rational("n/a") is None
        assert parse_rational(None) is None


class TestCalculateConfidence:
    """Tests for calculate_confidence()."""

    def test_pq_alone(self) -> None:
        score = calculate_confidence(
            TransferFunction.SMPTE2084, ColorSpace.BT709, False, False
        )
        assert score == pytest.approx(0.8)

    def test_bt2020_transfer(self) -> None:
        score = calculate_confidence(
            TransferFunction.BT2020_10, ColorSpace.BT709, False, False
        )
        assert score == pytest.approx(0.6)

    def test_all_signals_clamped(self) -> None:
        score = calculate_confidence(
            TransferFunction.SMPTE2084, ColorSpace.BT2020, True, True
        )
        assert score == 1.0

    def test_monotonic_in_signals(self) -> None:
        """Adding a corroborating signal never lowers the score."""
        base = calculate_confidence(
            TransferFunction.BT2020_10, ColorSpace.BT709, False, False
        )
        with_space = calculate_confidence(
            TransferFunction.BT2020_10, ColorSpace.BT2020, False, False
        )
        with_md = calculate_confidence(
            TransferFunction.BT2020_10, ColorSpace.BT2020, True, False
        )
        with_cll = calculate_confidence(
            TransferFunction.BT2020_10, ColorSpace.BT2020, True, True
        )
        assert base <= with_space <= with_md <= with_cll <= 1.0

    def test_sdr_is_zero(self) -> None:
        score = calculate_confidence(
            TransferFunction.BT709, ColorSpace.BT709, False, False
        )
        assert score == 0.0


# =============================================================================
# HdrDetector
# =============================================================================


class TestHdrDetectorFixtures:
    """Classification of the recorded ffprobe fixtures."""

    def test_sdr(self, probe_fixture) -> None:
        result = HdrDetector().analyze(probe_fixture("sdr"))
        assert result.format is HdrFormat.NONE
        assert result.requires_tone_mapping is False
        assert result.encoding_complexity == 1.0
        assert result.metadata.mastering_display is None

    def test_hdr10_with_stream_side_data(self, probe_fixture) -> None:
        result = HdrDetector().analyze(probe_fixture("hdr10"))
        assert result.format is HdrFormat.HDR10
        assert result.requires_tone_mapping is True
        assert result.encoding_complexity == 1.2
        assert result.confidence_score == 1.0

        md = result.metadata.mastering_display
        assert md is not None
        assert md.red.x == pytest.approx(0.68)
        assert md.max_luminance == 1000
        assert md.min_luminance == pytest.approx(0.005)
        cll = result.metadata.content_light_level
        assert (cll.max_cll, cll.max_fall) == (1000, 400)

    def test_hdr10plus_from_frame_side_data(self, probe_fixture) -> None:
        """Static and dynamic metadata reported only on frames are found."""
        result = HdrDetector().analyze(probe_fixture("hdr10plus"))
        assert result.format is HdrFormat.HDR10_PLUS
        assert result.encoding_complexity == 1.4
        assert result.metadata.mastering_display.max_luminance == 4000
        assert result.metadata.content_light_level.max_cll == 1500

    def test_hlg(self, probe_fixture) -> None:
        result = HdrDetector().analyze(probe_fixture("hlg"))
        assert result.format is HdrFormat.HLG
        assert result.encoding_complexity == 1.15
        assert result.metadata.transfer_function is TransferFunction.ARIB_STD_B67

    def test_dynamic_metadata_on_stream(self, probe_fixture) -> None:
        result = HdrDetector().analyze(probe_fixture("dv_hdr10plus"))
        assert result.format is HdrFormat.HDR10_PLUS


class TestHdrDetectorRules:
    """Edge cases of the classification rules."""

    def test_bt2020_without_pq_assumed_hdr10(self) -> None:
        data = _stream(
            color_space="bt2020nc", color_primaries="bt2020", color_transfer="bt709"
        )
        result = HdrDetector().analyze(data)
        assert result.format is HdrFormat.HDR10
        assert result.metadata.transfer_function is TransferFunction.SMPTE2084
        assert result.metadata.raw_transfer == "bt709"

    def test_bt2020_fallback_passes_hdr10_validation(self) -> None:
        data = _stream(
            color_space="bt2020nc", color_primaries="bt2020", color_transfer="bt2020-10"
        )
        result = HdrDetector().analyze(data)

        Hdr10Handler().validate_metadata(result.metadata)
        assert result.metadata.raw_transfer == "bt2020-10"

    def test_bt2020_space_alone_is_sdr(self) -> None:
        data = _stream(
            color_space="bt2020nc", color_primaries="bt709", color_transfer="bt709"
        )
        assert HdrDetector().analyze(data).format is HdrFormat.NONE

    def test_sdr_drops_static_metadata(self) -> None:
        data = _stream(
            color_transfer="bt709",
            side_data_list=[
                {
                    "side_data_type": "Content light level metadata",
                    "max_content": 1000,
                    "max_average": 400,
                }
            ],
        )
        result = HdrDetector().analyze(data)
        assert result.format is HdrFormat.NONE
        assert result.metadata.content_light_level is None

    def test_frames_beyond_probe_window_ignored(self) -> None:
        dynamic = {
            "side_data_list": [
                {"side_data_type": "HDR dynamic metadata (SMPTE 2094-40)"}
            ]
        }
        data = {
            "streams": [{"color_transfer": "smpte2084"}],
            "frames": [{}, {}, dynamic],
        }
        config = HdrDetectionConfig(probe_frames=2)
        assert HdrDetector(config).analyze(data).format is HdrFormat.HDR10
        config = HdrDetectionConfig(probe_frames=3)
        assert HdrDetector(config).analyze(data).format is HdrFormat.HDR10_PLUS

    def test_extra_dynamic_label(self) -> None:
        data = _stream(
            color_transfer="smpte2084",
            side_data_list=[{"side_data_type": "Vendor HDR blob"}],
        )
        config = HdrDetectionConfig(extra_dynamic_metadata_labels=("Vendor HDR blob",))
        assert HdrDetector(config).analyze(data).format is HdrFormat.HDR10_PLUS

    def test_incomplete_mastering_display_ignored(self) -> None:
        data = _stream(
            color_transfer="smpte2084",
            side_data_list=[
                {"side_data_type": "Mastering display metadata", "red_x": "1/2"}
            ],
        )
        result = HdrDetector().analyze(data)
        assert result.format is HdrFormat.HDR10
        assert result.metadata.mastering_display is None

    def test_disabled_reports_sdr(self, probe_fixture) -> None:
        config = HdrDetectionConfig(enabled=False)
        result = HdrDetector(config).analyze(probe_fixture("hdr10"))
        assert result.format is HdrFormat.NONE
        assert result.confidence_score == 1.0

    @pytest.mark.parametrize(
        "data",
        [
            {},
            {"streams": []},
            {"streams": ["not-an-object"]},
            ["not", "an", "object"],
        ],
    )
    def test_malformed_probe_data(self, data) -> None:
        with pytest.raises(ProbeParseError):
            HdrDetector().analyze(data)


class TestHdrDetectorAnalyzeFile:
    """Tests for HdrDetector.analyze_file()."""

    def test_uses_probe(self, probe_fixture) -> None:
        probe = MagicMock()
        probe.probe_hdr.return_value = probe_fixture("hdr10")

        result = HdrDetector(probe=probe).analyze_file(Path("/media/movie.mkv"))

        probe.probe_hdr.assert_called_once_with(Path("/media/movie.mkv"))
        assert result.format is HdrFormat.HDR10

    def test_disabled_skips_probe(self) -> None:
        probe = MagicMock()
        detector = HdrDetector(HdrDetectionConfig(enabled=False), probe)

        result = detector.analyze_file(Path("/media/movie.mkv"))

        probe.probe_hdr.assert_not_called()
        assert result.format is HdrFormat.NONE

    def test_requires_probe(self) -> None:
        with pytest.raises(ValueError):
            HdrDetector().analyze_file(Path("/media/movie.mkv"))
