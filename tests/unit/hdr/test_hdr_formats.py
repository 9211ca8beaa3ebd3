"""Unit tests for format handlers and the format registry."""

import logging
from collections.abc import Mapping
from dataclasses import replace

import pytest

from hdrflow.errors import MetadataValidationError
from hdrflow.hdr.encoding import EncoderParams, validate_hdr_encoding_params
from hdrflow.hdr.formats import HdrFormatRegistry
from hdrflow.hdr.formats.base import EncodingRecommendations
from hdrflow.hdr.formats.hdr10 import HDR10_OPTIMIZATIONS, Hdr10Handler
from hdrflow.hdr.formats.hdr10_plus import Hdr10PlusHandler
from hdrflow.hdr.formats.hlg import HlgHandler
from hdrflow.hdr.metadata import get_default_metadata_for_format
from hdrflow.hdr.types import (
    DEFAULT_MASTERING_DISPLAY,
    Chromaticity,
    ColorSpace,
    ContentLightLevelInfo,
    HdrFormat,
    HdrMetadata,
)


@pytest.fixture
def hdr10_metadata() -> HdrMetadata:
    return HdrMetadata.hdr10_default()


@pytest.fixture
def hlg_metadata() -> HdrMetadata:
    return get_default_metadata_for_format(HdrFormat.HLG)


# =============================================================================
# HDR10
# =============================================================================


class TestHdr10Handler:
    """Tests for Hdr10Handler."""

    def test_static_metadata_params(self, hdr10_metadata: HdrMetadata) -> None:
        params = Hdr10Handler().build_encoding_params(hdr10_metadata, {})
        assert params["master-display"] == (
            "G(0.1700,0.7970)B(0.1310,0.0460)R(0.7080,0.2920)"
            "WP(0.3127,0.3290)L(1000,0.0100)"
        )
        assert params["max-cll"] == "1000,400"
        assert params["hdr"] == ""
        assert params["hdr-opt"] == ""
        assert params["output-depth"] == "10"
        validate_hdr_encoding_params(params, HdrFormat.HDR10)

    def test_max_cll_padding(self, hdr10_metadata: HdrMetadata) -> None:
        params = Hdr10Handler(max_cll_padding=400).build_encoding_params(
            hdr10_metadata, {}
        )
        assert params["max-cll"] == "1000,800"

    def test_base_params_not_overwritten_by_tuning(
        self, hdr10_metadata: HdrMetadata
    ) -> None:
        params = Hdr10Handler().build_encoding_params(
            hdr10_metadata, {"psy-rd": "1.0", "crf": "18"}
        )
        assert params["psy-rd"] == "1.0"
        assert params["crf"] == "18"
        assert params["me"] == HDR10_OPTIMIZATIONS["me"]

    def test_color_signalling_always_set(self, hdr10_metadata: HdrMetadata) -> None:
        params = Hdr10Handler().build_encoding_params(
            hdr10_metadata, {"colorprim": "bt709"}
        )
        assert params["colorprim"] == "bt2020"

    def test_missing_static_metadata_uses_defaults(self, caplog) -> None:
        metadata = replace(
            HdrMetadata.hdr10_default(),
            mastering_display=None,
            content_light_level=None,
        )
        with caplog.at_level(logging.WARNING):
            params = Hdr10Handler().build_encoding_params(metadata, {})
        assert params["max-cll"] == "1000,400"
        assert "L(1000,0.0100)" in params["master-display"]
        assert "default HDR10 mastering display" in caplog.text

    def test_validate_accepts_default(self, hdr10_metadata: HdrMetadata) -> None:
        Hdr10Handler().validate_metadata(hdr10_metadata)

    def test_validate_rejects_wrong_format(self, hlg_metadata: HdrMetadata) -> None:
        with pytest.raises(MetadataValidationError) as exc_info:
            Hdr10Handler().validate_metadata(hlg_metadata)
        assert any("Expected HDR10" in p for p in exc_info.value.problems)
        assert any("SMPTE-2084" in p for p in exc_info.value.problems)

    def test_validate_rejects_bt709(self, hdr10_metadata: HdrMetadata) -> None:
        metadata = replace(hdr10_metadata, color_space=ColorSpace.BT709)
        with pytest.raises(MetadataValidationError, match="BT.2020"):
            Hdr10Handler().validate_metadata(metadata)

    def test_validate_luminance_ranges(self, hdr10_metadata: HdrMetadata) -> None:
        metadata = replace(
            hdr10_metadata,
            mastering_display=replace(
                DEFAULT_MASTERING_DISPLAY, max_luminance=50, min_luminance=5.0
            ),
            content_light_level=ContentLightLevelInfo(max_cll=400, max_fall=600),
        )
        with pytest.raises(MetadataValidationError) as exc_info:
            Hdr10Handler().validate_metadata(metadata)
        problems = exc_info.value.problems
        assert any("max luminance 50" in p for p in problems)
        assert any("min luminance 5.0" in p for p in problems)
        assert any("max FALL 600" in p for p in problems)

    def test_validate_zero_black_level(self, hdr10_metadata: HdrMetadata) -> None:
        metadata = replace(
            hdr10_metadata,
            mastering_display=replace(DEFAULT_MASTERING_DISPLAY, min_luminance=0.0),
        )
        Hdr10Handler().validate_metadata(metadata)
        params = Hdr10Handler().build_encoding_params(metadata, {})
        assert params["master-display"].endswith("L(1000,0.0000)")

    def test_validate_chromaticity(self, hdr10_metadata: HdrMetadata) -> None:
        metadata = replace(
            hdr10_metadata,
            mastering_display=replace(
                DEFAULT_MASTERING_DISPLAY, white_point=Chromaticity(1.5, 0.329)
            ),
        )
        with pytest.raises(MetadataValidationError, match="white_x"):
            Hdr10Handler().validate_metadata(metadata)

    def test_recommendations(self) -> None:
        recommendations = Hdr10Handler().get_recommendations()
        assert recommendations.crf_adjustment == 2.0
        assert recommendations.bitrate_multiplier == 1.3
        assert recommendations.minimum_bit_depth == 10


# =============================================================================
# HDR10+ and HLG
# =============================================================================


class TestHdr10PlusHandler:
    """Tests for Hdr10PlusHandler."""

    def test_baseline_has_no_dynamic_metadata(self) -> None:
        metadata = get_default_metadata_for_format(HdrFormat.HDR10_PLUS)
        params = Hdr10PlusHandler().build_encoding_params(metadata, {})
        assert "dhdr10-info" not in params
        assert params["transfer"] == "smpte2084"
        assert params["rc-lookahead"] == "40"
        assert "b-pyramid" in params

    def test_missing_display_only_warns(self, caplog) -> None:
        metadata = replace(
            get_default_metadata_for_format(HdrFormat.HDR10_PLUS),
            mastering_display=None,
        )
        with caplog.at_level(logging.WARNING):
            Hdr10PlusHandler().validate_metadata(metadata)
        assert "missing static mastering display" in caplog.text

    def test_recommendations(self) -> None:
        recommendations = Hdr10PlusHandler().get_recommendations()
        assert recommendations.crf_adjustment == 2.5
        assert recommendations.bitrate_multiplier == 1.4


class TestHlgHandler:
    """Tests for HlgHandler."""

    def test_params_without_static_metadata(self, hlg_metadata: HdrMetadata) -> None:
        params = HlgHandler().build_encoding_params(hlg_metadata, {})
        assert params["transfer"] == "arib-std-b67"
        assert params["output-depth"] == "10"
        assert "master-display" not in params
        assert "max-cll" not in params
        validate_hdr_encoding_params(params, HdrFormat.HLG)

    def test_static_metadata_carried_through(self, hlg_metadata: HdrMetadata) -> None:
        metadata = replace(
            hlg_metadata,
            mastering_display=DEFAULT_MASTERING_DISPLAY,
            content_light_level=ContentLightLevelInfo(1000, 400),
        )
        params = HlgHandler().build_encoding_params(metadata, {})
        assert "master-display" in params
        assert params["max-cll"] == "1000,400"

    def test_high_peak_only_warns(self, hlg_metadata: HdrMetadata, caplog) -> None:
        metadata = replace(
            hlg_metadata,
            mastering_display=replace(DEFAULT_MASTERING_DISPLAY, max_luminance=8000),
        )
        with caplog.at_level(logging.WARNING):
            HlgHandler().validate_metadata(metadata)
        assert "outside typical range" in caplog.text

    def test_recommendations(self) -> None:
        recommendations = HlgHandler().get_recommendations()
        assert recommendations.crf_adjustment == 1.5
        assert recommendations.bitrate_multiplier == 1.2


# =============================================================================
# Registry
# =============================================================================


class _CustomHdr10Handler:
    """Replacement handler recording its calls."""

    def __init__(self) -> None:
        self.built = False

    def format(self) -> HdrFormat:
        return HdrFormat.HDR10

    def build_encoding_params(
        self, metadata: HdrMetadata, base_params: Mapping[str, str]
    ) -> EncoderParams:
        self.built = True
        return {"custom": "1"}

    def validate_metadata(self, metadata: HdrMetadata) -> None:
        return None

    def get_recommendations(self) -> EncodingRecommendations:
        return EncodingRecommendations(
            crf_adjustment=0.0, bitrate_multiplier=1.0, minimum_bit_depth=10
        )


class TestHdrFormatRegistry:
    """Tests for HdrFormatRegistry."""

    def test_builtin_formats(self) -> None:
        registry = HdrFormatRegistry()
        assert set(registry.supported_formats()) == {
            HdrFormat.HDR10,
            HdrFormat.HDR10_PLUS,
            HdrFormat.HLG,
        }
        assert registry.get_handler(HdrFormat.NONE) is None

    def test_build_validates_first(self, hlg_metadata: HdrMetadata) -> None:
        registry = HdrFormatRegistry()
        with pytest.raises(MetadataValidationError):
            registry.build_params_for_format(HdrFormat.HDR10, hlg_metadata)

    def test_source_build_replaces_invalid_mastering_display(
        self, hdr10_metadata: HdrMetadata, caplog
    ) -> None:
        registry = HdrFormatRegistry()
        metadata = replace(
            hdr10_metadata,
            mastering_display=replace(DEFAULT_MASTERING_DISPLAY, max_luminance=50),
            content_light_level=ContentLightLevelInfo(max_cll=800, max_fall=300),
        )

        with caplog.at_level(logging.WARNING):
            params = registry.build_params_for_source(HdrFormat.HDR10, metadata)

        assert params["master-display"].endswith("L(1000,0.0100)")
        assert params["max-cll"] == "800,300"
        assert "Ignoring invalid HDR10 static metadata" in caplog.text
        assert "max luminance 50" in caplog.text

    def test_source_build_replaces_all_invalid_static_metadata(
        self, hdr10_metadata: HdrMetadata
    ) -> None:
        registry = HdrFormatRegistry()
        metadata = replace(
            hdr10_metadata,
            mastering_display=replace(DEFAULT_MASTERING_DISPLAY, max_luminance=50),
            content_light_level=ContentLightLevelInfo(max_cll=400, max_fall=600),
        )

        params = registry.build_params_for_source(HdrFormat.HDR10, metadata)

        assert params["master-display"].endswith("L(1000,0.0100)")
        assert params["max-cll"] == "1000,400"

    def test_source_build_keeps_valid_metadata(
        self, hdr10_metadata: HdrMetadata, caplog
    ) -> None:
        registry = HdrFormatRegistry()
        with caplog.at_level(logging.WARNING):
            params = registry.build_params_for_source(HdrFormat.HDR10, hdr10_metadata)
        assert params == registry.build_params_for_format(
            HdrFormat.HDR10, hdr10_metadata
        )
        assert "Ignoring invalid" not in caplog.text

    def test_source_build_rejects_wrong_transfer(
        self, hlg_metadata: HdrMetadata
    ) -> None:
        registry = HdrFormatRegistry()
        with pytest.raises(MetadataValidationError, match="transfer function"):
            registry.build_params_for_source(HdrFormat.HDR10, hlg_metadata)

    def test_build_for_unregistered_format(self) -> None:
        registry = HdrFormatRegistry()
        with pytest.raises(MetadataValidationError, match="No handler"):
            registry.build_params_for_format(
                HdrFormat.NONE, HdrMetadata.sdr_default()
            )

    def test_padding_passed_to_handlers(self, hdr10_metadata: HdrMetadata) -> None:
        registry = HdrFormatRegistry(max_cll_padding=400)
        params = registry.build_params_for_format(HdrFormat.HDR10, hdr10_metadata)
        assert params["max-cll"] == "1000,800"

    def test_register_replaces_handler(self, hdr10_metadata: HdrMetadata) -> None:
        registry = HdrFormatRegistry()
        custom = _CustomHdr10Handler()
        registry.register(custom)

        params = registry.build_params_for_format(HdrFormat.HDR10, hdr10_metadata)

        assert custom.built
        assert params == {"custom": "1"}

    def test_recommendations(self) -> None:
        registry = HdrFormatRegistry()
        assert registry.get_recommendations(HdrFormat.HLG).crf_adjustment == 1.5
        assert registry.get_recommendations(HdrFormat.NONE) is None
