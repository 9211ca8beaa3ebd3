"""Registry mapping dynamic-range formats to their parameter builders."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import replace

from hdrflow.errors import MetadataValidationError
from hdrflow.hdr.encoding import EncoderParams
from hdrflow.hdr.formats.base import EncodingRecommendations, HdrFormatHandler
from hdrflow.hdr.formats.hdr10 import Hdr10Handler
from hdrflow.hdr.formats.hdr10_plus import Hdr10PlusHandler
from hdrflow.hdr.formats.hlg import HlgHandler
from hdrflow.hdr.types import HdrFormat, HdrMetadata

logger = logging.getLogger(__name__)


class HdrFormatRegistry:
    """Dispatches format-specific work to registered handlers.

    A new registry contains handlers for HDR10, HDR10+ and HLG. Registering
    a handler for a format that already has one replaces it.
    """

    def __init__(self, max_cll_padding: int = 0) -> None:
        """Initialize the registry with the built-in handlers.

        Args:
            max_cll_padding: Passed to each built-in handler.
        """
        self._handlers: dict[HdrFormat, HdrFormatHandler] = {}
        self.register(Hdr10Handler(max_cll_padding))
        self.register(Hdr10PlusHandler(max_cll_padding))
        self.register(HlgHandler(max_cll_padding))

    def register(self, handler: HdrFormatHandler) -> None:
        self._handlers[handler.format()] = handler

    def get_handler(self, hdr_format: HdrFormat) -> HdrFormatHandler | None:
        return self._handlers.get(hdr_format)

    def build_params_for_format(
        self,
        hdr_format: HdrFormat,
        metadata: HdrMetadata,
        base_params: Mapping[str, str] | None = None,
    ) -> EncoderParams:
        """Validate metadata, then build encoder parameters for a format.

        Args:
            hdr_format: Target format.
            metadata: Source metadata record.
            base_params: Caller parameters; keys set here are never
                overwritten by tuning tables.

        Returns:
            The complete parameter set.

        Raises:
            MetadataValidationError: If no handler is registered or the
                metadata does not validate for the format.
        """
        handler = self._require_handler(hdr_format)
        handler.validate_metadata(metadata)
        return self._build(handler, metadata, base_params)

    def build_params_for_source(
        self,
        hdr_format: HdrFormat,
        metadata: HdrMetadata,
        base_params: Mapping[str, str] | None = None,
    ) -> EncoderParams:
        """Build encoder parameters from metadata detected in a source file.

        Mastering display or content light level records that fail
        validation are dropped with a warning, so the encode carries the
        format's default static metadata instead.

        Raises:
            MetadataValidationError: If no handler is registered, or the
                record is invalid even without its static metadata.
        """
        handler = self._require_handler(hdr_format)
        try:
            handler.validate_metadata(metadata)
        except MetadataValidationError as e:
            repaired = _without_invalid_static_metadata(handler, metadata)
            if repaired is None:
                raise
            logger.warning(
                "Ignoring invalid %s static metadata from source, using "
                "defaults: %s",
                hdr_format.display_name,
                "; ".join(e.problems),
            )
            metadata = repaired
        return self._build(handler, metadata, base_params)

    def _require_handler(self, hdr_format: HdrFormat) -> HdrFormatHandler:
        handler = self.get_handler(hdr_format)
        if handler is None:
            raise MetadataValidationError(
                f"No handler registered for HDR format {hdr_format.display_name}"
            )
        return handler

    @staticmethod
    def _build(
        handler: HdrFormatHandler,
        metadata: HdrMetadata,
        base_params: Mapping[str, str] | None,
    ) -> EncoderParams:
        params = handler.build_encoding_params(metadata, base_params or {})
        logger.debug(
            "Built %d encoder parameters for %s",
            len(params),
            handler.format().display_name,
        )
        return params

    def get_recommendations(
        self, hdr_format: HdrFormat
    ) -> EncodingRecommendations | None:
        handler = self.get_handler(hdr_format)
        return handler.get_recommendations() if handler is not None else None

    def supported_formats(self) -> list[HdrFormat]:
        return list(self._handlers)


def _without_invalid_static_metadata(
    handler: HdrFormatHandler, metadata: HdrMetadata
) -> HdrMetadata | None:
    """Drop the fewest static metadata records needed for metadata to validate."""
    candidates = []
    if metadata.mastering_display is not None:
        candidates.append(replace(metadata, mastering_display=None))
    if metadata.content_light_level is not None:
        candidates.append(replace(metadata, content_light_level=None))
    if len(candidates) == 2:
        candidates.append(
            replace(metadata, mastering_display=None, content_light_level=None)
        )
    for candidate in candidates:
        try:
            handler.validate_metadata(candidate)
        except MetadataValidationError:
            continue
        return candidate
    return None
