"""Format identification and capability lookup."""

from __future__ import annotations

import logging
import os
from typing import Dict, FrozenSet, Optional

from .types import CanonicalFormat, SourceAsset

LOGGER = logging.getLogger("imageconvx.formats")

HEIF_CODEC_RESOURCE = "pillow_heif"

_MIME_TYPES: Dict[str, CanonicalFormat] = {
    "image/heic": CanonicalFormat.HEIC,
    "image/heic-sequence": CanonicalFormat.HEIC,
    "image/heif": CanonicalFormat.HEIF,
    "image/heif-sequence": CanonicalFormat.HEIF,
    "image/jpeg": CanonicalFormat.JPG,
    "image/jpg": CanonicalFormat.JPG,
    "image/pjpeg": CanonicalFormat.JPG,
    "image/png": CanonicalFormat.PNG,
    "image/webp": CanonicalFormat.WEBP,
    "image/gif": CanonicalFormat.GIF,
    "application/pdf": CanonicalFormat.PDF,
}

# Suppliers that cannot tell the type send one of these.
_GENERIC_MIME_TYPES = frozenset({"", "application/octet-stream", "binary/octet-stream"})

_EXTENSIONS: Dict[str, CanonicalFormat] = {
    ".heic": CanonicalFormat.HEIC,
    ".heif": CanonicalFormat.HEIF,
    ".hif": CanonicalFormat.HEIF,
    ".jpg": CanonicalFormat.JPG,
    ".jpeg": CanonicalFormat.JPG,
    ".jpe": CanonicalFormat.JPG,
    ".png": CanonicalFormat.PNG,
    ".webp": CanonicalFormat.WEBP,
    ".gif": CanonicalFormat.GIF,
    ".pdf": CanonicalFormat.PDF,
}

_CANONICAL_MIME: Dict[CanonicalFormat, str] = {
    CanonicalFormat.HEIC: "image/heic",
    CanonicalFormat.HEIF: "image/heif",
    CanonicalFormat.JPG: "image/jpeg",
    CanonicalFormat.PNG: "image/png",
    CanonicalFormat.WEBP: "image/webp",
    CanonicalFormat.GIF: "image/gif",
    CanonicalFormat.PDF: "application/pdf",
}

_RASTER_FORMATS: FrozenSet[CanonicalFormat] = frozenset(
    {
        CanonicalFormat.HEIC,
        CanonicalFormat.HEIF,
        CanonicalFormat.JPG,
        CanonicalFormat.PNG,
        CanonicalFormat.WEBP,
        CanonicalFormat.GIF,
    }
)
_RASTER_TARGETS: FrozenSet[CanonicalFormat] = frozenset(
    {CanonicalFormat.JPG, CanonicalFormat.PNG, CanonicalFormat.WEBP}
)
_ALPHA_FORMATS: FrozenSet[CanonicalFormat] = frozenset(
    {
        CanonicalFormat.PNG,
        CanonicalFormat.WEBP,
        CanonicalFormat.GIF,
        CanonicalFormat.HEIC,
        CanonicalFormat.HEIF,
    }
)
_EXTERNAL_CODECS: Dict[CanonicalFormat, str] = {
    CanonicalFormat.HEIC: HEIF_CODEC_RESOURCE,
    CanonicalFormat.HEIF: HEIF_CODEC_RESOURCE,
}


class FormatRegistry:
    """Canonical format identification. All methods are pure."""

    def classify(self, asset: SourceAsset) -> CanonicalFormat:
        """Classify *asset*, preferring the declared MIME over the extension."""

        mime = (asset.mime_type or "").split(";", 1)[0].strip().lower()
        if mime not in _GENERIC_MIME_TYPES:
            fmt = _MIME_TYPES.get(mime, CanonicalFormat.UNKNOWN)
            LOGGER.debug("Classified %r by MIME %s as %s", asset.filename, mime, fmt.value)
            return fmt

        if asset.filename:
            _, ext = os.path.splitext(asset.filename.lower())
            fmt = _EXTENSIONS.get(ext, CanonicalFormat.UNKNOWN)
            LOGGER.debug("Classified %r by extension as %s", asset.filename, fmt.value)
            return fmt

        return CanonicalFormat.UNKNOWN

    def is_allowed_pair(self, source: CanonicalFormat, target: CanonicalFormat) -> bool:
        if source is CanonicalFormat.UNKNOWN or target is CanonicalFormat.UNKNOWN:
            return False
        if target is CanonicalFormat.PDF:
            return source in _RASTER_FORMATS
        if target in _RASTER_TARGETS:
            return source in _RASTER_FORMATS or source is CanonicalFormat.PDF
        return False

    def requires_external_codec(self, fmt: CanonicalFormat) -> bool:
        return fmt in _EXTERNAL_CODECS

    def codec_resource(self, fmt: CanonicalFormat) -> Optional[str]:
        return _EXTERNAL_CODECS.get(fmt)

    @staticmethod
    def is_raster(fmt: CanonicalFormat) -> bool:
        return fmt in _RASTER_FORMATS

    @staticmethod
    def has_alpha(fmt: CanonicalFormat) -> bool:
        return fmt in _ALPHA_FORMATS

    @staticmethod
    def mime_type(fmt: CanonicalFormat) -> str:
        return _CANONICAL_MIME.get(fmt, "application/octet-stream")

    @staticmethod
    def extension(fmt: CanonicalFormat) -> str:
        if fmt is CanonicalFormat.UNKNOWN:
            raise ValueError("Unknown format has no extension")
        return fmt.value

    @staticmethod
    def supported_sources() -> list:
        return sorted(_RASTER_FORMATS | {CanonicalFormat.PDF}, key=lambda f: f.value)

    @staticmethod
    def supported_targets() -> list:
        return sorted(_RASTER_TARGETS | {CanonicalFormat.PDF}, key=lambda f: f.value)


__all__ = ["FormatRegistry", "HEIF_CODEC_RESOURCE"]
