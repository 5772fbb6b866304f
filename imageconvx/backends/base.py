"""Backend protocols for raster decoding and encoding."""

from __future__ import annotations

from typing import Optional, Protocol

from ..types import CanonicalFormat, RasterImage


class AlreadyDecodable(Exception):
    """Signal raised by an external codec whose input is already a native raster.

    This is not a conversion error: it tells the caller to decode the original
    bytes locally instead.
    """

    def __init__(self, detected: Optional[CanonicalFormat] = None) -> None:
        self.detected = detected
        label = detected.value if detected else "a natively decodable format"
        super().__init__(f"Image bytes are already {label}")


class RasterBackend(Protocol):
    """Protocol defining local raster operations."""

    def decode(self, data: bytes) -> RasterImage:
        """Decode *data* into a raster image. Raises ``DecodeError``."""

    def encode(self, image: RasterImage, fmt: CanonicalFormat, quality: float) -> bytes:
        """Encode *image* as *fmt*. Raises ``EncodeError``."""

    def sniff(self, data: bytes) -> Optional[CanonicalFormat]:
        """Return the format *data* is encoded in, if the backend can read it."""

    def can_encode(self, fmt: CanonicalFormat) -> bool:
        """Return whether an encoder for *fmt* is available."""


class ExternalCodec(Protocol):
    """Protocol for optional, externally acquired codecs."""

    name: str

    def decode(self, data: bytes) -> RasterImage:
        """Decode *data*. Raises ``AlreadyDecodable`` or ``DecodeError``."""

    def convert(self, data: bytes, target: CanonicalFormat, quality: float) -> bytes:
        """Decode *data* and encode it as *target* in one step."""
