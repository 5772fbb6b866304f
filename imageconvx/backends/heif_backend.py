"""pillow-heif adapter exposing HEIC/HEIF decoding as an external codec."""

from __future__ import annotations

import io
import logging
from types import ModuleType

from PIL import Image

from ..exceptions import DecodeError
from ..types import CanonicalFormat, RasterImage
from .base import AlreadyDecodable, ExternalCodec, RasterBackend
from .pillow_backend import PillowBackend, from_pillow

LOGGER = logging.getLogger("imageconvx.backends.heif")

HEIF_REQUIRED_ATTRIBUTES = ("open_heif", "is_supported")


class HeifCodec(ExternalCodec):
    """Decode HEIC/HEIF through an acquired ``pillow_heif`` module."""

    name = "pillow_heif"

    def __init__(self, module: ModuleType, raster: RasterBackend | None = None) -> None:
        self._heif = module
        self._raster = raster or PillowBackend()

    def decode(self, data: bytes) -> RasterImage:
        if not self._heif.is_supported(io.BytesIO(data)):
            detected = self._raster.sniff(data)
            if detected is not None:
                LOGGER.info("HEIF payload is already %s; handing back to local decoder", detected.value)
                raise AlreadyDecodable(detected)
            raise DecodeError("File is not a valid HEIC/HEIF image.")

        try:
            heif_file = self._heif.open_heif(io.BytesIO(data), convert_hdr_to_8bit=True)
            img = Image.frombytes(
                heif_file.mode,
                heif_file.size,
                heif_file.data,
                "raw",
                heif_file.mode,
                heif_file.stride,
            )
        except (ValueError, RuntimeError, OSError) as exc:
            raise DecodeError(f"Failed to decode HEIC/HEIF image. Error: {exc}") from exc

        LOGGER.debug("Decoded HEIF image %dx%d (%s)", img.width, img.height, img.mode)
        return from_pillow(img)

    def convert(self, data: bytes, target: CanonicalFormat, quality: float) -> bytes:
        return self._raster.encode(self.decode(data), target, quality)


def build_heif_codec(module: ModuleType) -> HeifCodec:
    return HeifCodec(module)
