"""Raster decoding and re-encoding."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .backends.base import RasterBackend
from .backends.pillow_backend import PillowBackend
from .exceptions import DecodeError, EncodeError
from .formats import FormatRegistry
from .types import CanonicalFormat, RasterImage

LOGGER = logging.getLogger("imageconvx.transcoder")


class Transcoder:
    """Decode raster bytes and encode raster images through a backend.

    Blocking backend calls run in a worker thread so that each decode and
    encode is a suspension point for the event loop.
    """

    def __init__(
        self,
        backend: Optional[RasterBackend] = None,
        registry: Optional[FormatRegistry] = None,
    ) -> None:
        self.backend: RasterBackend = backend or PillowBackend()
        self.registry = registry or FormatRegistry()

    async def decode(self, data: bytes, declared: CanonicalFormat = CanonicalFormat.UNKNOWN) -> RasterImage:
        if declared is CanonicalFormat.PDF:
            raise DecodeError("PDF documents are not raster images.")
        if not data:
            raise DecodeError("Image data is empty.")
        LOGGER.debug("Decoding %d bytes declared as %s", len(data), declared.value)
        image = await asyncio.to_thread(self.backend.decode, data)
        LOGGER.debug("Decoded %dx%d %s image", image.width, image.height, image.mode)
        return image

    async def encode(self, image: RasterImage, target: CanonicalFormat, quality: float) -> bytes:
        if not self.registry.is_raster(target) or not self.backend.can_encode(target):
            raise EncodeError(
                f"{target.value.upper()} output is not supported. "
                "Please choose JPG, PNG or WebP as the target format.",
                missing_encoder=True,
            )
        LOGGER.debug(
            "Encoding %dx%d image as %s (quality %.2f)",
            image.width,
            image.height,
            target.value,
            quality,
        )
        return await asyncio.to_thread(self.backend.encode, image, target, quality)

    async def transcode(
        self,
        data: bytes,
        declared: CanonicalFormat,
        target: CanonicalFormat,
        quality: float,
    ) -> bytes:
        image = await self.decode(data, declared)
        return await self.encode(image, target, quality)


__all__ = ["Transcoder"]
