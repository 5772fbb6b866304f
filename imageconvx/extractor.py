"""Recover page images from PDF documents."""

from __future__ import annotations

import asyncio
import io
import logging
from typing import List

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from .backends.pillow_backend import from_pillow
from .exceptions import DecodeError
from .types import RasterImage

LOGGER = logging.getLogger("imageconvx.extractor")


class PageExtractor:
    """Return the largest embedded image of every PDF page.

    No rasterizer is involved: pages that carry only vector content or text
    cannot be exported and fail the whole extraction.
    """

    async def extract(self, data: bytes) -> List[RasterImage]:
        return await asyncio.to_thread(self._extract, data)

    def _extract(self, data: bytes) -> List[RasterImage]:
        try:
            reader = PdfReader(io.BytesIO(data))
        except PdfReadError as exc:
            raise DecodeError(f"Corrupted or invalid PDF file. Error: {exc}") from exc
        except Exception as exc:
            raise DecodeError(f"Unexpected error reading PDF. Error: {exc}") from exc

        if reader.is_encrypted:
            raise DecodeError("PDF is encrypted and cannot be processed without a password.")

        num_pages = len(reader.pages)
        if num_pages == 0:
            raise DecodeError("PDF has no pages.")

        images: List[RasterImage] = []
        for index, page in enumerate(reader.pages, start=1):
            try:
                candidates = [item.image for item in page.images if item.image is not None]
            except Exception as exc:
                raise DecodeError(f"Failed to read images on page {index}. Error: {exc}") from exc
            if not candidates:
                raise DecodeError(f"Page {index} contains no embedded image to export.")
            largest = max(candidates, key=lambda img: img.width * img.height)
            largest.load()
            LOGGER.debug("Page %d: extracted %dx%d %s image", index, largest.width, largest.height, largest.mode)
            images.append(from_pillow(largest))

        LOGGER.info("Extracted %d page image(s)", num_pages)
        return images


__all__ = ["PageExtractor"]
