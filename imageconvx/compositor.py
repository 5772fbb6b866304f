"""Assemble raster images into a single multi-page PDF."""

from __future__ import annotations

import asyncio
import io
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from pypdf import PageObject, PdfWriter
from pypdf.generic import (
    ArrayObject,
    DecodedStreamObject,
    DictionaryObject,
    NameObject,
    NumberObject,
)

from .exceptions import NoValidInput
from .transcoder import Transcoder
from .types import CanonicalFormat, PageSize, RasterImage
from .utils import time_block

LOGGER = logging.getLogger("imageconvx.compositor")

IMAGE_NAME = "/Im0"


@dataclass(frozen=True)
class PagePlacement:
    """Geometry of one page and the image drawn on it, in PDF points."""

    page_width: float
    page_height: float
    x: float
    y: float
    width: float
    height: float
    scale: float

    @property
    def orientation(self) -> str:
        return "landscape" if self.page_width > self.page_height else "portrait"


def layout(image: RasterImage, page_size: PageSize, margin: float) -> PagePlacement:
    """Compute where *image* goes on its page.

    Fixed pages shrink the image uniformly to fit the content box and center
    it; images are never enlarged. Fit-to-image pages match the pixel size
    one to one, without margin.
    """

    if image.width <= 0 or image.height <= 0:
        raise ValueError(f"Image has invalid dimensions: {image.width}x{image.height}")

    if not page_size.is_fixed:
        return PagePlacement(
            page_width=float(image.width),
            page_height=float(image.height),
            x=0.0,
            y=0.0,
            width=float(image.width),
            height=float(image.height),
            scale=1.0,
        )

    page_width, page_height = page_size.dimensions
    max_width = page_width - 2 * margin
    max_height = page_height - 2 * margin
    if margin < 0 or max_width <= 0 or max_height <= 0:
        raise ValueError(f"Margin {margin} leaves no room on a {page_size.value} page")

    ratio = min(max_width / image.width, max_height / image.height, 1.0)
    render_width = image.width * ratio
    render_height = image.height * ratio
    return PagePlacement(
        page_width=page_width,
        page_height=page_height,
        x=(page_width - render_width) / 2,
        y=(page_height - render_height) / 2,
        width=render_width,
        height=render_height,
        scale=ratio,
    )


def plan(images: Sequence[RasterImage], page_size: PageSize, margin: float) -> List[PagePlacement]:
    """Return one placement per image, in input order."""

    return [layout(image, page_size, margin) for image in images]


class PageCompositor:
    """Build PDFs whose page N shows input image N."""

    def __init__(self, transcoder: Optional[Transcoder] = None) -> None:
        self._transcoder = transcoder or Transcoder()

    async def compose(
        self,
        images: Sequence[RasterImage],
        page_size: PageSize = PageSize.A4,
        margin: float = 40.0,
        quality: float = 0.9,
        *,
        title: Optional[str] = None,
    ) -> bytes:
        if not images:
            raise NoValidInput("No valid images to convert.")

        page_size = PageSize.parse(page_size)
        placements = plan(images, page_size, margin)

        writer = PdfWriter()
        with time_block(LOGGER, f"Composing {len(images)}-page PDF"):
            for index, (image, placement) in enumerate(zip(images, placements), start=1):
                jpeg = await self._transcoder.encode(image, CanonicalFormat.JPG, quality)
                _add_image_page(writer, image, jpeg, placement)
                LOGGER.debug(
                    "Page %d: %.1fx%.1f pt, image %.1fx%.1f at (%.1f, %.1f)",
                    index,
                    placement.page_width,
                    placement.page_height,
                    placement.width,
                    placement.height,
                    placement.x,
                    placement.y,
                )

            metadata = {"/Producer": "imageconvx"}
            if title:
                metadata["/Title"] = title
            writer.add_metadata(metadata)
            return await asyncio.to_thread(_serialize, writer)


def _add_image_page(writer: PdfWriter, image: RasterImage, jpeg: bytes, placement: PagePlacement) -> None:
    page = PageObject.create_blank_page(width=placement.page_width, height=placement.page_height)

    xobject = DecodedStreamObject()
    xobject.update(
        {
            NameObject("/Type"): NameObject("/XObject"),
            NameObject("/Subtype"): NameObject("/Image"),
            NameObject("/Width"): NumberObject(image.width),
            NameObject("/Height"): NumberObject(image.height),
            NameObject("/ColorSpace"): NameObject("/DeviceRGB"),
            NameObject("/BitsPerComponent"): NumberObject(8),
            NameObject("/Filter"): NameObject("/DCTDecode"),
        }
    )
    xobject.set_data(jpeg)
    image_ref = writer._add_object(xobject)

    content = DecodedStreamObject()
    content.set_data(
        (
            f"q\n{placement.width:.4f} 0 0 {placement.height:.4f} "
            f"{placement.x:.4f} {placement.y:.4f} cm\n{IMAGE_NAME} Do\nQ\n"
        ).encode("ascii")
    )
    content_ref = writer._add_object(content)

    page[NameObject("/Resources")] = DictionaryObject(
        {
            NameObject("/ProcSet"): ArrayObject([NameObject("/PDF"), NameObject("/ImageC")]),
            NameObject("/XObject"): DictionaryObject({NameObject(IMAGE_NAME): image_ref}),
        }
    )
    page[NameObject("/Contents")] = content_ref
    writer.add_page(page)


def _serialize(writer: PdfWriter) -> bytes:
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


__all__ = ["PageCompositor", "PagePlacement", "layout", "plan"]
