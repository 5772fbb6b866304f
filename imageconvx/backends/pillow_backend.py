"""Pillow backend implementation for imageconvx."""

from __future__ import annotations

import io
import logging
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError, features

from ..exceptions import DecodeError, EncodeError
from ..types import CanonicalFormat, RasterImage
from .base import RasterBackend

LOGGER = logging.getLogger("imageconvx.backends.pillow")

WHITE = (255, 255, 255)

_PIL_FORMATS = {
    "JPEG": CanonicalFormat.JPG,
    "MPO": CanonicalFormat.JPG,
    "PNG": CanonicalFormat.PNG,
    "WEBP": CanonicalFormat.WEBP,
    "GIF": CanonicalFormat.GIF,
}

_WIDE_GRAY_MODES = frozenset({"I", "I;16", "I;16B", "I;16L", "I;16N"})

_ENCODERS = {
    CanonicalFormat.JPG: "JPEG",
    CanonicalFormat.PNG: "PNG",
    CanonicalFormat.WEBP: "WEBP",
}


def to_eight_bit(image: Image.Image) -> Image.Image:
    """Rescale 16/32-bit grayscale to ``L`` instead of letting Pillow clip it."""

    if image.mode not in _WIDE_GRAY_MODES:
        return image
    wide = image.convert("I")
    _, high = wide.getextrema()
    if high > 255:
        wide = wide.point(lambda v: v * (1 / 256))
    return wide.convert("L")


def flatten_onto_white(image: Image.Image) -> Image.Image:
    """Composite *image* over an opaque white background and return RGB."""

    image = to_eight_bit(image)
    if image.mode == "P":
        image = image.convert("RGBA")
    if image.mode in {"RGBA", "LA", "PA", "RGBa", "La"}:
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, WHITE)
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def to_quality(quality: float) -> int:
    """Map a [0, 1] quality onto Pillow's 1-100 scale."""

    return max(1, min(100, int(round(quality * 100))))


class PillowBackend(RasterBackend):
    """Backend implementation that uses Pillow under the hood."""

    def sniff(self, data: bytes) -> Optional[CanonicalFormat]:
        try:
            with Image.open(io.BytesIO(data)) as img:
                return _PIL_FORMATS.get(img.format or "")
        except (UnidentifiedImageError, OSError, ValueError):
            return None

    def decode(self, data: bytes) -> RasterImage:
        try:
            img = Image.open(io.BytesIO(data))
        except UnidentifiedImageError as exc:
            raise DecodeError("Failed to decode image: unrecognized image data.") from exc
        except (OSError, ValueError) as exc:
            raise DecodeError(f"Failed to decode image. Error: {exc}") from exc

        try:
            if _PIL_FORMATS.get(img.format or "") is None:
                raise DecodeError(f"Unsupported raster format: {img.format}")

            frames = getattr(img, "n_frames", 1)
            if frames > 1:
                LOGGER.warning("Animated image with %d frames; converting the first frame only", frames)
                img.seek(0)

            try:
                img.load()
                # Returns a detached copy with the EXIF orientation applied.
                frame = ImageOps.exif_transpose(img)
            except (OSError, ValueError) as exc:
                raise DecodeError(f"Image data is truncated or corrupted. Error: {exc}") from exc
        finally:
            img.close()
        return RasterImage(width=frame.width, height=frame.height, mode=frame.mode, buffer=frame)

    def can_encode(self, fmt: CanonicalFormat) -> bool:
        if fmt not in _ENCODERS:
            return False
        if fmt is CanonicalFormat.WEBP:
            return bool(features.check("webp"))
        return True

    def encode(self, image: RasterImage, fmt: CanonicalFormat, quality: float) -> bytes:
        if not self.can_encode(fmt):
            raise EncodeError(
                f"No local encoder is available for {fmt.value.upper()}.",
                missing_encoder=True,
            )

        pil_image = as_pillow(image)
        save_kwargs: dict = {}
        if fmt is CanonicalFormat.JPG:
            pil_image = flatten_onto_white(pil_image)
            save_kwargs["quality"] = to_quality(quality)
        elif fmt is CanonicalFormat.WEBP:
            pil_image = to_eight_bit(pil_image)
            if pil_image.mode not in {"RGB", "RGBA"}:
                pil_image = pil_image.convert("RGBA" if image.has_alpha or pil_image.mode == "P" else "RGB")
            save_kwargs["quality"] = to_quality(quality)
        elif fmt is CanonicalFormat.PNG and pil_image.mode not in {"1", "L", "LA", "P", "RGB", "RGBA", "I", "I;16"}:
            pil_image = to_eight_bit(pil_image)
            if pil_image.mode != "L":
                pil_image = pil_image.convert("RGBA" if image.has_alpha else "RGB")

        output = io.BytesIO()
        try:
            pil_image.save(output, format=_ENCODERS[fmt], **save_kwargs)
        except (OSError, ValueError, KeyError) as exc:
            raise EncodeError(f"Failed to encode {fmt.value.upper()}. Error: {exc}") from exc
        return output.getvalue()


def as_pillow(image: RasterImage) -> Image.Image:
    """Return the Pillow image behind *image*."""

    if not isinstance(image.buffer, Image.Image):
        raise EncodeError(f"Raster buffer is not a Pillow image: {type(image.buffer).__name__}")
    return image.buffer


def from_pillow(img: Image.Image) -> RasterImage:
    return RasterImage(width=img.width, height=img.height, mode=img.mode, buffer=img)
