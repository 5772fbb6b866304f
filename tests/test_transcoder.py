from __future__ import annotations

import asyncio
import io

import pytest
from PIL import Image

from imageconvx.backends.pillow_backend import PillowBackend, flatten_onto_white, to_eight_bit, to_quality
from imageconvx.exceptions import DecodeError, EncodeError
from imageconvx.transcoder import Transcoder
from imageconvx.types import CanonicalFormat

from conftest import encode_image


def _open(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


def test_png_to_jpg_preserves_dimensions(png_bytes: bytes) -> None:
    transcoder = Transcoder()

    output = asyncio.run(transcoder.transcode(png_bytes, CanonicalFormat.PNG, CanonicalFormat.JPG, 0.9))

    with _open(output) as img:
        assert img.format == "JPEG"
        assert img.size == (32, 16)
        assert img.mode == "RGB"


def test_transparent_pixels_become_white_in_jpg(transparent_png: bytes) -> None:
    transcoder = Transcoder()

    output = asyncio.run(transcoder.transcode(transparent_png, CanonicalFormat.PNG, CanonicalFormat.JPG, 1.0))

    with _open(output) as img:
        r, g, b = img.getpixel((4, 4))
    assert min(r, g, b) >= 250


def test_png_output_keeps_alpha(transparent_png: bytes) -> None:
    transcoder = Transcoder()

    output = asyncio.run(transcoder.transcode(transparent_png, CanonicalFormat.PNG, CanonicalFormat.PNG, 0.9))

    with _open(output) as img:
        assert img.mode == "RGBA"
        assert img.getpixel((0, 0))[3] == 0


def test_jpg_to_webp(jpeg_bytes: bytes) -> None:
    backend = PillowBackend()
    if not backend.can_encode(CanonicalFormat.WEBP):
        pytest.skip("Pillow built without WebP support")

    output = asyncio.run(Transcoder(backend).transcode(jpeg_bytes, CanonicalFormat.JPG, CanonicalFormat.WEBP, 0.8))

    with _open(output) as img:
        assert img.format == "WEBP"
        assert img.size == (40, 30)


def test_decoding_ignores_declared_raster_format(jpeg_bytes: bytes) -> None:
    image = asyncio.run(Transcoder().decode(jpeg_bytes, CanonicalFormat.PNG))
    assert image.size == (40, 30)


def test_animated_gif_uses_first_frame() -> None:
    frames = [Image.new("RGB", (5, 5), color) for color in ((255, 0, 0), (0, 255, 0))]
    buffer = io.BytesIO()
    frames[0].save(buffer, format="GIF", save_all=True, append_images=frames[1:])

    image = asyncio.run(Transcoder().decode(buffer.getvalue(), CanonicalFormat.GIF))
    output = asyncio.run(Transcoder().encode(image, CanonicalFormat.PNG, 0.9))

    with _open(output) as img:
        r, g, b = img.convert("RGB").getpixel((2, 2))
    assert r > 200 and g < 50


def test_garbage_raises_decode_error() -> None:
    with pytest.raises(DecodeError) as excinfo:
        asyncio.run(Transcoder().decode(b"definitely not an image", CanonicalFormat.PNG))
    assert excinfo.value.kind == "decode-error"


def test_empty_data_raises_decode_error() -> None:
    with pytest.raises(DecodeError):
        asyncio.run(Transcoder().decode(b"", CanonicalFormat.JPG))


def test_pdf_is_not_decoded_as_raster(png_bytes: bytes) -> None:
    with pytest.raises(DecodeError):
        asyncio.run(Transcoder().decode(png_bytes, CanonicalFormat.PDF))


@pytest.mark.parametrize("target", [CanonicalFormat.GIF, CanonicalFormat.HEIC, CanonicalFormat.PDF])
def test_missing_encoder(png_bytes: bytes, target: CanonicalFormat) -> None:
    transcoder = Transcoder()
    image = asyncio.run(transcoder.decode(png_bytes, CanonicalFormat.PNG))

    with pytest.raises(EncodeError) as excinfo:
        asyncio.run(transcoder.encode(image, target, 0.9))
    assert excinfo.value.missing_encoder is True


class _NoWebpBackend(PillowBackend):
    def can_encode(self, fmt: CanonicalFormat) -> bool:
        return fmt is not CanonicalFormat.WEBP and super().can_encode(fmt)


def test_backend_without_webp_encoder(png_bytes: bytes) -> None:
    transcoder = Transcoder(_NoWebpBackend())

    with pytest.raises(EncodeError) as excinfo:
        asyncio.run(transcoder.transcode(png_bytes, CanonicalFormat.PNG, CanonicalFormat.WEBP, 0.9))
    assert excinfo.value.missing_encoder


def test_lower_quality_gives_smaller_jpeg() -> None:
    noisy = Image.effect_noise((64, 64), 80).convert("RGB")
    buffer = io.BytesIO()
    noisy.save(buffer, format="PNG")
    transcoder = Transcoder()

    high = asyncio.run(transcoder.transcode(buffer.getvalue(), CanonicalFormat.PNG, CanonicalFormat.JPG, 0.95))
    low = asyncio.run(transcoder.transcode(buffer.getvalue(), CanonicalFormat.PNG, CanonicalFormat.JPG, 0.2))

    assert len(low) < len(high)


def test_backend_sniff() -> None:
    backend = PillowBackend()
    assert backend.sniff(encode_image(fmt="JPEG")) is CanonicalFormat.JPG
    assert backend.sniff(encode_image(fmt="PNG")) is CanonicalFormat.PNG
    assert backend.sniff(b"%PDF-1.7") is None


def test_quality_mapping() -> None:
    assert to_quality(0.0) == 1
    assert to_quality(0.9) == 90
    assert to_quality(1.0) == 100


def test_flatten_palette_image() -> None:
    palette = Image.new("P", (2, 2))
    assert flatten_onto_white(palette).mode == "RGB"


@pytest.mark.parametrize("source", ["PNG", "JPEG", "WEBP", "GIF"])
@pytest.mark.parametrize("target", [CanonicalFormat.JPG, CanonicalFormat.PNG, CanonicalFormat.WEBP])
def test_dimensions_preserved_for_every_pair(source: str, target: CanonicalFormat) -> None:
    backend = PillowBackend()
    if "WEBP" in (source, target.name) and not backend.can_encode(CanonicalFormat.WEBP):
        pytest.skip("Pillow built without WebP support")
    data = encode_image((37, 23), fmt=source)

    output = asyncio.run(Transcoder(backend).transcode(data, CanonicalFormat.UNKNOWN, target, 0.8))

    with _open(output) as img:
        assert img.size == (37, 23)


def test_exif_orientation_is_applied() -> None:
    exif = Image.Exif()
    exif[0x0112] = 6
    buffer = io.BytesIO()
    Image.new("RGB", (40, 20), (0, 120, 0)).save(buffer, format="JPEG", exif=exif.tobytes())

    output = asyncio.run(Transcoder().transcode(buffer.getvalue(), CanonicalFormat.JPG, CanonicalFormat.PNG, 0.9))

    with _open(output) as img:
        assert img.size == (20, 40)
        assert img.getexif().get(0x0112) is None


def test_sixteen_bit_grayscale_is_rescaled_for_jpg() -> None:
    buffer = io.BytesIO()
    Image.new("I;16", (8, 8), 30000).save(buffer, format="PNG")

    output = asyncio.run(Transcoder().transcode(buffer.getvalue(), CanonicalFormat.PNG, CanonicalFormat.JPG, 1.0))

    with _open(output) as img:
        r, g, b = img.getpixel((4, 4))
    assert r == pytest.approx(117, abs=3)
    assert max(r, g, b) - min(r, g, b) <= 2


def test_eight_bit_values_in_wide_mode_are_kept() -> None:
    image = Image.new("I", (4, 4), 200)

    assert to_eight_bit(image).getpixel((0, 0)) == 200


def test_truncated_image_is_closed_after_decode_error(monkeypatch: pytest.MonkeyPatch) -> None:
    buffer = io.BytesIO()
    Image.effect_noise((64, 64), 80).convert("RGB").save(buffer, format="JPEG", quality=95)
    truncated = buffer.getvalue()[: len(buffer.getvalue()) * 3 // 4]
    opened = []
    real_open = Image.open

    def tracking_open(fp, *args, **kwargs):
        img = real_open(fp, *args, **kwargs)
        opened.append(img)
        return img

    monkeypatch.setattr(Image, "open", tracking_open)

    with pytest.raises(DecodeError):
        PillowBackend().decode(truncated)

    assert len(opened) == 1
    assert opened[0].fp is None
