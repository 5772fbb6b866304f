from __future__ import annotations

import io
from pathlib import Path
from types import SimpleNamespace
from typing import Callable, List, Optional, Tuple
import sys

import pytest
from PIL import Image

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from imageconvx.bridge import ExternalCodecBridge  # noqa: E402
from imageconvx.types import SourceAsset  # noqa: E402

FAKE_HEIF_MAGIC = b"\x00\x00\x00\x18ftypheic"
FAKE_HEIF_SIZE = (6, 4)
FAKE_HEIF_COLOR = (200, 30, 30)


def encode_image(
    size: Tuple[int, int] = (32, 16),
    mode: str = "RGB",
    color=(10, 120, 200),
    fmt: str = "PNG",
) -> bytes:
    image = Image.new(mode, size, color)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture()
def image_bytes() -> Callable[..., bytes]:
    return encode_image


@pytest.fixture()
def png_bytes() -> bytes:
    return encode_image((32, 16), fmt="PNG")


@pytest.fixture()
def jpeg_bytes() -> bytes:
    return encode_image((40, 30), fmt="JPEG")


@pytest.fixture()
def transparent_png() -> bytes:
    return encode_image((8, 8), mode="RGBA", color=(0, 0, 0, 0), fmt="PNG")


@pytest.fixture()
def asset_factory() -> Callable[..., SourceAsset]:
    def _create(data: bytes, filename: Optional[str] = None, mime_type: Optional[str] = None) -> SourceAsset:
        return SourceAsset(data=data, filename=filename, mime_type=mime_type)

    return _create


def _fake_open_heif(fp, convert_hdr_to_8bit: bool = False):
    width, height = FAKE_HEIF_SIZE
    pixels = bytes(FAKE_HEIF_COLOR) * (width * height)
    return SimpleNamespace(mode="RGB", size=FAKE_HEIF_SIZE, data=pixels, stride=width * 3)


def _fake_is_supported(fp) -> bool:
    return fp.read(len(FAKE_HEIF_MAGIC)) == FAKE_HEIF_MAGIC


@pytest.fixture()
def fake_heif_module() -> SimpleNamespace:
    return SimpleNamespace(open_heif=_fake_open_heif, is_supported=_fake_is_supported)


@pytest.fixture()
def heic_bytes() -> bytes:
    return FAKE_HEIF_MAGIC + b"\x00" * 64


class CountingLoader:
    """Module loader that records calls and can fail a set number of times."""

    def __init__(self, module=None, failures: int = 0, error: Optional[Exception] = None) -> None:
        self.module = module
        self.failures = failures
        self.error = error or ImportError("No module named 'pillow_heif'")
        self.calls: List[str] = []

    def __call__(self, name: str):
        self.calls.append(name)
        if self.module is None or len(self.calls) <= self.failures:
            raise self.error
        return self.module


@pytest.fixture()
def loader_factory() -> Callable[..., CountingLoader]:
    return CountingLoader


@pytest.fixture()
def heif_bridge(fake_heif_module) -> ExternalCodecBridge:
    return ExternalCodecBridge(loader=CountingLoader(fake_heif_module))


@pytest.fixture()
def broken_bridge() -> ExternalCodecBridge:
    return ExternalCodecBridge(loader=CountingLoader(None))
