"""Backend abstractions for imageconvx."""

from .base import AlreadyDecodable, ExternalCodec, RasterBackend
from .heif_backend import HeifCodec, build_heif_codec
from .pillow_backend import PillowBackend

__all__ = [
    "AlreadyDecodable",
    "ExternalCodec",
    "RasterBackend",
    "HeifCodec",
    "PillowBackend",
    "build_heif_codec",
]
