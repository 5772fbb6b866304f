"""
imageconvx - image and document format conversion.

Converts HEIC/HEIF, WebP, GIF, PNG and JPG images to JPG, PNG or WebP,
assembles images into a single multi-page PDF, and exports the page images
of PDFs built that way.

Quick Start:
    >>> from imageconvx import SourceAsset, build_request, convert
    >>> asset = SourceAsset(data=open('photo.png', 'rb').read(), filename='photo.png')
    >>> result = convert(build_request([asset], 'jpg', quality=0.9))
    >>> result.filename
    'photo-converted.jpg'

Main Classes:
    - ConversionOrchestrator: Validates and routes conversion jobs
    - FormatRegistry: Format classification and capability lookup
    - ExternalCodecBridge: Coalesced loading of optional codecs
    - Transcoder, FallbackChain, PageCompositor, PageExtractor: pipeline steps

Exceptions:
    - ConversionError: Base exception, carries a stable ``kind`` tag
    - UnsupportedFormat, SizeLimitExceeded, CodecUnavailable,
      DecodeError, EncodeError, NoValidInput

For CLI usage, use the 'imageconvx' command after installation.
"""

# Pipeline components
from imageconvx.bridge import CodecHandle, CodecSpec, CodecState, ExternalCodecBridge
from imageconvx.compositor import PageCompositor, PagePlacement, layout
from imageconvx.extractor import PageExtractor
from imageconvx.fallback import ChainState, FallbackChain
from imageconvx.formats import FormatRegistry
from imageconvx.orchestrator import ConversionOrchestrator, build_request, convert
from imageconvx.transcoder import Transcoder

# Configuration
from imageconvx.config import ConverterSettings

# Data types
from imageconvx.types import (
    CanonicalFormat,
    ConversionRequest,
    ConversionResult,
    DocumentOptions,
    OutputFile,
    PageSize,
    RasterImage,
    SourceAsset,
)

# Exceptions
from imageconvx.exceptions import (
    CodecUnavailable,
    ConversionError,
    DecodeError,
    EncodeError,
    NoValidInput,
    SizeLimitExceeded,
    UnsupportedFormat,
    guidance,
)

__version__ = "1.0.0"
__license__ = "MIT"

__all__ = [
    # Pipeline
    "ConversionOrchestrator",
    "FormatRegistry",
    "ExternalCodecBridge",
    "CodecHandle",
    "CodecSpec",
    "CodecState",
    "Transcoder",
    "FallbackChain",
    "ChainState",
    "PageCompositor",
    "PagePlacement",
    "PageExtractor",
    "layout",
    "build_request",
    "convert",
    # Configuration
    "ConverterSettings",
    # Data types
    "CanonicalFormat",
    "ConversionRequest",
    "ConversionResult",
    "DocumentOptions",
    "OutputFile",
    "PageSize",
    "RasterImage",
    "SourceAsset",
    # Exceptions
    "ConversionError",
    "UnsupportedFormat",
    "SizeLimitExceeded",
    "CodecUnavailable",
    "DecodeError",
    "EncodeError",
    "NoValidInput",
    "guidance",
    # Version info
    "__version__",
]
