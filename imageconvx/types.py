"""
Type definitions and dataclasses for imageconvx.

This module defines data structures used throughout the library.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple


class CanonicalFormat(str, Enum):
    """Closed set of formats the converter reasons about."""

    HEIC = "heic"
    HEIF = "heif"
    JPG = "jpg"
    PNG = "png"
    WEBP = "webp"
    GIF = "gif"
    PDF = "pdf"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: "str | CanonicalFormat") -> "CanonicalFormat":
        if isinstance(value, CanonicalFormat):
            return value
        text = value.strip().lower().lstrip(".")
        if text == "jpeg":
            text = "jpg"
        try:
            return cls(text)
        except ValueError:
            return cls.UNKNOWN


class PageSize(str, Enum):
    """Page geometry used when assembling a PDF."""

    A4 = "a4"
    LETTER = "letter"
    FIT = "fit"

    @property
    def is_fixed(self) -> bool:
        return self is not PageSize.FIT

    @property
    def dimensions(self) -> Tuple[float, float]:
        """Portrait page size in PDF points."""
        if self is PageSize.FIT:
            raise ValueError("Fit-to-image pages have no fixed dimensions")
        return _PAGE_DIMENSIONS[self]

    @classmethod
    def parse(cls, value: "str | PageSize") -> "PageSize":
        if isinstance(value, PageSize):
            return value
        text = value.strip().lower()
        if text in {"fit", "fit-image", "fit-to-image"}:
            return cls.FIT
        try:
            return cls(text)
        except ValueError as exc:
            raise ValueError(f"Unknown page size: {value!r}") from exc


_PAGE_DIMENSIONS = {
    PageSize.A4: (595.28, 841.89),
    PageSize.LETTER: (612.0, 792.0),
}


@dataclass(frozen=True)
class SourceAsset:
    """
    A user-supplied file, immutable for the lifetime of a job.

    Attributes:
        data: Raw file bytes
        mime_type: MIME type declared by the supplier, if any
        filename: Original filename, if known
    """
    data: bytes
    mime_type: Optional[str] = None
    filename: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:
        return (
            f"SourceAsset(filename={self.filename!r}, mime_type={self.mime_type!r}, "
            f"size={self.size})"
        )


@dataclass(frozen=True)
class DocumentOptions:
    """Page geometry options for images-to-PDF jobs."""

    page_size: PageSize = PageSize.A4
    margin: float = 40.0
    title: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "page_size", PageSize.parse(self.page_size))
        if self.margin < 0:
            raise ValueError(f"Margin must be >= 0, got {self.margin}")
        if self.page_size.is_fixed and 2 * self.margin >= min(self.page_size.dimensions):
            raise ValueError(f"Margin {self.margin} leaves no room on a {self.page_size.value} page")


@dataclass(frozen=True)
class ConversionRequest:
    """
    A single conversion job.

    Attributes:
        assets: One asset for raster conversion, one or more for PDF assembly
        target: Requested output format
        quality: Encoder quality in [0, 1]
        document: Page options used when the target is PDF
        compress: When False the effective quality is raised to at least 0.95
    """
    assets: Tuple[SourceAsset, ...]
    target: CanonicalFormat
    quality: float = 0.9
    document: DocumentOptions = field(default_factory=DocumentOptions)
    compress: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "assets", tuple(self.assets))
        object.__setattr__(self, "target", CanonicalFormat.parse(self.target))
        if not 0.0 <= float(self.quality) <= 1.0:
            raise ValueError(f"Quality must be within [0, 1], got {self.quality}")

    @property
    def effective_quality(self) -> float:
        if self.compress:
            return float(self.quality)
        return max(float(self.quality), UNCOMPRESSED_QUALITY_FLOOR)


UNCOMPRESSED_QUALITY_FLOOR = 0.95


@dataclass
class RasterImage:
    """
    Decoded pixel buffer.

    ``buffer`` holds the backend-native image object; only the backend that
    produced it interprets it.
    """
    width: int
    height: int
    mode: str
    buffer: Any = field(repr=False, default=None)

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    @property
    def has_alpha(self) -> bool:
        return self.mode in {"RGBA", "LA", "PA", "RGBa", "La"}


@dataclass(frozen=True)
class OutputFile:
    """One produced file."""

    data: bytes
    filename: str


@dataclass(frozen=True)
class ConversionResult:
    """
    Result of a conversion job.

    Attributes:
        target: Output format
        mime_type: MIME type of every produced file
        files: Produced files in output order
    """
    target: CanonicalFormat
    mime_type: str
    files: Tuple[OutputFile, ...]

    @property
    def data(self) -> bytes:
        return self.files[0].data

    @property
    def filename(self) -> str:
        return self.files[0].filename

    @property
    def filenames(self) -> Tuple[str, ...]:
        return tuple(item.filename for item in self.files)

    def __str__(self) -> str:
        return f"ConversionResult(target={self.target.value}, files={len(self.files)})"
