"""
Custom exceptions for imageconvx.

Every terminal failure of a conversion job is a :class:`ConversionError`
carrying a stable ``kind`` tag, so presentation layers can render distinct
guidance without parsing messages.
"""

from __future__ import annotations

from typing import Optional


class ConversionError(Exception):
    """Base exception for all conversion errors."""

    kind = "conversion-error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    @property
    def default_message(self) -> str:
        return "An unknown conversion error occurred."

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class UnsupportedFormat(ConversionError):
    """Raised when a source format or source/target pair is not supported."""

    kind = "unsupported-format"

    @property
    def default_message(self) -> str:
        return "Unsupported or unknown source format."


class SizeLimitExceeded(ConversionError):
    """Raised when an asset is larger than the per-asset size ceiling."""

    kind = "size-limit-exceeded"

    def __init__(self, message: str = "", *, size: int = 0, limit: int = 0) -> None:
        self.size = size
        self.limit = limit
        super().__init__(message)

    @property
    def default_message(self) -> str:
        return "File size exceeds the allowed limit."


class CodecUnavailable(ConversionError):
    """Raised when an external codec could not be acquired."""

    kind = "codec-unavailable"

    def __init__(self, message: str = "", *, resource_id: Optional[str] = None) -> None:
        self.resource_id = resource_id
        super().__init__(message)

    @property
    def default_message(self) -> str:
        return "The external codec required for this format is not available."


class DecodeError(ConversionError):
    """Raised when raster or document bytes cannot be decoded."""

    kind = "decode-error"

    @property
    def default_message(self) -> str:
        return "Failed to decode image."


class EncodeError(ConversionError):
    """Raised when encoding to the target format fails."""

    kind = "encode-error"

    def __init__(self, message: str = "", *, missing_encoder: bool = False) -> None:
        self.missing_encoder = missing_encoder
        super().__init__(message)

    @property
    def default_message(self) -> str:
        return "Failed to generate output image."


class NoValidInput(ConversionError):
    """Raised when there is nothing to convert."""

    kind = "no-valid-input"

    @property
    def default_message(self) -> str:
        return "No valid images to convert."


_GUIDANCE = {
    UnsupportedFormat.kind: "Please select a HEIC, HEIF, WebP, GIF, JPG, PNG or PDF file "
    "and a JPG, PNG, WebP or PDF target.",
    SizeLimitExceeded.kind: "Choose a smaller file or compress it before converting.",
    CodecUnavailable.kind: "Install the optional HEIF support (pip install imageconvx[heif]) "
    "or convert the file on another device.",
    DecodeError.kind: "The file may be corrupted or is not really the format it claims to be.",
    NoValidInput.kind: "Select at least one image.",
}


def guidance(error: ConversionError) -> str:
    """Return a user-facing hint for *error*."""

    if isinstance(error, EncodeError):
        if error.missing_encoder:
            return "This target format cannot be written here. Try using JPG or PNG as the target format."
        return "Try a different target format or a lower quality setting."
    return _GUIDANCE.get(error.kind, "")
