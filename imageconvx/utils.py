"""Utility helpers for imageconvx."""
from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import PurePath
from typing import Iterator, Optional, Union

_EXTENSION_RE = re.compile(r"\.[^/.]+$")


def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """Configure package-wide logging."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


@contextmanager
def time_block(logger: logging.Logger, message: str) -> Iterator[None]:
    """Context manager that logs the execution time of a code block."""
    start = datetime.now(tz=timezone.utc)
    logger.debug("Starting %s", message)
    try:
        yield
    finally:
        elapsed = (datetime.now(tz=timezone.utc) - start).total_seconds()
        logger.info("%s completed in %.2fs", message, elapsed)


def base_name(filename: Optional[str], default: str) -> str:
    """Return *filename* without directories and its last extension."""
    if not filename:
        return default
    name = PurePath(filename.replace("\\", "/")).name
    stem = _EXTENSION_RE.sub("", name)
    return stem or default


def converted_name(filename: Optional[str], extension: str) -> str:
    """``photo.heic`` -> ``photo-converted.jpg``."""
    return f"{base_name(filename, 'image')}-converted.{extension}"


def document_name(filename: Optional[str]) -> str:
    """Name of an assembled PDF, derived from its first input."""
    if not filename:
        return "images.pdf"
    return f"{base_name(filename, 'images')}.pdf"


def page_name(filename: Optional[str], page_number: int, extension: str) -> str:
    """``scan.pdf`` page 2 -> ``scan-page-2.png``."""
    return f"{base_name(filename, 'document')}-page-{page_number}.{extension}"


def format_file_size(size_bytes: float) -> str:
    """
    Format file size in human-readable format.

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string (e.g., "1.5 MB", "500 KB")
    """
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size_bytes < 1024.0:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.1f} PB"
