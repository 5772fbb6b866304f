"""Runtime settings for imageconvx."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from .types import PageSize

MIB = 1024 * 1024
DEFAULT_MAX_ASSET_BYTES = 20 * MIB

_ENV_PREFIX = "IMAGECONVX_"
_ENV_NAMES = {
    "max_asset_bytes": "MAX_ASSET_MB",
    "default_quality": "DEFAULT_QUALITY",
    "margin": "MARGIN",
    "page_size": "PAGE_SIZE",
    "log_level": "LOG_LEVEL",
}


@dataclass(frozen=True)
class ConverterSettings:
    """Defaults applied to every conversion job."""

    max_asset_bytes: int = DEFAULT_MAX_ASSET_BYTES
    default_quality: float = 0.9
    margin: float = 40.0
    page_size: PageSize = PageSize.A4
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        if self.max_asset_bytes <= 0:
            raise ValueError("max_asset_bytes must be positive")
        if not 0.0 <= self.default_quality <= 1.0:
            raise ValueError("default_quality must be within [0, 1]")
        if self.margin < 0:
            raise ValueError("margin must be >= 0")
        if logging.getLevelName(self.log_level.upper()) == f"Level {self.log_level.upper()}":
            raise ValueError(f"Unknown log level: {self.log_level}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ConverterSettings":
        """Build settings from ``IMAGECONVX_*`` environment variables."""

        env = os.environ if environ is None else environ
        values: dict = {}

        raw = _read(env, "MAX_ASSET_MB")
        if raw is not None:
            values["max_asset_bytes"] = int(_number(raw, "MAX_ASSET_MB") * MIB)
        raw = _read(env, "DEFAULT_QUALITY")
        if raw is not None:
            values["default_quality"] = _number(raw, "DEFAULT_QUALITY")
        raw = _read(env, "MARGIN")
        if raw is not None:
            values["margin"] = _number(raw, "MARGIN")
        raw = _read(env, "PAGE_SIZE")
        if raw is not None:
            try:
                values["page_size"] = PageSize.parse(raw)
            except ValueError as exc:
                raise ValueError(f"{_ENV_PREFIX}PAGE_SIZE: {exc}") from exc
        raw = _read(env, "LOG_LEVEL")
        if raw is not None:
            values["log_level"] = raw.upper()

        settings = cls()
        for name, value in values.items():
            try:
                settings = replace(settings, **{name: value})
            except ValueError as exc:
                raise ValueError(f"{_ENV_PREFIX}{_ENV_NAMES[name]}: {exc}") from exc
        return settings


def _read(env: Mapping[str, str], name: str) -> Optional[str]:
    value = env.get(_ENV_PREFIX + name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _number(raw: str, name: str) -> float:
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{_ENV_PREFIX}{name} must be a number, got {raw!r}") from exc


__all__ = ["ConverterSettings", "DEFAULT_MAX_ASSET_BYTES", "MIB"]
