"""On-demand acquisition of optional external codecs.

The bridge keeps one :class:`CodecHandle` per resource id. Concurrent callers
asking for the same id while it is loading share a single acquisition task,
so the underlying import runs once per attempt and every waiter observes the
same outcome. A failed handle is retried by the next caller; a ready handle
is reused for the lifetime of the bridge.
"""

from __future__ import annotations

import asyncio
import importlib
import logging
from dataclasses import dataclass, field
from enum import Enum
from types import ModuleType
from typing import Callable, Dict, Optional, Tuple

from .backends.base import ExternalCodec
from .backends.heif_backend import HEIF_REQUIRED_ATTRIBUTES, build_heif_codec
from .exceptions import CodecUnavailable
from .formats import HEIF_CODEC_RESOURCE

LOGGER = logging.getLogger("imageconvx.bridge")

ModuleLoader = Callable[[str], ModuleType]


class CodecState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class CodecSpec:
    """How to acquire one external capability."""

    resource_id: str
    module: str
    required: Tuple[str, ...]
    factory: Callable[[ModuleType], ExternalCodec]


@dataclass
class CodecHandle:
    """Lifecycle of one external codec."""

    resource_id: str
    state: CodecState = CodecState.UNLOADED
    codec: Optional[ExternalCodec] = None
    error: Optional[CodecUnavailable] = None
    attempts: int = 0
    waiters: int = 0
    pending: Optional["asyncio.Future[ExternalCodec]"] = field(default=None, repr=False)

    @property
    def is_ready(self) -> bool:
        return self.state is CodecState.READY


HEIF_CODEC_SPEC = CodecSpec(
    resource_id=HEIF_CODEC_RESOURCE,
    module="pillow_heif",
    required=HEIF_REQUIRED_ATTRIBUTES,
    factory=build_heif_codec,
)


class ExternalCodecBridge:
    """Registry of external codec handles with coalesced acquisition."""

    def __init__(
        self,
        specs: Tuple[CodecSpec, ...] = (HEIF_CODEC_SPEC,),
        *,
        loader: Optional[ModuleLoader] = None,
    ) -> None:
        self._loader: ModuleLoader = loader or importlib.import_module
        self._specs: Dict[str, CodecSpec] = {}
        self._handles: Dict[str, CodecHandle] = {}
        for spec in specs:
            self.register(spec)

    def register(self, spec: CodecSpec) -> None:
        if spec.resource_id in self._specs:
            raise ValueError(f"Codec '{spec.resource_id}' is already registered")
        self._specs[spec.resource_id] = spec

    def handle(self, resource_id: str) -> CodecHandle:
        handle = self._handles.get(resource_id)
        if handle is None:
            handle = CodecHandle(resource_id=resource_id)
            self._handles[resource_id] = handle
        return handle

    async def acquire(self, resource_id: str) -> CodecHandle:
        """Return a READY handle for *resource_id* or raise ``CodecUnavailable``."""

        spec = self._specs.get(resource_id)
        if spec is None:
            raise CodecUnavailable(
                f"No external codec is registered for '{resource_id}'.",
                resource_id=resource_id,
            )

        handle = self.handle(resource_id)
        if handle.state is CodecState.READY:
            return handle

        if (
            handle.state is CodecState.LOADING
            and handle.pending is not None
            and not handle.pending.done()
        ):
            LOGGER.debug("Joining in-flight acquisition of %s", resource_id)
        else:
            handle.state = CodecState.LOADING
            handle.error = None
            handle.attempts += 1
            handle.pending = asyncio.ensure_future(self._load(spec, handle))

        handle.waiters += 1
        try:
            await asyncio.shield(handle.pending)
        finally:
            handle.waiters -= 1
        return handle

    async def _load(self, spec: CodecSpec, handle: CodecHandle) -> ExternalCodec:
        LOGGER.info("Acquiring external codec %s (attempt %d)", spec.resource_id, handle.attempts)
        try:
            module = await asyncio.to_thread(self._loader, spec.module)
            missing = [name for name in spec.required if not hasattr(module, name)]
            if missing:
                raise CodecUnavailable(
                    f"Codec '{spec.resource_id}' loaded but lacks: {', '.join(missing)}.",
                    resource_id=spec.resource_id,
                )
            codec = spec.factory(module)
        except CodecUnavailable as exc:
            self._fail(handle, exc)
            raise
        except Exception as exc:
            error = CodecUnavailable(
                f"The external codec '{spec.resource_id}' could not be loaded. Error: {exc}",
                resource_id=spec.resource_id,
            )
            self._fail(handle, error)
            raise error from exc

        handle.codec = codec
        handle.state = CodecState.READY
        LOGGER.info("External codec %s is ready", spec.resource_id)
        return codec

    @staticmethod
    def _fail(handle: CodecHandle, error: CodecUnavailable) -> None:
        handle.state = CodecState.FAILED
        handle.codec = None
        handle.error = error
        LOGGER.warning("External codec %s unavailable: %s", handle.resource_id, error.message)


__all__ = [
    "CodecHandle",
    "CodecSpec",
    "CodecState",
    "ExternalCodecBridge",
    "HEIF_CODEC_SPEC",
]
