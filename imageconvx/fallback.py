"""External-codec-first conversion with a local re-encode fallback."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, List, TypeVar

from .backends.base import AlreadyDecodable, ExternalCodec
from .bridge import ExternalCodecBridge
from .transcoder import Transcoder
from .types import CanonicalFormat, RasterImage

LOGGER = logging.getLogger("imageconvx.fallback")

T = TypeVar("T")


class ChainState(str, Enum):
    NOT_STARTED = "not-started"
    TRYING_EXTERNAL_CODEC = "trying-external-codec"
    FALLING_BACK_TO_TRANSCODE = "falling-back-to-transcode"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class FallbackChain:
    """Run one asset through an external codec, degrading to the Transcoder.

    Only :class:`AlreadyDecodable` triggers the fallback. Every other failure,
    including an unavailable codec, ends the chain in ``FAILED``.
    """

    def __init__(
        self,
        bridge: ExternalCodecBridge,
        transcoder: Transcoder,
        resource_id: str,
        declared: CanonicalFormat,
    ) -> None:
        self._bridge = bridge
        self._transcoder = transcoder
        self.resource_id = resource_id
        self.declared = declared
        self.state = ChainState.NOT_STARTED
        self.history: List[ChainState] = [ChainState.NOT_STARTED]

    @property
    def fell_back(self) -> bool:
        return ChainState.FALLING_BACK_TO_TRANSCODE in self.history

    async def convert(self, data: bytes, target: CanonicalFormat, quality: float) -> bytes:
        """Produce encoded *target* bytes."""

        return await self._run(
            lambda codec: asyncio.to_thread(codec.convert, data, target, quality),
            lambda: self._transcoder.transcode(data, CanonicalFormat.UNKNOWN, target, quality),
        )

    async def decode(self, data: bytes) -> RasterImage:
        """Produce a decoded raster for document assembly."""

        return await self._run(
            lambda codec: asyncio.to_thread(codec.decode, data),
            lambda: self._transcoder.decode(data, CanonicalFormat.UNKNOWN),
        )

    async def _run(
        self,
        external: Callable[[ExternalCodec], Awaitable[T]],
        local: Callable[[], Awaitable[T]],
    ) -> T:
        if self.state is not ChainState.NOT_STARTED:
            raise RuntimeError("FallbackChain instances run only once")

        self._enter(ChainState.TRYING_EXTERNAL_CODEC)
        try:
            handle = await self._bridge.acquire(self.resource_id)
            result = await external(handle.codec)
        except AlreadyDecodable as signal:
            LOGGER.info(
                "Declared %s payload is already decodable (%s); re-encoding locally",
                self.declared.value,
                signal,
            )
        except Exception:
            self._enter(ChainState.FAILED)
            raise
        else:
            self._enter(ChainState.SUCCEEDED)
            return result

        self._enter(ChainState.FALLING_BACK_TO_TRANSCODE)
        try:
            result = await local()
        except Exception:
            self._enter(ChainState.FAILED)
            raise
        self._enter(ChainState.SUCCEEDED)
        return result

    def _enter(self, state: ChainState) -> None:
        LOGGER.debug("FallbackChain[%s]: %s -> %s", self.resource_id, self.state.value, state.value)
        self.state = state
        self.history.append(state)


__all__ = ["ChainState", "FallbackChain"]
