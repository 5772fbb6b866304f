"""Top-level conversion entry point."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Sequence, Tuple

from .bridge import ExternalCodecBridge
from .compositor import PageCompositor
from .config import ConverterSettings
from .exceptions import NoValidInput, SizeLimitExceeded, UnsupportedFormat
from .extractor import PageExtractor
from .fallback import FallbackChain
from .formats import FormatRegistry
from .transcoder import Transcoder
from .types import (
    CanonicalFormat,
    ConversionRequest,
    ConversionResult,
    DocumentOptions,
    OutputFile,
    RasterImage,
    SourceAsset,
)
from .utils import converted_name, document_name, format_file_size, page_name, time_block

LOGGER = logging.getLogger("imageconvx.orchestrator")

ProgressCallback = Callable[[int, int], None]
Classified = List[Tuple[SourceAsset, CanonicalFormat]]


class ConversionOrchestrator:
    """Validate a request, route it, and assemble the result.

    All validation happens before the first decode. Assets are processed
    strictly in input order and any failure aborts the whole job.
    """

    def __init__(
        self,
        settings: Optional[ConverterSettings] = None,
        *,
        registry: Optional[FormatRegistry] = None,
        transcoder: Optional[Transcoder] = None,
        bridge: Optional[ExternalCodecBridge] = None,
        compositor: Optional[PageCompositor] = None,
        extractor: Optional[PageExtractor] = None,
    ) -> None:
        self.settings = settings or ConverterSettings()
        self.registry = registry or FormatRegistry()
        self.transcoder = transcoder or Transcoder(registry=self.registry)
        self.bridge = bridge or ExternalCodecBridge()
        self.compositor = compositor or PageCompositor(self.transcoder)
        self.extractor = extractor or PageExtractor()

    async def convert(
        self,
        request: ConversionRequest,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> ConversionResult:
        classified = self.validate(request)
        target = request.target
        quality = request.effective_quality

        LOGGER.info(
            "Starting conversion of %d asset(s) to %s",
            len(classified),
            target.value,
        )
        with time_block(LOGGER, f"Conversion to {target.value}"):
            if target is CanonicalFormat.PDF:
                files = await self._assemble_document(request, classified, quality, progress_callback)
            elif any(fmt is CanonicalFormat.PDF for _, fmt in classified):
                files = await self._export_pages(classified, target, quality, progress_callback)
            else:
                files = await self._convert_rasters(classified, target, quality, progress_callback)

        result = ConversionResult(
            target=target,
            mime_type=self.registry.mime_type(target),
            files=tuple(files),
        )
        LOGGER.info("Conversion finished: %s", ", ".join(result.filenames))
        return result

    def validate(self, request: ConversionRequest) -> Classified:
        """Fail fast on anything that can be rejected without decoding."""

        if not request.assets:
            raise NoValidInput("No files selected. Select at least one image.")

        limit = self.settings.max_asset_bytes
        for asset in request.assets:
            if asset.size > limit:
                label = asset.filename or "Selected file"
                raise SizeLimitExceeded(
                    f"{label} is too large ({format_file_size(asset.size)}); "
                    f"the limit is {format_file_size(limit)}.",
                    size=asset.size,
                    limit=limit,
                )

        classified: Classified = []
        for asset in request.assets:
            source = self.registry.classify(asset)
            if source is CanonicalFormat.UNKNOWN:
                raise UnsupportedFormat(
                    f"Unsupported or unknown source format: {asset.filename or asset.mime_type or 'unnamed file'}."
                )
            if not self.registry.is_allowed_pair(source, request.target):
                raise UnsupportedFormat(
                    f"Cannot convert {source.value.upper()} to {request.target.value.upper()}."
                )
            classified.append((asset, source))
        return classified

    async def decode_asset(self, asset: SourceAsset, source: CanonicalFormat) -> RasterImage:
        resource = self.registry.codec_resource(source)
        if resource is None:
            return await self.transcoder.decode(asset.data, source)
        chain = FallbackChain(self.bridge, self.transcoder, resource, source)
        return await chain.decode(asset.data)

    async def convert_asset(
        self,
        asset: SourceAsset,
        source: CanonicalFormat,
        target: CanonicalFormat,
        quality: float,
    ) -> bytes:
        resource = self.registry.codec_resource(source)
        if resource is None:
            return await self.transcoder.transcode(asset.data, source, target, quality)
        chain = FallbackChain(self.bridge, self.transcoder, resource, source)
        return await chain.convert(asset.data, target, quality)

    async def _convert_rasters(
        self,
        classified: Classified,
        target: CanonicalFormat,
        quality: float,
        progress_callback: Optional[ProgressCallback],
    ) -> List[OutputFile]:
        extension = self.registry.extension(target)
        files: List[OutputFile] = []
        for index, (asset, source) in enumerate(classified, start=1):
            LOGGER.debug("Converting %r (%s -> %s)", asset.filename, source.value, target.value)
            data = await self.convert_asset(asset, source, target, quality)
            files.append(OutputFile(data=data, filename=converted_name(asset.filename, extension)))
            _report(progress_callback, index, len(classified))
        return files

    async def _assemble_document(
        self,
        request: ConversionRequest,
        classified: Classified,
        quality: float,
        progress_callback: Optional[ProgressCallback],
    ) -> List[OutputFile]:
        images: List[RasterImage] = []
        for index, (asset, source) in enumerate(classified, start=1):
            LOGGER.debug("Decoding page %d from %r", index, asset.filename)
            images.append(await self.decode_asset(asset, source))
            _report(progress_callback, index, len(classified))

        options = request.document
        data = await self.compositor.compose(
            images,
            options.page_size,
            options.margin,
            quality,
            title=options.title,
        )
        return [OutputFile(data=data, filename=document_name(classified[0][0].filename))]

    async def _export_pages(
        self,
        classified: Classified,
        target: CanonicalFormat,
        quality: float,
        progress_callback: Optional[ProgressCallback],
    ) -> List[OutputFile]:
        extension = self.registry.extension(target)
        pages: List[Tuple[SourceAsset, int, RasterImage]] = []
        for asset, source in classified:
            if source is CanonicalFormat.PDF:
                extracted = await self.extractor.extract(asset.data)
                pages.extend((asset, number, image) for number, image in enumerate(extracted, start=1))
            else:
                pages.append((asset, 1, await self.decode_asset(asset, source)))

        files: List[OutputFile] = []
        for index, (asset, number, image) in enumerate(pages, start=1):
            data = await self.transcoder.encode(image, target, quality)
            files.append(OutputFile(data=data, filename=page_name(asset.filename, number, extension)))
            _report(progress_callback, index, len(pages))
        return files


def _report(callback: Optional[ProgressCallback], current: int, total: int) -> None:
    if callback:
        callback(current, total)


def build_request(
    assets: Sequence[SourceAsset],
    target: "CanonicalFormat | str",
    *,
    settings: Optional[ConverterSettings] = None,
    quality: Optional[float] = None,
    **options,
) -> ConversionRequest:
    """Create a :class:`ConversionRequest` using *settings* for defaults."""

    settings = settings or ConverterSettings()
    document = DocumentOptions(
        page_size=options.pop("page_size", settings.page_size),
        margin=options.pop("margin", settings.margin),
        title=options.pop("title", None),
    )
    return ConversionRequest(
        assets=tuple(assets),
        target=CanonicalFormat.parse(target),
        quality=settings.default_quality if quality is None else quality,
        document=document,
        **options,
    )


def convert(
    request: ConversionRequest,
    *,
    orchestrator: Optional[ConversionOrchestrator] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> ConversionResult:
    """Synchronous convenience wrapper around :meth:`ConversionOrchestrator.convert`."""

    orchestrator = orchestrator or ConversionOrchestrator()
    return asyncio.run(orchestrator.convert(request, progress_callback))


__all__ = ["ConversionOrchestrator", "build_request", "convert"]
