from __future__ import annotations

import asyncio
import io

import pytest
from PIL import Image
from pypdf import PdfReader

from imageconvx import ConversionOrchestrator, ConverterSettings, build_request, convert
from imageconvx.exceptions import (
    CodecUnavailable,
    ConversionError,
    NoValidInput,
    SizeLimitExceeded,
    UnsupportedFormat,
)
from imageconvx.transcoder import Transcoder
from imageconvx.types import CanonicalFormat, ConversionRequest, DocumentOptions, PageSize, SourceAsset

from conftest import encode_image


class RecordingTranscoder(Transcoder):
    def __init__(self) -> None:
        super().__init__()
        self.decoded = []

    async def decode(self, data, declared=CanonicalFormat.UNKNOWN):
        self.decoded.append(declared)
        return await super().decode(data, declared)


def _run(orchestrator: ConversionOrchestrator, request: ConversionRequest, progress=None):
    return asyncio.run(orchestrator.convert(request, progress))


def test_png_to_jpg(png_bytes: bytes) -> None:
    asset = SourceAsset(data=png_bytes, filename="logo.png")

    result = convert(build_request([asset], "jpg", quality=0.9))

    assert result.target is CanonicalFormat.JPG
    assert result.mime_type == "image/jpeg"
    assert result.filename == "logo-converted.jpg"
    with Image.open(io.BytesIO(result.data)) as img:
        assert img.format == "JPEG"
        assert img.size == (32, 16)


def test_each_raster_asset_gets_its_own_output() -> None:
    assets = [
        SourceAsset(data=encode_image(fmt="PNG"), filename="a.png"),
        SourceAsset(data=encode_image(fmt="JPEG"), filename="dir/b.jpeg"),
    ]

    result = convert(build_request(assets, "png"))

    assert result.filenames == ("a-converted.png", "b-converted.png")


def test_images_to_pdf(png_bytes: bytes, jpeg_bytes: bytes) -> None:
    assets = [
        SourceAsset(data=png_bytes, filename="page1.png"),
        SourceAsset(data=jpeg_bytes, filename="page2.jpg"),
        SourceAsset(data=encode_image((2000, 3000), fmt="PNG"), filename="page3.png"),
    ]
    progress = []

    result = _run(
        ConversionOrchestrator(),
        build_request(assets, "pdf", page_size="a4", margin=40, title="Album"),
        lambda current, total: progress.append((current, total)),
    )

    assert result.mime_type == "application/pdf"
    assert result.filename == "page1.pdf"
    reader = PdfReader(io.BytesIO(result.data))
    assert len(reader.pages) == 3
    assert reader.metadata.get("/Title") == "Album"
    assert progress == [(1, 3), (2, 3), (3, 3)]


def test_unnamed_images_to_pdf(png_bytes: bytes) -> None:
    asset = SourceAsset(data=png_bytes, mime_type="image/png")

    result = convert(build_request([asset], "pdf", page_size=PageSize.FIT))

    assert result.filename == "images.pdf"
    page = PdfReader(io.BytesIO(result.data)).pages[0]
    assert (float(page.mediabox.width), float(page.mediabox.height)) == (32, 16)


def test_pdf_to_images_round_trip(png_bytes: bytes) -> None:
    pages = [SourceAsset(data=png_bytes, filename="one.png"), SourceAsset(data=png_bytes, filename="two.png")]
    document = convert(build_request(pages, "pdf"))

    result = convert(build_request([SourceAsset(data=document.data, filename="scan.pdf")], "png"))

    assert result.filenames == ("scan-page-1.png", "scan-page-2.png")
    with Image.open(io.BytesIO(result.files[1].data)) as img:
        assert img.size == (32, 16)


def test_mislabelled_heic_is_converted_locally(heif_bridge, jpeg_bytes: bytes) -> None:
    orchestrator = ConversionOrchestrator(bridge=heif_bridge)
    asset = SourceAsset(data=jpeg_bytes, filename="IMG_0001.HEIC", mime_type="image/heic")

    result = _run(orchestrator, build_request([asset], "png"))
    direct = asyncio.run(Transcoder().transcode(jpeg_bytes, CanonicalFormat.JPG, CanonicalFormat.PNG, 0.9))

    assert result.filename == "IMG_0001-converted.png"
    assert result.data == direct


def test_real_heic_goes_through_external_codec(heif_bridge, heic_bytes: bytes) -> None:
    orchestrator = ConversionOrchestrator(bridge=heif_bridge)
    asset = SourceAsset(data=heic_bytes, filename="photo.heic")

    result = _run(orchestrator, build_request([asset], "jpg"))

    with Image.open(io.BytesIO(result.data)) as img:
        assert img.size == (6, 4)


def test_heic_into_pdf(heif_bridge, heic_bytes: bytes, png_bytes: bytes) -> None:
    orchestrator = ConversionOrchestrator(bridge=heif_bridge)
    assets = [SourceAsset(data=heic_bytes, filename="a.heic"), SourceAsset(data=png_bytes, filename="b.png")]

    result = _run(orchestrator, build_request(assets, "pdf"))

    assert len(PdfReader(io.BytesIO(result.data)).pages) == 2


def test_codec_unavailable(broken_bridge, heic_bytes: bytes) -> None:
    orchestrator = ConversionOrchestrator(bridge=broken_bridge)
    asset = SourceAsset(data=heic_bytes, filename="photo.heic")

    with pytest.raises(CodecUnavailable) as excinfo:
        _run(orchestrator, build_request([asset], "jpg"))

    assert excinfo.value.kind == "codec-unavailable"


def test_oversized_asset_is_rejected_before_decoding(png_bytes: bytes) -> None:
    transcoder = RecordingTranscoder()
    orchestrator = ConversionOrchestrator(ConverterSettings(max_asset_bytes=len(png_bytes) - 1), transcoder=transcoder)
    assets = [SourceAsset(data=png_bytes, filename="big.png")]

    with pytest.raises(SizeLimitExceeded) as excinfo:
        _run(orchestrator, build_request(assets, "jpg"))

    assert excinfo.value.size == len(png_bytes)
    assert excinfo.value.limit == len(png_bytes) - 1
    assert transcoder.decoded == []


def test_size_is_checked_for_every_asset_before_any_decode(png_bytes: bytes) -> None:
    transcoder = RecordingTranscoder()
    settings = ConverterSettings(max_asset_bytes=len(png_bytes))
    orchestrator = ConversionOrchestrator(settings, transcoder=transcoder)
    assets = [
        SourceAsset(data=png_bytes, filename="ok.png"),
        SourceAsset(data=png_bytes + b"\x00", filename="too-big.png"),
    ]

    with pytest.raises(SizeLimitExceeded):
        _run(orchestrator, build_request(assets, "pdf"))

    assert transcoder.decoded == []


def test_asset_at_limit_is_accepted(png_bytes: bytes) -> None:
    orchestrator = ConversionOrchestrator(ConverterSettings(max_asset_bytes=len(png_bytes)))

    result = _run(orchestrator, build_request([SourceAsset(data=png_bytes, filename="x.png")], "jpg"))

    assert result.filename == "x-converted.jpg"


@pytest.mark.parametrize(
    ("asset", "target"),
    [
        (SourceAsset(data=b"abc", filename="notes.txt"), "jpg"),
        (SourceAsset(data=b"abc", mime_type="text/plain"), "png"),
        (SourceAsset(data=b"%PDF-1.7", filename="doc.pdf"), "pdf"),
        (SourceAsset(data=b"abc", filename="a.png"), "gif"),
    ],
)
def test_unsupported_requests(asset: SourceAsset, target: str) -> None:
    transcoder = RecordingTranscoder()

    with pytest.raises(UnsupportedFormat) as excinfo:
        _run(ConversionOrchestrator(transcoder=transcoder), build_request([asset], target))

    assert excinfo.value.kind == "unsupported-format"
    assert transcoder.decoded == []


def test_empty_request() -> None:
    with pytest.raises(NoValidInput):
        convert(build_request([], "pdf"))


def test_failure_aborts_whole_job(png_bytes: bytes) -> None:
    assets = [
        SourceAsset(data=png_bytes, filename="good.png"),
        SourceAsset(data=b"corrupted", filename="bad.png"),
    ]

    with pytest.raises(ConversionError) as excinfo:
        convert(build_request(assets, "pdf"))

    assert excinfo.value.kind == "decode-error"


def test_no_compress_raises_quality_floor(png_bytes: bytes) -> None:
    request = build_request([SourceAsset(data=png_bytes, filename="a.png")], "jpg", quality=0.5, compress=False)

    assert request.effective_quality == 0.95
    assert build_request([SourceAsset(data=png_bytes)], "jpg", quality=0.5).effective_quality == 0.5


def test_build_request_uses_settings() -> None:
    settings = ConverterSettings(default_quality=0.7, margin=12, page_size=PageSize.LETTER)

    request = build_request([], "pdf", settings=settings)

    assert request.quality == 0.7
    assert request.document == DocumentOptions(page_size=PageSize.LETTER, margin=12)


def test_request_rejects_out_of_range_quality() -> None:
    with pytest.raises(ValueError):
        ConversionRequest(assets=(), target=CanonicalFormat.JPG, quality=1.5)


def test_document_options_reject_oversized_margin() -> None:
    with pytest.raises(ValueError):
        DocumentOptions(page_size=PageSize.A4, margin=400)
    assert DocumentOptions(page_size=PageSize.FIT, margin=400).margin == 400
