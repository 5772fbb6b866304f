"""
Command-line interface for imageconvx.
"""

import os
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table

from imageconvx import __version__
from imageconvx.config import ConverterSettings
from imageconvx.exceptions import ConversionError, guidance
from imageconvx.formats import FormatRegistry
from imageconvx.orchestrator import ConversionOrchestrator, build_request, convert
from imageconvx.types import PageSize, SourceAsset
from imageconvx.utils import configure_logging, format_file_size

console = Console()

RASTER_TARGETS = ["jpg", "png", "webp"]


def _load_asset(path: str) -> SourceAsset:
    return SourceAsset(data=Path(path).read_bytes(), filename=os.path.basename(path))


def _write_outputs(result, output_dir: str) -> list:
    target_dir = Path(output_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for item in result.files:
        destination = target_dir / item.filename
        destination.write_bytes(item.data)
        written.append(destination)
    return written


def _fail(error: Exception) -> None:
    if isinstance(error, ConversionError):
        console.print(f"\n[bold red]✗ {error.kind}:[/bold red] {error.message}")
        hint = guidance(error)
        if hint:
            console.print(f"[dim]{hint}[/dim]")
    else:
        console.print(f"\n[bold red]✗ Error:[/bold red] {error}")
    sys.exit(1)


def _run(ctx: click.Context, request, description: str):
    orchestrator: ConversionOrchestrator = ctx.obj["orchestrator"]
    total = max(len(request.assets), 1)
    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task = progress.add_task(description, total=total)

        def update_progress(current, count):
            progress.update(task, completed=current, total=count)

        return convert(request, orchestrator=orchestrator, progress_callback=update_progress)


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, verbose):
    """
    imageconvx - Convert HEIC, WebP, PNG and JPG images and build PDFs.
    """
    try:
        settings = ConverterSettings.from_env()
    except ValueError as e:
        console.print(f"[bold red]✗ Configuration error:[/bold red] {e}")
        sys.exit(2)
    configure_logging("DEBUG" if verbose else settings.log_level)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["orchestrator"] = ConversionOrchestrator(settings)


@cli.command(name="convert")
@click.argument('input_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--to', '-t', 'target', required=True, type=click.Choice(RASTER_TARGETS, case_sensitive=False),
              help='Target image format')
@click.option('--quality', '-q', type=click.FloatRange(0.0, 1.0), default=None,
              help='Encoder quality between 0 and 1')
@click.option('--no-compress', is_flag=True, help='Favour quality over size (quality >= 0.95)')
@click.option('--output-dir', '-o', default='./output', type=click.Path(file_okay=False),
              help='Output directory')
@click.pass_context
def convert_image(ctx, input_file, target, quality, no_compress, output_dir):
    """
    Convert a single image to JPG, PNG or WebP.

    Examples:

        imageconvx convert photo.heic --to jpg

        imageconvx convert logo.webp -t png -o converted
    """
    try:
        request = build_request(
            [_load_asset(input_file)],
            target,
            settings=ctx.obj["settings"],
            quality=quality,
            compress=not no_compress,
        )
        result = _run(ctx, request, "Converting image")
        written = _write_outputs(result, output_dir)
    except (ConversionError, ValueError, OSError) as e:
        _fail(e)

    for path in written:
        console.print(
            f"[bold green]✓ Saved[/bold green] {path} [dim]({format_file_size(path.stat().st_size)})[/dim]"
        )


@cli.command(name="to-pdf")
@click.argument('input_files', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--page-size', '-s', type=click.Choice(['a4', 'letter', 'fit'], case_sensitive=False),
              default=None, help='Page size (fit = page matches each image)')
@click.option('--margin', '-m', type=click.FloatRange(min=0.0), default=None,
              help='Margin in points for fixed page sizes')
@click.option('--quality', '-q', type=click.FloatRange(0.0, 1.0), default=None,
              help='JPEG quality of embedded images')
@click.option('--title', help='PDF title metadata')
@click.option('--output', '-o', 'output_file', default=None, type=click.Path(dir_okay=False),
              help='Output PDF path')
@click.pass_context
def images_to_pdf(ctx, input_files, page_size, margin, quality, title, output_file):
    """
    Combine images into a single multi-page PDF, in the given order.

    Examples:

        imageconvx to-pdf scan1.jpg scan2.png

        imageconvx to-pdf *.heic --page-size fit -o album.pdf
    """
    settings = ctx.obj["settings"]
    try:
        request = build_request(
            [_load_asset(path) for path in input_files],
            "pdf",
            settings=settings,
            quality=quality,
            page_size=PageSize.parse(page_size) if page_size else settings.page_size,
            margin=settings.margin if margin is None else margin,
            title=title,
        )
        result = _run(ctx, request, "Building PDF")
        destination = Path(output_file) if output_file else Path('./output') / result.filename
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(result.data)
    except (ConversionError, ValueError, OSError) as e:
        _fail(e)

    console.print(
        f"[bold green]✓ PDF generated[/bold green] {destination} "
        f"[dim]({len(input_files)} pages, {format_file_size(destination.stat().st_size)})[/dim]"
    )


@cli.command(name="pdf-to-images")
@click.argument('input_pdf', type=click.Path(exists=True, dir_okay=False))
@click.option('--to', '-t', 'target', default='jpg', type=click.Choice(RASTER_TARGETS, case_sensitive=False),
              help='Image format for exported pages')
@click.option('--quality', '-q', type=click.FloatRange(0.0, 1.0), default=None,
              help='Encoder quality between 0 and 1')
@click.option('--output-dir', '-o', default='./output', type=click.Path(file_okay=False),
              help='Output directory')
@click.pass_context
def pdf_to_images(ctx, input_pdf, target, quality, output_dir):
    """
    Export the page images of a PDF.

    Only pages that embed an image (such as PDFs built with to-pdf) can be exported.

    Example:

        imageconvx pdf-to-images album.pdf --to png
    """
    try:
        request = build_request([_load_asset(input_pdf)], target, settings=ctx.obj["settings"], quality=quality)
        result = _run(ctx, request, "Exporting pages")
        written = _write_outputs(result, output_dir)
    except (ConversionError, ValueError, OSError) as e:
        _fail(e)

    console.print(f"[bold green]✓ Exported {len(written)} page(s)[/bold green]")
    for path in written[:5]:
        console.print(f"  • {path.name}")
    if len(written) > 5:
        console.print(f"  ... and {len(written) - 5} more")


@cli.command(name="formats")
def show_formats():
    """
    Display supported source and target formats.
    """
    registry = FormatRegistry()
    table = Table(title="Supported Conversions")
    table.add_column("Source", style="cyan", no_wrap=True)
    table.add_column("Targets", style="green")
    table.add_column("Decoder", style="magenta")

    targets = registry.supported_targets()
    for source in registry.supported_sources():
        allowed = [t.value for t in targets if registry.is_allowed_pair(source, t)]
        resource = registry.codec_resource(source)
        decoder = f"external ({resource})" if resource else "built-in"
        table.add_row(source.value, ", ".join(allowed), decoder)

    console.print()
    console.print(table)
    console.print()


if __name__ == '__main__':
    cli()
