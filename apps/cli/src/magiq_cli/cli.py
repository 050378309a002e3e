"""CLIs for converting image directories to WebP."""

from __future__ import annotations

import logging
import random
import sys
import threading
from pathlib import Path
from typing import Any, Callable

import click

from magiq_converter import (
    BatchItem,
    BatchSummary,
    Converter,
    ConverterConfig,
    Outcome,
    convert_file,
    run_batch,
    summarize,
)
from magiq_shared.files import find_images, webp_name

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 4


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def conversion_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by convert-dir and batch-convert."""
    options = [
        click.option("--quality", type=int, default=None, help="WebP quality 1-100 (default: DEFAULT_QUALITY or 80)"),
        click.option("--lossless", is_flag=True, help="Use lossless mode (default: DEFAULT_LOSSLESS)"),
        click.option("--width", type=int, default=None, help="Resize width in px"),
        click.option("--height", type=int, default=None, help="Resize height in px"),
        click.option("--fit", default=None, help="cover|contain|fill|inside|outside (default: cover)"),
        click.option("--concurrency", type=int, default=DEFAULT_CONCURRENCY, show_default=True,
                     help="Parallel workers"),
        click.option("--force", is_flag=True, help="Overwrite existing .webp files"),
        click.option("--strip-metadata", "--stripMetadata", "strip_metadata", is_flag=True,
                     help="Strip metadata (default: STRIP_METADATA)"),
        click.option("-v", "--verbose", is_flag=True, help="Debug logging"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_raw_options(
    quality: int | None,
    lossless: bool,
    width: int | None,
    height: int | None,
    fit: str | None,
    strip_metadata: bool,
) -> dict[str, Any]:
    """Only flags the user actually set; everything else uses configured defaults."""
    raw: dict[str, Any] = {}
    if quality is not None:
        raw["quality"] = quality
    if lossless:
        raw["lossless"] = True
    if width is not None:
        raw["width"] = width
    if height is not None:
        raw["height"] = height
    if fit is not None:
        raw["fit"] = fit
    if strip_metadata:
        raw["strip_metadata"] = True
    return raw


def build_converter() -> Converter:
    return Converter(ConverterConfig.load())


def check_directory(path: Path) -> Path:
    """Resolve path or exit with status 1 if it is not an existing directory."""
    resolved = path.resolve()
    if not resolved.exists():
        click.echo(f"Error: Source directory {path} does not exist", err=True)
        sys.exit(1)
    if not resolved.is_dir():
        click.echo(f"Error: {path} is not a directory", err=True)
        sys.exit(1)
    return resolved


def _relative(path: Path | None, root: Path) -> str:
    if path is None:
        return "?"
    try:
        return str(path.relative_to(root))
    except ValueError:
        return str(path)


def convert_tree(
    sources: list[Path],
    source_root: Path,
    output_root: Path,
    destination_for: Callable[[Path], Path],
    raw_options: dict[str, Any],
    concurrency: int,
    force: bool,
    converter: Converter | None = None,
) -> BatchSummary:
    """Convert sources on the worker pool, printing one line per item."""
    converter = converter or build_converter()
    echo_lock = threading.Lock()

    def convert_one(source: Path) -> BatchItem:
        return convert_file(converter, source, destination_for(source), raw_options, force)

    def report(item: BatchItem) -> None:
        rel_src = _relative(item.source, source_root)
        with echo_lock:
            if item.outcome is Outcome.FAILED:
                click.echo(f"FAIL {rel_src}: {item.reason}", err=True)
            else:
                label = "OK  " if item.outcome is Outcome.CONVERTED else "SKIP"
                click.echo(f"{label} {rel_src} -> {_relative(item.destination, output_root)}")

    items = run_batch(sources, max(1, concurrency), convert_one, on_item=report)
    summary = summarize(items)
    click.echo("")
    click.echo(
        f"Done. Converted: {summary.converted}, Skipped: {summary.skipped}, Failed: {summary.failed}"
    )
    return summary


@click.command(name="convert-dir")
@click.argument("directory", type=click.Path(path_type=Path))
@conversion_options
def convert_dir(directory: Path, quality: int | None, lossless: bool, width: int | None,
                height: int | None, fit: str | None, concurrency: int, force: bool,
                strip_metadata: bool, verbose: bool) -> None:
    """Convert every JPG/PNG under DIRECTORY to a .webp file beside it."""
    setup_logging(verbose)
    root = check_directory(directory)

    files = find_images(root)
    click.echo(f"Found {len(files)} images under {directory}")

    raw_options = build_raw_options(quality, lossless, width, height, fit, strip_metadata)
    convert_tree(
        files,
        source_root=root,
        output_root=root,
        destination_for=lambda src: src.with_name(webp_name(src)),
        raw_options=raw_options,
        concurrency=concurrency,
        force=force,
    )


@click.command(name="batch-convert")
@click.argument("source", type=click.Path(path_type=Path))
@click.option("--output", type=click.Path(path_type=Path), default=None,
              help="Output directory (default: <source>-output next to the source)")
@click.option("--limit", type=int, default=None, help="Randomly select and convert only N images")
@conversion_options
def batch_convert(source: Path, output: Path | None, limit: int | None, quality: int | None,
                  lossless: bool, width: int | None, height: int | None, fit: str | None,
                  concurrency: int, force: bool, strip_metadata: bool, verbose: bool) -> None:
    """
    Convert every JPG/PNG under SOURCE into an output directory, keeping
    the folder structure.
    """
    setup_logging(verbose)
    source_root = check_directory(source)

    if output is not None:
        output_root = output.resolve()
    else:
        output_root = source_root.parent / f"{source_root.name}-output"
    output_root.mkdir(parents=True, exist_ok=True)

    click.echo(f"Source:  {source_root}")
    click.echo(f"Output:  {output_root}")
    click.echo("")

    files = find_images(source_root)
    click.echo(f"Found {len(files)} images in source directory")

    if limit is not None:
        limit = max(1, limit)
        if limit < len(files):
            files = sorted(random.sample(files, limit))
            click.echo(f"Randomly selected {limit} images to convert")
    click.echo("")

    def destination_for(src: Path) -> Path:
        relative = src.relative_to(source_root)
        return output_root / relative.parent / webp_name(relative)

    raw_options = build_raw_options(quality, lossless, width, height, fit, strip_metadata)
    convert_tree(
        files,
        source_root=source_root,
        output_root=output_root,
        destination_for=destination_for,
        raw_options=raw_options,
        concurrency=concurrency,
        force=force,
    )


def convert_dir_main() -> None:
    convert_dir()


def batch_convert_main() -> None:
    batch_convert()


if __name__ == "__main__":
    convert_dir_main()
