"""Command-line interface for dash2gps."""

import sys
from pathlib import Path
from typing import Optional, TextIO

import click
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from dash2gps import __version__
from dash2gps.config.schemas import Dash2GpsConfig, load_config
from dash2gps.core.coordinate_parser import CoordinateParser
from dash2gps.core.emitter import FailureAction, format_coordinate
from dash2gps.core.errors import (
    InvalidConfiguration,
    ParseFailure,
    PipelineAborted,
    SourceUnavailable,
)
from dash2gps.core.frame_fetcher import VideoInfo
from dash2gps.core.ocr_worker import available_engines, get_engines_info
from dash2gps.core.pipeline import ExtractionSummary, GpsExtractor
from dash2gps.core.sampler import sample_count
from dash2gps.utils.logging_config import setup_logging

# stdout carries coordinate lines only
console = Console(stderr=True)

FAILURE_ACTIONS = [action.value for action in FailureAction]


def print_banner():
    """Print application banner."""
    console.print(
        f"[bold blue]dash2gps - Dashcam GPS Extractor[/bold blue] v{__version__}",
        highlight=False,
    )
    console.print()


def fail(message: str) -> None:
    """Print an error and exit non-zero."""
    console.print(f"[red]Error:[/red] {message}")
    sys.exit(1)


def video_info_table(info: VideoInfo, title: str = "Video Information") -> Table:
    table = Table(title=title, show_header=False)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("File", Path(info.path).name)
    table.add_row("Resolution", f"{info.width}x{info.height}")
    table.add_row("Duration", f"{info.duration_seconds:.1f}s")
    table.add_row("Frame Rate", f"{info.fps:.2f} fps")
    table.add_row("Total Frames", str(info.frame_count))
    return table


def summary_table(summary: ExtractionSummary) -> Table:
    table = Table(title="Extraction Summary", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Samples", str(summary.samples))
    table.add_row("Coordinates", str(summary.emitted))
    table.add_row("Fetch Failures", str(summary.fetch_failures))
    table.add_row("Parse Failures", str(summary.parse_failures))
    if summary.samples:
        table.add_row("Success Rate", f"{summary.emitted / summary.samples:.1%}")
    table.add_row("Elapsed", f"{summary.elapsed_seconds:.1f}s")
    return table


@click.group()
@click.version_option(version=__version__)
def main():
    """dash2gps - Extract the GPS track burned into dashcam video.

    Coordinates are extracted with the extract subcommand:

    \b
        dash2gps extract VIDEO --interval 10 --threads 4 > track.csv
    """
    pass


@main.command()
@click.argument("video_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write coordinates to this file instead of stdout",
)
@click.option(
    "--interval",
    type=float,
    default=None,
    help="Seconds between samples (default: 10)",
)
@click.option(
    "--threads",
    type=int,
    default=None,
    help="Number of worker threads (default: 4)",
)
@click.option(
    "--crop",
    type=str,
    default=None,
    help='Overlay region "left top right bottom" as fractions or percentages '
    '(default: "0 0.9 1 1")',
)
@click.option(
    "--engine",
    type=click.Choice(available_engines()),
    default=None,
    help="OCR engine to use (default: tesseract)",
)
@click.option(
    "--language",
    "-l",
    multiple=True,
    help="OCR language code (can be specified multiple times)",
)
@click.option(
    "--precision",
    type=int,
    default=None,
    help="Decimal places in the output (default: 6)",
)
@click.option(
    "--on-fetch-error",
    type=click.Choice(FAILURE_ACTIONS),
    default=None,
    help="What to do when a frame cannot be decoded or read (default: warn)",
)
@click.option(
    "--on-parse-error",
    type=click.Choice(FAILURE_ACTIONS),
    default=None,
    help="What to do when the overlay text is not a coordinate (default: warn)",
)
@click.option(
    "--preprocess/--no-preprocess",
    default=None,
    help="Binarize and upscale the overlay before OCR (default: enabled)",
)
@click.option(
    "--invert/--no-invert",
    default=None,
    help="Invert the overlay before OCR, for light text on dark footage",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML configuration file",
)
@click.option(
    "--progress/--no-progress",
    default=True,
    help="Show a progress bar on stderr",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output",
)
def extract(
    video_path: Path,
    output: Optional[Path],
    interval: Optional[float],
    threads: Optional[int],
    crop: Optional[str],
    engine: Optional[str],
    language: tuple,
    precision: Optional[int],
    on_fetch_error: Optional[str],
    on_parse_error: Optional[str],
    preprocess: Optional[bool],
    invert: Optional[bool],
    config_path: Optional[Path],
    progress: bool,
    verbose: bool,
):
    """Extract GPS coordinates from a dashcam video.

    VIDEO_PATH is the path to the video file to process. One
    "latitude,longitude" line is written per sample whose overlay could be
    read, in timestamp order.
    """
    print_banner()

    try:
        config = load_config(config_path).merge_with(
            {
                "sampling": {"interval": interval},
                "frame": {"crop": crop, "preprocess": preprocess, "invert": invert},
                "ocr": {"engine": engine, "languages": list(language) or None},
                "workers": {"threads": threads},
                "output": {
                    "precision": precision,
                    "on_fetch_failure": on_fetch_error,
                    "on_parse_failure": on_parse_error,
                },
            }
        )
        config.validate()
    except InvalidConfiguration as e:
        fail(str(e))

    setup_logging(
        level="DEBUG" if verbose else config.logging.level,
        log_file=config.logging.file,
        rich_formatting=config.logging.rich_formatting,
    )

    extractor = GpsExtractor(config)

    try:
        video_info = extractor.probe(video_path)
    except SourceUnavailable as e:
        fail(str(e))

    console.print(video_info_table(video_info))
    console.print()

    total = sample_count(video_info.duration_seconds, config.sampling.interval)
    console.print(
        f"[cyan]Sampling every {config.sampling.interval:g}s with "
        f"{config.workers.threads} workers ({config.ocr.engine})[/cyan]"
    )

    sink: TextIO
    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        sink = open(output, "w", encoding="utf-8", newline="\n")
    else:
        sink = click.get_text_stream("stdout")

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            console=console,
            disable=not progress,
        ) as progress_bar:
            ocr_task = progress_bar.add_task("[cyan]Reading overlay...", total=total)

            def update_progress(completed: int, _total: int):
                progress_bar.update(ocr_task, completed=completed)

            extractor.progress_callback = update_progress
            summary = extractor.run(video_path, sink, video_info=video_info)
    except (InvalidConfiguration, SourceUnavailable, PipelineAborted) as e:
        fail(str(e))
    finally:
        if output is not None:
            sink.close()

    console.print()
    console.print(summary_table(summary))

    if output is not None:
        console.print(f"[bold]Output saved to:[/bold] {output}")


@main.command()
@click.argument("video_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def info(video_path: Path):
    """Display information about a video file."""
    print_banner()

    try:
        video_info = GpsExtractor(Dash2GpsConfig()).probe(video_path)
    except SourceUnavailable as e:
        fail(str(e))

    console.print(video_info_table(video_info))
    console.print()
    console.print("[bold]Samples per interval:[/bold]")

    for seconds in [1.0, 5.0, 10.0, 30.0]:
        samples = sample_count(video_info.duration_seconds, seconds)
        console.print(f"  Every {seconds:g}s: {samples} samples")


@main.command()
def engines():
    """List available OCR engines."""
    print_banner()

    console.print("[bold]OCR Engines:[/bold]")
    console.print()

    for engine_info in get_engines_info():
        if engine_info.installed:
            console.print(
                f"  [green]✓[/green] {engine_info.name} - {engine_info.description}"
            )
        else:
            console.print(
                f"  [yellow]○[/yellow] {engine_info.name} (not installed) - "
                f"{engine_info.description}"
            )


@main.command()
@click.argument("text_file", type=click.File("r", encoding="utf-8"), default="-")
@click.option(
    "--precision",
    type=click.IntRange(0, 15),
    default=6,
    help="Decimal places in the output (default: 6)",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Report lines that could not be parsed",
)
def parse(text_file: TextIO, precision: int, verbose: bool):
    """Parse overlay text lines (e.g. saved OCR output) into coordinates.

    TEXT_FILE holds one overlay reading per line; "-" reads stdin.
    """
    parser = CoordinateParser()
    parsed = 0
    failed = 0

    for line_number, line in enumerate(text_file, start=1):
        if not line.strip():
            continue
        try:
            coordinate = parser.parse(line, index=line_number)
        except ParseFailure as e:
            failed += 1
            if verbose:
                console.print(f"[yellow]Line {line_number}:[/yellow] {e.reason}")
            continue

        click.echo(format_coordinate(coordinate, precision))
        parsed += 1

    console.print(f"[green]Parsed {parsed} coordinates[/green] ({failed} lines skipped)")


if __name__ == "__main__":
    main()
