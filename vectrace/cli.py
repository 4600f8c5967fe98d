"""
Vectrace CLI - Heuristic raster to SVG vectorization

A command-line interface for converting raster images to SVG and for
inspecting how vectrace classifies them.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Annotated, Optional

import typer
from PIL import Image, UnidentifiedImageError
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from vectrace.errors import ConfigurationError, ResourceExceededError, VectraceError
from vectrace.pipeline import VectorizationPipeline
from vectrace.preprocess import processing_stats
from vectrace.selector import AlgorithmSelector
from vectrace.svg import SvgGenerator
from vectrace.types import CONFIG_PRESETS, RasterImage, VectorizationConfig


# Initialize Typer app and Rich console
app = typer.Typer(
    name="vectrace",
    help="[bold cyan]vectrace[/] - Heuristic raster to SVG vectorization\n\n"
         "Quantizes colors, traces edges and fits curves to turn PNG/JPG "
         "images into compact, editable SVG.",
    rich_markup_mode="rich",
    add_completion=False,
    no_args_is_help=True,
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)

console = Console()
error_console = Console(stderr=True, style="bold red")

SUPPORTED_FORMATS = {".png", ".jpg", ".jpeg", ".bmp", ".tiff", ".tif", ".webp", ".gif"}

STAGE_LABELS = {
    "preprocess-done": "Quantizing colors...",
    "quantize-done": "Detecting edges...",
    "edges-done": "Tracing contours...",
    "vectorize-done": "Writing SVG...",
    "generate-done": "Done",
}


class AlgorithmChoice(str, Enum):
    """Vectorization algorithm."""
    auto = "auto"
    shapes = "shapes"
    photo = "photo"
    lineart = "lineart"


class Smoothing(str, Enum):
    """Contour smoothing level."""
    low = "low"
    medium = "medium"
    high = "high"


def version_callback(value: bool):
    """Show version and exit."""
    if value:
        from vectrace import __version__
        console.print(Panel(
            f"[bold cyan]vectrace[/] version [bold green]{__version__}[/]",
            title="Version Info",
            border_style="cyan",
        ))
        raise typer.Exit()


def setup_logging(verbose: bool):
    """Route library logging through Rich when verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=error_console if not verbose else console, show_path=False)],
        force=True,
    )


def validate_input_file(path: Path) -> Path:
    """Validate that input file exists and is a supported image format."""
    if not path.exists():
        error_console.print(f"Input file not found: [yellow]{path}[/]")
        raise typer.Exit(1)

    if path.suffix.lower() not in SUPPORTED_FORMATS:
        error_console.print(
            f"Unsupported format: [yellow]{path.suffix}[/]\n"
            f"   Supported formats: {', '.join(sorted(SUPPORTED_FORMATS))}"
        )
        raise typer.Exit(1)

    return path


def validate_output_file(path: Path) -> Path:
    """Validate output path."""
    if path.suffix.lower() != ".svg":
        path = path.with_suffix(".svg")
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def load_image(path: Path) -> RasterImage:
    """Decode an image file into a RasterImage."""
    try:
        with Image.open(path) as img:
            return RasterImage.from_pil(img)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        error_console.print(f"Could not read image: {path} ({e})")
        raise typer.Exit(1)


def format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.2f} MB"


@app.command("convert", rich_help_panel="Commands")
def convert(
    input_file: Annotated[
        Path,
        typer.Argument(
            help="Path to input image (PNG, JPG, etc.)",
            show_default=False,
        )
    ],
    output_file: Annotated[
        Optional[Path],
        typer.Argument(
            help="Path for output SVG [dim](default: input_name.svg)[/]",
            show_default=False,
        )
    ] = None,
    algorithm: Annotated[
        Optional[AlgorithmChoice],
        typer.Option(
            "--algorithm", "-a",
            help="Vectorization algorithm [dim](auto detects from image content)[/]",
            rich_help_panel="Vectorization Options",
        )
    ] = None,
    colors: Annotated[
        Optional[int],
        typer.Option(
            "--colors", "-c",
            help="Maximum palette size (2-256)",
            rich_help_panel="Vectorization Options",
        )
    ] = None,
    smoothing: Annotated[
        Optional[Smoothing],
        typer.Option(
            "--smoothing", "-s",
            help="Contour smoothing before curve fitting",
            rich_help_panel="Vectorization Options",
        )
    ] = None,
    simplify: Annotated[
        Optional[float],
        typer.Option(
            "--simplify",
            help="Path simplification multiplier (0.1-10.0)",
            rich_help_panel="Vectorization Options",
        )
    ] = None,
    preset: Annotated[
        Optional[str],
        typer.Option(
            "--preset", "-p",
            help="Start from a named preset [dim](see 'vectrace presets')[/]",
            rich_help_panel="Vectorization Options",
        )
    ] = None,
    no_transparency: Annotated[
        bool,
        typer.Option(
            "--no-transparency",
            help="Flatten transparent areas onto white",
            rich_help_panel="Vectorization Options",
        )
    ] = False,
    precision: Annotated[
        int,
        typer.Option(
            "--precision",
            help="Decimal places in path coordinates",
            min=0,
            max=6,
            rich_help_panel="Output Options",
        )
    ] = 2,
    max_dimension: Annotated[
        int,
        typer.Option(
            "--max-dimension",
            help="Downscale images larger than this (pixels per side)",
            min=16,
            rich_help_panel="Performance Options",
        )
    ] = 1024,
    max_pixels: Annotated[
        Optional[int],
        typer.Option(
            "--max-pixels",
            help="Refuse images with more pixels than this",
            rich_help_panel="Performance Options",
        )
    ] = None,
    seed: Annotated[
        int,
        typer.Option(
            "--seed",
            help="Random seed for K-means palettes",
            rich_help_panel="Performance Options",
        )
    ] = 42,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose", "-v",
            help="Show detailed progress information",
        )
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            help="Suppress all output except errors",
        )
    ] = False,
    force: Annotated[
        bool,
        typer.Option(
            "--force", "-f",
            help="Overwrite output file if it exists",
        )
    ] = False,
):
    """
    Convert an image to SVG.

    [bold]Examples:[/]

      [dim]# Basic conversion (auto-detects the algorithm)[/]
      $ vectrace convert logo.png

      [dim]# Specify output path and palette size[/]
      $ vectrace convert photo.jpg output.svg -a photo -c 32

      [dim]# Start from a preset[/]
      $ vectrace convert sketch.png -p sketch
    """
    setup_logging(verbose)
    input_path = validate_input_file(input_file)

    if output_file is None:
        output_file = input_path.with_suffix(".svg")
    output_path = validate_output_file(output_file)

    if output_path.exists() and not force:
        if quiet:
            error_console.print(f"Output file {output_path} exists; use --force to overwrite")
            raise typer.Exit(1)
        overwrite = typer.confirm(
            f"Output file {output_path} already exists. Overwrite?",
            default=False
        )
        if not overwrite:
            console.print("[yellow]Operation cancelled.[/]")
            raise typer.Exit(0)

    overrides = {
        "color_count": colors,
        "smoothing_level": smoothing.value if smoothing else None,
        "path_simplification": simplify,
        "algorithm": algorithm.value if algorithm else None,
    }
    if no_transparency:
        overrides["preserve_transparency"] = False

    try:
        if preset:
            config = VectorizationConfig.from_preset(preset, **overrides)
        else:
            config = VectorizationConfig(**{k: v for k, v in overrides.items() if v is not None})
        pipeline = VectorizationPipeline(
            config, seed=seed, max_dimension=max_dimension,
            svg_options={"precision": precision},
        )
    except ConfigurationError as e:
        for message in e.errors:
            error_console.print(message)
        raise typer.Exit(1)

    image = load_image(input_path)
    stats = processing_stats(image)

    try:
        if max_pixels is not None and stats["pixel_count"] > max_pixels:
            raise ResourceExceededError(
                f"Image has {stats['pixel_count']} pixels, limit is {max_pixels}",
                limit=max_pixels, actual=stats["pixel_count"],
            )

        if quiet:
            result = pipeline.run(image, original_size=input_path.stat().st_size)
        else:
            with console.status("[bold cyan]Preparing image...") as status:
                def progress(stage: str):
                    status.update(f"[bold cyan]{STAGE_LABELS.get(stage, stage)}")

                result = pipeline.run(image, progress=progress, original_size=input_path.stat().st_size)
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user.[/]")
        raise typer.Exit(130)
    except VectraceError as e:
        error_console.print(f"Conversion failed: {e}")
        if verbose:
            console.print_exception()
        raise typer.Exit(1)

    output_path.write_text(result.svg_content, encoding="utf-8")
    validation = SvgGenerator.validate_svg(result.svg_content)

    if quiet:
        return

    table = Table(title="Conversion Results", box=box.ROUNDED, border_style="green")
    table.add_column("Metric", style="cyan bold")
    table.add_column("Value", style="white")
    table.add_row("Algorithm", result.algorithm.value if result.algorithm else "-")
    table.add_row("Dimensions", f"{image.width} × {image.height}")
    table.add_row("Paths", str(result.path_count))
    table.add_row("Colors", str(result.color_count))
    table.add_row("Original Size", format_bytes(result.original_size))
    table.add_row("SVG Size", format_bytes(result.vector_size))
    table.add_row("Compression", f"{result.compression_ratio:.1f}x")
    table.add_row("Time", f"{result.processing_time_ms:.0f} ms")
    console.print(table)

    if result.is_empty:
        console.print("[yellow]No paths were traced. Try another --algorithm or more --colors.[/]")
    if not validation.is_valid:
        for message in validation.errors:
            error_console.print(f"SVG validation: {message}")
    console.print(f"[green]Saved:[/] {output_path}")


@app.command("analyze", rich_help_panel="Commands")
def analyze(
    input_file: Annotated[
        Path,
        typer.Argument(
            help="Path to image file to analyze",
        )
    ],
):
    """
    Show how vectrace classifies an image.

    Prints the measured characteristics, the recommended algorithm and the
    ranked alternatives.
    """
    path = validate_input_file(input_file)
    image = load_image(path)
    recommendation = AlgorithmSelector().get_algorithm_recommendations(image)
    analysis = recommendation.analysis

    table = Table(title=f"{path.name}", box=box.ROUNDED, border_style="cyan")
    table.add_column("Property", style="cyan bold")
    table.add_column("Value", style="white")
    table.add_row("Dimensions", f"{image.width} × {image.height} pixels")
    table.add_row("Unique Colors", str(analysis.unique_colors))
    table.add_row("Dominant Color", f"{analysis.dominant_color_ratio:.1%}")
    table.add_row("Monochromatic", f"{analysis.monochromatic_ratio:.1%}")
    table.add_row("Edge Density", f"{analysis.edge_density:.3f}")
    table.add_row("Sharp Edges", f"{analysis.sharp_edge_ratio:.1%}")
    table.add_row("Contrast", f"{analysis.contrast_level:.2f}")
    table.add_row("Transparency", "yes" if analysis.has_transparency else "no")
    console.print(table)

    rec_table = Table(title="Recommendations", box=box.ROUNDED, border_style="yellow")
    rec_table.add_column("Algorithm", style="yellow bold")
    rec_table.add_column("Confidence")
    rec_table.add_column("Reason", style="white")
    rec_table.add_row(f"[green]{recommendation.recommended.value}[/]",
                      f"{recommendation.confidence:.0%}", "Recommended")
    for alternative in recommendation.alternatives:
        rec_table.add_row(alternative.algorithm.value, f"{alternative.confidence:.0%}", alternative.reason)
    console.print(rec_table)

    console.print(Panel(
        f"[dim]$[/] [bold]vectrace convert[/] {path} [cyan]-a {recommendation.recommended.value}[/]",
        title="Suggested Command",
        border_style="dim",
    ))


@app.command("presets", rich_help_panel="Commands")
def presets():
    """List the built-in configuration presets."""
    table = Table(title="Presets", box=box.ROUNDED, border_style="cyan")
    table.add_column("Name", style="cyan bold")
    table.add_column("Algorithm")
    table.add_column("Colors", justify="right")
    table.add_column("Smoothing")
    table.add_column("Simplify", justify="right")
    for name, values in CONFIG_PRESETS.items():
        table.add_row(
            name,
            values["algorithm"],
            str(values["color_count"]),
            values["smoothing_level"],
            f"{values['path_simplification']:g}",
        )
    console.print(table)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version", "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        )
    ] = None,
):
    """
    [bold cyan]vectrace[/] - Heuristic raster to SVG vectorization

    [bold]Quick Start:[/]

      [dim]# Convert an image to SVG[/]
      $ vectrace convert image.png

      [dim]# See which algorithm would be used[/]
      $ vectrace analyze image.png
    """


def run():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    app()
