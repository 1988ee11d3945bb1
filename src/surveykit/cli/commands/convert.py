"""Convert command for tiling a point cloud."""

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

from surveykit.config import get_settings
from surveykit.converters import (
    ConversionOptions,
    ConversionProgress,
    ConversionResult,
    ConverterLocator,
    PointCloudConverter,
)
from surveykit.core import point_cloud_extensions
from surveykit.utils.logging import get_logger, setup_task_logging

console = Console()
log = get_logger(__name__)


def convert(
    input_file: Annotated[
        Path,
        typer.Argument(
            help="Point cloud file (LAS/LAZ/PLY/E57).",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
            resolve_path=True,
        ),
    ],
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Output directory (a sub-directory named after the file is created).",
            file_okay=False,
            dir_okay=True,
            resolve_path=True,
        ),
    ] = None,
    srs: Annotated[
        int | None,
        typer.Option(
            "--srs",
            help="EPSG code of the input coordinates.",
        ),
    ] = None,
    jobs: Annotated[
        int | None,
        typer.Option(
            "--jobs",
            "-j",
            help="Parallel converter jobs.",
        ),
    ] = None,
    name: Annotated[
        str | None,
        typer.Option(
            "--name",
            help="Name of the tileset directory (defaults to the file name).",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
) -> None:
    """Convert a point cloud to 3D Tiles.

    Examples:
        surveykit convert scan.las
        surveykit convert scan.laz -o ./tiles --srs 6677 --jobs 4
    """
    settings = get_settings()
    setup_task_logging(log_dir=settings.log_dir, prefix="convert", verbose=verbose)

    if input_file.suffix.lower() not in point_cloud_extensions():
        console.print(
            f"[red]Error:[/red] '{input_file.suffix}' is not a point cloud format. "
            f"Supported: {', '.join(point_cloud_extensions())}"
        )
        raise typer.Exit(1)

    try:
        options = ConversionOptions(
            source_crs=srs,
            jobs=jobs if jobs is not None else settings.converter.default_jobs,
            output_name=name,
        )
    except ValidationError as e:
        console.print(f"[red]Error:[/red] Invalid options: {e.errors()[0]['msg']}")
        raise typer.Exit(1) from e

    output_dir = output or Path.cwd() / settings.converter.output_subdir
    converter = PointCloudConverter(
        locator=ConverterLocator(
            python_executable=settings.converter.python_executable,
            binary_name=settings.converter.binary_name,
            converter_path=settings.converter.converter_path,
        )
    )

    log.info("Starting conversion", input_file=str(input_file), output_dir=str(output_dir))
    try:
        result = asyncio.run(_run_conversion(converter, input_file, output_dir, options))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted. Exiting...[/yellow]")
        raise typer.Exit(130) from None
    finally:
        converter.close()

    if not result.success:
        console.print(f"[red]Error:[/red] {result.error_message}")
        raise typer.Exit(1)

    seconds = (result.duration_ms or 0) / 1000
    console.print(f"[green]Converted[/green] {input_file.name} in {seconds:.1f}s")
    console.print(f"  [bold]Tileset:[/bold] {result.tileset_path}")


async def _run_conversion(
    converter: PointCloudConverter,
    input_file: Path,
    output_dir: Path,
    options: ConversionOptions,
) -> ConversionResult:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(f"Converting {input_file.name}", total=1.0)

        def _on_progress(event: ConversionProgress) -> None:
            progress.update(task, description=event.message, completed=event.progress)

        return await converter.convert(input_file, output_dir, options, on_progress=_on_progress)
