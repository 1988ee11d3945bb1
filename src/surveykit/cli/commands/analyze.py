"""Analyze command for inspecting survey file headers."""

import asyncio
import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from surveykit.analysis import FileAnalyzer, GeoReference, PointCloudFileInfo
from surveykit.config import get_settings
from surveykit.core import ImportFormat, all_extensions
from surveykit.utils.logging import get_logger, setup_task_logging

console = Console()
log = get_logger(__name__)


def analyze(
    input_file: Annotated[
        Path,
        typer.Argument(
            help="Survey file to analyze.",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
            resolve_path=True,
        ),
    ],
    as_json: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Print the result as JSON.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
) -> None:
    """Analyze a survey file without importing it.

    Examples:
        surveykit analyze scan.las
        surveykit analyze model.obj --json
    """
    settings = get_settings()
    setup_task_logging(log_dir=settings.log_dir, prefix="analyze", verbose=verbose)

    import_format = ImportFormat.from_path(input_file)
    if import_format is None:
        console.print(
            f"[red]Error:[/red] Unsupported format '{input_file.suffix}'. "
            f"Supported: {', '.join(all_extensions())}"
        )
        raise typer.Exit(1)

    analyzer = FileAnalyzer()
    info: PointCloudFileInfo | None = None
    if import_format.is_point_cloud:
        info = asyncio.run(analyzer.analyze_point_cloud_file(input_file))
        geo_reference = info.geo_reference if info else None
    else:
        geo_reference = asyncio.run(analyzer.analyze_file(input_file))
    log.info("File analyzed", file=str(input_file), format=import_format.value)

    if as_json:
        data = {
            "file": str(input_file),
            "format": import_format.value,
            "point_count": info.point_count if info else None,
            "format_version": info.format_version if info else None,
            "geo_reference": geo_reference.to_dict() if geo_reference else None,
        }
        typer.echo(json.dumps(data, indent=2))
        return

    table = Table(show_header=True, header_style="bold", title=input_file.name)
    table.add_column("Property", style="cyan")
    table.add_column("Value")
    table.add_row("Format", f"{import_format.display_name} ({import_format.category.display_name})")
    if info is not None:
        table.add_row("Version", info.format_version or "-")
        table.add_row("Size", info.file_size_display)
        table.add_row("Points", info.point_count_display)
        if info.point_data_format is not None:
            table.add_row("Point Data Format", str(info.point_data_format))
        table.add_row("Color", _yes_no(info.has_color))
        table.add_row("Intensity", _yes_no(info.has_intensity))
        table.add_row("Classification", _yes_no(info.has_classification))
    _add_geo_rows(table, geo_reference)
    console.print(table)


def _add_geo_rows(table: Table, geo_reference: GeoReference | None) -> None:
    if geo_reference is None:
        table.add_row("Geo Reference", "[yellow]not found[/yellow]")
        return
    table.add_row("Detection", geo_reference.detection_method)
    table.add_row("EPSG", str(geo_reference.epsg) if geo_reference.epsg is not None else "-")
    if geo_reference.origin is not None:
        origin = geo_reference.origin
        table.add_row("Origin", f"{origin.x:.3f}, {origin.y:.3f}, {origin.z:.3f}")
    if geo_reference.bounding_box is not None:
        box = geo_reference.bounding_box
        table.add_row(
            "Extent",
            f"{box.width:.3f} x {box.height:.3f} x {box.depth:.3f}",
        )


def _yes_no(value: bool) -> str:
    return "[green]yes[/green]" if value else "no"
