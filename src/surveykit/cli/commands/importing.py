"""Import command for placing survey files into a project."""

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

from surveykit.config import SurveyKitSettings, get_settings
from surveykit.converters import ConversionProgress, ConversionResult
from surveykit.core import ImportJob, ImportOptions
from surveykit.exceptions import SurveyKitError
from surveykit.services import ProjectSession
from surveykit.utils.logging import get_logger, setup_task_logging

console = Console()
log = get_logger(__name__)


def import_file(
    input_file: Annotated[
        Path,
        typer.Argument(
            help="Survey file to import.",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
            resolve_path=True,
        ),
    ],
    project: Annotated[
        Path,
        typer.Option(
            "--project",
            "-p",
            help="Project directory.",
            file_okay=False,
            dir_okay=True,
            resolve_path=True,
        ),
    ],
    no_copy: Annotated[
        bool,
        typer.Option(
            "--no-copy",
            help="Reference the source file instead of copying it into the project.",
        ),
    ] = False,
    epsg: Annotated[
        int | None,
        typer.Option(
            "--epsg",
            help="EPSG code to use instead of the detected one.",
            min=1,
        ),
    ] = None,
    convert: Annotated[
        bool,
        typer.Option(
            "--convert",
            help="Convert point clouds to 3D Tiles after importing.",
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
    """Import a survey file into a project.

    Examples:
        surveykit import scan.las --project ./site
        surveykit import scan.laz -p ./site --epsg 6677 --convert
        surveykit import model.obj -p ./site --no-copy
    """
    settings = get_settings()
    setup_task_logging(log_dir=settings.log_dir, prefix="import", verbose=verbose)

    options = ImportOptions(copy_to_project=not no_copy, auto_convert=convert, manual_epsg=epsg)
    try:
        job, result = asyncio.run(_run_import(input_file, project, options, settings))
    except SurveyKitError as e:
        log.error("Import failed", error=str(e))
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    _print_job(job)
    if result is not None:
        if not result.success:
            console.print(f"[red]Conversion failed:[/red] {result.error_message}")
            raise typer.Exit(1)
        console.print(f"[green]Tileset:[/green] {result.tileset_path}")


async def _run_import(
    input_file: Path,
    project: Path,
    options: ImportOptions,
    settings: SurveyKitSettings,
) -> tuple[ImportJob, ConversionResult | None]:
    async with ProjectSession(project, settings) as session:
        if session.recovery_needed:
            console.print(
                "[yellow]Warning:[/yellow] the previous session did not close cleanly. "
                "Run `surveykit recover` to restore the newest backup."
            )

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.percentage:>3.0f}%"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task(f"Importing {input_file.name}", total=1.0)
            unlisten = session.importer.job_updates.listen(
                lambda job: progress.update(task, completed=job.progress)
            )

            def _on_conversion(event: ConversionProgress) -> None:
                progress.update(task, description=event.message, completed=event.progress)

            try:
                return await session.import_and_convert(input_file, options, on_progress=_on_conversion)
            finally:
                unlisten()


def _print_job(job: ImportJob) -> None:
    status_style = {"completed": "green", "cancelled": "yellow"}.get(job.status.value, "red")
    console.print(f"[{status_style}]{job.status.value.capitalize()}:[/{status_style}] {job.file_name}")
    console.print(f"  [bold]Output:[/bold] {job.output_path}")
    if job.point_count is not None:
        console.print(f"  [bold]Points:[/bold] {job.point_count:,}")
    if job.geo_reference is not None and job.geo_reference.epsg is not None:
        console.print(
            f"  [bold]EPSG:[/bold] {job.geo_reference.epsg} ({job.geo_reference.detection_method})"
        )
