"""Backup and recover commands."""

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from surveykit.config import get_settings
from surveykit.exceptions import BackupIOError
from surveykit.services import AutoSaveService, RecoveryService
from surveykit.utils.fs import format_size
from surveykit.utils.logging import get_logger, setup_task_logging

console = Console()
log = get_logger(__name__)

ProjectArgument = Annotated[
    Path,
    typer.Argument(
        help="Project directory.",
        exists=True,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
]


def backup(
    project: ProjectArgument,
    list_only: Annotated[
        bool,
        typer.Option(
            "--list",
            "-l",
            help="List existing backup generations instead of writing one.",
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
    """Write a backup generation of the project state files.

    Examples:
        surveykit backup ./site
        surveykit backup ./site --list
    """
    settings = get_settings()
    setup_task_logging(log_dir=settings.log_dir, prefix="backup", verbose=verbose)
    autosave = AutoSaveService.from_config(settings.autosave)

    if not list_only:
        try:
            created = asyncio.run(autosave.create_backup(project))
        except BackupIOError as e:
            log.error("Backup failed", error=str(e))
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1) from e
        if created is None:
            console.print("[yellow]Another backup of this project is in progress.[/yellow]")
            raise typer.Exit(1)
        console.print(f"[green]Backup written:[/green] {created}")

    generations = asyncio.run(autosave.list_backups(project))
    if not generations:
        console.print("[yellow]No backups found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold", title="Backup generations (newest first)")
    table.add_column("Generation", style="cyan")
    table.add_column("Files", justify="right")
    table.add_column("Size", justify="right")
    for generation in generations:
        files = [entry for entry in generation.iterdir() if entry.is_file()]
        size = sum(entry.stat().st_size for entry in files)
        table.add_row(generation.name, str(len(files)), format_size(size))
    console.print(table)


def recover(
    project: ProjectArgument,
    yes: Annotated[
        bool,
        typer.Option(
            "--yes",
            "-y",
            help="Do not ask for confirmation.",
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
    """Restore the project state files from the newest backup.

    Examples:
        surveykit recover ./site
        surveykit recover ./site --yes
    """
    settings = get_settings()
    setup_task_logging(log_dir=settings.log_dir, prefix="recover", verbose=verbose)
    autosave = AutoSaveService.from_config(settings.autosave)
    recovery = RecoveryService()

    if asyncio.run(recovery.check_for_recovery(project)):
        console.print("[yellow]The last session of this project did not close cleanly.[/yellow]")

    if not yes and not typer.confirm("Overwrite the project files with the newest backup?"):
        console.print("Aborted.")
        raise typer.Exit(1)

    try:
        recovered = asyncio.run(autosave.recover_from_backup(project))
    except BackupIOError as e:
        log.error("Recovery failed", error=str(e))
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    if not recovered:
        console.print("[yellow]No backup found; nothing was restored.[/yellow]")
        raise typer.Exit(1)

    asyncio.run(recovery.remove_recovery_marker(project))
    console.print(f"[green]Recovered[/green] {project.name} from the newest backup.")
