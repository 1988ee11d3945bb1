"""Main CLI application using Typer."""

from typing import Annotated

import typer
from rich.console import Console

from surveykit import __version__
from surveykit.cli.commands.analyze import analyze
from surveykit.cli.commands.backup import backup, recover
from surveykit.cli.commands.convert import convert
from surveykit.cli.commands.importing import import_file

# Create main Typer app
app = typer.Typer(
    name="surveykit",
    help="Ingest 3D survey data, convert point clouds to 3D Tiles and manage project backups.",
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)

console = Console()

# Register commands
app.command(name="analyze", help="Show geo reference and header details of a survey file.")(analyze)
app.command(name="import", help="Import a survey file into a project.")(import_file)
app.command(name="convert", help="Convert a point cloud to 3D Tiles.")(convert)
app.command(name="backup", help="Write a backup generation of a project.")(backup)
app.command(name="recover", help="Restore a project from its newest backup.")(recover)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]SurveyKit[/bold blue] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """SurveyKit - 3D survey data ingestion toolkit.

    Analyze point cloud and mesh headers, import files into a project
    workspace, tile point clouds with py3dtiles and keep rotating backups.
    """
    pass


if __name__ == "__main__":
    app()
