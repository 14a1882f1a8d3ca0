"""New command for indexrunner CLI."""

from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.prompt import Confirm

from indexrunner.compiler.job_loader import render_xml_config
from indexrunner.kernel.domain.index_config import DirectorySourceSpec, IndexConfig

console = Console()


def new(
    index_file: Annotated[
        Path,
        typer.Argument(help="Index configuration file to create (.xml)", dir_okay=False),
    ],
    index_path: Annotated[
        str,
        typer.Option("--index-path", "-p", help="Directory the index is written to"),
    ],
    sources: Annotated[
        list[str],
        typer.Option("--source", "-s", help="Directory to index (repeatable)"),
    ],
    recursive: Annotated[
        bool,
        typer.Option("--recursive/--no-recursive", help="Descend into subdirectories"),
    ] = True,
    include: Annotated[
        str | None,
        typer.Option("--include", "-i", help="File name wildcards, separated by ';'"),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing file"),
    ] = False,
) -> None:
    """Create a basic XML index configuration.

    Examples
    --------
    indexrunner new project.xml --index-path indexes/project --source src --include "*.py"
    """
    if index_file.suffix.lower() != ".xml":
        console.print(f"[red]✗ Index configuration must be an .xml file:[/red] {index_file}")
        raise typer.Exit(2)

    if (
        index_file.exists()
        and not force
        and not Confirm.ask(f"[yellow]{index_file} already exists. Overwrite?[/yellow]")
    ):
        console.print("[red]Cancelled.[/red]")
        raise typer.Exit(1)

    try:
        config = IndexConfig(
            path=index_path,
            sources=[
                DirectorySourceSpec(directory=source, recursive=recursive, include=include)
                for source in sources
            ],
        )
    except PydanticValidationError as e:
        console.print(f"[red]✗ Invalid index configuration:[/red] {e}")
        raise typer.Exit(2) from e

    index_file.parent.mkdir(parents=True, exist_ok=True)
    index_file.write_text(render_xml_config(config), encoding="utf-8")
    console.print(f"[green]✓[/green] Created {index_file}")
    console.print(f"\nBuild it with: [bold]indexrunner build {index_file}[/bold]")
