"""indexrunner CLI - Main entrypoint."""

import typer
from rich.console import Console

from indexrunner import __version__
from indexrunner.cli.commands import build_cmd, new_cmd

# Create the main Typer app
app = typer.Typer(
    name="indexrunner",
    help="indexrunner - build many indexes concurrently from index configuration files.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=False,
)

console = Console()

app.command(name="build", help="Build indexes from configuration files")(build_cmd.build)
app.command(name="new", help="Create a basic XML index configuration")(new_cmd.new)


@app.command(name="version")
def version() -> None:
    """Show the installed indexrunner version."""
    console.print(f"[bold blue]indexrunner[/bold blue] version [green]{__version__}[/green]")


@app.callback()
def callback(
    show_version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit",
        is_eager=True,
    ),
) -> None:
    """indexrunner - concurrent index builds with failure isolation."""
    if show_version:
        console.print(f"[bold blue]indexrunner[/bold blue] version [green]{__version__}[/green]")
        raise typer.Exit()


def main() -> None:
    """Main CLI entrypoint."""
    app()


if __name__ == "__main__":
    main()
