"""
ScopeSync CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import typer
from rich.console import Console

from scopesync import __version__
from scopesync.cli import connections, serve, teamwork
from scopesync.core.config.env import load_env_files

app = typer.Typer(
    name="scopesync",
    help="Link Teamwork accounts and inspect their projects and tasks",
    no_args_is_help=True,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"scopesync version {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """ScopeSync: Teamwork connections for estimation."""
    load_env_files()


app.command(name="whoami")(teamwork.whoami)
app.command(name="projects")(teamwork.projects)
app.command(name="tasks")(teamwork.tasks)
app.command(name="connect")(connections.connect)
app.command(name="serve")(serve.serve)


def main() -> None:
    """Entry point for the scopesync console script."""
    app()


__all__ = ["app", "main"]
