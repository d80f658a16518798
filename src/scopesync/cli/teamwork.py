"""
ScopeSync CLI - Teamwork commands.

Inspect what a Teamwork token gives access to: the account, its projects,
and the task tree of a task list with estimations.
"""

import asyncio
import logging
import sys
import traceback
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from scopesync.core.config import TOKEN_ENV_VAR, MissingTokenError, load_config, require_token
from scopesync.core.connections.exceptions import ConnectionsError
from scopesync.core.teamwork.client import TeamworkClient
from scopesync.core.teamwork.exceptions import TeamworkError
from scopesync.core.teamwork.models import Task

console = Console()

# Global debug flag
_debug_mode = False

TokenOption = Annotated[
    str | None,
    typer.Option(
        "--token",
        "-t",
        help=f"Teamwork API token (defaults to ${TOKEN_ENV_VAR})",
        show_default=False,
    ),
]
DebugOption = Annotated[
    bool,
    typer.Option("--debug", help="Enable debug logging and full tracebacks"),
]


def setup_logging(debug: bool = False) -> None:
    """
    Configure logging for CLI commands.

    Args:
        debug: If True, enable DEBUG level logging and full tracebacks
    """
    global _debug_mode
    _debug_mode = debug

    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def handle_error(error: Exception, command_name: str) -> None:
    """
    Display an error and exit with status 1.

    Teamwork, connection and missing-token errors show their own message;
    anything else is reported as unexpected.
    """
    error_text = Text()
    if isinstance(error, (TeamworkError, ConnectionsError, MissingTokenError)):
        error_text.append("Error: ", style="bold red")
        error_text.append(str(error))
        title = "[bold red]Error[/bold red]"
    else:
        error_text.append("Unexpected error in ", style="bold red")
        error_text.append(command_name, style="bold yellow")
        error_text.append(": ", style="bold red")
        error_text.append(str(error))
        title = "[bold red]Unexpected Error[/bold red]"

    console.print()
    console.print(Panel(error_text, title=title, border_style="red", expand=False))

    if _debug_mode:
        console.print("\n[dim]Full traceback:[/dim]")
        console.print(traceback.format_exc())
    else:
        console.print("[dim]Run with --debug for full traceback[/dim]")
    raise typer.Exit(1)


def _client() -> TeamworkClient:
    return TeamworkClient(load_config().teamwork)


def _task_label(task: Task) -> Text:
    label = Text(task.name or f"#{task.id}")
    label.append(f"  {task.estimation:g}h", style="cyan")
    return label


def _add_children(node: Tree, task: Task) -> None:
    for child in task.children:
        _add_children(node.add(_task_label(child)), child)


def whoami(token: TokenOption = None, debug: DebugOption = False) -> None:
    """
    Show the Teamwork account a token belongs to.

    Examples:
        scopesync whoami
        scopesync whoami --token tkn_123
    """
    setup_logging(debug)

    async def run() -> None:
        api_token = require_token(token)
        async with _client() as client:
            account = await client.validate_token(api_token)

        table = Table(show_header=False, box=None)
        table.add_column("Field", style="cyan", no_wrap=True)
        table.add_column("Value", style="bold")
        table.add_row("Name", account.name)
        table.add_row("Company", f"{account.company} ({account.company_id})")
        table.add_row("Account", account.id)
        table.add_row("User", account.user_id)
        table.add_row("API", account.base_url)
        console.print(Panel(table, title="[green]Teamwork account[/green]", expand=False))

    try:
        asyncio.run(run())
    except Exception as e:
        handle_error(e, "whoami")


def projects(token: TokenOption = None, debug: DebugOption = False) -> None:
    """
    List the projects of the token's account.

    Examples:
        scopesync projects
    """
    setup_logging(debug)

    async def run() -> None:
        api_token = require_token(token)
        async with _client() as client:
            found = await client.get_projects(api_token)

        if not found:
            console.print("[yellow]No projects found[/yellow]")
            return

        table = Table(title=f"Projects ({len(found)})")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Name", style="bold")
        table.add_column("Created", style="dim")
        for project in found:
            table.add_row(project.id, project.name, project.created or "")
        console.print(table)

    try:
        asyncio.run(run())
    except Exception as e:
        handle_error(e, "projects")


def tasks(
    task_list_id: Annotated[str, typer.Argument(help="Teamwork task list id")],
    token: TokenOption = None,
    debug: DebugOption = False,
) -> None:
    """
    Show the task tree of a task list with estimations in hours.

    Examples:
        scopesync tasks 12345
    """
    setup_logging(debug)

    async def run() -> None:
        api_token = require_token(token)
        async with _client() as client:
            roots = await client.get_tasks(api_token, task_list_id)

        total = sum(node.estimation for root in roots for node in root.walk())
        tree = Tree(f"[bold]Task list {task_list_id}[/bold]  [cyan]{total:g}h[/cyan]")
        for root in roots:
            _add_children(tree.add(_task_label(root)), root)
        console.print(tree)

    try:
        asyncio.run(run())
    except Exception as e:
        handle_error(e, "tasks")
