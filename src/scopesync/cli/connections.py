"""
ScopeSync CLI - connection commands.

Link a Teamwork account through a running connection API (see
`scopesync serve`). The API address comes from api.base_url in the config
or SCOPESYNC_API_BASE_URL.
"""

import asyncio

from rich.panel import Panel
from rich.table import Table

from scopesync.cli.teamwork import DebugOption, TokenOption, console, handle_error, setup_logging
from scopesync.core.config import load_config, require_token
from scopesync.core.connections.service import HttpConnectionService


def _service() -> HttpConnectionService:
    return HttpConnectionService.from_config(load_config().api)


def connect(token: TokenOption = None, debug: DebugOption = False) -> None:
    """
    Link the Teamwork account a token belongs to.

    Examples:
        scopesync connect
        scopesync connect --token tkn_123
    """
    setup_logging(debug)

    async def run() -> None:
        api_token = require_token(token)
        service = _service()
        try:
            created = await service.add_connection(api_token)
        finally:
            await service.aclose()

        account = created.external_data
        table = Table(show_header=False, box=None)
        table.add_column("Field", style="cyan", no_wrap=True)
        table.add_column("Value", style="bold")
        table.add_row("Connection", created.id)
        table.add_row("Name", account.name)
        table.add_row("Company", account.company)
        console.print(Panel(table, title="[green]Connected[/green]", expand=False))

    try:
        asyncio.run(run())
    except Exception as e:
        handle_error(e, "connect")
