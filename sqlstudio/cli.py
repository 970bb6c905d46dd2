"""
SQL Studio CLI

Command-line interface for the SQL Studio assistant.

Usage:
    sqlstudio ask "How many orders last week?" --connection shop
    sqlstudio tools                        # List registered tools
    sqlstudio connections                  # List configured connections
    sqlstudio serve --port 8000            # Run the API server
"""

import asyncio
import json
import logging
import sys
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from sqlstudio import __version__
from sqlstudio.agent.events import (
    AgentEvent,
    ChunkEvent,
    ErrorEvent,
    ToolCallEvent,
    ToolResponseEvent,
)
from sqlstudio.agent.loop import AgentState
from sqlstudio.agent.runner import stream_agent_response
from sqlstudio.config import get_settings
from sqlstudio.database.registry import ConnectionRegistry
from sqlstudio.models.api import StreamRequest
from sqlstudio.tools.registry import ToolCatalog

console = Console()


def configure_cli_logging(verbose: bool) -> None:
    get_settings()
    level = logging.DEBUG if verbose else logging.WARNING
    # Settings configure application logging on load; the CLI keeps the terminal quiet.
    logging.basicConfig(level=level, force=True)
    for logger_name in ("httpx", "anthropic", "openai", "asyncio"):
        logging.getLogger(logger_name).setLevel(max(level, logging.WARNING))


def _load_tools() -> None:
    import sqlstudio.tools.builtin  # noqa: F401  registers the built-in tools

    ToolCatalog.load_policy_config(get_settings().tools.policy_path)


def _print_rows(rows: Any) -> None:
    if not isinstance(rows, list) or not rows or not isinstance(rows[0], dict):
        return
    table = Table(show_header=True, header_style="bold cyan")
    columns = list(rows[0].keys())
    for column in columns:
        table.add_column(str(column))
    for row in rows:
        table.add_row(*(str(row.get(column, "")) for column in columns))
    console.print(table)


class TerminalSink:
    """Renders agent events to the terminal as they arrive."""

    def __init__(self, show_data: bool = True) -> None:
        self.show_data = show_data
        self._mid_line = False

    def _newline(self) -> None:
        if self._mid_line:
            console.print()
            self._mid_line = False

    async def __call__(self, event: AgentEvent) -> None:
        if isinstance(event, ChunkEvent):
            console.print(event.content, end="", markup=False, highlight=False)
            self._mid_line = True
        elif isinstance(event, ToolCallEvent):
            self._newline()
            args = json.dumps(event.args, default=str)
            console.print(f"[dim]→ {event.tool_name}({args})[/dim]")
        elif isinstance(event, ToolResponseEvent):
            style = "dim" if event.success else "red"
            console.print(f"[{style}]← {event.response}[/{style}]")
            if self.show_data and event.success and event.data is not None:
                _print_rows(event.data)
        elif isinstance(event, ErrorEvent):
            self._newline()
            console.print(f"[red]Error: {event.error}[/red]")
        elif event.type == "done":
            self._newline()


@click.group()
@click.version_option(version=__version__, prog_name="SQL Studio")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logs")
def cli(verbose: bool):
    """SQL Studio - ask questions of your databases."""
    configure_cli_logging(verbose)


@cli.command()
@click.argument("query")
@click.option("--connection", "-c", "connection_id", help="Connection id to bind tools to")
@click.option("--schema", "-s", help="Default schema")
@click.option("--table", "-t", "tables", multiple=True, help="Table to include in context")
@click.option("--provider", "-p", help="Provider id (bedrock, anthropic, openai, local)")
@click.option("--model", "-m", help="Model id override")
@click.option("--no-data", is_flag=True, help="Do not print result previews")
def ask(
    query: str,
    connection_id: str | None,
    schema: str | None,
    tables: tuple[str, ...],
    provider: str | None,
    model: str | None,
    no_data: bool,
):
    """Ask the assistant a single question.

    Example:
        sqlstudio ask "Top 5 customers by revenue" -c shop -s public
    """
    settings = get_settings()
    _load_tools()

    async def run_query() -> AgentState | None:
        registry = ConnectionRegistry.from_settings(settings.database)
        default = registry.default()
        request = StreamRequest(
            query=query,
            connection_id=connection_id or (default.connection_id if default else None),
            schema=schema,
            tables=list(tables),
            provider=provider,
            model=model,
        )
        try:
            state = await stream_agent_response(
                request,
                TerminalSink(show_data=not no_data),
                settings=settings,
                connections=registry,
            )
        finally:
            await registry.close()
        return state.status if state else None

    status = asyncio.run(run_query())
    if status is not AgentState.DONE:
        sys.exit(1)


@cli.command()
def tools():
    """List registered tools and whether they are enabled."""
    _load_tools()
    table = Table(title="Tools", show_header=True, header_style="bold cyan")
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("Enabled")
    table.add_column("Description")
    for definition in ToolCatalog.list_definitions():
        table.add_row(
            definition.name,
            definition.category.value,
            "yes" if definition.policy.enabled else "[red]no[/red]",
            definition.description,
        )
    console.print(table)


@cli.command()
def connections():
    """List configured database connections."""
    registry = ConnectionRegistry.from_settings(get_settings().database)
    if not len(registry):
        console.print("[yellow]No connections configured.[/yellow]")
        console.print(
            "[dim]Add entries to config/connections.yaml or set DATABASE_URL.[/dim]"
        )
        return
    table = Table(title="Connections", show_header=True, header_style="bold cyan")
    table.add_column("Id")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Schema")
    table.add_column("Default")
    for connection in registry.list_connections():
        table.add_row(
            connection.connection_id,
            connection.name,
            connection.database_type,
            connection.default_schema or "",
            "*" if connection.is_default else "",
        )
    console.print(table)


@cli.command()
@click.option("--host", default=None, help="Bind host (default from settings)")
@click.option("--port", default=None, type=int, help="Bind port (default from settings)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: str | None, port: int | None, reload: bool):
    """Run the API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    console.print(f"[cyan]Starting API on {host}:{port}[/cyan]")
    uvicorn.run("sqlstudio.api.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    cli()
