"""CLI entry point.

Provides the main CLI application with commands for:
- serve: Run the API server
- init-db: Create the tables directly (SQLite/local runs)
- sync: Mirror hub states into the entity store
- sweep: Run one brain sweep
- status: Show brain coverage and the latest run
"""

import asyncio
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from hass_gateway.logging_config import configure_logging

app = typer.Typer(
    name="hass-gateway",
    help="Proxy and entity brain for a Home Assistant hub",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main(
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", "-l", help="Override LOG_LEVEL (DEBUG, INFO, ...)"),
    ] = None,
) -> None:
    configure_logging(log_level.upper() if log_level else None)  # type: ignore[arg-type]


@app.command()
def serve(
    host: Annotated[
        str | None,
        typer.Option("--host", "-h", help="Host to bind to (defaults to API_HOST)"),
    ] = None,
    port: Annotated[
        int | None,
        typer.Option("--port", "-p", help="Port to bind to (defaults to API_PORT)"),
    ] = None,
    reload: Annotated[
        bool,
        typer.Option("--reload", "-r", help="Enable auto-reload for development"),
    ] = False,
) -> None:
    """Start the API server with uvicorn."""
    import uvicorn

    from hass_gateway.settings import get_settings

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print(
        Panel(
            f"[bold green]Starting hass-gateway[/bold green]\n"
            f"Host: {host}\n"
            f"Port: {port}\n"
            f"Hub: {settings.ha_url}\n"
            f"Reload: {reload}",
            title="hass-gateway",
            border_style="green",
        )
    )

    uvicorn.run(
        "hass_gateway.api.main:get_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@app.command("init-db")
def init_db() -> None:
    """Create every table from the ORM metadata.

    PostgreSQL deployments should run ``alembic upgrade head`` instead.
    """
    asyncio.run(_run_init_db())
    console.print("[green]Tables created[/green]")


async def _run_init_db() -> None:
    from hass_gateway.storage import close_db, create_all

    try:
        await create_all()
    finally:
        await close_db()


@app.command()
def sync() -> None:
    """Mirror every hub entity state into the entity store."""
    result = asyncio.run(_run_sync())
    if result is None:
        raise typer.Exit(code=1)

    table = Table(title="Entity Sync", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("Synced", str(result.synced))
    table.add_row("Errors", str(result.errors))
    console.print(table)


async def _run_sync():
    from hass_gateway.dal.sync import sync_entities_from_ha
    from hass_gateway.exceptions import HAClientError
    from hass_gateway.ha.rest import HARestClient
    from hass_gateway.storage import close_db, get_session

    rest = HARestClient.from_settings()
    try:
        async with get_session() as session:
            return await sync_entities_from_ha(session, rest)
    except HAClientError as e:
        console.print(f"[red]Sync failed: {e}[/red]")
        return None
    finally:
        await rest.close()
        await close_db()


@app.command()
def sweep(
    no_sync: Annotated[
        bool,
        typer.Option("--no-sync", help="Skip the entity sync for a sparse store"),
    ] = False,
) -> None:
    """Run one brain sweep now."""
    result = asyncio.run(_run_sweep(sync_first=not no_sync))

    table = Table(title="Brain Sweep", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    for key in ("ran_at_utc", "scanned", "normalized", "intentsCreated", "entitiesSynced", "syncErrors"):
        table.add_row(key, str(result[key]))
    console.print(table)


async def _run_sweep(sync_first: bool) -> dict:
    from hass_gateway.brain.sweep import run_brain_sweep
    from hass_gateway.storage import close_db

    try:
        return await run_brain_sweep(sync_first=sync_first)
    finally:
        await close_db()


@app.command()
def status() -> None:
    """Show brain coverage counts and the latest run."""
    report = asyncio.run(_run_status())

    table = Table(title="Brain Status", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Entities", str(report["entities"]["total"]))
    table.add_row("Normalized", str(report["entities"]["normalized"]))
    table.add_row("Unbrained", str(report["entities"]["unbrained"]))
    table.add_row("Enabled intents", str(report["intents"]["total"]))
    table.add_row("Intents per entity", str(report["intents"]["averagePerEntity"]))
    console.print(table)

    last_run = report["lastRun"]
    if last_run is None:
        console.print("[dim]No brain runs recorded yet[/dim]")
    else:
        console.print(
            f"Last run {last_run['ranAt']}: scanned {last_run['scanned']}, "
            f"normalized {last_run['normalized']}, intents {last_run['intentsCreated']}"
        )


async def _run_status() -> dict:
    from hass_gateway.brain.sweep import brain_status
    from hass_gateway.storage import close_db

    try:
        return await brain_status()
    finally:
        await close_db()


if __name__ == "__main__":
    app()
