"""CLI entry point for the diary sync service."""

from __future__ import annotations

import asyncio
import logging

import click
from rich.console import Console
from rich.table import Table

from diary_sync.errors import DiarySyncError

console = Console()


@click.group()
@click.option(
    "--credentials",
    "firebase_credentials",
    type=click.Path(exists=True, dir_okay=False),
    envvar="DIARY_SYNC_FIREBASE_CREDENTIALS",
    default=None,
    help="Firebase service account JSON (defaults to application credentials).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, firebase_credentials: str | None, verbose: bool) -> None:
    """Diary Sync - Notion-backed diary entries for the couple app."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    if firebase_credentials:
        ctx.obj["firebase_credentials"] = firebase_credentials


@main.command()
@click.option("--host", default=None, help="Host to bind to.")
@click.option("--port", default=None, type=int, help="Port to listen on.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Start the HTTP API server."""
    import uvicorn

    from diary_sync.config import load_config
    from diary_sync.web.app import create_app

    config = load_config(**ctx.obj)
    app = create_app(config)

    host = host or config.web_host
    port = port or config.web_port
    console.print(f"[bold green]Diary Sync API[/bold green] at http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="info")


@main.command("search-databases")
@click.option("--api-key", envvar="NOTION_API_KEY", required=True, help="Notion integration token.")
@click.pass_context
def search_databases(ctx: click.Context, api_key: str) -> None:
    """List the Notion databases an integration token can see."""
    service = _service(ctx.obj, with_firebase=False)
    try:
        databases = asyncio.run(service.search_databases(api_key))
    except DiarySyncError as e:
        console.print(f"[red]Search failed:[/red] {e.message}")
        raise SystemExit(1)

    table = Table(title=f"Databases ({len(databases)})")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("URL", style="dim")
    for db in databases:
        table.add_row(db.id, db.title, db.url or "")
    console.print(table)


@main.command("ensure-schema")
@click.option("--api-key", envvar="NOTION_API_KEY", required=True, help="Notion integration token.")
@click.option("--database-id", required=True, help="Target Notion database id.")
@click.pass_context
def ensure_schema(ctx: click.Context, api_key: str, database_id: str) -> None:
    """Add any columns or options the app needs to a Notion database."""
    service = _service(ctx.obj, with_firebase=False)
    try:
        report = asyncio.run(service.ensure_schema(api_key, database_id))
    except DiarySyncError as e:
        console.print(f"[red]Schema update failed:[/red] {e.message}")
        if e.details:
            console.print(e.details)
        raise SystemExit(1)

    if not report.changed:
        console.print("[green]Schema already up to date.[/green]")
        return
    for name in report.created:
        console.print(f"  [green]+[/green] {name}")
    for name in report.extended:
        console.print(f"  [yellow]~[/yellow] {name} (options added)")


@main.command("list")
@click.option("--user", "user_id", required=True, help="Firebase uid whose entries to list.")
@click.option(
    "--category",
    type=click.Choice(["Diary", "Memory", "Event", "Letter"]),
    default=None,
    help="Only show one category.",
)
@click.option("--limit", default=20, type=int, help="Page size.")
@click.pass_context
def list_entries(ctx: click.Context, user_id: str, category: str | None, limit: int) -> None:
    """List a user's entries using their stored Notion configuration."""
    service = _service(ctx.obj, with_firebase=True)
    try:
        page = asyncio.run(service.list_entries(user_id, category=category, page_size=limit))
    except DiarySyncError as e:
        console.print(f"[red]Listing failed:[/red] {e.message}")
        raise SystemExit(1)

    if not page.items:
        console.print("[dim]No entries found.[/dim]")
        return

    table = Table(title=f"Entries ({len(page.items)})")
    table.add_column("Date", style="dim", width=10)
    table.add_column("Category", width=8)
    table.add_column("Title")
    table.add_column("Author", width=12)
    table.add_column("Images", justify="right", width=6)
    for entry in page.items:
        table.add_row(
            entry.date,
            entry.category.value,
            entry.title,
            entry.author or "",
            str(len(entry.images)),
        )
    console.print(table)
    if page.has_more:
        console.print(f"[dim]More entries available (cursor {page.next_cursor}).[/dim]")


def _service(obj: dict, *, with_firebase: bool):
    from diary_sync.config import load_config
    from diary_sync.profiles import InMemoryProfileStore
    from diary_sync.service import DiaryService

    config = load_config(**obj)
    if not with_firebase:
        return DiaryService(config, profiles=InMemoryProfileStore())

    from diary_sync.firebase import make_image_store, make_profile_store

    return DiaryService(
        config,
        profiles=make_profile_store(config),
        images=make_image_store(config),
    )
