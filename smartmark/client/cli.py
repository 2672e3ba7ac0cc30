"""
Command-line client for Smartmark.

Usage:
    smartmark --token $TOKEN list
    smartmark add https://example.com "Example"
    smartmark delete <bookmark-id>
    smartmark watch      # live list, Ctrl-C to stop
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import TypeVar

import click
import httpx
from rich.console import Console
from rich.live import Live
from rich.table import Table

from smartmark.client.api import BookmarkApiError, BookmarksApiClient
from smartmark.client.session import SessionContext
from smartmark.client.views import AddBookmarkForm, BookmarkListView
from smartmark.schemas.bookmark import Bookmark

console = Console()

T = TypeVar("T")

DEFAULT_API_URL = "http://localhost:8000"


@dataclass
class ClientConfig:
    api_url: str
    token: str | None


def build_client(config: ClientConfig) -> BookmarksApiClient:
    return BookmarksApiClient(config.api_url, config.token)


def render_bookmarks(
    bookmarks: Iterable[Bookmark],
    *,
    deleting: str | None = None,
    title: str = "Bookmarks",
) -> Table:
    table = Table(title=title)
    table.add_column("Title", style="bold")
    table.add_column("URL", style="cyan")
    table.add_column("Added", style="dim")
    table.add_column("ID", style="dim")

    for bookmark in bookmarks:
        name = bookmark.title
        if bookmark.id == deleting:
            name = f"[strike]{name}[/strike] [yellow](deleting)[/yellow]"
        table.add_row(
            name,
            bookmark.url,
            bookmark.created_at.strftime("%Y-%m-%d %H:%M"),
            bookmark.id,
        )
    return table


def _run(config: ClientConfig, action: Callable[[BookmarksApiClient], Awaitable[T]]) -> T:
    async def runner() -> T:
        async with build_client(config) as api:
            return await action(api)

    try:
        return asyncio.run(runner())
    except BookmarkApiError as exc:
        raise click.ClickException(f"{exc.status_code}: {exc.message}") from exc
    except httpx.HTTPError as exc:
        raise click.ClickException(f"Could not reach {config.api_url}: {exc}") from exc


@click.group()
@click.option(
    "--api-url",
    envvar="SMARTMARK_API_URL",
    default=DEFAULT_API_URL,
    show_default=True,
    help="Base URL of the Smartmark API",
)
@click.option("--token", envvar="SMARTMARK_TOKEN", help="Session access token")
@click.pass_context
def cli(ctx: click.Context, api_url: str, token: str | None) -> None:
    """Manage your bookmarks from the terminal."""
    ctx.obj = ClientConfig(api_url=api_url, token=token)


@cli.command("list")
@click.pass_obj
def list_command(config: ClientConfig) -> None:
    """List your bookmarks, newest first."""
    bookmarks = _run(config, lambda api: api.list_bookmarks())
    if not bookmarks:
        console.print("[yellow]No bookmarks yet.[/yellow]")
        return
    console.print(render_bookmarks(bookmarks))


@cli.command("add")
@click.argument("url")
@click.argument("title")
@click.pass_obj
def add_command(config: ClientConfig, url: str, title: str) -> None:
    """Add a bookmark."""
    failures: list[str] = []

    async def action(api: BookmarksApiClient) -> Bookmark | None:
        form = AddBookmarkForm(await SessionContext.load(api), alert=failures.append)
        form.url, form.title = url, title
        return await form.submit()

    created = _run(config, action)
    if created is None:
        raise click.ClickException(failures[0] if failures else "URL and title are required")
    console.print(f"[green]✓ Added[/green] {created.title} [dim]({created.id})[/dim]")


@cli.command("delete")
@click.argument("bookmark_id")
@click.pass_obj
def delete_command(config: ClientConfig, bookmark_id: str) -> None:
    """Delete one of your bookmarks by id."""
    _run(config, lambda api: api.delete_bookmark(bookmark_id))
    console.print(f"[green]✓ Deleted[/green] {bookmark_id}")


@cli.command("dashboard")
@click.pass_obj
def dashboard_command(config: ClientConfig) -> None:
    """Show the bookmark total and the five most recent."""
    summary = _run(config, lambda api: api.dashboard())
    console.print(f"[bold cyan]Total bookmarks:[/bold cyan] {summary.total}")
    if summary.recent:
        console.print(render_bookmarks(summary.recent, title="Recent"))


@cli.command("whoami")
@click.pass_obj
def whoami_command(config: ClientConfig) -> None:
    """Show the signed-in user."""
    user = _run(config, lambda api: api.current_user())
    label = user.name or user.email or user.id
    console.print(f"Signed in as [bold]{label}[/bold] [dim]({user.id})[/dim]")


@cli.command("logout")
@click.pass_obj
def logout_command(config: ClientConfig) -> None:
    """End the current session."""
    _run(config, lambda api: api.sign_out())
    console.print("[green]✓ Signed out[/green]")


@cli.command("watch")
@click.pass_obj
def watch_command(config: ClientConfig) -> None:
    """Show a live-updating list until interrupted."""

    async def action(api: BookmarksApiClient) -> None:
        context = await SessionContext.load(api)
        title = f"Bookmarks for {context.user.email or context.user.id}"

        with Live(render_bookmarks([], title=title), console=console, refresh_per_second=4) as live:
            view = BookmarkListView(
                context,
                alert=lambda message: console.print(f"[red]{message}[/red]"),
                on_change=lambda state: live.update(
                    render_bookmarks(state.items, deleting=state.deleting, title=title)
                ),
            )
            await view.mount()
            try:
                await view.refresh()
                await view.wait()
            finally:
                await view.unmount()

    try:
        _run(config, action)
    except KeyboardInterrupt:
        console.print("[dim]Stopped watching.[/dim]")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
