"""CLI entry point for aichat-cleanup."""

import asyncio
import logging

import click
import uvicorn

from .backends import get_default_store
from .config import get_batch_yield_delay
from .events import DeleteProgress
from .format import shorten_path
from .query import ARCHIVE_STATES, MODES, PROJECT_SORT_FIELDS, SORT_FIELDS, SORT_ORDERS
from .service import AppService
from .store import StoreError


def _load_service() -> AppService:
    service = AppService(get_default_store(), yield_delay=get_batch_yield_delay())
    try:
        service.load_data()
    except StoreError as e:
        raise click.ClickException(str(e))
    return service


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log debug output.")
def main(verbose: bool):
    """Analyse and clean up Cursor chat and agent sessions."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.option("--port", default=8080, help="Port to serve on.")
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
def serve(port: int, host: str):
    """Start the web API."""
    click.echo(f"Starting aichat-cleanup on http://{host}:{port}")
    uvicorn.run("aichat_cleanup.server:app", host=host, port=port, reload=False)


@main.command()
@click.option("--sort", type=click.Choice(PROJECT_SORT_FIELDS), default="lines_added")
@click.option("--page", type=click.IntRange(min=1), default=1)
def projects(sort: str, page: int):
    """List projects with their session totals."""
    service = _load_service()
    result = service.project_page(sort, page)
    for p in result.items:
        click.echo(
            f"{shorten_path(p.path, 50):<50} {p.chat_count:>5} chats "
            f"+{p.lines_added} -{p.lines_removed} {p.files_changed} files"
        )
    click.echo(f"page {result.page}/{max(result.total_pages, 1)}, {result.total_filtered} projects")


@main.command()
@click.argument("project_path")
@click.option("--search", default="", help="Match names and subtitles.")
@click.option("--mode", type=click.Choice(MODES), default="all")
@click.option("--archive", type=click.Choice(ARCHIVE_STATES), default="all")
@click.option("--show-zero/--hide-zero", default=False, help="Include sessions without changes.")
@click.option("--sort", type=click.Choice(SORT_FIELDS), default="files_changed")
@click.option("--order", type=click.Choice(SORT_ORDERS), default="desc")
@click.option("--page", type=click.IntRange(min=1), default=1)
def sessions(project_path, search, mode, archive, show_zero, sort, order, page):
    """List one project's sessions."""
    service = _load_service()
    if service.project(project_path) is None:
        raise click.ClickException(f"Project not found: {project_path}")

    result = service.project_view(project_path).update_criteria(
        search_term=search, mode=mode, archive_state=archive,
        hide_zero_change=not show_zero, sort_field=sort, sort_order=order, page=page,
    )
    for s in result.items:
        archived = " [archived]" if s.is_archived else ""
        click.echo(
            f"{s.id}  {s.mode:<6} {s.updated_at or '-':<16} "
            f"+{s.lines_added} -{s.lines_removed} {s.files_changed} files  {s.name}{archived}"
        )
    click.echo(f"page {result.page}/{max(result.total_pages, 1)}, {result.total_filtered} sessions")


@main.command("delete-projects")
@click.argument("project_paths", nargs=-1, required=True)
@click.confirmation_option(prompt="Move every session of these projects to the trash?")
def delete_projects(project_paths):
    """Delete all sessions of the given projects, one project at a time."""
    service = _load_service()

    def show(event):
        if isinstance(event, DeleteProgress):
            click.echo(f"[{event.current}/{event.total}] {event.current_label}")

    service.events.subscribe(show)
    summary = asyncio.run(service.delete_projects(list(project_paths)))
    click.echo(f"Done: {summary.succeeded} succeeded, {summary.failed} failed")
    if summary.failed:
        raise SystemExit(1)


@main.command()
@click.option("--clear", "clear_all", is_flag=True, help="Purge every trash item.")
@click.option("--delete", "trash_id", type=int, help="Purge one trash item by id.")
def trash(clear_all: bool, trash_id: int | None):
    """List or purge soft-deleted sessions."""
    service = AppService(get_default_store())
    try:
        if clear_all:
            click.echo(f"Purged {service.clear_trash()} items")
            return
        if trash_id is not None:
            removed = service.delete_trash_item(trash_id)
            click.echo(f"Purged #{trash_id}" if removed else f"#{trash_id} was not in the trash")
            return
        items = service.load_trash()
    except StoreError as e:
        raise click.ClickException(str(e))

    for item in items:
        click.echo(
            f"#{item.id:<5} {item.deleted_at}  {item.mode:<6} "
            f"{item.chat_name}  ({shorten_path(item.project_path, 40)})"
        )
    click.echo(f"{len(items)} items in trash")
