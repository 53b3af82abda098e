"""Project maintenance commands."""

import asyncio

from rich.console import Console
from rich.table import Table
import typer

from sitegen.config import get_settings
from sitegen.errors import NotFoundError
from sitegen.maintenance import backfill_urls as run_backfill
from sitegen.maintenance import cleanup_project, verify_urls as run_verify

from ..runtime import open_services

console = Console()


def backfill_urls(
    project_id: str | None = typer.Argument(None, help="Project ID (all projects if omitted)"),
):
    """Fill missing project URLs from succeeded deployments."""

    async def _backfill():
        settings = get_settings()
        async with open_services(settings) as services:
            return await run_backfill(services.store, project_id, settings.base_domain)

    try:
        result = asyncio.run(_backfill())
    except NotFoundError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1) from e

    console.print(f"Updated: [green]{len(result.updated)}[/green]")
    for updated_id in result.updated:
        console.print(f"  {updated_id}")
    console.print(f"Unchanged: {len(result.skipped)}")


def verify_urls(project_id: str):
    """Check that a project's recorded URLs respond."""

    async def _verify():
        async with open_services(get_settings()) as services:
            return await run_verify(services.store, project_id)

    try:
        checks = asyncio.run(_verify())
    except NotFoundError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1) from e

    if not checks:
        console.print("[yellow]No URLs recorded[/yellow]")
        raise typer.Exit(1)

    table = Table(title="URL checks")
    table.add_column("App", style="cyan")
    table.add_column("URL")
    table.add_column("Result")
    for check in checks:
        result = str(check.status_code) if check.status_code else check.error
        color = "green" if check.ok else "red"
        table.add_row(check.name, check.url, f"[{color}]{result}[/{color}]")
    console.print(table)
    if not all(check.ok for check in checks):
        raise typer.Exit(1)


def cleanup(
    project_id: str,
    yes: bool = typer.Option(False, "--yes", "-y", help="Confirm deletion"),
    keep_files: bool = typer.Option(False, "--keep-files", help="Keep the local output"),
):
    """Delete a project's repos, hosting, DNS records, files and row."""
    if not yes:
        console.print("[yellow]Refusing to delete without --yes[/yellow]")
        raise typer.Exit(1)

    async def _cleanup():
        async with open_services(get_settings()) as services:
            return await cleanup_project(
                services.store, services.trigger(), project_id, delete_files=not keep_files
            )

    try:
        report = asyncio.run(_cleanup())
    except NotFoundError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1) from e

    for item in report.removed:
        console.print(f"[green]removed[/green] {item}")
    for error in report.errors:
        console.print(f"[red]failed[/red] {error}")
    if report.errors:
        console.print("[bold red]Cleanup incomplete; project row kept[/bold red]")
        raise typer.Exit(1)
