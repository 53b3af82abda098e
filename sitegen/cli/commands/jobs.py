"""Job submission and status commands."""

import asyncio
import json as json_lib

from rich.console import Console
from rich.table import Table
import typer

from sitegen.config import get_settings
from sitegen.errors import JobValidationError, NotFoundError, QueueUnavailableError
from sitegen.submission import JobSubmitter

from ..runtime import open_services

console = Console()


def submit(
    name: str = typer.Option(..., "--name", "-n", help="Business name"),
    industry: str = typer.Option(..., "--industry", "-i", help="Industry key, e.g. cafe"),
    modules: list[str] = typer.Option([], "--module", "-m", help="Module to include (repeat)"),
    description: str | None = typer.Option(None, "--description", help="Business description"),
    admin_tier: str = typer.Option("standard", "--admin-tier", help="standard, pro or enterprise"),
    auto_deploy: bool = typer.Option(False, "--deploy", help="Deploy after a successful build"),
    test_mode: bool = typer.Option(False, "--test-mode", help="Skip AI content generation"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Submit a generation job."""
    payload = {
        "name": name,
        "industry": industry,
        "modules": modules,
        "description": description,
        "admin_tier": admin_tier,
        "auto_deploy": auto_deploy,
        "test_mode": test_mode,
    }

    async def _submit():
        settings = get_settings()
        async with open_services(settings, with_redis=True) as services:
            submitter = JobSubmitter(
                services.store, services.stream, max_attempts=settings.max_attempts
            )
            return await submitter.submit(payload)

    try:
        result = asyncio.run(_submit())
    except JobValidationError as e:
        console.print(f"[bold red]Invalid spec:[/bold red] {e}")
        for error in e.errors:
            loc = ".".join(str(part) for part in error.get("loc", []))
            console.print(f"  {loc}: {error.get('msg')}")
        raise typer.Exit(2) from e
    except QueueUnavailableError as e:
        console.print(f"[bold red]Queue unavailable:[/bold red] {e}")
        raise typer.Exit(1) from e

    if json_output:
        typer.echo(json_lib.dumps(result.model_dump(mode="json"), indent=2))
        return
    label = "Already submitted" if result.duplicate else "Job queued"
    console.print(f"[bold green]✓ {label}[/bold green]")
    console.print(f"Job ID: [cyan]{result.job_id}[/cyan]")
    console.print(f"Status: {result.status.value}")


def status(
    job_id: str,
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show the status of a job."""

    async def _status():
        async with open_services(get_settings()) as services:
            job = await services.store.get_job(job_id)
            if job is None:
                raise NotFoundError(f"Job {job_id} not found")
            return job

    try:
        job = asyncio.run(_status())
    except NotFoundError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1) from e

    if json_output:
        typer.echo(json_lib.dumps(job.model_dump(mode="json"), indent=2))
        return

    table = Table(title=f"Job {job.id}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Business", job.business_name)
    table.add_row("Status", job.status.value)
    table.add_row("Progress", f"{job.progress}%")
    table.add_row("Attempts", f"{job.attempts}/{job.max_attempts}")
    table.add_row("Project", job.project_id or "-")
    if job.error:
        table.add_row("Error", f"[red]{job.error}[/red]")
    console.print(table)
