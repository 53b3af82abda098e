"""Long-running processes and database setup."""

import asyncio

from rich.console import Console
import typer

from sitegen.config import get_settings
from sitegen.database import Database

console = Console()


def worker():
    """Start the assembly worker (assembly and deploy consumers)."""
    from sitegen.worker.main import run_worker

    asyncio.run(run_worker(get_settings()))


def api(
    host: str = typer.Option("0.0.0.0", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Serve the HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run("sitegen.api.main:app", host=host, port=port, reload=reload)


def init_db():
    """Create all tables (development only; production uses alembic)."""

    async def _create() -> None:
        db = Database.from_settings(get_settings())
        db.connect()
        try:
            await db.create_all()
        finally:
            await db.dispose()

    asyncio.run(_create())
    console.print("[bold green]✓ Tables created[/bold green]")
