from rich.console import Console
import typer

from sitegen import __version__
from sitegen.cli.commands import jobs, projects, service

app = typer.Typer(
    name="sitegen",
    help="Website generator: submit jobs, run workers, maintain projects",
    add_completion=False,
)
console = Console()

app.command()(service.worker)
app.command()(service.api)
app.command("init-db")(service.init_db)
app.command()(jobs.submit)
app.command()(jobs.status)
app.command("backfill-urls")(projects.backfill_urls)
app.command("verify-urls")(projects.verify_urls)
app.command()(projects.cleanup)


@app.command()
def version():
    """Show the installed version."""
    console.print(f"sitegen {__version__}")


if __name__ == "__main__":
    app()
