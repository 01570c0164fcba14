"""Gestión Guías CLI: database setup, seeding and the API server.

Commands:
  init-db  create all tables
  seed     upsert reference data (and dev fixtures when APP_ENV=development)
  serve    run the HTTP API
"""
from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.table import Table


app = typer.Typer(
    name="gestionguias",
    help="Port-call and guide shift administration.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()


@app.callback()
def main(
    log_level: str = typer.Option(None, "--log-level", help="Override LOG_LEVEL (DEBUG, INFO, ...)"),
):
    from app.config import settings

    logging.basicConfig(
        level=(log_level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("init-db")
def init_db_command():
    """Create every table that does not exist yet."""
    try:
        from app.database import init_db

        with console.status("[bold]Creating database..."):
            init_db()
    except Exception as e:
        console.print(f"[red]Database setup failed: {e}[/red]")
        raise typer.Exit(1)
    console.print("[green]Database ready.[/green]")


@app.command("seed")
def seed(
    database_url: str = typer.Option(None, "--database-url", help="Seed this database instead of DATABASE_URL"),
):
    """Upsert the super admin, countries and ships, then repair ship countries.

    With APP_ENV=development also loads sample users, port calls, service
    windows and shifts anchored on today's date.
    """
    try:
        from app.modules.seed import run_seed

        with console.status("[bold]Seeding database..."):
            summary = run_seed(database_url=database_url)
    except Exception as e:
        logging.getLogger(__name__).exception("Error during seeding")
        console.print(f"[red]Seeding failed: {e}[/red]")
        raise typer.Exit(1)

    _print_seed_summary(summary)
    console.print("[green]Database seeding completed.[/green]")


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
    reload: bool = typer.Option(False, "--reload", help="Restart on code changes"),
):
    """Run the HTTP API."""
    import uvicorn

    console.print(f"API running at [cyan]http://{host}:{port}[/cyan] (Ctrl+C to stop)")
    uvicorn.run("app.main:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _print_seed_summary(summary: dict) -> None:
    table = Table(title="Seed summary")
    table.add_column("Step")
    table.add_column("Result")
    for step in ("countries", "ships"):
        counts = summary.get(step)
        if counts:
            table.add_row(step, f"{counts['inserted']} inserted, {counts['updated']} updated")
    backfill = summary.get("backfill")
    if backfill:
        table.add_row("ship countries", f"{backfill['inferred']} inferred, {backfill['defaulted']} defaulted")
    workflows = summary.get("dev_workflows")
    if workflows:
        table.add_row(
            "dev workflows",
            f"{workflows['users']} users, {len(workflows['port_calls'])} port calls, "
            f"{len(workflows['service_windows'])} service windows",
        )
    console.print(table)


if __name__ == "__main__":
    app()
