"""
invitegate migrate commands - inspect and render database migrations.

PostgREST cannot run DDL, so pending migrations are printed as SQL for psql
or the Supabase SQL editor.
"""

from typing import Optional

import typer
from rich.table import Table

from ...migrations.manager import MigrationManager
from ..common import console, open_gate, run_async

app = typer.Typer(help="Database migrations")


@app.command("status")
def migrate_status_command() -> None:
    """
    Show which migrations the database has recorded.

    Example:
        $ invitegate migrate status
    """

    async def _status():
        gate = await open_gate()
        try:
            return await MigrationManager(gate.client).status()
        finally:
            await gate.close()

    statuses = run_async(_status())

    table = Table(title="Migration status")
    table.add_column("Version", style="cyan")
    table.add_column("Name")
    table.add_column("Applied", style="green")
    for entry in statuses:
        table.add_row(
            entry.migration.version,
            entry.migration.name,
            "[green]✓[/green]" if entry.applied else "[yellow]pending[/yellow]",
        )
    console.print(table)

    pending = [entry for entry in statuses if not entry.applied]
    if pending:
        console.print(
            f"\n{len(pending)} pending; apply with "
            "[cyan]invitegate migrate sql | psql <your-db-url>[/cyan]"
        )


@app.command("sql")
def migrate_sql_command(
    target: Optional[str] = typer.Argument(
        None,
        help="Target migration version (default: latest)",
    ),
    all_migrations: bool = typer.Option(
        False, "--all", help="Print every migration, applied or not"
    ),
) -> None:
    """
    Print the SQL of pending migrations.

    Example:
        $ invitegate migrate sql | psql "$DATABASE_URL"
        $ invitegate migrate sql --all > schema.sql
    """
    if all_migrations:
        manager = MigrationManager(client=None)
        sql = manager.render(
            [m for m in manager.discover_migrations() if not target or m.version <= target]
        )
    else:

        async def _pending():
            gate = await open_gate()
            try:
                return await MigrationManager(gate.client).render_pending(target)
            finally:
                await gate.close()

        sql = run_async(_pending())

    if not sql:
        typer.echo("-- Database is up to date", err=True)
        return
    typer.echo(sql)
