"""
CLI commands for admin role management.
"""

from uuid import UUID

import typer
from rich.table import Table

from ..common import console, open_gate, run_async

app = typer.Typer(help="Manage admin privileges")


@app.command("promote")
def roles_promote_command(
    user_id: UUID = typer.Argument(..., help="Account to promote"),
    actor: UUID = typer.Option(..., "--as", help="Admin account ID"),
) -> None:
    """
    Grant admin status to an account.

    Example:
        $ invitegate roles promote <user-id> --as <admin-id>
    """

    async def _promote():
        gate = await open_gate()
        try:
            return await gate.roles.promote(actor, user_id)
        finally:
            await gate.close()

    account = run_async(_promote())
    console.print(f"[green]✓[/green] {account.email} is an admin")


@app.command("demote")
def roles_demote_command(
    user_id: UUID = typer.Argument(..., help="Account to demote"),
    actor: UUID = typer.Option(..., "--as", help="Admin account ID"),
) -> None:
    """
    Revoke admin status from an account.

    Protected accounts and the last admin cannot be demoted.
    """

    async def _demote():
        gate = await open_gate()
        try:
            return await gate.roles.demote(actor, user_id)
        finally:
            await gate.close()

    account = run_async(_demote())
    console.print(f"[green]✓[/green] {account.email} is no longer an admin")


@app.command("admins")
def roles_admins_command(
    actor: UUID = typer.Option(..., "--as", help="Admin account ID"),
) -> None:
    """List admin accounts."""

    async def _admins():
        gate = await open_gate()
        try:
            return await gate.roles.list_admins(actor)
        finally:
            await gate.close()

    admins = run_async(_admins())

    table = Table(title="Admins")
    table.add_column("Email", style="cyan")
    table.add_column("Name")
    table.add_column("Protected", style="yellow")
    table.add_column("ID", style="dim")
    for account in admins:
        table.add_row(
            account.email,
            account.display_name or "",
            "yes" if account.is_protected else "",
            str(account.id),
        )
    console.print(table)


@app.command("show")
def roles_show_command(
    user_id: UUID = typer.Argument(..., help="Account ID"),
) -> None:
    """Show the current role of an account."""

    async def _show():
        gate = await open_gate()
        try:
            return await gate.access.resolve(user_id)
        finally:
            await gate.close()

    role = run_async(_show())
    label = "protected admin" if role.is_protected else "admin" if role.is_admin else "user"
    console.print(f"{role.user_id}: [bold]{label}[/bold]")
