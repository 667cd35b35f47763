"""
invitegate bootstrap command - issue the code for the first admin.
"""

from datetime import timedelta
from typing import Optional

import typer

from ..common import console, open_gate, run_async


def bootstrap_command(
    email: str = typer.Argument(..., help="Email of the first (protected) admin"),
    ttl_days: Optional[float] = typer.Option(
        None, "--ttl-days", "-t", help="Days until expiration (default from config)"
    ),
) -> None:
    """
    Issue the bootstrap invite code.

    Only works while no account exists. Whoever redeems the code becomes a
    protected admin that can never be demoted.

    Example:
        $ invitegate bootstrap owner@example.com
    """

    async def _bootstrap():
        gate = await open_gate()
        try:
            ttl = timedelta(days=ttl_days) if ttl_days is not None else None
            return await gate.codes.issue_bootstrap(email, ttl=ttl)
        finally:
            await gate.close()

    invite = run_async(_bootstrap())

    console.print("\n[bold cyan]Bootstrap invite code[/bold cyan]\n")
    console.print(f"Email: [cyan]{invite.intended_email}[/cyan]")
    console.print(f"Code: [bold green]{invite.code}[/bold green]")
    console.print(f"Expires: [yellow]{invite.expires_at}[/yellow]")
    console.print("\n[yellow]This code is shown only once.[/yellow]\n")
