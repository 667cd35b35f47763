"""
CLI commands for invite code management.
"""

from datetime import timedelta
from typing import List, Optional
from uuid import UUID

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.table import Table

from ...errors import ValidationError
from ...invites.models import CodeFilter, InviteStatus
from ..common import console, open_gate, run_async

app = typer.Typer(help="Manage invite codes")


def _ttl(days: Optional[float]) -> Optional[timedelta]:
    return timedelta(days=days) if days is not None else None


@app.command("issue")
def codes_issue_command(
    emails: List[str] = typer.Argument(..., help="Recipient email address(es)"),
    actor: UUID = typer.Option(..., "--as", help="Admin account ID issuing the code"),
    max_uses: int = typer.Option(1, "--max-uses", "-m", help="Redemptions allowed"),
    ttl_days: Optional[float] = typer.Option(
        None, "--ttl-days", "-t", help="Days until expiration (default from config)"
    ),
    notes: Optional[str] = typer.Option(None, "--notes", "-n", help="Note for admins"),
) -> None:
    """
    Issue invite codes bound to email addresses.

    The codes are printed once; they cannot be shown again later.

    Example:
        $ invitegate codes issue friend@example.com --as <admin-id>
        $ invitegate codes issue a@example.com b@example.com --as <admin-id> -t 7
    """

    async def _issue():
        gate = await open_gate()
        try:
            if len(emails) == 1:
                return [
                    await gate.codes.issue(
                        actor, emails[0], max_uses=max_uses,
                        ttl=_ttl(ttl_days), notes=notes,
                    )
                ]
            return await gate.codes.issue_batch(
                actor, emails, max_uses=max_uses, ttl=_ttl(ttl_days), notes=notes
            )
        finally:
            await gate.close()

    invites = run_async(_issue())

    table = Table(title="Issued invite codes")
    table.add_column("Email", style="cyan")
    table.add_column("Code", style="bold green")
    table.add_column("Uses", style="magenta")
    table.add_column("Expires", style="yellow")
    table.add_column("ID", style="dim")
    for invite in invites:
        table.add_row(
            invite.intended_email,
            invite.code,
            str(invite.max_uses),
            invite.expires_at.strftime("%Y-%m-%d %H:%M"),
            str(invite.id),
        )
    console.print(table)
    console.print("[yellow]Codes are shown only once.[/yellow]")


@app.command("list")
def codes_list_command(
    actor: UUID = typer.Option(..., "--as", help="Admin account ID"),
    status: Optional[InviteStatus] = typer.Option(None, "--status", "-s", help="Filter by status"),
    created_by: Optional[UUID] = typer.Option(None, "--created-by", help="Filter by issuer"),
    email: Optional[str] = typer.Option(None, "--email", "-e", help="Filter by recipient"),
    limit: int = typer.Option(50, "--limit", "-l", help="Maximum results"),
    offset: int = typer.Option(0, "--offset", "-o", help="Results to skip"),
) -> None:
    """List invite codes, newest first."""

    async def _list():
        gate = await open_gate()
        try:
            try:
                code_filter = CodeFilter(
                    status=status,
                    created_by=created_by,
                    intended_email=email,
                    limit=limit,
                    offset=offset,
                )
            except PydanticValidationError as e:
                raise ValidationError.from_pydantic(e) from e
            invites = await gate.codes.list(actor, code_filter)
            return invites, gate.clock()
        finally:
            await gate.close()

    invites, now = run_async(_list())

    if not invites:
        console.print("[yellow]No invite codes found[/yellow]")
        return

    table = Table(title="Invite codes")
    table.add_column("Code", style="cyan")
    table.add_column("Email", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Uses", style="magenta")
    table.add_column("Expires", style="yellow")
    table.add_column("ID", style="dim")

    for invite in invites:
        invite_status = invite.status(now)
        status_style = {
            InviteStatus.ACTIVE: "green",
            InviteStatus.USED_UP: "blue",
            InviteStatus.EXPIRED: "yellow",
            InviteStatus.REVOKED: "red",
        }[invite_status]
        table.add_row(
            invite.masked_code,
            invite.intended_email,
            f"[{status_style}]{invite_status.value}[/{status_style}]",
            f"{invite.current_uses}/{invite.max_uses}",
            invite.expires_at.strftime("%Y-%m-%d %H:%M"),
            str(invite.id),
        )

    console.print(table)


@app.command("revoke")
def codes_revoke_command(
    code_id: UUID = typer.Argument(..., help="Invite code ID"),
    actor: UUID = typer.Option(..., "--as", help="Admin account ID"),
) -> None:
    """Revoke an invite code."""

    async def _revoke():
        gate = await open_gate()
        try:
            await gate.codes.revoke(actor, code_id)
        finally:
            await gate.close()

    run_async(_revoke())
    console.print(f"[green]✓[/green] Invite code {code_id} revoked")


@app.command("stats")
def codes_stats_command(
    actor: UUID = typer.Option(..., "--as", help="Admin account ID"),
) -> None:
    """Show invite code counts by status."""

    async def _stats():
        gate = await open_gate()
        try:
            return await gate.codes.stats(actor)
        finally:
            await gate.close()

    stats = run_async(_stats())

    table = Table(title="Invite code statistics")
    table.add_column("Status", style="cyan")
    table.add_column("Count", style="magenta", justify="right")
    for name in ("active", "used_up", "expired", "revoked", "total"):
        table.add_row(name, str(getattr(stats, name)))
    console.print(table)
