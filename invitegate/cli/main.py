"""
InviteGate CLI - Command-line interface for invite codes and admin roles.

Usage:
    invitegate bootstrap EMAIL   Issue the code for the first, protected admin
    invitegate codes             Issue, list, revoke invite codes
    invitegate roles             Promote, demote and list admins
    invitegate migrate           Inspect and render database migrations
"""

import typer

from .commands import bootstrap, codes, migrate, roles

# Create the main Typer app
app = typer.Typer(
    name="invitegate",
    help="Invite-gated signup and admin roles on Supabase",
    add_completion=False,
)

# Register top-level commands
app.command(name="bootstrap")(bootstrap.bootstrap_command)

# Add subcommand groups
app.add_typer(codes.app, name="codes")
app.add_typer(roles.app, name="roles")
app.add_typer(migrate.app, name="migrate")


@app.callback()
def callback() -> None:
    """
    InviteGate - invite-only signup for Supabase projects.

    Reads INVITEGATE_SUPABASE_URL and INVITEGATE_SUPABASE_KEY from the
    environment or a .env file.
    """
    pass


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
