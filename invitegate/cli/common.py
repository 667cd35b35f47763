"""
Shared helpers for InviteGate CLI commands.
"""

import asyncio
import logging
from typing import Any, Coroutine, TypeVar

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.logging import RichHandler

from ..client import InviteGate
from ..errors import InviteGateError, ValidationError

T = TypeVar("T")

console = Console()


def configure_logging(debug: bool) -> None:
    """Send library logs to stderr; DEBUG when INVITEGATE_DEBUG is set."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


async def open_gate() -> InviteGate:
    """Create an InviteGate client from INVITEGATE_* settings."""
    gate = await InviteGate.create()
    configure_logging(gate.config.debug)
    return gate


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run async function in sync context.

    InviteGate errors and configuration problems are reported on the console
    and end the command with exit code 1.
    """
    try:
        return asyncio.run(coro)
    except ValidationError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        for error in e.errors:
            console.print(f"  {error['field']}: {error['message']}")
        raise typer.Exit(1)
    except InviteGateError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)
    except PydanticValidationError as e:
        console.print(f"[red]Error loading configuration:[/red] {e}")
        console.print("Set INVITEGATE_SUPABASE_URL and INVITEGATE_SUPABASE_KEY")
        raise typer.Exit(1)
