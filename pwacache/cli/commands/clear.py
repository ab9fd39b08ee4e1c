"""``pwacache clear`` — send clear-cache through the control channel.

Deletes every namespace, static and runtime, and resets the lifecycle so
no version is active until the next install.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console

from pwacache.cli.commands._worker import STORE_OPTION, open_worker
from pwacache.core.control import QueueReplyPort
from pwacache.models.messages import ControlAction

console = Console()


async def _clear(store: Path | None) -> bool:
    async with open_worker(store) as worker:
        port = QueueReplyPort()
        await worker.on_message({"action": ControlAction.CLEAR_CACHE.value}, port)
        reply = await port.receive()
        return bool(reply.get("success"))


def clear_cmd(
    store: Path | None = STORE_OPTION,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Delete every cached namespace."""
    if not yes:
        typer.confirm("Delete every cached namespace?", abort=True)

    if asyncio.run(_clear(store)):
        console.print("[bold green]All caches cleared.[/bold green]")
    else:
        console.print("[bold red]clear-cache failed; see log output.[/bold red]")
        raise typer.Exit(code=1)
