"""``pwacache status`` — show versions and namespaces of a store."""

from __future__ import annotations

import asyncio
from pathlib import Path

from rich.console import Console
from rich.table import Table

from pwacache.cli.commands._worker import STORE_OPTION, open_worker
from pwacache.models.versioning import VersionRecord, VersionState

console = Console()

_STATE_STYLE = {
    VersionState.ACTIVE: "green",
    VersionState.INSTALLED: "yellow",
    VersionState.SUPERSEDED: "dim",
}


async def _collect(store: Path | None) -> tuple[list[VersionRecord], dict[str, int]]:
    async with open_worker(store) as worker:
        counts = {
            name: len(await worker.store.keys(name))
            for name in await worker.store.namespaces()
        }
        return worker.controller.records(), counts


def status_cmd(store: Path | None = STORE_OPTION) -> None:
    """Show version states and namespace sizes."""
    records, counts = asyncio.run(_collect(store))

    versions = Table(title="Versions")
    versions.add_column("Version", style="cyan")
    versions.add_column("State")
    versions.add_column("Namespace")
    versions.add_column("Resources", justify="right")
    for record in records:
        style = _STATE_STYLE.get(record.state, "")
        state = f"[{style}]{record.state.value}[/{style}]" if style else record.state.value
        versions.add_row(record.version, state, record.namespace, str(record.resource_count))

    namespaces = Table(title="Namespaces")
    namespaces.add_column("Namespace", style="cyan")
    namespaces.add_column("Entries", justify="right")
    for name, count in sorted(counts.items()):
        namespaces.add_row(name, str(count))

    if not records and not counts:
        console.print("[dim]Store is empty. Install a manifest with: pwacache install[/dim]")
        return
    console.print(versions)
    console.print(namespaces)
