"""``pwacache watch SOURCE`` — poll for newly published manifests.

SOURCE is either an http(s) URL serving the manifest JSON or a path to a
manifest file. Every ``PWACACHE_UPDATE_INTERVAL_SECONDS`` the published
version is compared with the store and installed when new; the events a
page would receive are printed as they arrive.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import typer
from rich.console import Console

from pwacache.cli.commands._worker import ORIGIN_OPTION, STORE_OPTION, open_worker
from pwacache.core.control import QueueReplyPort
from pwacache.core.poller import FileManifestSource, HttpManifestSource, ManifestSource
from pwacache.core.worker import ServiceWorker
from pwacache.models.messages import ClientEventType

console = Console()


def _source_for(source: str, worker: ServiceWorker) -> ManifestSource:
    if source.startswith(("http://", "https://")):
        return HttpManifestSource(source, worker.fetcher)
    return FileManifestSource(Path(source))


def _print_event(event: dict[str, Any]) -> None:
    action = event.get("action")
    if action == ClientEventType.UPDATE_AVAILABLE.value:
        console.print(
            f"[bold yellow]Update available:[/bold yellow] {event['version']} "
            "[dim](run 'pwacache activate')[/dim]"
        )
    elif action == ClientEventType.CONTROLLER_CHANGE.value:
        previous = event.get("previous") or "-"
        console.print(f"[bold green]Now serving:[/bold green] {event['version']} (was {previous})")
    else:
        console.print(f"[dim]{event}[/dim]")


async def _watch_once(store: Path | None, origin: str | None, source: str) -> int:
    async with open_worker(store, origin=origin) as worker:
        port = QueueReplyPort()
        worker.subscribe(port)
        record = await worker.check_for_update(_source_for(source, worker))
        while not port.queue.empty():
            _print_event(port.queue.get_nowait())
        if record is None:
            active = worker.controller.active_version or "-"
            console.print(f"[dim]No new version; active version {active}.[/dim]")
        return 0 if record is not None else 1


async def _watch(
    store: Path | None, origin: str | None, source: str, interval: float | None
) -> None:
    async with open_worker(store, origin=origin) as worker:
        port = QueueReplyPort()
        worker.subscribe(port)
        poller = worker.start_polling(_source_for(source, worker), interval_seconds=interval)
        console.print(
            f"[bold]Watching[/bold] {source} every {poller.interval_seconds:g}s "
            "[dim](Ctrl+C to stop)[/dim]"
        )
        while True:
            _print_event(await port.receive())


def watch_cmd(
    source: str = typer.Argument(..., help="Manifest URL or path to a manifest file."),
    store: Path | None = STORE_OPTION,
    origin: str | None = ORIGIN_OPTION,
    interval: float | None = typer.Option(
        None,
        "--interval",
        "-i",
        min=1.0,
        help="Seconds between checks (default: PWACACHE_UPDATE_INTERVAL_SECONDS).",
    ),
    once: bool = typer.Option(
        False, "--once", help="Check a single time and exit; exit code 1 if nothing new."
    ),
) -> None:
    """Install newly published manifest versions as they appear."""
    if once:
        raise typer.Exit(code=asyncio.run(_watch_once(store, origin, source)))

    try:
        asyncio.run(_watch(store, origin, source, interval))
    except KeyboardInterrupt:
        console.print("[dim]Stopped watching.[/dim]")
