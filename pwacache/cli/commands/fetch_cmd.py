"""``pwacache fetch URL`` — route one request through the selector.

Prints the request class and the response that came back. Useful to check
allow-list and document classification against a real store.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console

from pwacache.cli.commands._worker import ORIGIN_OPTION, STORE_OPTION, open_worker
from pwacache.core.selector import RequestClass
from pwacache.models.requests import CapturedResponse, RequestDescriptor, RequestMode

console = Console()


async def _fetch(
    url: str, store: Path | None, origin: str | None, accept: str, navigate: bool
) -> tuple[RequestClass, CapturedResponse | None]:
    async with open_worker(store, origin=origin) as worker:
        request = RequestDescriptor.from_url(
            url,
            origin=worker.deployment.origin,
            headers={"accept": accept} if accept else None,
            mode=RequestMode.NAVIGATE if navigate else RequestMode.CORS,
        )
        return worker.classify(request), await worker.on_fetch(request)


def fetch_cmd(
    url: str = typer.Argument(..., help="Absolute URL or same-origin path."),
    store: Path | None = STORE_OPTION,
    origin: str | None = ORIGIN_OPTION,
    accept: str = typer.Option("", "--accept", "-a", help="Accept header to send."),
    navigate: bool = typer.Option(
        False, "--navigate", "-n", help="Treat the request as a top-level navigation."
    ),
) -> None:
    """Route a request through the cache and report the result."""
    request_class, response = asyncio.run(_fetch(url, store, origin, accept, navigate))

    console.print(f"[bold]Class:[/bold]  {request_class.value}")
    if response is None:
        console.print("[dim]Passed through; the cache does not handle this request.[/dim]")
        return
    source = "synthetic offline response" if response.synthetic else response.url or "-"
    console.print(f"[bold]Status:[/bold] {response.status}")
    console.print(f"[bold]Bytes:[/bold]  {len(response.body)}")
    console.print(f"[bold]URL:[/bold]    {source}")
