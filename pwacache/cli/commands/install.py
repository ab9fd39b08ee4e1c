"""``pwacache install MANIFEST`` — populate a version's static namespace.

Reads a JSON manifest (``{"version": ..., "resources": [...]}``), fetches
every resource into the file-backed store and, unless ``--wait`` is given,
activates the new version straight away.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel

from pwacache.cli.commands._worker import ORIGIN_OPTION, STORE_OPTION, open_worker
from pwacache.core.lifecycle import InstallFailed, InvalidTransitionError
from pwacache.models.versioning import ActivationPolicy, Manifest, VersionRecord

console = Console()


async def _install(
    manifest: Manifest, store: Path | None, origin: str | None, wait: bool
) -> tuple[VersionRecord, str | None]:
    policy = ActivationPolicy.WAIT if wait else ActivationPolicy.EAGER
    async with open_worker(
        store, origin=origin, manifest=manifest, activation_policy=policy
    ) as worker:
        record = await worker.controller.install(manifest)
        return record, worker.controller.active_version


def install_cmd(
    manifest_path: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        help="Path to the JSON manifest.",
    ),
    store: Path | None = STORE_OPTION,
    origin: str | None = ORIGIN_OPTION,
    wait: bool = typer.Option(
        False,
        "--wait",
        "-w",
        help="Install without activating; run 'pwacache activate' later.",
    ),
) -> None:
    """Install a manifest version into the store."""
    try:
        manifest = Manifest.model_validate_json(manifest_path.read_text(encoding="utf-8"))
    except ValidationError as exc:
        console.print(f"[bold red]Invalid manifest:[/bold red] {exc}")
        raise typer.Exit(code=1)

    try:
        record, active = asyncio.run(_install(manifest, store, origin, wait))
    except InstallFailed as exc:
        console.print(f"[bold red]Install failed:[/bold red] {exc.cause}")
        console.print("[dim]The previously active version is still serving.[/dim]")
        raise typer.Exit(code=1)
    except InvalidTransitionError as exc:
        console.print(f"[bold red]Cannot install:[/bold red] {exc}")
        raise typer.Exit(code=1)

    console.print()
    console.print(
        Panel(
            "\n".join([
                f"[bold green]Version {record.version} installed![/bold green]",
                "",
                f"[bold]State:[/bold]          {record.state.value}",
                f"[bold]Namespace:[/bold]      {record.namespace}",
                f"[bold]Resources:[/bold]      {record.resource_count}",
                f"[bold]Manifest hash:[/bold]  {record.manifest_hash}",
                f"[bold]Active version:[/bold] {active or '-'}",
            ]),
            title="[bold]pwacache[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )
