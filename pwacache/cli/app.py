"""Main Typer application — imports and registers all CLI commands.

Entry point: ``pwacache`` (configured via pyproject.toml project.scripts).
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from pwacache.cli.commands._worker import STORE_OPTION, open_worker
from pwacache.cli.commands.clear import clear_cmd
from pwacache.cli.commands.fetch_cmd import fetch_cmd
from pwacache.cli.commands.install import install_cmd
from pwacache.cli.commands.status import status_cmd
from pwacache.cli.commands.watch import watch_cmd
from pwacache.config import settings

app = typer.Typer(
    name="pwacache",
    help="pwacache: versioned offline cache with lifecycle-managed deployments.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="install", help="Install a manifest version into the store.")(install_cmd)
app.command(name="status", help="Show versions and namespaces.")(status_cmd)
app.command(name="fetch", help="Route one request through the cache.")(fetch_cmd)
app.command(name="clear", help="Delete every cached namespace.")(clear_cmd)
app.command(name="watch", help="Poll a manifest source and install new versions.")(watch_cmd)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None, "--log-level", help="Logging level (default: PWACACHE_LOG_LEVEL)."
    ),
) -> None:
    """Configure logging before any command runs."""
    logging.basicConfig(
        level=(log_level or settings.log_level).upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.command(name="activate", help="Activate the pending version (skip-waiting).")
def activate_cmd(store: Path | None = STORE_OPTION) -> None:
    """Force the installed, pending version to become active."""
    console = Console()

    async def _activate() -> str | None:
        async with open_worker(store) as worker:
            await worker.on_message({"action": "skip-waiting"})
            return worker.controller.active_version

    active = asyncio.run(_activate())
    if active is None:
        console.print("[dim]No version installed.[/dim]")
        raise typer.Exit(code=1)
    console.print(f"[bold green]Active version:[/bold green] {active}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
