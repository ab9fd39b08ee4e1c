"""Shared setup for commands that operate on a file-backed store."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import typer

from pwacache.config import settings
from pwacache.core.store import VersionedStore
from pwacache.core.worker import ServiceWorker
from pwacache.models.config import DeploymentConfig
from pwacache.models.requests import origin_of
from pwacache.models.versioning import ActivationPolicy, Manifest

STORE_OPTION = typer.Option(
    None,
    "--store",
    "-s",
    help="Path to the cache store directory (default: PWACACHE_STORE_PATH).",
)
ORIGIN_OPTION = typer.Option(
    None,
    "--origin",
    "-o",
    help="Origin that same-origin paths resolve against (default: PWACACHE_ORIGIN).",
)


@asynccontextmanager
async def open_worker(
    store_path: Path | None,
    *,
    origin: str | None = None,
    manifest: Manifest | None = None,
    activation_policy: ActivationPolicy | None = None,
) -> AsyncIterator[ServiceWorker]:
    """Build a worker over the on-disk store and restore its lifecycle."""
    deployment = DeploymentConfig.from_settings(settings, manifest)
    updates: dict[str, object] = {}
    if origin:
        updates["origin"] = origin_of(origin)
    if activation_policy is not None:
        updates["activation_policy"] = activation_policy
    if updates:
        deployment = deployment.model_copy(update=updates)

    store = VersionedStore.on_disk(store_path or settings.store_path)
    worker = ServiceWorker(
        deployment, store=store, fetch_timeout=settings.fetch_timeout_seconds
    )
    await worker.controller.restore()
    try:
        yield worker
    finally:
        await worker.aclose()
