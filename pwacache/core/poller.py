"""Periodic update polling.

On a fixed interval the poller loads the published manifest and, when its
version is new, triggers an install. It never activates anything itself;
whether the new version takes over is the controller's activation policy.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol

from pwacache.core.fetcher import FetchFailed, Fetcher, fetch_ok
from pwacache.core.lifecycle import InstallFailed, InvalidTransitionError, LifecycleController
from pwacache.models.requests import RequestDescriptor
from pwacache.models.versioning import Manifest, VersionRecord, VersionState

logger = logging.getLogger(__name__)


class ManifestSource(Protocol):
    """Where the currently published manifest comes from."""

    async def load(self) -> Manifest: ...


class FileManifestSource:
    """Manifest read from a JSON file on disk."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    async def load(self) -> Manifest:
        text = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
        return Manifest.model_validate_json(text)


class HttpManifestSource:
    """Manifest fetched as a JSON document from *url*."""

    def __init__(self, url: str, fetcher: Fetcher) -> None:
        self._request = RequestDescriptor(
            url=url, headers={"accept": "application/json", "cache-control": "no-cache"}
        )
        self._fetcher = fetcher

    async def load(self) -> Manifest:
        response = await fetch_ok(self._fetcher, self._request)
        return Manifest.model_validate_json(response.body)


class UpdatePoller:
    """Checks for a new manifest every *interval_seconds*.

    Parameters
    ----------
    controller:
        Lifecycle controller that installs new versions.
    source:
        Manifest source.
    interval_seconds:
        Delay between checks. The first check runs immediately.
    """

    def __init__(
        self,
        controller: LifecycleController,
        source: ManifestSource,
        *,
        interval_seconds: float = 3600.0,
    ) -> None:
        self._controller = controller
        self._source = source
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def poll_once(self) -> VersionRecord | None:
        """Install the published manifest if its version is new.

        Returns the install record, or None when nothing changed or the
        check failed.
        """
        try:
            manifest = await self._source.load()
        except (FetchFailed, OSError, ValueError) as exc:
            logger.warning("Update check failed: %s", exc)
            return None

        if self._controller.get_state(manifest.version) != VersionState.UNINSTALLED:
            logger.debug("Version %s already known; nothing to install", manifest.version)
            return None

        logger.info("New version %s published; installing", manifest.version)
        try:
            return await self._controller.install(manifest)
        except (InstallFailed, InvalidTransitionError) as exc:
            logger.error("%s", exc)
            return None

    async def _run(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="pwacache-update-poller")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
