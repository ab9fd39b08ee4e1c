"""Host adapter — the central coordinator for one deployed cache.

The ServiceWorker wires together the VersionedStore, LifecycleController,
StrategySelector, ControlChannel and UpdatePoller, and exposes one async
method per host event (install, activate, fetch, message). Host event
plumbing stays outside; everything here is plain awaited calls.
"""

from __future__ import annotations

import logging
from typing import Any

from pwacache.core.broadcast import ReplyPort
from pwacache.core.control import ControlChannel, ControlMessageError
from pwacache.core.fetcher import Fetcher, HttpxFetcher
from pwacache.core.lifecycle import InstallFailed, InvalidTransitionError, LifecycleController
from pwacache.core.poller import ManifestSource, UpdatePoller
from pwacache.core.selector import RequestClass, StrategySelector
from pwacache.core.store import VersionedStore
from pwacache.core.tasks import BackgroundTasks
from pwacache.models.config import DeploymentConfig
from pwacache.models.messages import ControlAction, ControlReply
from pwacache.models.requests import CapturedResponse, RequestDescriptor
from pwacache.models.versioning import VersionRecord

logger = logging.getLogger(__name__)


class ServiceWorker:
    """One deployment of the offline cache.

    Parameters
    ----------
    deployment:
        Manifest, origin, allow-list and policies for this deployment.
    store:
        Versioned store. Defaults to an in-memory store.
    fetcher:
        Network access. Defaults to an HttpxFetcher owned by the worker.
    fetch_timeout:
        Transport timeout for the default fetcher.
    """

    def __init__(
        self,
        deployment: DeploymentConfig,
        *,
        store: VersionedStore | None = None,
        fetcher: Fetcher | None = None,
        fetch_timeout: float = 30.0,
    ) -> None:
        self.deployment = deployment
        self.store = store or VersionedStore.in_memory()
        self._owns_fetcher = fetcher is None
        self.fetcher: Fetcher = fetcher or HttpxFetcher(timeout=fetch_timeout)
        self.tasks = BackgroundTasks()

        self.controller = LifecycleController(
            self.store,
            self.fetcher,
            origin=deployment.origin,
            cache_prefix=deployment.cache_prefix,
            activation_policy=deployment.activation_policy,
        )
        self.selector = StrategySelector(
            self.controller, self.store, self.fetcher, deployment, self.tasks
        )
        self.control = ControlChannel(self.controller, self.store)
        self._poller: UpdatePoller | None = None

    # ------------------------------------------------------------------
    # Host events
    # ------------------------------------------------------------------

    async def on_install(self) -> VersionRecord | None:
        """Install the deployed manifest; failure keeps the last good version."""
        if self.deployment.manifest is None:
            logger.debug("No manifest deployed; nothing to install")
            return None
        try:
            return await self.controller.install(self.deployment.manifest)
        except (InstallFailed, InvalidTransitionError) as exc:
            logger.error("%s; still serving version %s", exc, self.controller.active_version)
            return None

    async def on_activate(self) -> VersionRecord | None:
        """Activate the pending version, if any."""
        if self.controller.pending_version is None:
            return None
        return await self.controller.activate()

    async def on_fetch(self, request: RequestDescriptor) -> CapturedResponse | None:
        """Answer an intercepted request; None means let the host handle it."""
        return await self.selector.handle(request)

    def classify(self, request: RequestDescriptor) -> RequestClass:
        return self.selector.classify(request)

    async def on_message(
        self, data: bytes | str | dict[str, Any], reply_port: ReplyPort | None = None
    ) -> ControlReply | None:
        """Handle a control message; malformed messages are logged and ignored."""
        try:
            message = self.control.receive(data)
        except ControlMessageError as exc:
            logger.warning("Dropping malformed control message: %s", exc)
            return None
        if message.known_action == ControlAction.CLEAR_CACHE:
            # Pending cache writes would otherwise land after the clear.
            await self.tasks.drain()
        return await self.control.handle(message, reply_port)

    # ------------------------------------------------------------------
    # Client broadcast
    # ------------------------------------------------------------------

    def subscribe(self, port: ReplyPort) -> None:
        """Receive update-available and controller-change events on *port*."""
        self.controller.broadcast.subscribe(port)

    def unsubscribe(self, port: ReplyPort) -> None:
        self.controller.broadcast.unsubscribe(port)

    # ------------------------------------------------------------------
    # Background work
    # ------------------------------------------------------------------

    async def check_for_update(self, source: ManifestSource) -> VersionRecord | None:
        """Run a single update check against *source* without scheduling more."""
        return await UpdatePoller(self.controller, source).poll_once()

    def start_polling(
        self, source: ManifestSource, *, interval_seconds: float | None = None
    ) -> UpdatePoller:
        """Check *source* now and then every ``update_interval_seconds``."""
        if self._poller is None:
            self._poller = UpdatePoller(
                self.controller,
                source,
                interval_seconds=interval_seconds or self.deployment.update_interval_seconds,
            )
        self._poller.start()
        return self._poller

    async def stop_polling(self) -> None:
        if self._poller is not None:
            await self._poller.stop()

    async def wait_until_idle(self) -> None:
        """Wait for every outstanding background store write or refresh."""
        await self.tasks.drain()

    async def aclose(self) -> None:
        await self.stop_polling()
        await self.tasks.drain()
        if self._owns_fetcher and isinstance(self.fetcher, HttpxFetcher):
            await self.fetcher.aclose()

    async def __aenter__(self) -> ServiceWorker:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
