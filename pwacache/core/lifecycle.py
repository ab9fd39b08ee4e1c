"""Version lifecycle state machine — install, activate, garbage-collect.

Enforces:
- Valid state transitions only (VALID_TRANSITIONS table)
- All-or-nothing install; a failed install leaves the active version serving
- At most one pending version; a newer install supersedes the older one
- Activation as a critical section, followed by garbage collection of
  every namespace that is neither active, pending nor runtime
- Every transition recorded in ``history`` and persisted through the store
- update-available and controller-change published on the client broadcast
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from pwacache.core.broadcast import ClientBroadcast
from pwacache.core.fetcher import Fetcher, fetch_ok
from pwacache.core.store import StoreError, VersionedStore
from pwacache.models.messages import ClientEvent, ClientEventType
from pwacache.models.reports import GcFailed
from pwacache.models.requests import CapturedResponse, RequestDescriptor
from pwacache.models.versioning import (
    VALID_TRANSITIONS,
    ActivationPolicy,
    Manifest,
    VersionRecord,
    VersionState,
    VersionTransition,
)

logger = logging.getLogger(__name__)


class InvalidTransitionError(RuntimeError):
    """Raised when a requested state transition is not valid."""


class InstallFailed(RuntimeError):
    """Raised when a manifest could not be fully populated.

    Non-fatal: the previously active version keeps serving.
    """

    def __init__(self, version: str, cause: BaseException) -> None:
        super().__init__(f"Install of version {version!r} failed: {cause}")
        self.version = version
        self.cause = cause


class LifecycleController:
    """Owns the active and pending versions of one cache.

    Parameters
    ----------
    store:
        The versioned store holding static and runtime namespaces.
    fetcher:
        Network access used to populate manifests.
    origin:
        Origin that same-origin manifest paths resolve against.
    cache_prefix:
        Prefix for every namespace this controller manages.
    activation_policy:
        EAGER activates right after install; WAIT holds the new version
        until ``skip_waiting()``.
    broadcast:
        Client event stream for update-available and controller-change.
    """

    def __init__(
        self,
        store: VersionedStore,
        fetcher: Fetcher,
        *,
        origin: str,
        cache_prefix: str = "pwacache",
        activation_policy: ActivationPolicy = ActivationPolicy.EAGER,
        broadcast: ClientBroadcast | None = None,
    ) -> None:
        self._store = store
        self._fetcher = fetcher
        self._origin = origin
        self._prefix = cache_prefix
        self.activation_policy = activation_policy
        self.broadcast = broadcast or ClientBroadcast()
        # Bumped by reset(); an install that started before a reset must not land.
        self._generation = 0

        self._records: dict[str, VersionRecord] = {}
        self._active: str | None = None
        self._pending: str | None = None
        self._install_locks: dict[str, asyncio.Lock] = {}
        self._activation_lock = asyncio.Lock()
        self._gc_retry: set[str] = set()

        self.history: list[VersionTransition] = []
        self.gc_failures: list[GcFailed] = []

    # ------------------------------------------------------------------
    # Names and state
    # ------------------------------------------------------------------

    @property
    def runtime_namespace(self) -> str:
        return f"{self._prefix}-runtime"

    def static_namespace(self, version: str) -> str:
        return f"{self._prefix}-static-{version}"

    @property
    def active_version(self) -> str | None:
        return self._active

    @property
    def pending_version(self) -> str | None:
        return self._pending

    @property
    def active_namespace(self) -> str | None:
        """Static namespace serving reads, or None before the first activation."""
        if self._active is None:
            return None
        return self._records[self._active].namespace

    @property
    def pending_namespace(self) -> str | None:
        if self._pending is None:
            return None
        return self._records[self._pending].namespace

    def get_state(self, version: str) -> VersionState:
        record = self._records.get(version)
        return record.state if record is not None else VersionState.UNINSTALLED

    def get_record(self, version: str) -> VersionRecord | None:
        return self._records.get(version)

    def records(self) -> list[VersionRecord]:
        return list(self._records.values())

    def _transition(
        self, version: str, target: VersionState, *, reason: str = "", **changes: Any
    ) -> VersionRecord:
        record = self._records.get(version) or VersionRecord(
            version=version, namespace=self.static_namespace(version)
        )
        current = record.state
        allowed = VALID_TRANSITIONS.get(current, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition {version} from {current.value} to {target.value}. "
                f"Allowed: {[s.value for s in allowed]}"
            )
        record = record.model_copy(update={"state": target, **changes})
        self._records[version] = record
        self.history.append(
            VersionTransition(
                version=version, from_state=current, to_state=target, reason=reason
            )
        )
        logger.info("Version %s: %s -> %s %s", version, current.value, target.value, reason)
        return record

    # ------------------------------------------------------------------
    # Install
    # ------------------------------------------------------------------

    async def install(self, manifest: Manifest) -> VersionRecord:
        """Populate the static namespace of ``manifest.version``.

        Idempotent: an installed or active version is returned unchanged.
        Raises InstallFailed if any resource cannot be fetched or stored, or
        if the cache was reset while the fetches were running. Cancellation
        rolls the version back to uninstalled before propagating.
        """
        version = manifest.version
        lock = self._install_locks.setdefault(version, asyncio.Lock())
        async with lock:
            state = self.get_state(version)
            if state in (VersionState.INSTALLED, VersionState.ACTIVE):
                logger.debug("Version %s already %s; install skipped", version, state.value)
                return self._records[version]
            if state == VersionState.SUPERSEDED:
                raise InvalidTransitionError(
                    f"Version {version} was superseded; publish a new version instead"
                )

            self._transition(version, VersionState.INSTALLING, reason="manifest received")
            generation = self._generation
            namespace = self.static_namespace(version)
            descriptors = []
            try:
                descriptors = manifest.descriptors(self._origin)
                responses = await self._fetch_all(descriptors)
                await self._store.put_all(namespace, zip(descriptors, responses))
                if self._generation != generation:
                    raise RuntimeError("cache was cleared during install")
            except asyncio.CancelledError:
                await self._rollback_install(version, namespace, generation, "install cancelled")
                logger.warning("Install of version %s cancelled", version)
                raise
            except (RuntimeError, OSError, ValueError) as exc:
                await self._rollback_install(version, namespace, generation, "install failed")
                logger.error("Install of version %s failed: %s", version, exc)
                raise InstallFailed(version, exc) from exc

            record = self._transition(
                version,
                VersionState.INSTALLED,
                reason=f"{len(descriptors)} resources cached",
                manifest_hash=manifest.manifest_hash,
                resource_count=len(descriptors),
                installed_at=datetime.now(timezone.utc),
            )
            previous = self._pending
            self._pending = version
            if previous is not None and previous != version:
                self._transition(previous, VersionState.SUPERSEDED, reason=f"replaced by {version}")
            await self._persist()

        if self._pending != version:
            # A newer install or a reset got in between; nothing left to activate.
            return record
        if self.activation_policy == ActivationPolicy.EAGER:
            record = await self.activate(version)
        elif self._active is not None:
            self.broadcast.publish(
                ClientEvent(action=ClientEventType.UPDATE_AVAILABLE, version=version)
            )
        return record

    async def _fetch_all(
        self, descriptors: list[RequestDescriptor]
    ) -> list[CapturedResponse]:
        """Fetch every descriptor; on the first failure cancel the rest."""
        tasks = [asyncio.ensure_future(fetch_ok(self._fetcher, d)) for d in descriptors]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _rollback_install(
        self, version: str, namespace: str, generation: int, reason: str
    ) -> None:
        """Undo a half-finished install.

        After a reset the record is already gone, so only the namespace the
        install wrote to is removed.
        """
        if self._generation == generation:
            self._transition(version, VersionState.UNINSTALLED, reason=reason)
            await self._discard_partial(namespace)
            await self._persist()
        else:
            await self._discard_partial(namespace)

    async def _discard_partial(self, namespace: str) -> None:
        if namespace == self.active_namespace:
            return
        try:
            await self._store.delete_namespace(namespace)
        except StoreError as exc:
            logger.warning("Could not discard partial namespace %s: %s", namespace, exc)

    # ------------------------------------------------------------------
    # Activate
    # ------------------------------------------------------------------

    async def activate(self, version: str | None = None) -> VersionRecord:
        """Make the pending (or given) installed version the active one.

        Requests classified after this returns see the new namespace;
        in-flight strategies finish against the one they leased.
        """
        async with self._activation_lock:
            version = version or self._pending
            if version is None:
                raise InvalidTransitionError("No installed version is pending activation")
            if self.get_state(version) == VersionState.ACTIVE:
                return self._records[version]

            self._transition(version, VersionState.ACTIVATING, reason="activation started")
            previous = self._active
            self._active = version
            if self._pending == version:
                self._pending = None
            record = self._transition(
                version,
                VersionState.ACTIVE,
                reason="now serving",
                activated_at=datetime.now(timezone.utc),
            )
            if previous is not None and previous != version:
                self._transition(previous, VersionState.SUPERSEDED, reason=f"replaced by {version}")
            await self._persist()

        self.broadcast.publish(
            ClientEvent(
                action=ClientEventType.CONTROLLER_CHANGE, version=version, previous=previous
            )
        )
        await self.collect_garbage()
        return record

    async def skip_waiting(self) -> VersionRecord | None:
        """Force the pending version active; no-op when nothing is pending."""
        if self._pending is None:
            logger.debug("skip-waiting received with no pending version")
            return None
        return await self.activate(self._pending)

    # ------------------------------------------------------------------
    # Garbage collection
    # ------------------------------------------------------------------

    async def collect_garbage(self) -> list[str]:
        """Delete namespaces that are neither active, pending nor runtime.

        Leased namespaces are retired and deleted on last release. Backend
        failures are recorded in ``gc_failures`` and retried next cycle.
        """
        keep = {self.active_namespace, self.pending_namespace, self.runtime_namespace}
        candidates = set(await self._store.namespaces()) | self._gc_retry
        deleted: list[str] = []
        for name in sorted(candidates - keep):
            try:
                gone = await self._store.delete_namespace(name)
            except StoreError as exc:
                attempt = sum(1 for f in self.gc_failures if f.namespace == name) + 1
                self.gc_failures.append(GcFailed(namespace=name, cause=str(exc), attempt=attempt))
                self._gc_retry.add(name)
                logger.warning("GC of namespace %s failed (attempt %d): %s", name, attempt, exc)
                continue
            self._gc_retry.discard(name)
            if gone:
                deleted.append(name)
                logger.info("Deleted old namespace %s", name)
        return deleted

    # ------------------------------------------------------------------
    # Reset and persistence
    # ------------------------------------------------------------------

    async def reset(self) -> None:
        """Forget every version; the cache reverts to uninstalled."""
        async with self._activation_lock:
            self._generation += 1
            self._records.clear()
            self._active = None
            self._pending = None
            self._gc_retry.clear()
            await self._persist()
        logger.info("Lifecycle reset; no version active")

    def snapshot(self) -> dict[str, Any]:
        return {
            "active": self._active,
            "pending": self._pending,
            "records": [r.model_dump(mode="json") for r in self._records.values()],
        }

    async def _persist(self) -> None:
        try:
            await self._store.save_state(self.snapshot())
        except OSError as exc:
            logger.warning("Could not persist lifecycle state: %s", exc)

    async def restore(self) -> None:
        """Reload active/pending versions saved by a previous process."""
        state = await self._store.load_state()
        records = [VersionRecord.model_validate(r) for r in state.get("records", [])]
        self._records = {r.version: r for r in records}
        self._active = state.get("active")
        self._pending = state.get("pending")
        if self._active is not None and self._active not in self._records:
            self._active = None
        if self._pending is not None and self._pending not in self._records:
            self._pending = None
