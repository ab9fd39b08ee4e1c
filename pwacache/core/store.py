"""Versioned store — named request/response containers with reader leases.

Two backends share one interface:

- ``MemoryBackend``: plain dicts, the default for a running worker.
- ``FileBackend``: content-addressed on disk,
  ``{base}/{namespace}/{sha256[0:2]}/{sha256}.json`` where the digest is
  taken over the request cache key.

Writes replace the entry for a key wholesale (last writer wins). A
namespace that still has leases is retired instead of deleted and goes
away when its last lease is released.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
import shutil
import uuid
from collections import Counter
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Protocol

from pwacache.core.hasher import key_digest
from pwacache.models.requests import CacheEntry, CapturedResponse, RequestDescriptor

logger = logging.getLogger(__name__)

_NAMESPACE_RE = re.compile(r"^[^./\\][^/\\]*$")
_STATE_FILE = "lifecycle.json"


class StoreError(RuntimeError):
    """Raised when the backend cannot complete a store operation."""


class StoreWriteFailed(StoreError):
    """Raised when a cache entry could not be written."""

    def __init__(self, namespace: str, key: str, cause: BaseException) -> None:
        super().__init__(f"Write to {namespace!r} failed for {key}: {cause}")
        self.namespace = namespace
        self.key = key
        self.cause = cause


def _check_namespace(name: str) -> str:
    if not _NAMESPACE_RE.match(name):
        raise ValueError(f"Invalid namespace name: {name!r}")
    return name


class StorageBackend(Protocol):
    """Synchronous storage primitive wrapped by VersionedStore."""

    blocking: bool

    def list_namespaces(self) -> list[str]: ...

    def has(self, name: str) -> bool: ...

    def create(self, name: str) -> None: ...

    def get(self, name: str, cache_key: str) -> CacheEntry | None: ...

    def set(self, name: str, entry: CacheEntry) -> None: ...

    def replace(self, name: str, entries: list[CacheEntry]) -> None: ...

    def entries(self, name: str) -> list[CacheEntry]: ...

    def delete(self, name: str) -> bool: ...

    def load_state(self) -> dict[str, Any]: ...

    def save_state(self, state: dict[str, Any]) -> None: ...


class MemoryBackend:
    """In-process backend; all operations are non-blocking."""

    blocking = False

    def __init__(self) -> None:
        self._namespaces: dict[str, dict[str, CacheEntry]] = {}
        self._state: dict[str, Any] = {}

    def list_namespaces(self) -> list[str]:
        return list(self._namespaces)

    def has(self, name: str) -> bool:
        return name in self._namespaces

    def create(self, name: str) -> None:
        self._namespaces.setdefault(_check_namespace(name), {})

    def get(self, name: str, cache_key: str) -> CacheEntry | None:
        return self._namespaces.get(name, {}).get(cache_key)

    def set(self, name: str, entry: CacheEntry) -> None:
        self._namespaces.setdefault(_check_namespace(name), {})[
            entry.request.cache_key
        ] = entry

    def replace(self, name: str, entries: list[CacheEntry]) -> None:
        self._namespaces[_check_namespace(name)] = {
            e.request.cache_key: e for e in entries
        }

    def entries(self, name: str) -> list[CacheEntry]:
        return list(self._namespaces.get(name, {}).values())

    def delete(self, name: str) -> bool:
        return self._namespaces.pop(name, None) is not None

    def load_state(self) -> dict[str, Any]:
        return dict(self._state)

    def save_state(self, state: dict[str, Any]) -> None:
        self._state = dict(state)


class FileBackend:
    """Content-addressed on-disk backend.

    Parameters
    ----------
    base_path:
        Root directory; one subdirectory per namespace.
    """

    blocking = True

    def __init__(self, base_path: Path) -> None:
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)

    def _ns_dir(self, name: str) -> Path:
        return self._base / _check_namespace(name)

    def _entry_path(self, name: str, cache_key: str) -> Path:
        digest = key_digest(cache_key)
        return self._ns_dir(name) / digest[:2] / f"{digest}.json"

    @staticmethod
    def _write_atomic(path: Path, data: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}")
        tmp.write_text(data, encoding="utf-8")
        os.replace(tmp, path)

    # ------------------------------------------------------------------
    # Namespaces
    # ------------------------------------------------------------------

    def list_namespaces(self) -> list[str]:
        return sorted(
            p.name
            for p in self._base.iterdir()
            if p.is_dir() and not p.name.startswith(".")
        )

    def has(self, name: str) -> bool:
        return self._ns_dir(name).is_dir()

    def create(self, name: str) -> None:
        self._ns_dir(name).mkdir(parents=True, exist_ok=True)

    def delete(self, name: str) -> bool:
        path = self._ns_dir(name)
        if not path.exists():
            return False
        shutil.rmtree(path)
        return True

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def get(self, name: str, cache_key: str) -> CacheEntry | None:
        path = self._entry_path(name, cache_key)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            # Namespace deleted between lookup and read
            return None
        return CacheEntry.model_validate_json(text)

    def set(self, name: str, entry: CacheEntry) -> None:
        self._write_atomic(
            self._entry_path(name, entry.request.cache_key),
            entry.model_dump_json(),
        )

    def replace(self, name: str, entries: list[CacheEntry]) -> None:
        """Swap in a fully written namespace in one rename."""
        target = self._ns_dir(name)
        staging = self._base / f".staging-{name}-{uuid.uuid4().hex[:8]}"
        staging.mkdir(parents=True)
        try:
            for entry in entries:
                digest = key_digest(entry.request.cache_key)
                path = staging / digest[:2] / f"{digest}.json"
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(entry.model_dump_json(), encoding="utf-8")
        except OSError:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        trash = None
        if target.exists():
            trash = self._base / f".trash-{name}-{uuid.uuid4().hex[:8]}"
            os.replace(target, trash)
        os.replace(staging, target)
        if trash is not None:
            shutil.rmtree(trash, ignore_errors=True)

    def entries(self, name: str) -> list[CacheEntry]:
        path = self._ns_dir(name)
        if not path.is_dir():
            return []
        return [
            CacheEntry.model_validate_json(p.read_text(encoding="utf-8"))
            for p in sorted(path.glob("*/*.json"))
        ]

    # ------------------------------------------------------------------
    # Lifecycle snapshot
    # ------------------------------------------------------------------

    def load_state(self) -> dict[str, Any]:
        path = self._base / _STATE_FILE
        if not path.exists():
            return {}
        return json.loads(path.read_text(encoding="utf-8"))

    def save_state(self, state: dict[str, Any]) -> None:
        self._write_atomic(self._base / _STATE_FILE, json.dumps(state, indent=2))


class VersionedStore:
    """Async facade over a storage backend, with lease tracking.

    Parameters
    ----------
    backend:
        Storage backend. Defaults to an in-memory backend.
    """

    def __init__(self, backend: StorageBackend | None = None) -> None:
        self._backend: StorageBackend = backend or MemoryBackend()
        self._leases: Counter[str] = Counter()
        self._retired: set[str] = set()

    @classmethod
    def in_memory(cls) -> VersionedStore:
        return cls(MemoryBackend())

    @classmethod
    def on_disk(cls, base_path: Path) -> VersionedStore:
        return cls(FileBackend(base_path))

    async def _call(self, fn: Any, *args: Any) -> Any:
        if self._backend.blocking:
            return await asyncio.to_thread(fn, *args)
        return fn(*args)

    # ------------------------------------------------------------------
    # Namespaces
    # ------------------------------------------------------------------

    async def namespaces(self) -> list[str]:
        return await self._call(self._backend.list_namespaces)

    async def has_namespace(self, name: str) -> bool:
        return await self._call(self._backend.has, name)

    async def open(self, name: str) -> None:
        """Create *name* if missing."""
        self._retired.discard(name)
        await self._call(self._backend.create, name)

    async def delete_namespace(self, name: str) -> bool:
        """Delete *name*, or retire it while leases are outstanding.

        Returns True once the namespace is gone and False when deletion was
        deferred to the release of the last lease.
        """
        if self._leases[name] > 0:
            self._retired.add(name)
            logger.info(
                "Namespace %s has %d active lease(s); deletion deferred",
                name,
                self._leases[name],
            )
            return False
        self._retired.discard(name)
        try:
            await self._call(self._backend.delete, name)
        except OSError as exc:
            raise StoreError(f"Could not delete namespace {name!r}: {exc}") from exc
        return True

    async def clear(self) -> list[str]:
        """Delete every namespace regardless of leases."""
        names = await self.namespaces()
        for name in names:
            try:
                await self._call(self._backend.delete, name)
            except OSError as exc:
                raise StoreError(f"Could not delete namespace {name!r}: {exc}") from exc
        self._retired.clear()
        return names

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    async def match(
        self, name: str | None, request: RequestDescriptor
    ) -> CapturedResponse | None:
        """Return the stored response for *request* in *name*, if any.

        An entry that cannot be read counts as a miss so the caller falls
        back to the network or the offline response.
        """
        if name is None:
            return None
        try:
            entry = await self._call(self._backend.get, name, request.cache_key)
        except (OSError, ValueError) as exc:
            logger.warning("Unreadable entry %s in %s: %s", request.cache_key, name, exc)
            return None
        return entry.response if entry is not None else None

    async def match_first(
        self, names: Iterable[str | None], request: RequestDescriptor
    ) -> CapturedResponse | None:
        """Look *request* up in each namespace in order; first hit wins."""
        for name in names:
            response = await self.match(name, request)
            if response is not None:
                return response
        return None

    async def put(
        self,
        name: str,
        request: RequestDescriptor,
        response: CapturedResponse,
        *,
        create: bool = True,
    ) -> bool:
        """Store *response* under *request*, replacing any previous entry.

        With ``create=False`` nothing is written if the namespace no longer
        exists. Returns whether an entry was written.
        """
        if not create and not await self.has_namespace(name):
            logger.debug("Namespace %s is gone; skipping write of %s", name, request.cache_key)
            return False
        entry = CacheEntry(request=request, response=response)
        try:
            await self._call(self._backend.set, name, entry)
        except (OSError, ValueError) as exc:
            raise StoreWriteFailed(name, request.cache_key, exc) from exc
        return True

    async def put_all(
        self,
        name: str,
        pairs: Iterable[tuple[RequestDescriptor, CapturedResponse]],
    ) -> int:
        """Atomically replace the whole of *name* with *pairs*."""
        entries = [CacheEntry(request=req, response=resp) for req, resp in pairs]
        try:
            await self._call(self._backend.replace, name, entries)
        except (OSError, ValueError) as exc:
            raise StoreWriteFailed(name, "*", exc) from exc
        self._retired.discard(name)
        return len(entries)

    async def keys(self, name: str) -> list[str]:
        entries = await self._call(self._backend.entries, name)
        return sorted(e.request.cache_key for e in entries)

    async def entries(self, name: str) -> list[CacheEntry]:
        return await self._call(self._backend.entries, name)

    # ------------------------------------------------------------------
    # Leases
    # ------------------------------------------------------------------

    def lease_count(self, name: str) -> int:
        return self._leases[name]

    def is_retired(self, name: str) -> bool:
        return name in self._retired

    @asynccontextmanager
    async def lease(self, name: str | None) -> AsyncIterator[None]:
        """Hold *name* open for the duration of the block."""
        if name is None:
            yield
            return
        self._leases[name] += 1
        try:
            yield
        finally:
            self._leases[name] -= 1
            if self._leases[name] <= 0:
                del self._leases[name]
                if name in self._retired:
                    await self._collect_retired(name)

    async def _collect_retired(self, name: str) -> None:
        self._retired.discard(name)
        try:
            await self._call(self._backend.delete, name)
        except OSError as exc:
            # Still not active, so the next activation's collection retries it.
            logger.warning("Deferred deletion of namespace %s failed: %s", name, exc)
        else:
            logger.info("Deleted retired namespace %s after last lease", name)

    # ------------------------------------------------------------------
    # Lifecycle snapshot
    # ------------------------------------------------------------------

    async def load_state(self) -> dict[str, Any]:
        return await self._call(self._backend.load_state)

    async def save_state(self, state: dict[str, Any]) -> None:
        await self._call(self._backend.save_state, state)
