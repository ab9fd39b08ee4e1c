"""Strategy selector — classify each request, then route it.

Classification is an explicit ordered predicate list evaluated first-match,
so every request maps to exactly one RequestClass:

1. DISALLOWED — cross-origin and the host is not on the allow-list
2. DOCUMENT   — safe method accepting HTML, or a top-level navigation
3. ASSET      — everything else

Disallowed requests are passed through untouched: the selector returns
None and never reads or writes the store for them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum

from pwacache.core.fetcher import Fetcher
from pwacache.core.lifecycle import LifecycleController
from pwacache.core.store import VersionedStore
from pwacache.core.strategies import (
    StrategyContext,
    cache_first,
    stale_while_revalidate,
)
from pwacache.core.tasks import BackgroundTasks
from pwacache.models.config import DeploymentConfig, RoutingMode
from pwacache.models.requests import CapturedResponse, RequestDescriptor

logger = logging.getLogger(__name__)

_DOCUMENT_TYPES = ("text/html", "application/xhtml+xml")


class RequestClass(str, Enum):
    """The three request classes the selector distinguishes."""

    DISALLOWED = "disallowed"
    DOCUMENT = "document"
    ASSET = "asset"


@dataclass(frozen=True)
class ClassificationPolicy:
    """Inputs to classification: the page origin and the CDN allow-list."""

    origin: str
    allow_list: Sequence[str] = ()


def host_allowed(host: str, allow_list: Sequence[str]) -> bool:
    """True if *host* equals an allow-list entry or is a subdomain of one."""
    host = host.lower()
    return any(host == entry or host.endswith("." + entry) for entry in allow_list)


def _is_disallowed(request: RequestDescriptor, policy: ClassificationPolicy) -> bool:
    if request.origin == policy.origin:
        return False
    return not host_allowed(request.host, policy.allow_list)


def _is_document(request: RequestDescriptor, policy: ClassificationPolicy) -> bool:
    if request.is_navigation:
        return True
    accept = request.accept.lower()
    return request.is_safe and any(t in accept for t in _DOCUMENT_TYPES)


def _always(request: RequestDescriptor, policy: ClassificationPolicy) -> bool:
    return True


Predicate = Callable[[RequestDescriptor, ClassificationPolicy], bool]

CLASSIFIERS: list[tuple[RequestClass, Predicate]] = [
    (RequestClass.DISALLOWED, _is_disallowed),
    (RequestClass.DOCUMENT, _is_document),
    (RequestClass.ASSET, _always),
]


def classify(request: RequestDescriptor, policy: ClassificationPolicy) -> RequestClass:
    """Map *request* to the first class whose predicate matches."""
    for request_class, predicate in CLASSIFIERS:
        if predicate(request, policy):
            return request_class
    raise AssertionError("ASSET predicate always matches")


class StrategySelector:
    """Routes intercepted requests to a retrieval strategy.

    Parameters
    ----------
    controller:
        Source of the active static namespace.
    store:
        The versioned store.
    fetcher:
        Network access.
    deployment:
        Origin, allow-list, offline fallback and routing mode.
    tasks:
        Tracker for background store writes.
    """

    def __init__(
        self,
        controller: LifecycleController,
        store: VersionedStore,
        fetcher: Fetcher,
        deployment: DeploymentConfig,
        tasks: BackgroundTasks,
    ) -> None:
        self._controller = controller
        self._store = store
        self._fetcher = fetcher
        self._deployment = deployment
        self._tasks = tasks
        self._policy = ClassificationPolicy(
            origin=deployment.origin, allow_list=tuple(deployment.allow_list)
        )

    def classify(self, request: RequestDescriptor) -> RequestClass:
        return classify(request, self._policy)

    def _context(self) -> StrategyContext:
        return StrategyContext(
            store=self._store,
            fetcher=self._fetcher,
            tasks=self._tasks,
            static_namespace=self._controller.active_namespace,
            runtime_namespace=self._controller.runtime_namespace,
            offline_fallback=self._deployment.offline_request,
        )

    async def handle(self, request: RequestDescriptor) -> CapturedResponse | None:
        """Serve *request*, or return None to let it pass through untouched."""
        request_class = self.classify(request)
        if request_class == RequestClass.DISALLOWED:
            logger.debug("Passing through cross-origin request %s", request.url)
            return None

        ctx = self._context()
        if (
            request_class == RequestClass.DOCUMENT
            and self._deployment.routing_mode == RoutingMode.PER_CLASS
        ):
            return await stale_while_revalidate(request, ctx)
        return await cache_first(request, ctx)
