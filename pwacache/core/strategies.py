"""Retrieval strategies: cache-first with fallback, and stale-while-revalidate.

Both take a request and a StrategyContext, and return a response. Store
writes happen in tracked background tasks so the caller never waits on
them, and neither strategy lets a store or network error escape: the last
resort is the offline fallback document, then a synthetic offline response.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pwacache.core.fetcher import FetchFailed, Fetcher
from pwacache.core.store import StoreWriteFailed, VersionedStore
from pwacache.core.tasks import BackgroundTasks
from pwacache.models.requests import CapturedResponse, RequestDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StrategyContext:
    """Everything a strategy touches, resolved once per request.

    ``static_namespace`` is captured by value at classification time so an
    activation mid-request does not move the strategy to another version.
    """

    store: VersionedStore
    fetcher: Fetcher
    tasks: BackgroundTasks
    static_namespace: str | None
    runtime_namespace: str
    offline_fallback: RequestDescriptor | None = None


async def _store_write(
    ctx: StrategyContext,
    namespace: str,
    request: RequestDescriptor,
    response: CapturedResponse,
    *,
    create: bool = True,
) -> None:
    try:
        written = await ctx.store.put(namespace, request, response, create=create)
    except StoreWriteFailed as exc:
        logger.warning("Cache write failed: %s", exc)
        return
    if written:
        logger.debug("Cached %s in %s", request.cache_key, namespace)


async def offline_response(ctx: StrategyContext) -> CapturedResponse:
    """The configured offline document if stored, else a synthetic response."""
    if ctx.offline_fallback is not None:
        cached = await ctx.store.match_first(
            (ctx.static_namespace, ctx.runtime_namespace), ctx.offline_fallback
        )
        if cached is not None:
            return cached
    return CapturedResponse.offline()


# ---------------------------------------------------------------------------
# Cache first, falling back to network
# ---------------------------------------------------------------------------


async def cache_first(request: RequestDescriptor, ctx: StrategyContext) -> CapturedResponse:
    """Serve from the static then runtime namespace; fetch and cache on miss."""
    async with ctx.store.lease(ctx.static_namespace):
        cached = await ctx.store.match_first(
            (ctx.static_namespace, ctx.runtime_namespace), request
        )
        if cached is not None:
            logger.debug("Serving from cache: %s", request.url)
            return cached

        try:
            response = await ctx.fetcher.fetch(request)
        except FetchFailed as exc:
            logger.info("Fetch failed for %s: %s", request.url, exc)
            return await offline_response(ctx)

        if not response.ok:
            logger.info("Fetch of %s returned status %d", request.url, response.status)
            return await offline_response(ctx)

        if request.is_safe:
            ctx.tasks.spawn(
                _store_write(ctx, ctx.runtime_namespace, request, response.clone()),
                description=f"cache {request.cache_key}",
            )
        return response


# ---------------------------------------------------------------------------
# Stale while revalidate
# ---------------------------------------------------------------------------


async def _revalidate(
    request: RequestDescriptor, ctx: StrategyContext
) -> CapturedResponse | None:
    """Fetch a fresh copy and store it when the status is 200.

    Holds its own lease because it may outlive the foreground request.
    Returns None when the network failed; the failure is logged only.
    """
    async with ctx.store.lease(ctx.static_namespace):
        try:
            response = await ctx.fetcher.fetch(request)
        except FetchFailed as exc:
            logger.info("Revalidation of %s failed: %s", request.url, exc)
            return None

        if response.status != 200:
            logger.info("Revalidation of %s returned status %d", request.url, response.status)
            return None

        if ctx.static_namespace is not None:
            await _store_write(
                ctx, ctx.static_namespace, request, response.clone(), create=False
            )
        else:
            await _store_write(ctx, ctx.runtime_namespace, request, response.clone())
        return response


async def stale_while_revalidate(
    request: RequestDescriptor, ctx: StrategyContext
) -> CapturedResponse:
    """Return the cached document at once while refreshing it from the network."""
    refresh = ctx.tasks.spawn(
        _revalidate(request, ctx), description=f"revalidate {request.cache_key}"
    )
    async with ctx.store.lease(ctx.static_namespace):
        cached = await ctx.store.match(ctx.static_namespace, request)
        if cached is None and ctx.static_namespace is None:
            cached = await ctx.store.match(ctx.runtime_namespace, request)
        if cached is not None:
            logger.debug("Serving stale copy of %s while revalidating", request.url)
            return cached

        fresh = await refresh
        if fresh is not None:
            return fresh
        return await offline_response(ctx)
