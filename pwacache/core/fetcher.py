"""Network access for the cache, built on httpx.AsyncClient.

Any HTTP status comes back as a CapturedResponse; only transport errors
raise. Timeouts are the transport's own; nothing here adds another.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from pwacache.models.requests import CapturedResponse, RequestDescriptor

logger = logging.getLogger(__name__)


class FetchFailed(RuntimeError):
    """Raised when the network is unreachable or returned a non-success status."""

    def __init__(
        self,
        request: RequestDescriptor,
        *,
        status: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        detail = f"status {status}" if status is not None else f"{cause}"
        super().__init__(f"Fetch of {request.url} failed: {detail}")
        self.request = request
        self.status = status
        self.cause = cause


class Fetcher(Protocol):
    """Anything that can turn a request into a captured response."""

    async def fetch(self, request: RequestDescriptor) -> CapturedResponse: ...


class HttpxFetcher:
    """Fetcher backed by httpx.AsyncClient.

    Args:
        timeout: Transport-level timeout in seconds
        transport: Optional custom transport (useful for testing)
        headers: Default headers sent with every request

    Example:
        >>> async with HttpxFetcher(timeout=10.0) as fetcher:
        ...     resp = await fetcher.fetch(request)
    """

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers=headers,
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client and release resources."""
        await self._client.aclose()

    async def __aenter__(self) -> HttpxFetcher:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def fetch(self, request: RequestDescriptor) -> CapturedResponse:
        try:
            resp = await self._client.request(
                request.method, request.url, headers=request.headers
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.debug("Network error for %s: %s", request.url, exc)
            raise FetchFailed(request, cause=exc) from exc

        return CapturedResponse(
            status=resp.status_code,
            headers=dict(resp.headers),
            body=resp.content,
            url=str(resp.url),
        )


async def fetch_ok(fetcher: Fetcher, request: RequestDescriptor) -> CapturedResponse:
    """Fetch *request* and raise FetchFailed unless the status is a success."""
    response = await fetcher.fetch(request)
    if not response.ok:
        raise FetchFailed(request, status=response.status)
    return response
