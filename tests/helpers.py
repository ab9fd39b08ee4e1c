"""Test helpers: a scripted network and request builders."""

from __future__ import annotations

from urllib.parse import urljoin

import httpx

from pwacache.core.fetcher import HttpxFetcher
from pwacache.models.requests import RequestDescriptor, RequestMode

ORIGIN = "https://app.test"
CDN_SCRIPT = "https://cdn.jsdelivr.net/npm/alpinejs@3/dist/cdn.min.js"


class FakeNetwork:
    """Scripted network behind httpx.MockTransport.

    Routes map absolute URLs to (status, body, content type). Unknown URLs
    answer 404; ``offline = True`` makes every request a connection error.
    """

    def __init__(self) -> None:
        self.routes: dict[str, tuple[int, bytes, str]] = {}
        self.calls: list[str] = []
        self.offline = False

    def set(
        self,
        url: str,
        body: bytes | str,
        *,
        status: int = 200,
        content_type: str = "text/plain",
    ) -> None:
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.routes[urljoin(ORIGIN + "/", url)] = (status, body, content_type)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.calls.append(url)
        if self.offline:
            raise httpx.ConnectError("network unreachable", request=request)
        status, body, content_type = self.routes.get(url, (404, b"not found", "text/plain"))
        return httpx.Response(status, content=body, headers={"content-type": content_type})

    def fetcher(self) -> HttpxFetcher:
        return HttpxFetcher(transport=httpx.MockTransport(self.handler))


def document(path: str) -> RequestDescriptor:
    """A same-origin request that accepts HTML."""
    return RequestDescriptor.from_url(
        path, origin=ORIGIN, headers={"Accept": "text/html,application/xhtml+xml"}
    )


def navigation(path: str) -> RequestDescriptor:
    return RequestDescriptor.from_url(path, origin=ORIGIN, mode=RequestMode.NAVIGATE)


def asset(url: str) -> RequestDescriptor:
    return RequestDescriptor.from_url(url, origin=ORIGIN, headers={"Accept": "*/*"})
