"""Request descriptors and captured responses — the cache's key/value pair.

A request is identified by its normalized URL plus method. A captured
response is immutable once stored; updates replace the entry wholesale.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from urllib.parse import urljoin, urlsplit, urlunsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator

_DEFAULT_PORTS = {"http": 80, "https": 443}
_SAFE_METHODS = frozenset({"GET", "HEAD"})


def normalize_url(url: str) -> str:
    """Canonical form used for cache keys.

    Lowercases scheme and host, drops default ports and fragments, and
    turns an empty path into ``/``. The query string is kept verbatim.
    """
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    netloc = host
    if parts.port is not None and parts.port != _DEFAULT_PORTS.get(scheme):
        netloc = f"{host}:{parts.port}"
    path = parts.path or "/"
    return urlunsplit((scheme, netloc, path, parts.query, ""))


def origin_of(url: str) -> str:
    """Return ``scheme://host[:port]`` for an absolute URL."""
    parts = urlsplit(normalize_url(url))
    return f"{parts.scheme}://{parts.netloc}"


class RequestMode(str, Enum):
    """How the host issued the request."""

    NAVIGATE = "navigate"
    SAME_ORIGIN = "same-origin"
    CORS = "cors"
    NO_CORS = "no-cors"


class RequestDescriptor(BaseModel):
    """An outbound resource request as seen by the interceptor."""

    model_config = ConfigDict(frozen=True)

    url: str
    method: str = "GET"
    headers: dict[str, str] = {}
    mode: RequestMode = RequestMode.CORS

    @field_validator("method")
    @classmethod
    def _upper_method(cls, value: str) -> str:
        return value.upper()

    @field_validator("url")
    @classmethod
    def _require_absolute(cls, value: str) -> str:
        parts = urlsplit(value)
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"Request URL must be absolute, got {value!r}")
        return value

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        origin: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        mode: RequestMode = RequestMode.CORS,
    ) -> RequestDescriptor:
        """Build a descriptor, resolving same-origin paths against *origin*."""
        return cls(
            url=urljoin(origin.rstrip("/") + "/", url),
            method=method,
            headers=headers or {},
            mode=mode,
        )

    @property
    def normalized_url(self) -> str:
        return normalize_url(self.url)

    @property
    def cache_key(self) -> str:
        """Identity of the request inside a namespace."""
        return f"{self.method} {self.normalized_url}"

    @property
    def host(self) -> str:
        return (urlsplit(self.url).hostname or "").lower()

    @property
    def origin(self) -> str:
        return origin_of(self.url)

    @property
    def accept(self) -> str:
        for name, value in self.headers.items():
            if name.lower() == "accept":
                return value
        return ""

    @property
    def is_navigation(self) -> bool:
        return self.mode == RequestMode.NAVIGATE

    @property
    def is_safe(self) -> bool:
        return self.method in _SAFE_METHODS


class CapturedResponse(BaseModel):
    """A response snapshot: status, headers and body bytes.

    Frozen, so a stored response can never be mutated in place. Bytes are
    base64-encoded when the model is serialized to JSON.
    """

    model_config = ConfigDict(
        frozen=True,
        ser_json_bytes="base64",
        val_json_bytes="base64",
    )

    status: int = 200
    headers: dict[str, str] = {}
    body: bytes = b""
    url: str = ""
    synthetic: bool = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def content_type(self) -> str:
        for name, value in self.headers.items():
            if name.lower() == "content-type":
                return value
        return ""

    def clone(self) -> CapturedResponse:
        """Independent copy, one for the caller and one for the store."""
        return self.model_copy(deep=True)

    @classmethod
    def offline(cls) -> CapturedResponse:
        """Minimal response served when cache, network and fallback all fail."""
        return cls(
            status=503,
            headers={"content-type": "text/plain; charset=utf-8"},
            body=b"Offline",
            synthetic=True,
        )


class CacheEntry(BaseModel):
    """A stored (request, response) pair."""

    model_config = ConfigDict(frozen=True)

    request: RequestDescriptor
    response: CapturedResponse
    stored_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
