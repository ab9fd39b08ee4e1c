"""Canonical hashing helpers for content addressing.

Cache entries are stored under the SHA-256 of their request key, and
manifests carry a content address so a redeploy can be told apart from a
replay of the same manifest.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes: sorted keys, compact separators."""
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def content_address(obj: Any) -> str:
    """Content-address a JSON-serializable object as ``sha256:<hex>``."""
    return f"sha256:{sha256_hex(canonical_json_bytes(obj))}"


def key_digest(cache_key: str) -> str:
    """SHA-256 hex digest of a request cache key."""
    return sha256_hex(cache_key.encode("utf-8"))
