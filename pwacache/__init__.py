"""pwacache: versioned offline cache for client applications.

Intercepts outbound resource requests and answers them from a local,
versioned store or from the network:
  - Version lifecycle: install -> activate -> garbage-collect superseded versions
  - Per-class routing: stale-while-revalidate for documents, cache-first for assets
  - Cross-origin allow-list for CDN hosts; everything else passes through
  - Control channel for skip-waiting and clear-cache
"""

__version__ = "0.1.0"

from pwacache.core.worker import ServiceWorker
from pwacache.models.config import DeploymentConfig
from pwacache.models.requests import CapturedResponse, RequestDescriptor
from pwacache.models.versioning import Manifest

__all__ = [
    "ServiceWorker",
    "DeploymentConfig",
    "Manifest",
    "RequestDescriptor",
    "CapturedResponse",
    "__version__",
]
