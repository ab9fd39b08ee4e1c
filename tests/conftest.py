"""Shared test fixtures for pwacache."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from pwacache.core.fetcher import HttpxFetcher
from pwacache.core.lifecycle import LifecycleController
from pwacache.core.store import VersionedStore
from pwacache.core.worker import ServiceWorker
from pwacache.models.config import DeploymentConfig
from pwacache.models.versioning import ActivationPolicy, Manifest
from tests.helpers import CDN_SCRIPT, ORIGIN, FakeNetwork


@pytest.fixture
def network() -> FakeNetwork:
    """A network serving the v1 site, its offline page and one CDN script."""
    net = FakeNetwork()
    net.set("/", "<h1>home v1</h1>", content_type="text/html")
    net.set("/index.html", "<h1>index v1</h1>", content_type="text/html")
    net.set("/offline.html", "<h1>offline</h1>", content_type="text/html")
    net.set("/app.js", "console.log('v1')", content_type="application/javascript")
    net.set(CDN_SCRIPT, "/* alpine */", content_type="application/javascript")
    return net


@pytest.fixture
def fetcher(network: FakeNetwork) -> HttpxFetcher:
    return network.fetcher()


@pytest.fixture
def store() -> VersionedStore:
    """Provide a fresh in-memory VersionedStore."""
    return VersionedStore.in_memory()


@pytest.fixture
def manifest_v1() -> Manifest:
    return Manifest(
        version="1.0.0",
        resources=["/", "/index.html", "/offline.html", "/app.js", CDN_SCRIPT],
    )


@pytest.fixture
def manifest_v2() -> Manifest:
    return Manifest(version="2.0.0", resources=["/", "/index.html", "/offline.html", "/app.js"])


@pytest.fixture
def controller(store: VersionedStore, fetcher: HttpxFetcher) -> LifecycleController:
    """Provide an eager LifecycleController over the test store and network."""
    return LifecycleController(store, fetcher, origin=ORIGIN, cache_prefix="test")


@pytest.fixture
def waiting_controller(store: VersionedStore, fetcher: HttpxFetcher) -> LifecycleController:
    """A controller that holds new versions until skip-waiting."""
    return LifecycleController(
        store,
        fetcher,
        origin=ORIGIN,
        cache_prefix="test",
        activation_policy=ActivationPolicy.WAIT,
    )


@pytest.fixture
def deployment(manifest_v1: Manifest) -> DeploymentConfig:
    return DeploymentConfig(origin=ORIGIN, manifest=manifest_v1, cache_prefix="test")


@pytest.fixture
def make_worker(
    store: VersionedStore, network: FakeNetwork, deployment: DeploymentConfig
) -> Callable[..., ServiceWorker]:
    """Factory fixture: build a ServiceWorker with deployment overrides."""

    def _factory(**overrides: Any) -> ServiceWorker:
        config = deployment.model_copy(update=overrides) if overrides else deployment
        return ServiceWorker(config, store=store, fetcher=network.fetcher())

    return _factory


@pytest.fixture
def worker(make_worker: Callable[..., ServiceWorker]) -> ServiceWorker:
    """Convenience: a worker for the v1 deployment with eager activation."""
    return make_worker()
