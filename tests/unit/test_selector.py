"""Tests for request classification and strategy routing."""

from __future__ import annotations

import pytest

from pwacache.core.selector import (
    CLASSIFIERS,
    ClassificationPolicy,
    RequestClass,
    classify,
    host_allowed,
)
from pwacache.models.config import RoutingMode
from pwacache.models.requests import RequestDescriptor
from tests.helpers import CDN_SCRIPT, ORIGIN, asset, document, navigation

POLICY = ClassificationPolicy(
    origin=ORIGIN, allow_list=("googleapis.com", "gstatic.com", "jsdelivr.net")
)


class TestHostAllowed:
    def test_exact_and_subdomain(self):
        assert host_allowed("gstatic.com", ["gstatic.com"])
        assert host_allowed("fonts.gstatic.com", ["gstatic.com"])

    def test_suffix_must_be_a_label(self):
        assert not host_allowed("evilgstatic.com", ["gstatic.com"])

    def test_case_insensitive(self):
        assert host_allowed("Fonts.GStatic.com", ["gstatic.com"])


class TestClassify:
    def test_same_origin_html_is_document(self):
        assert classify(document("/about"), POLICY) == RequestClass.DOCUMENT

    def test_navigation_is_document(self):
        assert classify(navigation("/about"), POLICY) == RequestClass.DOCUMENT

    def test_same_origin_script_is_asset(self):
        assert classify(asset("/app.js"), POLICY) == RequestClass.ASSET

    def test_request_without_accept_is_asset(self):
        assert classify(RequestDescriptor(url=f"{ORIGIN}/data.json"), POLICY) == RequestClass.ASSET

    def test_allowed_cdn_is_asset(self):
        assert classify(asset(CDN_SCRIPT), POLICY) == RequestClass.ASSET

    def test_allowed_cdn_html_is_document(self):
        req = RequestDescriptor(
            url="https://fonts.googleapis.com/css", headers={"Accept": "text/html"}
        )
        assert classify(req, POLICY) == RequestClass.DOCUMENT

    def test_unlisted_cross_origin_is_disallowed(self):
        assert classify(asset("https://tracker.example/p.js"), POLICY) == RequestClass.DISALLOWED

    def test_cross_origin_navigation_is_disallowed(self):
        req = RequestDescriptor(url="https://elsewhere.example/", mode="navigate")
        assert classify(req, POLICY) == RequestClass.DISALLOWED

    def test_same_host_other_port_is_cross_origin(self):
        assert classify(asset("https://app.test:8443/app.js"), POLICY) == RequestClass.DISALLOWED

    def test_post_accepting_html_is_asset(self):
        req = RequestDescriptor(
            url=f"{ORIGIN}/form", method="POST", headers={"Accept": "text/html"}
        )
        assert classify(req, POLICY) == RequestClass.ASSET

    def test_every_class_has_a_classifier(self):
        assert [cls for cls, _ in CLASSIFIERS] == list(RequestClass)


class TestStrategySelector:
    @pytest.mark.asyncio
    async def test_disallowed_passes_through(self, worker, network):
        await worker.on_install()
        calls = len(network.calls)
        resp = await worker.on_fetch(asset("https://tracker.example/p.js"))
        await worker.wait_until_idle()
        assert resp is None
        assert len(network.calls) == calls
        assert await worker.store.has_namespace("test-runtime") is False

    @pytest.mark.asyncio
    async def test_documents_revalidate_under_per_class_routing(self, worker, network):
        await worker.on_install()
        calls = len(network.calls)
        resp = await worker.on_fetch(document("/"))
        await worker.wait_until_idle()
        assert resp.body == b"<h1>home v1</h1>"
        assert len(network.calls) == calls + 1

    @pytest.mark.asyncio
    async def test_assets_served_cache_first(self, worker, network):
        await worker.on_install()
        calls = len(network.calls)
        resp = await worker.on_fetch(asset("/app.js"))
        await worker.wait_until_idle()
        assert resp.body == b"console.log('v1')"
        assert len(network.calls) == calls

    @pytest.mark.asyncio
    async def test_cache_first_routing_mode(self, make_worker, network):
        worker = make_worker(routing_mode=RoutingMode.CACHE_FIRST)
        await worker.on_install()
        calls = len(network.calls)
        await worker.on_fetch(document("/"))
        await worker.wait_until_idle()
        assert len(network.calls) == calls

    @pytest.mark.asyncio
    async def test_context_uses_active_namespace(self, worker):
        assert worker.selector._context().static_namespace is None
        await worker.on_install()
        ctx = worker.selector._context()
        assert ctx.static_namespace == "test-static-1.0.0"
        assert ctx.runtime_namespace == "test-runtime"
