"""Tests for pwacache data models — requests, responses, manifests, messages."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from pwacache.models.config import DeploymentConfig
from pwacache.models.messages import ControlAction, ControlMessage, ControlReply
from pwacache.models.requests import (
    CacheEntry,
    CapturedResponse,
    RequestDescriptor,
    RequestMode,
    normalize_url,
    origin_of,
)
from pwacache.models.versioning import VALID_TRANSITIONS, Manifest, VersionState


class TestNormalizeUrl:
    def test_lowercases_scheme_and_host(self):
        assert normalize_url("HTTPS://App.Test/Path") == "https://app.test/Path"

    def test_drops_default_port_and_fragment(self):
        assert normalize_url("https://app.test:443/a#top") == "https://app.test/a"

    def test_keeps_non_default_port_and_query(self):
        assert normalize_url("http://app.test:8080/a?b=1") == "http://app.test:8080/a?b=1"

    def test_empty_path_becomes_root(self):
        assert normalize_url("https://app.test") == "https://app.test/"

    def test_origin_of(self):
        assert origin_of("https://App.test:443/x/y?z") == "https://app.test"


class TestRequestDescriptor:
    def test_from_url_resolves_same_origin_path(self):
        req = RequestDescriptor.from_url("/index.html", origin="https://app.test")
        assert req.url == "https://app.test/index.html"

    def test_from_url_keeps_absolute_url(self):
        req = RequestDescriptor.from_url(
            "https://fonts.gstatic.com/s/inter.woff2", origin="https://app.test"
        )
        assert req.host == "fonts.gstatic.com"

    def test_relative_url_rejected(self):
        with pytest.raises(ValidationError):
            RequestDescriptor(url="/index.html")

    def test_cache_key_uses_method_and_normalized_url(self):
        a = RequestDescriptor(url="https://APP.test:443/a#frag", method="get")
        b = RequestDescriptor(url="https://app.test/a")
        assert a.method == "GET"
        assert a.cache_key == b.cache_key == "GET https://app.test/a"

    def test_method_distinguishes_keys(self):
        get = RequestDescriptor(url="https://app.test/a")
        head = RequestDescriptor(url="https://app.test/a", method="HEAD")
        assert get.cache_key != head.cache_key

    def test_accept_header_is_case_insensitive(self):
        req = RequestDescriptor(url="https://app.test/", headers={"ACCEPT": "text/html"})
        assert req.accept == "text/html"

    def test_navigation_and_safe_flags(self):
        nav = RequestDescriptor(url="https://app.test/", mode=RequestMode.NAVIGATE)
        post = RequestDescriptor(url="https://app.test/api", method="POST")
        assert nav.is_navigation is True
        assert nav.is_safe is True
        assert post.is_safe is False

    def test_frozen(self):
        req = RequestDescriptor(url="https://app.test/")
        with pytest.raises(ValidationError):
            req.url = "https://other.test/"


class TestCapturedResponse:
    def test_ok_range(self):
        assert CapturedResponse(status=200).ok is True
        assert CapturedResponse(status=204).ok is True
        assert CapturedResponse(status=304).ok is False
        assert CapturedResponse(status=500).ok is False

    def test_clone_is_equal_but_independent(self):
        resp = CapturedResponse(status=200, headers={"content-type": "text/html"}, body=b"x")
        clone = resp.clone()
        assert clone == resp
        assert clone is not resp
        assert clone.headers is not resp.headers

    def test_offline_response_is_synthetic(self):
        resp = CapturedResponse.offline()
        assert resp.synthetic is True
        assert resp.status == 503
        assert resp.body == b"Offline"

    def test_entry_json_preserves_binary_body(self):
        body = bytes(range(256))
        entry = CacheEntry(
            request=RequestDescriptor(url="https://app.test/font.woff2"),
            response=CapturedResponse(body=body),
        )
        restored = CacheEntry.model_validate_json(entry.model_dump_json())
        assert restored.response.body == body


class TestManifest:
    def test_duplicates_removed_in_order(self):
        manifest = Manifest(version="1", resources=["/", "/a.js", "/", "/b.css"])
        assert manifest.resources == ["/", "/a.js", "/b.css"]

    def test_empty_version_rejected(self):
        with pytest.raises(ValidationError):
            Manifest(version="  ", resources=[])

    def test_hash_is_stable_and_version_sensitive(self):
        a = Manifest(version="1", resources=["/"])
        b = Manifest(version="1", resources=["/"])
        c = Manifest(version="2", resources=["/"])
        assert a.manifest_hash == b.manifest_hash
        assert a.manifest_hash != c.manifest_hash
        assert a.manifest_hash.startswith("sha256:")

    def test_descriptors(self):
        manifest = Manifest(version="1", resources=["/", "https://cdn.jsdelivr.net/x.js"])
        urls = [d.url for d in manifest.descriptors("https://app.test")]
        assert urls == ["https://app.test/", "https://cdn.jsdelivr.net/x.js"]


class TestVersionTransitions:
    def test_superseded_is_terminal(self):
        assert VALID_TRANSITIONS[VersionState.SUPERSEDED] == set()

    def test_failed_install_returns_to_uninstalled(self):
        assert VersionState.UNINSTALLED in VALID_TRANSITIONS[VersionState.INSTALLING]

    def test_every_state_has_an_entry(self):
        assert set(VALID_TRANSITIONS) == set(VersionState)


class TestDeploymentConfig:
    def test_origin_canonicalized(self):
        config = DeploymentConfig(origin="HTTPS://App.Test:443/some/path")
        assert config.origin == "https://app.test"

    def test_empty_offline_fallback_disables_it(self):
        config = DeploymentConfig(origin="https://app.test", offline_fallback="")
        assert config.offline_fallback is None
        assert config.offline_request is None

    def test_offline_request_resolved_against_origin(self):
        config = DeploymentConfig(origin="https://app.test")
        assert config.offline_request.url == "https://app.test/offline.html"

    def test_allow_list_normalized(self):
        config = DeploymentConfig(origin="https://app.test", allow_list=[".GStatic.com", " "])
        assert config.allow_list == ["gstatic.com"]


class TestControlModels:
    def test_unknown_action_parses(self):
        msg = ControlMessage(action="future-thing")
        assert msg.known_action is None

    def test_legacy_alias(self):
        assert ControlMessage(action="skipWaiting").known_action == ControlAction.SKIP_WAITING
        assert ControlMessage(action="clearCache").known_action == ControlAction.CLEAR_CACHE

    def test_reply_wire_format(self):
        reply = ControlReply(action=ControlAction.CLEAR_CACHE, success=True)
        assert reply.to_wire() == {"action": "clear-cache", "success": True}
