"""Tests for ControlChannel — parsing, skip-waiting and clear-cache."""

from __future__ import annotations

import json

import pytest

from pwacache.core.control import ControlChannel, ControlMessageError, QueueReplyPort
from pwacache.core.lifecycle import LifecycleController
from pwacache.core.store import MemoryBackend, VersionedStore
from pwacache.models.messages import ControlAction
from tests.helpers import ORIGIN


class _UndeletableBackend(MemoryBackend):
    def delete(self, name):
        raise OSError("permission denied")


class TestReceive:
    def test_dict(self):
        msg = ControlChannel.receive({"action": "skip-waiting"})
        assert msg.known_action == ControlAction.SKIP_WAITING

    def test_json_string_and_bytes(self):
        raw = json.dumps({"action": "clear-cache"})
        assert ControlChannel.receive(raw).known_action == ControlAction.CLEAR_CACHE
        assert ControlChannel.receive(raw.encode()).known_action == ControlAction.CLEAR_CACHE

    def test_extra_fields_tolerated(self):
        msg = ControlChannel.receive({"action": "skip-waiting", "source": "banner"})
        assert msg.known_action == ControlAction.SKIP_WAITING

    def test_invalid_json(self):
        with pytest.raises(ControlMessageError, match="Invalid JSON"):
            ControlChannel.receive("{not json")

    def test_undecodable_bytes(self):
        with pytest.raises(ControlMessageError, match="UTF-8"):
            ControlChannel.receive(b"\xff\xfe")

    def test_non_object(self):
        with pytest.raises(ControlMessageError, match="JSON object"):
            ControlChannel.receive("[1, 2]")

    def test_missing_action(self):
        with pytest.raises(ControlMessageError, match="Missing action"):
            ControlChannel.receive({"type": "skip-waiting"})


class TestHandle:
    @pytest.mark.asyncio
    async def test_unknown_action_ignored(self, controller, store):
        channel = ControlChannel(controller, store)
        port = QueueReplyPort()
        reply = await channel.handle(ControlChannel.receive({"action": "reload"}), port)
        assert reply is None
        assert port.queue.empty()

    @pytest.mark.asyncio
    async def test_skip_waiting_activates_pending(self, waiting_controller, store, manifest_v1):
        await waiting_controller.install(manifest_v1)
        channel = ControlChannel(waiting_controller, store)
        port = QueueReplyPort()

        await channel.handle(ControlChannel.receive({"action": "skip-waiting"}), port)

        assert waiting_controller.active_version == "1.0.0"
        assert await port.receive() == {"action": "skip-waiting", "success": True}

    @pytest.mark.asyncio
    async def test_skip_waiting_without_pending(self, waiting_controller, store):
        channel = ControlChannel(waiting_controller, store)
        reply = await channel.handle(ControlChannel.receive({"action": "skipWaiting"}))
        assert reply.success is True
        assert waiting_controller.active_version is None

    @pytest.mark.asyncio
    async def test_clear_cache_deletes_everything(self, controller, store, manifest_v1):
        await controller.install(manifest_v1)
        await store.open("test-runtime")
        channel = ControlChannel(controller, store)
        port = QueueReplyPort()

        message = ControlChannel.receive({"action": "clear-cache"})
        reply = await channel.handle(message, port)

        assert reply.in_reply_to == message.message_id
        assert await port.receive() == {"action": "clear-cache", "success": True}
        assert await store.namespaces() == []
        assert controller.active_version is None

    @pytest.mark.asyncio
    async def test_clear_cache_failure_replies_false(self, fetcher):
        store = VersionedStore(_UndeletableBackend())
        await store.open("test-runtime")
        controller = LifecycleController(store, fetcher, origin=ORIGIN, cache_prefix="test")
        channel = ControlChannel(controller, store)
        port = QueueReplyPort()

        await channel.handle(ControlChannel.receive({"action": "clear-cache"}), port)

        assert await port.receive() == {"action": "clear-cache", "success": False}
