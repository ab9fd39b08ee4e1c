"""Control channel — validates and handles host control messages.

Two actions exist: ``skip-waiting`` forces the pending version active and
``clear-cache`` deletes every namespace, replying ``success`` on the
sender's reply port only after all deletions have completed. Unknown
actions are ignored so newer hosts can talk to older workers.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from pwacache.core.broadcast import ReplyPort
from pwacache.core.lifecycle import LifecycleController
from pwacache.core.store import StoreError, VersionedStore
from pwacache.models.messages import ControlAction, ControlMessage, ControlReply

logger = logging.getLogger(__name__)


class ControlMessageError(ValueError):
    """Raised when a control message cannot be parsed."""


class QueueReplyPort:
    """Reply port backed by an asyncio.Queue."""

    def __init__(self) -> None:
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    def post_message(self, data: dict[str, Any]) -> None:
        self.queue.put_nowait(data)

    async def receive(self) -> dict[str, Any]:
        return await self.queue.get()


class ControlChannel:
    """Handles control messages against a lifecycle controller and store."""

    def __init__(self, controller: LifecycleController, store: VersionedStore) -> None:
        self._controller = controller
        self._store = store

    # ------------------------------------------------------------------
    # Receive (deserialize + validate)
    # ------------------------------------------------------------------

    @staticmethod
    def receive(raw: bytes | str | dict[str, Any]) -> ControlMessage:
        """Deserialize and validate a raw control message."""
        if isinstance(raw, bytes):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise ControlMessageError(f"Message is not UTF-8: {exc}") from exc
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError as exc:
                raise ControlMessageError(f"Invalid JSON: {exc}") from exc

        if not isinstance(raw, dict):
            raise ControlMessageError(
                f"Control message must be a JSON object, got {type(raw).__name__}"
            )
        action = raw.get("action")
        if not isinstance(action, str) or not action:
            raise ControlMessageError("Missing action field")

        try:
            return ControlMessage.model_validate(raw)
        except ValueError as exc:
            raise ControlMessageError(f"Control message validation failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Handle
    # ------------------------------------------------------------------

    async def handle(
        self, message: ControlMessage, reply_port: ReplyPort | None = None
    ) -> ControlReply | None:
        """Execute *message*; returns None for unknown actions."""
        action = message.known_action
        if action is None:
            logger.debug("Ignoring unknown control action %r", message.action)
            return None

        logger.info("Control message received: %s", action.value)
        if action == ControlAction.SKIP_WAITING:
            await self._controller.skip_waiting()
            reply = ControlReply(action=action, success=True, in_reply_to=message.message_id)
        else:
            reply = ControlReply(
                action=action,
                success=await self._clear_cache(),
                in_reply_to=message.message_id,
            )

        if reply_port is not None:
            reply_port.post_message(reply.to_wire())
        return reply

    async def _clear_cache(self) -> bool:
        # Reset first so an install still in flight discards what it writes.
        await self._controller.reset()
        try:
            deleted = await self._store.clear()
        except StoreError as exc:
            logger.error("clear-cache failed: %s", exc)
            return False
        logger.info("clear-cache deleted %d namespace(s)", len(deleted))
        return True
