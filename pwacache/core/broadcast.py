"""ClientBroadcast — fans worker events out to every subscribed client.

The broadcast stream is separate from control replies: a reply goes back
on the sender's own port, a broadcast reaches every subscriber. A failing
subscriber is logged and does not block delivery to the others.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from pwacache.models.messages import ClientEvent

logger = logging.getLogger(__name__)


class ReplyPort(Protocol):
    """Point-to-point channel back to one client."""

    def post_message(self, data: dict[str, Any]) -> None: ...


class ClientBroadcast:
    """Delivers ClientEvents to all subscribed ports.

    Usage
    -----
    >>> broadcast = ClientBroadcast()
    >>> broadcast.subscribe(port)
    >>> broadcast.publish(
    ...     ClientEvent(action=ClientEventType.UPDATE_AVAILABLE, version="2.0.0")
    ... )
    """

    def __init__(self) -> None:
        self._subscribers: list[ReplyPort] = []

    def subscribe(self, port: ReplyPort) -> None:
        """Add *port*; subscribing the same port twice is ignored."""
        if port not in self._subscribers:
            self._subscribers.append(port)

    def unsubscribe(self, port: ReplyPort) -> None:
        try:
            self._subscribers.remove(port)
        except ValueError:
            pass

    @property
    def subscribers(self) -> list[ReplyPort]:
        return list(self._subscribers)

    def publish(self, event: ClientEvent) -> int:
        """Post *event* to every subscriber; returns how many received it."""
        wire = event.to_wire()
        delivered = 0
        for port in list(self._subscribers):
            try:
                port.post_message(wire)
                delivered += 1
            except Exception as exc:  # noqa: BLE001
                logger.error("Subscriber %r failed for %s: %s", port, event.action.value, exc)
        logger.debug("Broadcast %s to %d subscriber(s)", event.action.value, delivered)
        return delivered
