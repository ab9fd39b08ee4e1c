"""Control channel and broadcast wire models.

A host sends ``{"action": "skip-waiting" | "clear-cache"}``; replies carry
``success`` and travel over a point-to-point reply port, never over the
broadcast event stream. ``ClientEvent`` is what the broadcast stream carries.
"""

from __future__ import annotations

import uuid
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ControlAction(str, Enum):
    """The contracted control actions."""

    SKIP_WAITING = "skip-waiting"
    CLEAR_CACHE = "clear-cache"


# Spellings sent by older host pages.
ACTION_ALIASES: dict[str, ControlAction] = {
    "skipWaiting": ControlAction.SKIP_WAITING,
    "clearCache": ControlAction.CLEAR_CACHE,
}


def resolve_action(action: str) -> ControlAction | None:
    """Map a wire action to a known ControlAction, or None if unknown."""
    if action in ACTION_ALIASES:
        return ACTION_ALIASES[action]
    try:
        return ControlAction(action)
    except ValueError:
        return None


class ControlMessage(BaseModel):
    """An inbound control request.

    ``action`` stays a plain string so unknown actions still parse and can
    be ignored by the channel.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    action: str
    message_id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def known_action(self) -> ControlAction | None:
        return resolve_action(self.action)


class ControlReply(BaseModel):
    """Reply posted back on the requester's reply port."""

    model_config = ConfigDict(frozen=True)

    action: ControlAction
    success: bool = True
    in_reply_to: str = ""

    def to_wire(self) -> dict[str, object]:
        return {"action": self.action.value, "success": self.success}


class ClientEventType(str, Enum):
    """Events broadcast from the worker to every client."""

    UPDATE_AVAILABLE = "update-available"  # a new version is installed and waiting
    CONTROLLER_CHANGE = "controller-change"  # a new version now serves requests


class ClientEvent(BaseModel):
    """One message on the broadcast event stream."""

    model_config = ConfigDict(frozen=True)

    action: ClientEventType
    version: str
    previous: str | None = None

    def to_wire(self) -> dict[str, object]:
        wire: dict[str, object] = {"action": self.action.value, "version": self.version}
        if self.previous is not None:
            wire["previous"] = self.previous
        return wire
