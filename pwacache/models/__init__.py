"""pwacache data models — all Pydantic v2, all frozen (immutable)."""

from pwacache.models.config import DeploymentConfig, RoutingMode
from pwacache.models.messages import (
    ClientEvent,
    ClientEventType,
    ControlAction,
    ControlMessage,
    ControlReply,
)
from pwacache.models.reports import GcFailed
from pwacache.models.requests import (
    CacheEntry,
    CapturedResponse,
    RequestDescriptor,
    RequestMode,
)
from pwacache.models.versioning import (
    VALID_TRANSITIONS,
    ActivationPolicy,
    Manifest,
    VersionRecord,
    VersionState,
    VersionTransition,
)

__all__ = [
    # requests
    "RequestMode",
    "RequestDescriptor",
    "CapturedResponse",
    "CacheEntry",
    # versioning
    "Manifest",
    "VersionState",
    "VersionRecord",
    "VersionTransition",
    "VALID_TRANSITIONS",
    "ActivationPolicy",
    # config
    "DeploymentConfig",
    "RoutingMode",
    # control channel
    "ControlAction",
    "ControlMessage",
    "ControlReply",
    "ClientEventType",
    "ClientEvent",
    # reports
    "GcFailed",
]
