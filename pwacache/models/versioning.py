"""Version lifecycle models — manifests, states and deterministic transitions."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pwacache.core.hasher import content_address
from pwacache.models.requests import RequestDescriptor


class VersionState(str, Enum):
    """Lifecycle state of one cache version."""

    UNINSTALLED = "uninstalled"
    INSTALLING = "installing"
    INSTALLED = "installed"  # pending activation
    ACTIVATING = "activating"
    ACTIVE = "active"
    SUPERSEDED = "superseded"


# Valid state transitions, enforced by LifecycleController.
# A failed install returns to UNINSTALLED. SUPERSEDED is terminal; the
# namespace is gone once garbage collection has run.
VALID_TRANSITIONS: dict[VersionState, set[VersionState]] = {
    VersionState.UNINSTALLED: {VersionState.INSTALLING},
    VersionState.INSTALLING: {VersionState.INSTALLED, VersionState.UNINSTALLED},
    VersionState.INSTALLED: {VersionState.ACTIVATING, VersionState.SUPERSEDED},
    VersionState.ACTIVATING: {VersionState.ACTIVE},
    VersionState.ACTIVE: {VersionState.SUPERSEDED},
    VersionState.SUPERSEDED: set(),
}


class ActivationPolicy(str, Enum):
    """When an installed version takes over."""

    EAGER = "eager"  # activate right after install
    WAIT = "wait"  # hold until skip-waiting


class Manifest(BaseModel):
    """Ordered list of resources pre-populated into a version's static namespace."""

    model_config = ConfigDict(frozen=True)

    version: str
    resources: list[str] = []

    @field_validator("version")
    @classmethod
    def _non_empty_version(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Manifest version must not be empty")
        return value

    @field_validator("resources")
    @classmethod
    def _dedupe(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))

    @property
    def manifest_hash(self) -> str:
        return content_address({"version": self.version, "resources": self.resources})

    def descriptors(self, origin: str) -> list[RequestDescriptor]:
        """Resolve every resource into a GET request descriptor."""
        return [RequestDescriptor.from_url(r, origin=origin) for r in self.resources]


class VersionRecord(BaseModel):
    """Current lifecycle record for one version."""

    model_config = ConfigDict(frozen=True)

    version: str
    state: VersionState = VersionState.UNINSTALLED
    namespace: str
    manifest_hash: str = ""
    resource_count: int = 0
    installed_at: datetime | None = None
    activated_at: datetime | None = None


class VersionTransition(BaseModel):
    """Records a single state transition for diagnosis."""

    model_config = ConfigDict(frozen=True)

    version: str
    from_state: VersionState
    to_state: VersionState
    reason: str = ""
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
