"""Deployment configuration models."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, field_validator

from pwacache.models.requests import RequestDescriptor, origin_of
from pwacache.models.versioning import ActivationPolicy, Manifest

if TYPE_CHECKING:
    from pwacache.config import Settings


class RoutingMode(str, Enum):
    """Which strategy table the selector uses."""

    PER_CLASS = "per_class"  # documents revalidate, assets cache-first
    CACHE_FIRST = "cache_first"  # every allowed request cache-first


class DeploymentConfig(BaseModel):
    """Everything fixed at deployment time for one worker generation.

    Redeploying with a new manifest version is the only way to invalidate
    static content.
    """

    model_config = ConfigDict(frozen=True)

    origin: str
    manifest: Manifest | None = None
    cache_prefix: str = "pwacache"
    allow_list: list[str] = ["googleapis.com", "gstatic.com", "jsdelivr.net"]
    offline_fallback: str | None = "/offline.html"
    activation_policy: ActivationPolicy = ActivationPolicy.EAGER
    routing_mode: RoutingMode = RoutingMode.PER_CLASS
    update_interval_seconds: float = 3600.0

    @field_validator("origin")
    @classmethod
    def _canonical_origin(cls, value: str) -> str:
        return origin_of(value)

    @field_validator("allow_list")
    @classmethod
    def _lower_hosts(cls, value: list[str]) -> list[str]:
        return [h.strip().lower().lstrip(".") for h in value if h.strip()]

    @field_validator("offline_fallback")
    @classmethod
    def _empty_is_none(cls, value: str | None) -> str | None:
        return value or None

    @property
    def version(self) -> str | None:
        return self.manifest.version if self.manifest is not None else None

    @property
    def offline_request(self) -> RequestDescriptor | None:
        if self.offline_fallback is None:
            return None
        return RequestDescriptor.from_url(self.offline_fallback, origin=self.origin)

    @classmethod
    def from_settings(
        cls, settings: Settings, manifest: Manifest | None = None
    ) -> DeploymentConfig:
        """Build a deployment from environment-driven settings."""
        return cls(
            origin=settings.origin,
            manifest=manifest,
            cache_prefix=settings.cache_prefix,
            allow_list=list(settings.allow_list),
            offline_fallback=settings.offline_fallback,
            activation_policy=settings.activation_policy,
            routing_mode=settings.routing_mode,
            update_interval_seconds=settings.update_interval_seconds,
        )
