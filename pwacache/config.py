"""Runtime configuration — env-driven.

Reads from a .env file and PWACACHE_* environment variables. Per-deployment
values (origin, allow-list, policies) seed a DeploymentConfig.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from pwacache.models.config import RoutingMode
from pwacache.models.versioning import ActivationPolicy


class Settings(BaseSettings):
    """Settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export PWACACHE_ORIGIN=https://app.example.com
        export PWACACHE_ACTIVATION_POLICY=wait
        export PWACACHE_ALLOW_LIST='["fonts.googleapis.com", "cdn.jsdelivr.net"]'

    Or via .env file::

        PWACACHE_LOG_LEVEL=DEBUG
        PWACACHE_STORE_PATH=/var/cache/pwacache
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PWACACHE_",
        env_file_encoding="utf-8",
    )

    # Logging
    log_level: str = "INFO"

    # Storage
    store_path: Path = Path(".pwacache/store")
    cache_prefix: str = "pwacache"

    # Deployment
    origin: str = "http://localhost:8000"
    allow_list: list[str] = ["googleapis.com", "gstatic.com", "jsdelivr.net"]
    offline_fallback: str = "/offline.html"  # empty disables the fallback document
    activation_policy: ActivationPolicy = ActivationPolicy.EAGER
    routing_mode: RoutingMode = RoutingMode.PER_CLASS

    # Network
    fetch_timeout_seconds: float = 30.0
    update_interval_seconds: float = 3600.0


# Module-level singleton; import as `from pwacache.config import settings`
settings = Settings()
