"""Diagnostic reports for failures that are recorded rather than raised."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class GcFailed(BaseModel):
    """A namespace that could not be deleted; retried on the next activation."""

    model_config = ConfigDict(frozen=True)

    namespace: str
    cause: str = ""
    attempt: int = 1
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
