"""Content-addressed artifact models (immutable once built)."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Artifact(BaseModel):
    """A built deployable unit.

    ``digest`` is ``"sha256:<hex>"`` of the artifact bytes.  It is the only
    identity.  ``tags`` records the human-readable pointers set at push time;
    they may since have moved and are never compared.
    """

    model_config = ConfigDict(frozen=True)

    digest: str
    name: str
    size_bytes: int
    tags: list[str] = []
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    metadata: dict[str, Any] = {}


class TagBinding(BaseModel):
    """Current target of a mutable tag."""

    model_config = ConfigDict(frozen=True)

    tag: str
    digest: str
    updated_at: datetime
