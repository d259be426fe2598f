"""Artifact registry — push by content, pull by digest.

The registry pairs the content-addressed store (identity) with the tag
registry (convenience).  Pipeline stages only ever call ``pull`` and
``exists`` with a digest.  ``pull_by_tag`` exists for operators and the CLI.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from deployforge.core.artifact_store import ContentAddressedStore
from deployforge.core.tag_registry import TagRegistry
from deployforge.models.artifacts import Artifact

logger = logging.getLogger(__name__)


@runtime_checkable
class ArtifactRegistry(Protocol):
    """Contract of a container/artifact registry."""

    def push(
        self,
        data: bytes,
        *,
        name: str,
        tags: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Artifact:
        """Store *data*, point *tags* at it, and return the artifact."""
        ...

    def pull(self, digest: str) -> bytes:
        ...

    def pull_by_tag(self, tag: str) -> bytes:
        ...

    def exists(self, digest: str) -> bool:
        ...


class LocalArtifactRegistry:
    """Filesystem registry built from a ContentAddressedStore and a TagRegistry."""

    def __init__(self, store: ContentAddressedStore, tags: TagRegistry) -> None:
        self.store = store
        self.tags = tags

    def push(
        self,
        data: bytes,
        *,
        name: str,
        tags: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Artifact:
        digest = self.store.put(data)
        applied = list(tags or [])
        # Tags move after the content is durable, never before.
        self.tags.set_many(applied, digest)
        logger.info("Pushed %s as %s (tags: %s)", name, digest, ", ".join(applied) or "-")
        return Artifact(
            digest=digest,
            name=name,
            size_bytes=len(data),
            tags=applied,
            metadata=metadata or {},
        )

    def pull(self, digest: str) -> bytes:
        return self.store.get(digest)

    def pull_by_tag(self, tag: str) -> bytes:
        return self.store.get(self.tags.resolve(tag))

    def exists(self, digest: str) -> bool:
        return self.store.exists(digest)
