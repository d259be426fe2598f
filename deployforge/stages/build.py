"""Build — produce the run's single artifact.

The only stage that creates an artifact digest.  Every later stage is
handed that digest and nothing else.
"""

from __future__ import annotations

from typing import Any, ClassVar

from deployforge.core.builder import ArtifactBuilder, BuildContext
from deployforge.models.stages import BUILD
from deployforge.stages.base import BaseStage, StageContext


class BuildStage(BaseStage):
    """Builds and publishes the artifact.  A ``BuildError`` is fatal."""

    produces_artifact: ClassVar[bool] = True

    def __init__(self, builder: ArtifactBuilder, context: BuildContext) -> None:
        self._builder = builder
        self._build_context = context
        self.timeout_seconds = context.timeout_seconds

    @property
    def stage_id(self) -> str:
        return BUILD

    @property
    def display_name(self) -> str:
        return "Build"

    def execute(self, context: StageContext) -> dict[str, Any]:
        build_context = self._build_context
        if build_context.commit_sha != context.commit_sha:
            build_context = build_context.model_copy(update={"commit_sha": context.commit_sha})

        artifact = self._builder.build(build_context)
        return {
            "artifact_digest": artifact.digest,
            "artifact_name": artifact.name,
            "size_bytes": artifact.size_bytes,
            "tags": list(artifact.tags),
        }
