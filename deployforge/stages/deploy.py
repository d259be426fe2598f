"""Deploy — request a target to run the artifact digest.

The digest is looked up in the registry first: a target is never asked to
run something the registry cannot serve by digest.  The redeploy call is
asynchronous; liveness is established by the following smoke test.
"""

from __future__ import annotations

import logging
from typing import Any

from deployforge.core.errors import DeploymentError, StageFailure
from deployforge.core.registry import ArtifactRegistry
from deployforge.models.secrets import EnvironmentScope
from deployforge.stages.base import BaseStage, StageContext
from deployforge.targets.base import DeploymentTarget

logger = logging.getLogger(__name__)


class DeployStage(BaseStage):
    """Redeploys *service* on *target* to the run's digest."""

    def __init__(
        self,
        stage_id: str,
        display_name: str,
        target: DeploymentTarget,
        registry: ArtifactRegistry,
        service: str,
        *,
        scope: EnvironmentScope,
        timeout_seconds: float | None = None,
    ) -> None:
        self._stage_id = stage_id
        self._display_name = display_name
        self._target = target
        self._registry = registry
        self._service = service
        self.scope = scope
        self.timeout_seconds = timeout_seconds

    @property
    def stage_id(self) -> str:
        return self._stage_id

    @property
    def display_name(self) -> str:
        return self._display_name

    def execute(self, context: StageContext) -> dict[str, Any]:
        digest = context.artifact_digest
        if not digest:
            raise StageFailure(self.stage_id, "no artifact digest to deploy")
        if not self._registry.exists(digest):
            raise StageFailure(
                self.stage_id, f"artifact {digest} is not in the registry",
                artifact_digest=digest,
            )

        try:
            deployment = self._target.redeploy(self._service, digest)
        except DeploymentError as exc:
            raise StageFailure(self.stage_id, str(exc), artifact_digest=digest) from exc

        logger.info(
            "Requested %s redeploy of %s to %s (deployment %s)",
            self._target.environment, self._service, digest, deployment.deployment_id,
        )
        return {
            "status": "requested",
            "service": self._service,
            "environment": self._target.environment,
            "deployment_id": deployment.deployment_id,
            "artifact_digest": deployment.digest,
        }
