"""Smoke test — bounded-retry liveness probe against a deployed target."""

from __future__ import annotations

from typing import Any

from deployforge.core.errors import StageFailure
from deployforge.core.health_prober import HealthProber
from deployforge.models.health import ProbeSpec
from deployforge.models.secrets import EnvironmentScope
from deployforge.stages.base import BaseStage, StageContext


class SmokeTestStage(BaseStage):
    """Passes once the health endpoint answers with the expected status."""

    def __init__(
        self,
        stage_id: str,
        display_name: str,
        prober: HealthProber,
        spec: ProbeSpec | None,
        *,
        scope: EnvironmentScope,
        timeout_seconds: float | None = None,
    ) -> None:
        self._stage_id = stage_id
        self._display_name = display_name
        self._prober = prober
        self._spec = spec
        self.scope = scope
        self.timeout_seconds = timeout_seconds

    @property
    def stage_id(self) -> str:
        return self._stage_id

    @property
    def display_name(self) -> str:
        return self._display_name

    def execute(self, context: StageContext) -> dict[str, Any]:
        if self._spec is None:
            raise StageFailure(
                self.stage_id, "no health endpoint configured",
                artifact_digest=context.artifact_digest,
            )
        outcome = self._prober.probe(
            self._spec,
            stage_id=self.stage_id,
            cancel_event=context.cancel_event,
            artifact_digest=context.artifact_digest,
        )
        return {
            "status": "healthy",
            "url": outcome.url,
            "attempts": outcome.attempts,
            "status_code": outcome.last_status_code,
        }
