"""Stage state machine models — strict linear gating."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from deployforge.models.secrets import EnvironmentScope


class StageState(str, Enum):
    """Strict state model for each pipeline stage."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


# Valid state transitions: enforced structurally by StageMachine.
# There is no retry edge: a run is never resumed after a failure.
# NOT_STARTED -> FAILED is a stage refused by a gate before it could run.
VALID_TRANSITIONS: dict[StageState, set[StageState]] = {
    StageState.NOT_STARTED: {StageState.RUNNING, StageState.FAILED, StageState.SKIPPED},
    StageState.RUNNING: {StageState.PASSED, StageState.FAILED},
    StageState.PASSED: set(),  # terminal
    StageState.FAILED: set(),  # terminal
    StageState.SKIPPED: set(),  # terminal
}


# Canonical stage identifiers, in execution order.
BUILD = "build"
UNIT_TEST = "unit-test"
DEPLOY_DEV = "deploy-dev"
SMOKE_TEST_DEV = "smoke-test-dev"
INTEGRATION_TEST = "integration-test"
DEPLOY_PROD = "deploy-prod"
SMOKE_TEST_PROD = "smoke-test-prod"

STAGE_ORDER: list[str] = [
    BUILD,
    UNIT_TEST,
    DEPLOY_DEV,
    SMOKE_TEST_DEV,
    INTEGRATION_TEST,
    DEPLOY_PROD,
    SMOKE_TEST_PROD,
]


class StageDefinition(BaseModel):
    """Defines a pipeline stage, its scope, and its prerequisites."""

    model_config = ConfigDict(frozen=True)

    stage_id: str
    display_name: str
    ordinal: int
    prerequisites: list[str] = []
    scope: EnvironmentScope | None = None


class StageResult(BaseModel):
    """Recorded outcome of one stage within a run."""

    model_config = ConfigDict(frozen=True)

    stage_id: str
    state: StageState
    artifact_digest: str = ""
    output: dict[str, Any] = {}
    error_type: str | None = None
    error_message: str | None = None
    started_at: datetime | None = None
    finished_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def passed(self) -> bool:
        return self.state == StageState.PASSED

    @property
    def executed(self) -> bool:
        return self.started_at is not None


def linear_definitions(
    stages: list[tuple[str, str, EnvironmentScope | None]],
) -> list[StageDefinition]:
    """Build a strictly linear chain: each stage requires the one before it."""
    definitions: list[StageDefinition] = []
    previous: str | None = None
    for ordinal, (stage_id, display_name, scope) in enumerate(stages):
        definitions.append(
            StageDefinition(
                stage_id=stage_id,
                display_name=display_name,
                ordinal=ordinal,
                prerequisites=[previous] if previous else [],
                scope=scope,
            )
        )
        previous = stage_id
    return definitions


# The standard Deployforge pipeline.
DEFAULT_STAGE_DEFINITIONS: list[StageDefinition] = linear_definitions(
    [
        (BUILD, "Build", None),
        (UNIT_TEST, "Unit Tests", None),
        (DEPLOY_DEV, "Deploy to Dev", EnvironmentScope.DEV),
        (SMOKE_TEST_DEV, "Smoke Test (Dev)", EnvironmentScope.DEV),
        (INTEGRATION_TEST, "Integration Tests", EnvironmentScope.DEV),
        (DEPLOY_PROD, "Deploy to Production", EnvironmentScope.PRODUCTION),
        (SMOKE_TEST_PROD, "Smoke Test (Production)", EnvironmentScope.PRODUCTION),
    ]
)
