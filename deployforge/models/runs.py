"""PipelineRun — one execution of the pipeline for one commit.

A run is immutable: every update returns a new instance.  Once the run
reaches a terminal status, further updates raise ``RunFinalizedError``.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from deployforge.core.errors import InvalidPhaseTransitionError, RunFinalizedError
from deployforge.models.stages import StageResult, StageState


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


TERMINAL_STATUSES: frozenset[RunStatus] = frozenset(
    {RunStatus.SUCCEEDED, RunStatus.FAILED, RunStatus.ROLLED_BACK}
)


class PromotionPhase(str, Enum):
    """Promotion state machine over a run."""

    PENDING = "pending"
    BUILDING = "building"
    TESTING_DEV = "testing_dev"
    VALIDATING_DEV = "validating_dev"
    PROMOTING_PROD = "promoting_prod"
    VALIDATING_PROD = "validating_prod"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


# No approval phase exists between VALIDATING_DEV and PROMOTING_PROD.
# ROLLED_BACK is reachable from VALIDATING_PROD only.
PHASE_TRANSITIONS: dict[PromotionPhase, set[PromotionPhase]] = {
    PromotionPhase.PENDING: {PromotionPhase.BUILDING, PromotionPhase.FAILED},
    PromotionPhase.BUILDING: {PromotionPhase.TESTING_DEV, PromotionPhase.FAILED},
    PromotionPhase.TESTING_DEV: {PromotionPhase.VALIDATING_DEV, PromotionPhase.FAILED},
    PromotionPhase.VALIDATING_DEV: {PromotionPhase.PROMOTING_PROD, PromotionPhase.FAILED},
    PromotionPhase.PROMOTING_PROD: {PromotionPhase.VALIDATING_PROD, PromotionPhase.FAILED},
    PromotionPhase.VALIDATING_PROD: {PromotionPhase.SUCCEEDED, PromotionPhase.ROLLED_BACK},
    PromotionPhase.SUCCEEDED: set(),
    PromotionPhase.FAILED: set(),
    PromotionPhase.ROLLED_BACK: set(),
}

_PHASE_STATUS: dict[PromotionPhase, RunStatus] = {
    PromotionPhase.SUCCEEDED: RunStatus.SUCCEEDED,
    PromotionPhase.FAILED: RunStatus.FAILED,
    PromotionPhase.ROLLED_BACK: RunStatus.ROLLED_BACK,
}


class RollbackReport(BaseModel):
    """What happened when the controller rolled production back."""

    model_config = ConfigDict(frozen=True)

    service: str
    succeeded: bool
    restored_digest: str | None = None
    error_type: str | None = None
    error_message: str | None = None
    requires_manual_intervention: bool = False


class PipelineRun(BaseModel):
    """One pipeline execution triggered by a commit."""

    model_config = ConfigDict(frozen=True)

    run_id: str = Field(
        default_factory=lambda: f"df-{datetime.now(timezone.utc):%Y%m%d-%H%M%S}-{uuid.uuid4().hex[:6]}"
    )
    commit_sha: str
    status: RunStatus = RunStatus.PENDING
    phase: PromotionPhase = PromotionPhase.PENDING
    artifact_digest: str = ""
    stage_results: list[StageResult] = []
    failed_stage: str | None = None
    error_message: str | None = None
    rollback: RollbackReport | None = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    finished_at: datetime | None = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def stage_result(self, stage_id: str) -> StageResult | None:
        for result in self.stage_results:
            if result.stage_id == stage_id:
                return result
        return None

    def passed_with_digest(self, stage_id: str, digest: str) -> bool:
        """Whether *stage_id* passed in this run while holding *digest*."""
        result = self.stage_result(stage_id)
        return (
            result is not None
            and result.state == StageState.PASSED
            and bool(digest)
            and result.artifact_digest == digest
        )

    # ------------------------------------------------------------------
    # Updates (each returns a new run)
    # ------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self.is_terminal:
            raise RunFinalizedError(
                f"Run {self.run_id} is {self.status.value} and can no longer change"
            )

    def start(self) -> PipelineRun:
        self._ensure_open()
        return self.model_copy(update={"status": RunStatus.RUNNING})

    def with_digest(self, digest: str) -> PipelineRun:
        """Bind the artifact digest.  Write-once."""
        self._ensure_open()
        if self.artifact_digest and self.artifact_digest != digest:
            raise RunFinalizedError(
                f"Run {self.run_id} already bound to {self.artifact_digest}; "
                f"refusing {digest}"
            )
        return self.model_copy(update={"artifact_digest": digest})

    def record_stage(self, result: StageResult) -> PipelineRun:
        self._ensure_open()
        update: dict[str, object] = {"stage_results": [*self.stage_results, result]}
        if result.state == StageState.FAILED and self.failed_stage is None:
            update["failed_stage"] = result.stage_id
            update["error_message"] = result.error_message
        return self.model_copy(update=update)

    def advance(self, phase: PromotionPhase) -> PipelineRun:
        self._ensure_open()
        if phase == self.phase:
            return self
        allowed = PHASE_TRANSITIONS.get(self.phase, set())
        if phase not in allowed:
            raise InvalidPhaseTransitionError(
                f"Run {self.run_id} cannot move from {self.phase.value} to {phase.value}. "
                f"Allowed: {sorted(p.value for p in allowed)}"
            )
        update: dict[str, object] = {"phase": phase}
        if phase in _PHASE_STATUS:
            update["status"] = _PHASE_STATUS[phase]
            update["finished_at"] = datetime.now(timezone.utc)
        return self.model_copy(update=update)

    def finish(
        self, phase: PromotionPhase, *, rollback: RollbackReport | None = None
    ) -> PipelineRun:
        """Move to a terminal phase, optionally attaching the rollback report."""
        if phase not in _PHASE_STATUS:
            raise InvalidPhaseTransitionError(f"{phase.value} is not a terminal phase")
        run = self.model_copy(update={"rollback": rollback}) if rollback else self
        return run.advance(phase)
