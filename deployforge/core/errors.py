"""Pipeline error taxonomy.

Every failure is local to the stage that raised it.  Only the health
prober retries, and only within its own bounded budget.
"""

from __future__ import annotations


class PipelineError(RuntimeError):
    """Base class for every error the pipeline records."""


class BuildError(PipelineError):
    """The build stage could not produce an artifact.  Fatal, never retried."""


class StageFailure(PipelineError):
    """A stage did not succeed.  Halts every downstream stage."""

    def __init__(self, stage_id: str, message: str, *, artifact_digest: str = "") -> None:
        super().__init__(f"{stage_id}: {message}")
        self.stage_id = stage_id
        self.reason = message
        self.artifact_digest = artifact_digest


class StageTimeout(StageFailure):
    """A stage exceeded its execution bound and was cancelled."""


class ProbeExhausted(StageFailure):
    """The health prober used its whole attempt budget without a pass."""

    def __init__(
        self,
        stage_id: str,
        url: str,
        attempts: int,
        *,
        last_status_code: int | None = None,
        last_error: str | None = None,
        artifact_digest: str = "",
    ) -> None:
        detail = (
            f"status {last_status_code}" if last_status_code is not None
            else (last_error or "no response")
        )
        super().__init__(
            stage_id,
            f"{url} not healthy after {attempts} attempts (last: {detail})",
            artifact_digest=artifact_digest,
        )
        self.url = url
        self.attempts = attempts
        self.last_status_code = last_status_code
        self.last_error = last_error


class PromotionBlocked(StageFailure):
    """Production promotion requested without a validated dev deployment."""


class StageBlocked(StageFailure):
    """A stage refused because one of its prerequisites has not passed."""


class DeploymentError(PipelineError):
    """The deployment platform rejected a redeploy or rollback."""


class NoPriorDeployment(DeploymentError):
    """Rollback requested on a target that has never been deployed before.

    Not retryable; requires manual intervention.
    """

    def __init__(self, service: str) -> None:
        super().__init__(f"No prior deployment of {service!r} to roll back to")
        self.service = service


class RollbackFailure(PipelineError):
    """The rollback action failed.  Reported; the run is still rolled back."""

    def __init__(self, service: str, cause: Exception) -> None:
        super().__init__(f"Rollback of {service!r} failed: {cause}")
        self.service = service
        self.cause = cause

    @property
    def requires_manual_intervention(self) -> bool:
        return isinstance(self.cause, NoPriorDeployment)


class ScopeViolation(PipelineError):
    """A stage tried to read a credential bound to another scope."""


class SecretNotFoundError(PipelineError):
    """The credential store holds no secret under the requested name.

    Distinct from an empty secret, which is returned as ``""``.
    """


class RunFinalizedError(PipelineError):
    """A terminal PipelineRun cannot be modified."""


class InvalidPhaseTransitionError(PipelineError):
    """The promotion state machine does not allow the requested move."""
