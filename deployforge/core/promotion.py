"""Promotion controller — dev validation before production, rollback on a bad prod.

Phases::

    pending -> building -> testing_dev -> validating_dev
            -> promoting_prod -> validating_prod -> {succeeded, rolled_back}

``failed`` is reachable from every non-terminal phase except
validating_prod.  A failure while validating production always ends in
``rolled_back``: the production target's rollback is invoked and the run is
rolled back whether or not that rollback succeeds.  The rollback outcome is
reported separately in a ``RollbackReport`` and in the ledger.

There is no approval phase: once dev validation passes for the run's
digest, production promotion starts immediately.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from deployforge.core.errors import (
    InvalidPhaseTransitionError,
    PromotionBlocked,
    RollbackFailure,
    StageFailure,
)
from deployforge.core.run_ledger import RunLedger
from deployforge.core.stage_runner import StageRunner
from deployforge.models.events import EventType, PipelineEvent
from deployforge.models.ledger import ROLLBACK_STAGE_ID, RUN_STAGE_ID, LedgerEntry
from deployforge.models.runs import PipelineRun, PromotionPhase, RollbackReport, RunStatus
from deployforge.models.stages import (
    BUILD,
    DEPLOY_DEV,
    DEPLOY_PROD,
    INTEGRATION_TEST,
    SMOKE_TEST_DEV,
    SMOKE_TEST_PROD,
    UNIT_TEST,
)
from deployforge.stages.base import BaseStage
from deployforge.targets.base import DeploymentTarget

if TYPE_CHECKING:
    from deployforge.routing.dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)

# Phase a run enters when the stage starts.
STAGE_PHASES: dict[str, PromotionPhase] = {
    BUILD: PromotionPhase.BUILDING,
    UNIT_TEST: PromotionPhase.TESTING_DEV,
    DEPLOY_DEV: PromotionPhase.TESTING_DEV,
    SMOKE_TEST_DEV: PromotionPhase.VALIDATING_DEV,
    INTEGRATION_TEST: PromotionPhase.VALIDATING_DEV,
    DEPLOY_PROD: PromotionPhase.PROMOTING_PROD,
    SMOKE_TEST_PROD: PromotionPhase.VALIDATING_PROD,
}

# Stages that must have passed, with the run's digest, before promotion.
DEV_VALIDATION_STAGES: tuple[str, ...] = (SMOKE_TEST_DEV, INTEGRATION_TEST)


class PromotionController:
    """Drives one run through the promotion phases.

    Parameters
    ----------
    runner:
        Executes the stages.
    ledger:
        Receives the run-level and rollback entries.
    prod_target:
        Target rolled back when production validation fails.
    service_name:
        Service deployed on the targets.
    dispatcher:
        Optional notification dispatcher.
    """

    def __init__(
        self,
        runner: StageRunner,
        ledger: RunLedger,
        prod_target: DeploymentTarget,
        service_name: str,
        *,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        self._runner = runner
        self._ledger = ledger
        self._prod_target = prod_target
        self._service = service_name
        self._dispatcher = dispatcher

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def execute(self, run: PipelineRun, stages: list[BaseStage]) -> PipelineRun:
        """Run *stages* and return the finalized run.

        Raises ``ValueError`` before anything is recorded if *stages* cannot
        form a promotion: unknown or repeated stages, or a list that does not
        end with production validation.
        """
        self._runner.check_stages(stages)
        if not stages or stages[-1].stage_id != SMOKE_TEST_PROD:
            raise ValueError(
                f"A promotion must end with {SMOKE_TEST_PROD}, "
                f"got {[s.stage_id for s in stages]}"
            )

        run = run.start()
        self._record_run(run, RunStatus.PENDING, RunStatus.RUNNING)
        self._notify(run, EventType.RUN_STARTED, status=RunStatus.RUNNING.value)
        logger.info("[%s] started for commit %s", run.run_id, run.commit_sha[:12])

        run = self._runner.run(run, stages, before_stage=self.enter_stage)

        if run.failed_stage is None:
            run = run.finish(PromotionPhase.SUCCEEDED)
        elif run.phase == PromotionPhase.VALIDATING_PROD:
            run = run.finish(PromotionPhase.ROLLED_BACK, rollback=self._roll_back(run))
        else:
            run = run.finish(PromotionPhase.FAILED)

        self._record_run(run, RunStatus.RUNNING, run.status)
        self._notify(
            run, EventType.RUN_FINISHED,
            status=run.status.value, message=run.error_message or "",
        )
        logger.info(
            "[%s] finished: %s (phase %s, digest %s)",
            run.run_id, run.status.value, run.phase.value, run.artifact_digest or "-",
        )
        return run

    def enter_stage(self, run: PipelineRun, stage: BaseStage) -> PipelineRun:
        """Advance the phase for *stage*; refuse promotion without dev validation."""
        phase = STAGE_PHASES.get(stage.stage_id)
        if phase is None or phase == run.phase:
            return run

        if phase == PromotionPhase.PROMOTING_PROD:
            missing = [
                sid for sid in DEV_VALIDATION_STAGES
                if not run.passed_with_digest(sid, run.artifact_digest)
            ]
            if missing:
                raise PromotionBlocked(
                    stage.stage_id,
                    f"dev validation incomplete for {run.artifact_digest or 'no digest'}: "
                    f"{', '.join(missing)} not passed",
                    artifact_digest=run.artifact_digest,
                )

        try:
            return run.advance(phase)
        except InvalidPhaseTransitionError as exc:
            raise StageFailure(
                stage.stage_id, str(exc), artifact_digest=run.artifact_digest
            ) from exc

    # ------------------------------------------------------------------
    # Rollback
    # ------------------------------------------------------------------

    def _roll_back(self, run: PipelineRun) -> RollbackReport:
        logger.warning(
            "[%s] production validation failed; rolling back %s",
            run.run_id, self._service,
        )
        try:
            deployment = self._prod_target.rollback(self._service)
        except Exception as exc:  # noqa: BLE001
            failure = RollbackFailure(self._service, exc)
            logger.error("[%s] %s", run.run_id, failure)
            report = RollbackReport(
                service=self._service,
                succeeded=False,
                error_type=type(exc).__name__,
                error_message=str(failure),
                requires_manual_intervention=failure.requires_manual_intervention,
            )
        else:
            report = RollbackReport(
                service=self._service,
                succeeded=True,
                restored_digest=deployment.digest,
            )

        outcome = "succeeded" if report.succeeded else "failed"
        self._ledger.append(
            LedgerEntry(
                run_id=run.run_id,
                stage_id=ROLLBACK_STAGE_ID,
                state_transition=f"requested->{outcome}",
                artifact_digest=run.artifact_digest,
                detail=report.model_dump(mode="json"),
            )
        )
        self._notify(
            run,
            EventType.ROLLBACK_SUCCEEDED if report.succeeded else EventType.ROLLBACK_FAILED,
            stage_id=ROLLBACK_STAGE_ID,
            status=outcome,
            message=report.error_message or "",
        )
        return report

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def _record_run(self, run: PipelineRun, from_status: RunStatus, to_status: RunStatus) -> None:
        self._ledger.append(
            LedgerEntry(
                run_id=run.run_id,
                stage_id=RUN_STAGE_ID,
                state_transition=f"{from_status.value}->{to_status.value}",
                artifact_digest=run.artifact_digest,
                detail={
                    "commit_sha": run.commit_sha,
                    "phase": run.phase.value,
                    "failed_stage": run.failed_stage,
                    "error_message": run.error_message,
                },
            )
        )

    def _notify(
        self,
        run: PipelineRun,
        event_type: EventType,
        *,
        stage_id: str | None = None,
        status: str = "",
        message: str = "",
    ) -> None:
        if self._dispatcher is None:
            return
        self._dispatcher.publish(
            PipelineEvent(
                run_id=run.run_id,
                event_type=event_type,
                stage_id=stage_id,
                artifact_digest=run.artifact_digest,
                status=status,
                message=message,
            )
        )
