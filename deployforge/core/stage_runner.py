"""Stage runner — strict sequential execution with halt-on-failure.

Each stage runs in a worker thread awaited with an explicit timeout.  The
digest bound by the build stage is handed to every later stage inside a
frozen ``StageContext``; a stage reporting any other digest fails.  The
first failure halts the run and every remaining stage is recorded as
skipped.  Nothing is retried.

Every outcome is sealed into the Run Ledger (through the StageMachine)
before the next stage is considered.
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from collections.abc import Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from deployforge.core.errors import (
    BuildError,
    PipelineError,
    StageBlocked,
    StageFailure,
    StageTimeout,
)
from deployforge.core.secret_scope import SecretScopeResolver
from deployforge.core.stage_machine import StageMachine
from deployforge.models.events import EventType, PipelineEvent
from deployforge.models.runs import PipelineRun, RunStatus
from deployforge.models.stages import StageResult, StageState
from deployforge.stages.base import BaseStage, StageContext

if TYPE_CHECKING:
    from deployforge.routing.dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)

# before_stage(run, stage) -> run; raise StageFailure to refuse the stage.
BeforeStage = Callable[[PipelineRun, BaseStage], PipelineRun]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _public(result: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in result.items() if not k.startswith("_")}


class StageRunner:
    """Runs an ordered list of stages against one PipelineRun.

    Parameters
    ----------
    stage_machine:
        Validates transitions and records them in the ledger.  Its graph
        must contain every stage handed to ``run``.
    resolver:
        Resolves the credential set for each stage's scope.
    dispatcher:
        Optional notification dispatcher.
    default_timeout_seconds:
        Bound for stages that do not declare their own.
    """

    def __init__(
        self,
        stage_machine: StageMachine,
        *,
        resolver: SecretScopeResolver,
        dispatcher: NotificationDispatcher | None = None,
        default_timeout_seconds: float = 900.0,
    ) -> None:
        self._machine = stage_machine
        self._resolver = resolver
        self._dispatcher = dispatcher
        self._default_timeout = default_timeout_seconds

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(
        self,
        run: PipelineRun,
        stages: list[BaseStage],
        *,
        before_stage: BeforeStage | None = None,
    ) -> PipelineRun:
        """Execute *stages* in order and return the updated run.

        The returned run is not finalized; deciding the terminal status is
        the caller's job.  ``run.failed_stage`` names the stage that halted
        execution, if any.
        """
        self.check_stages(stages)

        if run.status == RunStatus.PENDING:
            run = run.start()
        self._machine.initialize_run(run.run_id)

        halted_at: int | None = None
        for index, stage in enumerate(stages):
            if before_stage is not None:
                try:
                    run = before_stage(run, stage)
                except StageFailure as exc:
                    run = self._refuse(run, stage, exc)
                    halted_at = index
                    break

            run = self._execute(run, stage)
            if run.failed_stage is not None:
                halted_at = index
                break

        if halted_at is not None:
            for stage in stages[halted_at + 1:]:
                run = run.record_stage(
                    StageResult(
                        stage_id=stage.stage_id,
                        state=StageState.SKIPPED,
                        artifact_digest=run.artifact_digest,
                        output={"upstream_failure": run.failed_stage},
                    )
                )
        return run

    def check_stages(self, stages: list[BaseStage]) -> None:
        """Reject a stage list the graph cannot run.  Raises ``ValueError``."""
        stage_ids = [s.stage_id for s in stages]
        unknown = [sid for sid in stage_ids if sid not in self._machine.graph]
        if unknown:
            raise ValueError(f"Stages not in the prerequisite graph: {unknown}")
        repeated = sorted({sid for sid in stage_ids if stage_ids.count(sid) > 1})
        if repeated:
            raise ValueError(f"Stages listed more than once: {repeated}")

    # ------------------------------------------------------------------
    # Single-stage execution
    # ------------------------------------------------------------------

    def _execute(self, run: PipelineRun, stage: BaseStage) -> PipelineRun:
        started_at = _now()
        cancel_event = threading.Event()
        timeout = stage.timeout_seconds or self._default_timeout

        can_start, reasons = self._machine.can_start(run.run_id, stage.stage_id)
        if not can_start:
            return self._refuse(
                run, stage,
                StageBlocked(
                    stage.stage_id,
                    f"prerequisites not met: {'; '.join(reasons)}",
                    artifact_digest=run.artifact_digest,
                ),
            )

        self._machine.transition(
            run.run_id, stage.stage_id, StageState.RUNNING,
            artifact_digest=run.artifact_digest,
        )
        logger.info("[%s] %s started (timeout %gs)", run.run_id, stage.stage_id, timeout)

        try:
            credentials = self._resolver.resolve(stage.scope)
            context = StageContext(
                run_id=run.run_id,
                commit_sha=run.commit_sha,
                artifact_digest=run.artifact_digest,
                scope=stage.scope,
                credentials=credentials,
                cancel_event=cancel_event,
            )
            result = self._run_bounded(stage, context, timeout)
            run = self._bind_digest(run, stage, result)
        except PipelineError as exc:
            # BuildError, StageFailure and credential resolution errors alike.
            return self._fail(run, stage, exc, started_at)

        output = _public(result)
        self._machine.transition(
            run.run_id, stage.stage_id, StageState.PASSED,
            artifact_digest=run.artifact_digest,
            input_hash=result.get("_input_hash", ""),
            output_hash=result.get("_output_hash", ""),
            detail=output,
        )
        stage_result = StageResult(
            stage_id=stage.stage_id,
            state=StageState.PASSED,
            artifact_digest=run.artifact_digest,
            output=output,
            started_at=started_at,
        )
        logger.info("[%s] %s passed", run.run_id, stage.stage_id)
        self._notify(run, EventType.STAGE_PASSED, stage.stage_id, "passed")
        return run.record_stage(stage_result)

    def _run_bounded(
        self, stage: BaseStage, context: StageContext, timeout: float
    ) -> dict[str, Any]:
        pool = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"stage-{stage.stage_id}"
        )
        try:
            future = pool.submit(stage.run_stage, context)
            try:
                return future.result(timeout=timeout)
            except concurrent.futures.TimeoutError:
                context.cancel_event.set()
                raise StageTimeout(
                    stage.stage_id,
                    f"exceeded {timeout:g}s and was cancelled",
                    artifact_digest=context.artifact_digest,
                ) from None
        finally:
            # A hung stage keeps its thread; the run does not wait for it.
            pool.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    def _bind_digest(
        run: PipelineRun, stage: BaseStage, result: dict[str, Any]
    ) -> PipelineRun:
        reported = result.get("artifact_digest")
        if stage.produces_artifact:
            if not reported:
                raise BuildError(f"{stage.stage_id} produced no artifact digest")
            return run.with_digest(reported)
        if reported is not None and reported != run.artifact_digest:
            raise StageFailure(
                stage.stage_id,
                f"reported digest {reported}, run is bound to {run.artifact_digest}",
                artifact_digest=run.artifact_digest,
            )
        return run

    # ------------------------------------------------------------------
    # Failure recording
    # ------------------------------------------------------------------

    def _fail(
        self,
        run: PipelineRun,
        stage: BaseStage,
        exc: Exception,
        started_at: datetime | None,
    ) -> PipelineRun:
        error_type = type(exc).__name__
        message = getattr(exc, "reason", None) or str(exc)
        self._machine.transition(
            run.run_id, stage.stage_id, StageState.FAILED,
            artifact_digest=run.artifact_digest,
            detail={"error_type": error_type, "error_message": message},
        )
        logger.error("[%s] %s failed: %s: %s", run.run_id, stage.stage_id, error_type, message)
        self._notify(run, EventType.STAGE_FAILED, stage.stage_id, "failed", message)
        return run.record_stage(
            StageResult(
                stage_id=stage.stage_id,
                state=StageState.FAILED,
                artifact_digest=run.artifact_digest,
                error_type=error_type,
                error_message=message,
                started_at=started_at,
            )
        )

    def _refuse(self, run: PipelineRun, stage: BaseStage, exc: StageFailure) -> PipelineRun:
        """Fail *stage* without executing it."""
        return self._fail(run, stage, exc, started_at=None)

    def _notify(
        self,
        run: PipelineRun,
        event_type: EventType,
        stage_id: str,
        status: str,
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
