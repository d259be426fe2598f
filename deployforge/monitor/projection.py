"""MonitorProjection — pure read-only view over the RunLedger.

The monitor is a PROJECTION of the Run Ledger.  It does not compute
truth; it displays it.  Every call re-reads from the ledger.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from deployforge.core.run_ledger import LedgerIntegrityError, RunLedger
from deployforge.models.ledger import ROLLBACK_STAGE_ID, RUN_STAGE_ID, LedgerEntry
from deployforge.models.stages import (
    DEFAULT_STAGE_DEFINITIONS,
    StageDefinition,
    StageState,
)


class StageStatus(BaseModel):
    """Point-in-time status of a single pipeline stage.

    Derived entirely from ledger entries — never stored independently.
    """

    model_config = ConfigDict(frozen=True)

    stage_id: str
    display_name: str
    state: StageState = StageState.NOT_STARTED
    entered_at: datetime | None = None
    artifact_digest: str = ""
    error_type: str | None = None
    error_message: str | None = None
    upstream_failure: str | None = None


class MonitorSnapshot(BaseModel):
    """A frozen, point-in-time snapshot of a pipeline run."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    status: str = "unknown"
    phase: str | None = None
    commit_sha: str = ""
    artifact_digest: str = ""
    failed_stage: str | None = None
    stages: list[StageStatus] = []
    rollback: dict[str, Any] | None = None
    entry_count: int = 0
    chain_valid: bool = True
    last_updated: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def completed_count(self) -> int:
        return sum(1 for s in self.stages if s.state == StageState.PASSED)

    @property
    def total_stages(self) -> int:
        return len(self.stages)

    @property
    def failed_stages(self) -> list[StageStatus]:
        return [s for s in self.stages if s.state == StageState.FAILED]

    @property
    def skipped_stages(self) -> list[StageStatus]:
        return [s for s in self.stages if s.state == StageState.SKIPPED]


class MonitorProjection:
    """Pure read-only projection over the RunLedger.

    Parameters
    ----------
    ledger:
        The RunLedger to project from.
    stage_definitions:
        Pipeline stage definitions for display names and ordering.
        Defaults to ``DEFAULT_STAGE_DEFINITIONS``.
    """

    def __init__(
        self,
        ledger: RunLedger,
        stage_definitions: list[StageDefinition] | None = None,
    ) -> None:
        self._ledger = ledger
        definitions = sorted(
            stage_definitions or DEFAULT_STAGE_DEFINITIONS, key=lambda sd: sd.ordinal
        )
        self._stage_defs = {sd.stage_id: sd for sd in definitions}
        self._stage_order = [sd.stage_id for sd in definitions]

    def snapshot(self, run_id: str) -> MonitorSnapshot:
        """Produce a point-in-time snapshot of *run_id*, re-reading the ledger."""
        entries = self._ledger.get_run_entries(run_id)
        stage_info = self._compute_stage_states(entries)

        stages = [
            StageStatus(
                stage_id=stage_id,
                display_name=self._stage_defs[stage_id].display_name,
                **stage_info.get(stage_id, {}),
            )
            for stage_id in self._stage_order
        ]

        run_entries = [e for e in entries if e.stage_id == RUN_STAGE_ID]
        rollback_entries = [e for e in entries if e.stage_id == ROLLBACK_STAGE_ID]
        latest_run = run_entries[-1] if run_entries else None

        digest = next(
            (e.artifact_digest for e in reversed(entries) if e.artifact_digest), ""
        )
        commit_sha = next(
            (e.detail.get("commit_sha", "") for e in run_entries if e.detail.get("commit_sha")),
            "",
        )
        failed = [s.stage_id for s in stages if s.state == StageState.FAILED]

        return MonitorSnapshot(
            run_id=run_id,
            status=latest_run.to_state if latest_run else ("running" if entries else "unknown"),
            phase=latest_run.detail.get("phase") if latest_run else None,
            commit_sha=commit_sha,
            artifact_digest=digest,
            failed_stage=failed[0] if failed else None,
            stages=stages,
            rollback=dict(rollback_entries[-1].detail) if rollback_entries else None,
            entry_count=len(entries),
            chain_valid=self._check_chain_valid(run_id),
            last_updated=entries[-1].timestamp_utc if entries else datetime.now(timezone.utc),
        )

    def list_runs(self) -> list[str]:
        """Return every run id in the ledger, most recent first."""
        return self._ledger.get_all_run_ids()

    def _compute_stage_states(
        self, entries: list[LedgerEntry]
    ) -> dict[str, dict[str, Any]]:
        """Replay ledger entries into per-stage field values."""
        result: dict[str, dict[str, Any]] = {}
        for entry in entries:
            if entry.stage_id not in self._stage_defs:
                continue
            try:
                state = StageState(entry.to_state)
            except ValueError:
                continue
            info = result.setdefault(entry.stage_id, {})
            info["state"] = state
            info["entered_at"] = entry.timestamp_utc
            info["artifact_digest"] = entry.artifact_digest
            if state == StageState.FAILED:
                info["error_type"] = entry.detail.get("error_type")
                info["error_message"] = entry.detail.get("error_message")
            elif state == StageState.SKIPPED:
                info["upstream_failure"] = entry.detail.get("upstream_failure")
        return result

    def _check_chain_valid(self, run_id: str) -> bool:
        try:
            return self._ledger.verify_chain(run_id)
        except LedgerIntegrityError:
            return False
