"""Deterministic stage state machine.

Enforces:
- Valid state transitions only (VALID_TRANSITIONS table)
- Prerequisites checked before RUNNING
- Cascade skipping on failure
- Every transition recorded in the Run Ledger
"""

from __future__ import annotations

from typing import Any

from deployforge.core.prerequisite_graph import PrerequisiteGraph, PrerequisiteNotMetError
from deployforge.core.run_ledger import RunLedger
from deployforge.models.ledger import LedgerEntry
from deployforge.models.stages import VALID_TRANSITIONS, StageState


class InvalidTransitionError(RuntimeError):
    """Raised when a requested state transition is not valid."""


class StageMachine:
    """Enforces the stage state machine with prerequisite checking.

    Parameters
    ----------
    ledger:
        The Run Ledger to record transitions into.
    graph:
        The prerequisite graph for dependency checking.
    """

    def __init__(self, ledger: RunLedger, graph: PrerequisiteGraph) -> None:
        self._ledger = ledger
        self._graph = graph
        # In-memory state cache: run_id -> {stage_id -> StageState}
        self._states: dict[str, dict[str, StageState]] = {}

    @property
    def graph(self) -> PrerequisiteGraph:
        return self._graph

    # ------------------------------------------------------------------
    # State management
    # ------------------------------------------------------------------

    def initialize_run(self, run_id: str) -> dict[str, StageState]:
        """Initialize all stages to NOT_STARTED for a new run."""
        states = {sid: StageState.NOT_STARTED for sid in self._graph.stage_ids}
        self._states[run_id] = states
        return dict(states)

    def get_current_state(self, run_id: str, stage_id: str) -> StageState:
        return self._run_states(run_id).get(stage_id, StageState.NOT_STARTED)

    def get_all_states(self, run_id: str) -> dict[str, StageState]:
        return dict(self._run_states(run_id))

    def _run_states(self, run_id: str) -> dict[str, StageState]:
        if run_id not in self._states:
            self._rebuild_state(run_id)
        return self._states[run_id]

    def _rebuild_state(self, run_id: str) -> None:
        """Rebuild in-memory state from the ledger."""
        states = {sid: StageState.NOT_STARTED for sid in self._graph.stage_ids}
        for entry in self._ledger.get_run_entries(run_id):
            if entry.stage_id not in states or "->" not in entry.state_transition:
                continue
            try:
                states[entry.stage_id] = StageState(entry.to_state)
            except ValueError:
                continue
        self._states[run_id] = states

    # ------------------------------------------------------------------
    # Transition logic
    # ------------------------------------------------------------------

    def transition(
        self,
        run_id: str,
        stage_id: str,
        target_state: StageState,
        *,
        artifact_digest: str = "",
        input_hash: str = "",
        output_hash: str = "",
        detail: dict[str, Any] | None = None,
    ) -> LedgerEntry:
        """Transition a stage to a new state, recording in the ledger.

        Validates:
        1. The transition is allowed by VALID_TRANSITIONS.
        2. If target is RUNNING, prerequisites are met.
        3. If transition is to FAILED, cascade-skip dependents.

        Returns the sealed LedgerEntry.
        """
        states = self._run_states(run_id)
        current = states.get(stage_id, StageState.NOT_STARTED)

        allowed = VALID_TRANSITIONS.get(current, set())
        if target_state not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition {stage_id} from {current.value} to {target_state.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )

        if target_state == StageState.RUNNING and not self._graph.are_prerequisites_met(
            stage_id, states
        ):
            reasons = self._graph.get_blocking_reasons(stage_id, states)
            raise PrerequisiteNotMetError(
                f"Cannot start {stage_id}: prerequisites not met. "
                f"Blocked by: {'; '.join(reasons)}"
            )

        sealed = self._ledger.append(
            LedgerEntry(
                run_id=run_id,
                stage_id=stage_id,
                state_transition=f"{current.value}->{target_state.value}",
                artifact_digest=artifact_digest,
                input_hash=input_hash,
                output_hash=output_hash,
                detail=detail or {},
            )
        )
        states[stage_id] = target_state

        if target_state == StageState.FAILED:
            for skipped_id in self._graph.cascade_skip(stage_id, states):
                self._ledger.append(
                    LedgerEntry(
                        run_id=run_id,
                        stage_id=skipped_id,
                        state_transition=f"{StageState.NOT_STARTED.value}->{StageState.SKIPPED.value}",
                        artifact_digest=artifact_digest,
                        detail={"upstream_failure": stage_id},
                    )
                )

        return sealed

    # ------------------------------------------------------------------
    # Convenience methods
    # ------------------------------------------------------------------

    def can_start(self, run_id: str, stage_id: str) -> tuple[bool, list[str]]:
        """Check if a stage can transition to RUNNING.

        Returns (can_start, blocking_reasons).
        """
        states = self._run_states(run_id)
        current = states.get(stage_id, StageState.NOT_STARTED)
        if current != StageState.NOT_STARTED:
            return False, [f"Stage is currently {current.value}, not not_started"]

        if not self._graph.are_prerequisites_met(stage_id, states):
            return False, self._graph.get_blocking_reasons(stage_id, states)

        return True, []
