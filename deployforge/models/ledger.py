"""Run Ledger entry model (append-only, hash-chained).

The Run Ledger is the durable record of every pipeline decision:
- Append-only (no UPDATE, no DELETE)
- Hash-chained (each entry links to the previous via SHA-256)
- One entry per state transition, rollback attempt, or run outcome
- Every entry carries the artifact digest in use
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Pseudo stage ids for ledger entries that are not stage transitions.
RUN_STAGE_ID = "run"
ROLLBACK_STAGE_ID = "rollback"


class LedgerEntry(BaseModel):
    """A single entry in the append-only Run Ledger."""

    model_config = ConfigDict(frozen=True)

    entry_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    run_id: str
    stage_id: str
    state_transition: str  # "from_state->to_state", e.g. "not_started->running"
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    artifact_digest: str = ""
    input_hash: str = ""
    output_hash: str = ""
    detail: dict[str, Any] = {}
    pipeline_version: str = "0.1.0"
    schema_version: str = "2026-10"
    previous_entry_hash: str = ""
    entry_hash: str = ""  # computed on append, seals this entry

    @property
    def to_state(self) -> str:
        return self.state_transition.split("->", 1)[-1]
