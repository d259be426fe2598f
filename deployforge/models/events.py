"""Pipeline notification events (fire-and-forget)."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    RUN_STARTED = "run_started"
    STAGE_PASSED = "stage_passed"
    STAGE_FAILED = "stage_failed"
    ROLLBACK_SUCCEEDED = "rollback_succeeded"
    ROLLBACK_FAILED = "rollback_failed"
    RUN_FINISHED = "run_finished"


class PipelineEvent(BaseModel):
    """One notification about a run."""

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    run_id: str
    event_type: EventType
    stage_id: str | None = None
    artifact_digest: str = ""
    status: str = ""
    message: str = ""
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
