"""Deployforge data models — all Pydantic v2, all frozen (immutable)."""

from deployforge.models.artifacts import Artifact, TagBinding
from deployforge.models.config import PipelineConfig
from deployforge.models.events import EventType, PipelineEvent
from deployforge.models.health import HealthCheckResult, ProbeOutcome, ProbeSpec
from deployforge.models.ledger import LedgerEntry
from deployforge.models.runs import (
    PHASE_TRANSITIONS,
    PipelineRun,
    PromotionPhase,
    RollbackReport,
    RunStatus,
)
from deployforge.models.secrets import CredentialSet, EnvironmentScope
from deployforge.models.stages import (
    DEFAULT_STAGE_DEFINITIONS,
    STAGE_ORDER,
    VALID_TRANSITIONS,
    StageDefinition,
    StageResult,
    StageState,
)

__all__ = [
    # artifacts
    "Artifact",
    "TagBinding",
    # config
    "PipelineConfig",
    # events
    "EventType",
    "PipelineEvent",
    # health
    "HealthCheckResult",
    "ProbeOutcome",
    "ProbeSpec",
    # ledger
    "LedgerEntry",
    # runs
    "PHASE_TRANSITIONS",
    "PipelineRun",
    "PromotionPhase",
    "RollbackReport",
    "RunStatus",
    # secrets
    "CredentialSet",
    "EnvironmentScope",
    # stages
    "DEFAULT_STAGE_DEFINITIONS",
    "STAGE_ORDER",
    "VALID_TRANSITIONS",
    "StageDefinition",
    "StageResult",
    "StageState",
]
