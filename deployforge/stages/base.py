"""Abstract base stage with enforced lifecycle.

Every concrete stage inherits from BaseStage and implements only ``execute()``.
The ``run_stage()`` wrapper is **not overridable** — it enforces the canonical
lifecycle ordering:

    check_cancelled -> compute_input_hash -> execute -> compute_output_hash

Stages receive the artifact digest inside a frozen ``StageContext``.  They
may read it; they cannot replace it.
"""

from __future__ import annotations

import abc
import logging
import threading
from typing import Any, ClassVar, final

from pydantic import BaseModel, ConfigDict, Field

from deployforge.core.errors import BuildError, StageFailure, StageTimeout
from deployforge.core.hasher import compute_input_hash, compute_output_hash
from deployforge.models.secrets import CredentialSet, EnvironmentScope

logger = logging.getLogger(__name__)


class StageContext(BaseModel):
    """Read-only inputs handed to a stage."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    run_id: str
    commit_sha: str
    artifact_digest: str = ""
    scope: EnvironmentScope | None = None
    credentials: CredentialSet = CredentialSet()
    cancel_event: threading.Event = Field(default_factory=threading.Event, exclude=True)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()


class BaseStage(abc.ABC):
    """Abstract base for all Deployforge pipeline stages.

    Subclasses **must** implement:
        * ``stage_id``     — unique identifier (e.g. ``"deploy-dev"``).
        * ``display_name`` — human-readable name shown in the Monitor.
        * ``execute(context)`` — the stage's core logic.

    Subclasses **may** set:
        * ``scope`` — the EnvironmentScope whose credentials the stage sees.
        * ``produces_artifact`` — ``True`` only for the build stage.
        * ``timeout_seconds`` — per-stage bound; the runner default otherwise.

    Subclasses **must not** override ``run_stage()``.
    """

    scope: EnvironmentScope | None = None
    produces_artifact: ClassVar[bool] = False
    timeout_seconds: float | None = None

    @property
    @abc.abstractmethod
    def stage_id(self) -> str:
        ...

    @property
    @abc.abstractmethod
    def display_name(self) -> str:
        ...

    @abc.abstractmethod
    def execute(self, context: StageContext) -> dict[str, Any]:
        """Execute the stage.  Raise ``StageFailure`` to fail it."""
        ...

    # ------------------------------------------------------------------
    # Lifecycle: NOT overridable
    # ------------------------------------------------------------------

    @final
    def run_stage(self, context: StageContext) -> dict[str, Any]:
        """Execute the full stage lifecycle.  **Do not override.**

        Returns the dict produced by ``execute()`` augmented with
        ``_input_hash`` and ``_output_hash``.  Any exception other than a
        ``BuildError`` or ``StageFailure`` is wrapped in ``StageFailure``.
        """
        if context.cancelled:
            raise StageTimeout(
                self.stage_id, "cancelled before start",
                artifact_digest=context.artifact_digest,
            )

        input_hash = compute_input_hash(
            self.stage_id,
            {
                "run_id": context.run_id,
                "commit_sha": context.commit_sha,
                "artifact_digest": context.artifact_digest,
                "scope": context.scope.value if context.scope else None,
                "credential_names": context.credentials.names,
            },
        )
        logger.info("%s [%s] input_hash=%s", self.display_name, self.stage_id, input_hash[:12])

        try:
            result = self.execute(context)
        except (BuildError, StageFailure):
            raise
        except Exception as exc:
            logger.error(
                "%s [%s] execution failed: %s", self.display_name, self.stage_id, exc
            )
            raise StageFailure(
                self.stage_id, f"{type(exc).__name__}: {exc}",
                artifact_digest=context.artifact_digest,
            ) from exc

        output_hash = compute_output_hash(
            self.stage_id, {k: v for k, v in result.items() if not k.startswith("_")}
        )
        logger.info("%s [%s] output_hash=%s", self.display_name, self.stage_id, output_hash[:12])

        result["_input_hash"] = input_hash
        result["_output_hash"] = output_hash
        return result

    def __repr__(self) -> str:
        scope = f" scope={self.scope.value}" if self.scope else ""
        return f"<{type(self).__name__} stage_id={self.stage_id!r}{scope}>"
