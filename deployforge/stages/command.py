"""Command stages — unit and integration tests run as subprocesses.

The command runs with the artifact digest in ``DEPLOYFORGE_ARTIFACT_DIGEST``
and the stage's scoped credentials merged into an environment stripped of
every other pipeline secret.  A non-zero exit fails the stage.  An empty
command is a recorded no-op.
"""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Any

from deployforge.core.errors import StageFailure, StageTimeout
from deployforge.core.secret_scope import without_scoped_secrets
from deployforge.models.secrets import EnvironmentScope
from deployforge.stages.base import BaseStage, StageContext

logger = logging.getLogger(__name__)

DIGEST_ENV_VAR = "DEPLOYFORGE_ARTIFACT_DIGEST"
RUN_ID_ENV_VAR = "DEPLOYFORGE_RUN_ID"
COMMIT_ENV_VAR = "DEPLOYFORGE_COMMIT_SHA"

_OUTPUT_TAIL_LINES = 20


class CommandStage(BaseStage):
    """Runs a command and passes if it exits 0.

    Parameters
    ----------
    stage_id, display_name:
        Stage identity.
    command:
        Argument vector.  Empty means nothing is configured.
    scope:
        Credential scope; ``None`` runs with no pipeline secrets.
    cwd:
        Working directory for the command.
    timeout_seconds:
        Hard limit on the subprocess.
    """

    def __init__(
        self,
        stage_id: str,
        display_name: str,
        command: list[str],
        *,
        scope: EnvironmentScope | None = None,
        cwd: Path | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._stage_id = stage_id
        self._display_name = display_name
        self._command = list(command)
        self._cwd = cwd
        self.scope = scope
        self.timeout_seconds = timeout_seconds

    @property
    def stage_id(self) -> str:
        return self._stage_id

    @property
    def display_name(self) -> str:
        return self._display_name

    def execute(self, context: StageContext) -> dict[str, Any]:
        if not self._command:
            return {"status": "passed", "note": "no command configured"}

        env = without_scoped_secrets(os.environ)
        env.update(context.credentials.as_env())
        env[DIGEST_ENV_VAR] = context.artifact_digest
        env[RUN_ID_ENV_VAR] = context.run_id
        env[COMMIT_ENV_VAR] = context.commit_sha

        logger.info("%s: running %s", self.stage_id, " ".join(self._command))
        try:
            completed = subprocess.run(
                self._command,
                cwd=self._cwd,
                env=env,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise StageTimeout(
                self.stage_id,
                f"command timed out after {self.timeout_seconds:g}s",
                artifact_digest=context.artifact_digest,
            ) from exc
        except OSError as exc:
            raise StageFailure(
                self.stage_id, f"command could not start: {exc}",
                artifact_digest=context.artifact_digest,
            ) from exc

        tail = (completed.stdout + completed.stderr).strip().splitlines()[-_OUTPUT_TAIL_LINES:]
        if completed.returncode != 0:
            raise StageFailure(
                self.stage_id,
                f"command exited with {completed.returncode}"
                + (":\n" + "\n".join(tail) if tail else ""),
                artifact_digest=context.artifact_digest,
            )
        return {"status": "passed", "returncode": 0, "output_tail": tail}
