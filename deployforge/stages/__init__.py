"""Deployforge pipeline stages.

Usage::

    from deployforge.stages import BuildStage, CommandStage, StageContext

    stage = CommandStage("unit-test", "Unit Tests", ["pytest", "-q"])
    result = stage.run_stage(StageContext(run_id=run_id, commit_sha=sha,
                                          artifact_digest=digest))
"""

from __future__ import annotations

from deployforge.stages.base import BaseStage, StageContext
from deployforge.stages.build import BuildStage
from deployforge.stages.command import DIGEST_ENV_VAR, CommandStage
from deployforge.stages.deploy import DeployStage
from deployforge.stages.function import FunctionStage
from deployforge.stages.smoke_test import SmokeTestStage

__all__ = [
    # Base
    "BaseStage",
    "StageContext",
    # Concrete stages
    "BuildStage",
    "CommandStage",
    "DeployStage",
    "FunctionStage",
    "SmokeTestStage",
    "DIGEST_ENV_VAR",
]
