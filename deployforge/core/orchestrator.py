"""Pipeline orchestrator — the central coordinator for Deployforge runs.

The Orchestrator wires the RunLedger, ContentAddressedStore, TagRegistry,
ArtifactBuilder, StageMachine, SecretScopeResolver, HealthProber,
StageRunner and PromotionController into a single pipeline execution
engine.  Deployment targets and the credential store are supplied by the
caller.
"""

from __future__ import annotations

import logging
from pathlib import Path

from deployforge.config import ProdConfig
from deployforge.core.artifact_store import ContentAddressedStore
from deployforge.core.builder import ArtifactBuilder, BuildContext
from deployforge.core.health_prober import HealthProber
from deployforge.core.prerequisite_graph import PrerequisiteGraph
from deployforge.core.production_guard import enforce_production_constraints
from deployforge.core.promotion import PromotionController
from deployforge.core.registry import LocalArtifactRegistry
from deployforge.core.run_ledger import RunLedger
from deployforge.core.secret_scope import CredentialStore, SecretScopeResolver
from deployforge.core.stage_machine import StageMachine
from deployforge.core.stage_runner import StageRunner
from deployforge.core.tag_registry import TagRegistry
from deployforge.models.config import PipelineConfig
from deployforge.models.ledger import LedgerEntry
from deployforge.models.runs import PipelineRun
from deployforge.models.secrets import EnvironmentScope
from deployforge.models.stages import (
    DEFAULT_STAGE_DEFINITIONS,
    DEPLOY_DEV,
    DEPLOY_PROD,
    INTEGRATION_TEST,
    SMOKE_TEST_DEV,
    SMOKE_TEST_PROD,
    UNIT_TEST,
)
from deployforge.routing.dispatcher import NotificationDispatcher
from deployforge.routing.sinks import NotificationSink
from deployforge.stages import BaseStage, BuildStage, CommandStage, DeployStage, SmokeTestStage
from deployforge.targets.base import DeploymentTarget

logger = logging.getLogger(__name__)


class Orchestrator:
    """Central pipeline orchestrator.

    Parameters
    ----------
    config:
        Pipeline configuration.
    dev_target, prod_target:
        Deployment targets for the two environments.
    credential_store:
        Source of scoped secrets.
    prod_config:
        Runtime settings checked by the production guard.
    prober:
        Health prober; a default one is created if omitted.
    sinks:
        Notification sinks registered on the dispatcher.
    """

    def __init__(
        self,
        config: PipelineConfig,
        *,
        dev_target: DeploymentTarget,
        prod_target: DeploymentTarget,
        credential_store: CredentialStore,
        prod_config: ProdConfig | None = None,
        prober: HealthProber | None = None,
        sinks: list[NotificationSink] | None = None,
    ) -> None:
        self.config = config
        self._prod_config = prod_config or ProdConfig()

        # Production guard: fails hard if production constraints are violated
        enforce_production_constraints(self._prod_config, config)

        # Storage
        self.ledger = RunLedger(config.ledger_db_path)
        self.artifact_store = ContentAddressedStore(config.artifact_store_path)
        self.tag_registry = TagRegistry(config.tag_db_path)
        self.registry = LocalArtifactRegistry(self.artifact_store, self.tag_registry)

        # Execution
        self.builder = ArtifactBuilder(self.registry)
        self.graph = PrerequisiteGraph(DEFAULT_STAGE_DEFINITIONS)
        self.stage_machine = StageMachine(self.ledger, self.graph)
        self.resolver = SecretScopeResolver(
            credential_store, forward_all=config.forward_all_secrets
        )
        self.prober = prober or HealthProber()
        self.dispatcher = NotificationDispatcher(sinks)
        self.runner = StageRunner(
            self.stage_machine,
            resolver=self.resolver,
            dispatcher=self.dispatcher,
            default_timeout_seconds=config.stage_timeout_seconds,
        )

        self.dev_target = dev_target
        self.prod_target = prod_target
        self.controller = PromotionController(
            self.runner,
            self.ledger,
            prod_target,
            config.service_name,
            dispatcher=self.dispatcher,
        )

    # ------------------------------------------------------------------
    # Pipeline assembly
    # ------------------------------------------------------------------

    def build_stages(self, build_context: BuildContext) -> list[BaseStage]:
        """Return the seven standard stages, in execution order."""
        cfg = self.config
        timeout = cfg.stage_timeout_seconds
        dev_spec = cfg.probe_spec(cfg.dev_url) if cfg.dev_url else None
        prod_spec = cfg.probe_spec(cfg.prod_url) if cfg.prod_url else None

        return [
            BuildStage(self.builder, build_context),
            CommandStage(
                UNIT_TEST, "Unit Tests", cfg.unit_test_command,
                cwd=build_context.source_dir, timeout_seconds=timeout,
            ),
            DeployStage(
                DEPLOY_DEV, "Deploy to Dev", self.dev_target, self.registry,
                cfg.service_name, scope=EnvironmentScope.DEV, timeout_seconds=timeout,
            ),
            SmokeTestStage(
                SMOKE_TEST_DEV, "Smoke Test (Dev)", self.prober, dev_spec,
                scope=EnvironmentScope.DEV, timeout_seconds=timeout,
            ),
            CommandStage(
                INTEGRATION_TEST, "Integration Tests", cfg.integration_test_command,
                scope=EnvironmentScope.DEV, cwd=build_context.source_dir,
                timeout_seconds=timeout,
            ),
            DeployStage(
                DEPLOY_PROD, "Deploy to Production", self.prod_target, self.registry,
                cfg.service_name, scope=EnvironmentScope.PRODUCTION, timeout_seconds=timeout,
            ),
            SmokeTestStage(
                SMOKE_TEST_PROD, "Smoke Test (Production)", self.prober, prod_spec,
                scope=EnvironmentScope.PRODUCTION, timeout_seconds=timeout,
            ),
        ]

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    def run(
        self,
        commit_sha: str,
        source_dir: Path,
        *,
        stages: list[BaseStage] | None = None,
    ) -> PipelineRun:
        """Execute the pipeline for *commit_sha* and return the finalized run."""
        build_context = BuildContext(
            source_dir=Path(source_dir),
            commit_sha=commit_sha,
            name=self.config.service_name,
            build_command=self.config.build_command,
            release_version=self.config.release_version,
            timeout_seconds=self.config.stage_timeout_seconds,
        )
        run = PipelineRun(commit_sha=commit_sha)
        logger.info(
            "Run %s: building %s from %s", run.run_id, self.config.service_name, source_dir
        )
        return self.controller.execute(run, stages or self.build_stages(build_context))

    # ------------------------------------------------------------------
    # Query methods
    # ------------------------------------------------------------------

    def get_run_entries(self, run_id: str) -> list[LedgerEntry]:
        return self.ledger.get_run_entries(run_id)

    def verify_chain(self, run_id: str) -> bool:
        """Verify the hash chain integrity of a run's ledger."""
        return self.ledger.verify_chain(run_id)
