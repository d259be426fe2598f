"""Shared test fixtures for Deployforge."""

from __future__ import annotations

import threading
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import httpx
import pytest

from deployforge.config import ProdConfig
from deployforge.core.artifact_store import ContentAddressedStore
from deployforge.core.health_prober import HealthProber
from deployforge.core.orchestrator import Orchestrator
from deployforge.core.prerequisite_graph import PrerequisiteGraph
from deployforge.core.registry import LocalArtifactRegistry
from deployforge.core.run_ledger import RunLedger
from deployforge.core.secret_scope import InMemoryCredentialStore
from deployforge.core.stage_machine import StageMachine
from deployforge.core.tag_registry import TagRegistry
from deployforge.models.config import PipelineConfig
from deployforge.models.secrets import EnvironmentScope
from deployforge.models.stages import DEFAULT_STAGE_DEFINITIONS
from deployforge.targets import InMemoryDeploymentTarget

DEV_HOST = "dev.test"
PROD_HOST = "prod.test"


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def ledger(tmp_dir: Path) -> RunLedger:
    """Provide a fresh RunLedger backed by a temp SQLite database."""
    return RunLedger(tmp_dir / "test_ledger.db")


@pytest.fixture
def artifact_store(tmp_dir: Path) -> ContentAddressedStore:
    return ContentAddressedStore(tmp_dir / "artifacts")


@pytest.fixture
def tag_registry(tmp_dir: Path) -> TagRegistry:
    return TagRegistry(tmp_dir / "tags.db")


@pytest.fixture
def registry(
    artifact_store: ContentAddressedStore, tag_registry: TagRegistry
) -> LocalArtifactRegistry:
    return LocalArtifactRegistry(artifact_store, tag_registry)


@pytest.fixture
def graph() -> PrerequisiteGraph:
    """Provide a PrerequisiteGraph with the default pipeline stages."""
    return PrerequisiteGraph(DEFAULT_STAGE_DEFINITIONS)


@pytest.fixture
def stage_machine(ledger: RunLedger, graph: PrerequisiteGraph) -> StageMachine:
    return StageMachine(ledger, graph)


@pytest.fixture
def run_id() -> str:
    """Provide a deterministic test run ID."""
    return "df-test-run-001"


@pytest.fixture
def credential_store() -> InMemoryCredentialStore:
    """Disjoint dev and production secrets sharing one name."""
    return InMemoryCredentialStore(
        {
            EnvironmentScope.DEV: {"DEPLOY_TOKEN": "dev-token", "DEV_DB_URL": "postgres://dev"},
            EnvironmentScope.PRODUCTION: {"DEPLOY_TOKEN": "prod-token", "PROD_ONLY": "p"},
        }
    )


@pytest.fixture
def source_dir(tmp_dir: Path) -> Path:
    """A small build context."""
    src = tmp_dir / "src"
    (src / "app").mkdir(parents=True)
    (src / "app" / "main.py").write_text("print('hello')\n")
    (src / "README.md").write_text("service\n")
    return src


# ---------------------------------------------------------------------------
# Health endpoint fakes
# ---------------------------------------------------------------------------


class ScriptedHealth:
    """httpx.MockTransport handler answering from a per-host script.

    Each script entry is a status code or an exception to raise; the last
    entry repeats once the script runs out.
    """

    def __init__(self, scripts: dict[str, list[int | Exception]]) -> None:
        self._scripts = scripts
        self._calls: dict[str, int] = defaultdict(int)
        self.requests: list[tuple[str, str]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        self.requests.append((request.method, str(request.url)))
        script = self._scripts[host]
        outcome = script[min(self._calls[host], len(script) - 1)]
        self._calls[host] += 1
        if isinstance(outcome, Exception):
            raise outcome
        return httpx.Response(outcome, request=request)

    def calls(self, host: str) -> int:
        return self._calls[host]


class WaitRecorder:
    """Interval waiter that records requested waits instead of sleeping."""

    def __init__(self, cancel_after: int | None = None) -> None:
        self.calls: list[float] = []
        self._cancel_after = cancel_after

    def __call__(self, seconds: float, cancel_event: threading.Event) -> bool:
        self.calls.append(seconds)
        return self._cancel_after is not None and len(self.calls) >= self._cancel_after


@pytest.fixture
def waits() -> WaitRecorder:
    return WaitRecorder()


@pytest.fixture
def make_prober(waits: WaitRecorder) -> Callable[..., tuple[HealthProber, ScriptedHealth]]:
    """Factory fixture: a prober whose endpoints follow *scripts*."""

    def _factory(scripts: dict[str, list[int | Exception]]) -> tuple[HealthProber, ScriptedHealth]:
        health = ScriptedHealth(scripts)
        client = httpx.Client(transport=httpx.MockTransport(health))
        return HealthProber(client, wait=waits), health

    return _factory


# ---------------------------------------------------------------------------
# Full pipeline harness
# ---------------------------------------------------------------------------


@dataclass
class PipelineHarness:
    orchestrator: Orchestrator
    health: ScriptedHealth
    waits: WaitRecorder
    dev_target: InMemoryDeploymentTarget
    prod_target: InMemoryDeploymentTarget
    source_dir: Path

    def run(self, commit_sha: str = "c0ffee1234567890"):
        return self.orchestrator.run(commit_sha, self.source_dir)


@pytest.fixture
def make_pipeline(
    tmp_dir: Path,
    source_dir: Path,
    credential_store: InMemoryCredentialStore,
    waits: WaitRecorder,
) -> Callable[..., PipelineHarness]:
    """Factory fixture: an Orchestrator over in-memory targets and fake HTTP.

    ``dev`` and ``prod`` are the health scripts of the two environments.
    Extra keyword arguments override ``PipelineConfig`` fields.
    """

    def _factory(
        *,
        dev: list[int | Exception] | None = None,
        prod: list[int | Exception] | None = None,
        prod_target: InMemoryDeploymentTarget | None = None,
        dev_target: InMemoryDeploymentTarget | None = None,
        **overrides: object,
    ) -> PipelineHarness:
        health = ScriptedHealth({DEV_HOST: dev or [200], PROD_HOST: prod or [200]})
        prober = HealthProber(httpx.Client(transport=httpx.MockTransport(health)), wait=waits)

        values: dict[str, object] = {
            "artifact_store_path": tmp_dir / "state" / "artifacts",
            "ledger_db_path": tmp_dir / "state" / "ledger.db",
            "tag_db_path": tmp_dir / "state" / "tags.db",
            "dev_url": f"http://{DEV_HOST}",
            "prod_url": f"http://{PROD_HOST}",
            "probe_interval_seconds": 10.0,
            "stage_timeout_seconds": 30.0,
        }
        values.update(overrides)

        dev_target = dev_target or InMemoryDeploymentTarget("dev")
        prod_target = prod_target or InMemoryDeploymentTarget("production")
        orchestrator = Orchestrator(
            PipelineConfig(**values),
            dev_target=dev_target,
            prod_target=prod_target,
            credential_store=credential_store,
            prod_config=ProdConfig(_env_file=None, environment="development"),
            prober=prober,
        )
        return PipelineHarness(
            orchestrator=orchestrator,
            health=health,
            waits=waits,
            dev_target=dev_target,
            prod_target=prod_target,
            source_dir=source_dir,
        )

    return _factory
