"""Deployforge: build once, validate in dev, promote to production.

One immutable, content-addressed artifact per commit flows through
build, unit tests, a dev deployment with smoke and integration tests,
then production with a smoke test and automatic rollback.  Every
decision is sealed into an append-only, hash-chained Run Ledger.
"""

__version__ = "0.1.0"
__description__ = "Deployment pipeline orchestrator with digest-pinned promotion and rollback"

from deployforge.core.orchestrator import Orchestrator
from deployforge.monitor.projection import MonitorProjection as RunMonitor
from deployforge.cli.app import app as cli

__all__ = ["Orchestrator", "RunMonitor", "cli", "__version__"]
