"""Production configuration guard — enforces hard constraints in production.

The guard validates that production-critical settings are correctly
configured before the pipeline starts.  It runs once at construction time
and fails hard (raises ``ProductionConfigError``) if any constraint is
violated.

This module is the single enforcement point for production invariants.
Other code should not scatter ``if is_production`` checks.
"""

from __future__ import annotations

import logging

from deployforge.config import ProdConfig
from deployforge.models.config import PipelineConfig

logger = logging.getLogger(__name__)

# Longest total probe budget accepted in production (attempts x interval).
MAX_PRODUCTION_PROBE_SECONDS = 3600.0


class ProductionConfigError(RuntimeError):
    """Raised when production configuration constraints are violated.

    The system cannot safely start in production mode with the current
    configuration.  It must not be caught and ignored; the process should
    exit.
    """


def enforce_production_constraints(
    config: ProdConfig, pipeline: PipelineConfig | None = None
) -> None:
    """Validate all production-critical configuration constraints.

    Constraints enforced
    --------------------
    1. Debug mode must be disabled.
    2. A production health URL must be configured, or smoke-test-prod can
       never pass.
    3. The probe budget (attempts x interval) must stay within
       ``MAX_PRODUCTION_PROBE_SECONDS``.

    Parameters
    ----------
    config:
        The active ``ProdConfig`` instance.
    pipeline:
        The pipeline configuration about to run.  Settings are checked when
        omitted.

    Raises
    ------
    ProductionConfigError
        If any production constraint is violated.
    """
    if not config.is_production:
        return

    violations: list[str] = []

    if config.debug:
        violations.append(
            "debug=True is not allowed in production. Set DEPLOYFORGE_DEBUG=false."
        )

    prod_url = pipeline.prod_url if pipeline is not None else config.prod_url
    if not prod_url:
        violations.append(
            "No production health URL configured. Set DEPLOYFORGE_PROD_URL."
        )

    source = pipeline if pipeline is not None else config
    budget = source.probe_max_attempts * source.probe_interval_seconds
    if budget > MAX_PRODUCTION_PROBE_SECONDS:
        violations.append(
            f"Probe budget of {budget:g}s exceeds {MAX_PRODUCTION_PROBE_SECONDS:g}s. "
            "Lower DEPLOYFORGE_PROBE_MAX_ATTEMPTS or DEPLOYFORGE_PROBE_INTERVAL_SECONDS."
        )

    if violations:
        msg = "Production configuration guard failed.\n" + "\n".join(
            f"  - {v}" for v in violations
        )
        logger.critical(msg)
        raise ProductionConfigError(msg)

    logger.info("Production configuration guard passed.")
