"""HTTP health prober with a bounded attempt budget.

One GET per attempt until the endpoint answers with the expected status
or the budget runs out.  A connection failure and a wrong status code are
treated the same way: the attempt is consumed, the prober waits the
interval, and tries again.  There is no wait after the final attempt.

Waiting goes through a ``threading.Event`` so a stage timeout can cancel
the loop mid-interval.  Probing never mutates the target.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

import httpx

from deployforge.core.errors import ProbeExhausted, StageTimeout
from deployforge.models.health import HealthCheckResult, ProbeOutcome, ProbeSpec

logger = logging.getLogger(__name__)

# wait(seconds, cancel_event) -> True if cancelled during the wait
Waiter = Callable[[float, threading.Event], bool]


def _event_wait(seconds: float, cancel_event: threading.Event) -> bool:
    return cancel_event.wait(seconds)


class HealthProber:
    """Polls a health endpoint until it passes or the budget is exhausted.

    Parameters
    ----------
    client:
        Optional ``httpx.Client``.  When omitted a short-lived client is
        created per probe with the probe's request timeout.
    wait:
        Interval waiter; defaults to waiting on the cancel event.
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        *,
        wait: Waiter | None = None,
    ) -> None:
        self._client = client
        self._wait = wait or _event_wait

    def check_once(
        self, client: httpx.Client, spec: ProbeSpec, attempt: int
    ) -> HealthCheckResult:
        """Issue a single unauthenticated GET."""
        try:
            response = client.get(spec.url, timeout=spec.request_timeout_seconds)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            return HealthCheckResult(
                attempt=attempt, error=f"{type(exc).__name__}: {exc}"
            )
        return HealthCheckResult(
            attempt=attempt,
            status_code=response.status_code,
            passed=response.status_code == spec.expected_status,
        )

    def probe(
        self,
        spec: ProbeSpec,
        *,
        stage_id: str = "probe",
        cancel_event: threading.Event | None = None,
        artifact_digest: str = "",
    ) -> ProbeOutcome:
        """Probe until healthy.  Raises ``ProbeExhausted`` after the budget.

        Raises ``StageTimeout`` if *cancel_event* is set while waiting.
        """
        cancel_event = cancel_event or threading.Event()
        if self._client is not None:
            return self._probe_with(self._client, spec, stage_id, cancel_event, artifact_digest)
        with httpx.Client(timeout=spec.request_timeout_seconds, follow_redirects=False) as client:
            return self._probe_with(client, spec, stage_id, cancel_event, artifact_digest)

    def _probe_with(
        self,
        client: httpx.Client,
        spec: ProbeSpec,
        stage_id: str,
        cancel_event: threading.Event,
        artifact_digest: str,
    ) -> ProbeOutcome:
        last: HealthCheckResult | None = None
        for attempt in range(1, spec.max_attempts + 1):
            if cancel_event.is_set():
                raise StageTimeout(
                    stage_id, f"probe of {spec.url} cancelled before attempt {attempt}",
                    artifact_digest=artifact_digest,
                )

            last = self.check_once(client, spec, attempt)
            if last.passed:
                logger.info(
                    "%s healthy on attempt %d/%d", spec.url, attempt, spec.max_attempts
                )
                return ProbeOutcome(
                    url=spec.url,
                    passed=True,
                    attempts=attempt,
                    last_status_code=last.status_code,
                )

            logger.warning(
                "%s attempt %d/%d: %s",
                spec.url,
                attempt,
                spec.max_attempts,
                last.error or f"status {last.status_code}, expected {spec.expected_status}",
            )

            if attempt < spec.max_attempts and self._wait(spec.interval_seconds, cancel_event):
                raise StageTimeout(
                    stage_id, f"probe of {spec.url} cancelled after attempt {attempt}",
                    artifact_digest=artifact_digest,
                )

        if last is None:
            raise ValueError(f"probe of {spec.url} made no attempts")
        raise ProbeExhausted(
            stage_id,
            spec.url,
            spec.max_attempts,
            last_status_code=last.status_code,
            last_error=last.error,
            artifact_digest=artifact_digest,
        )
