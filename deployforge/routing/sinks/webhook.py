"""Webhook sink — POSTs each event as JSON to a configured URL."""

from __future__ import annotations

import logging

import httpx

from deployforge.models.events import PipelineEvent

logger = logging.getLogger(__name__)


class WebhookSink:
    """Delivers events over HTTP.

    Parameters
    ----------
    url:
        Endpoint receiving ``POST`` requests with the event as JSON.
    client:
        Optional ``httpx.Client``; a default one with *timeout* is created
        otherwise.
    timeout:
        Request timeout in seconds.
    """

    def __init__(
        self,
        url: str,
        *,
        client: httpx.Client | None = None,
        timeout: float = 5.0,
    ) -> None:
        if not url:
            raise ValueError("WebhookSink requires a URL")
        self._url = url
        self._client = client or httpx.Client(timeout=timeout)

    @property
    def sink_name(self) -> str:
        return "webhook"

    def accept(self, event: PipelineEvent) -> None:
        response = self._client.post(self._url, json=event.model_dump(mode="json"))
        response.raise_for_status()
        logger.debug("WebhookSink: delivered %s (%d)", event.event_id, response.status_code)

    def close(self) -> None:
        self._client.close()
