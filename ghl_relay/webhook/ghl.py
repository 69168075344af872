"""GoHighLevel side of the relay: webhook forwarding and CRM event intake."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ghl_relay.models import NormalizedOutboundPayload
from ghl_relay.webhook.models import UpstreamError

logger = logging.getLogger(__name__)

CONTACT_EVENTS = frozenset({"ContactCreate", "ContactUpdate", "ContactTagUpdate"})


def extract_event_type(body: Any) -> str:
    """Event type of a GHL webhook body: ``type``, then ``eventType``."""
    if not isinstance(body, dict):
        return "unknown"
    event_type = body.get("type") or body.get("eventType")
    return str(event_type) if event_type else "unknown"


def classify_event(event_type: str) -> str:
    """Return ``"contact"`` for contact events and ``"unhandled"`` otherwise."""
    return "contact" if event_type in CONTACT_EVENTS else "unhandled"


class GHLClient:
    """Posts normalized inbound messages to the configured GHL webhook."""

    def __init__(
        self,
        webhook_url: str,
        api_key: str,
        timeout: float | None = None,
    ) -> None:
        self._webhook_url = webhook_url
        self._api_key = api_key
        self._timeout = timeout

    async def forward(self, payload: NormalizedOutboundPayload) -> None:
        """POST the payload; raises ``UpstreamError`` on any failure."""
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    self._webhook_url, json=payload.to_wire(), headers=headers,
                )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise UpstreamError(f"GoHighLevel request failed: {exc}") from exc

        if resp.status_code >= 400:
            raise UpstreamError(
                f"Request failed with status code {resp.status_code}",
                status_code=resp.status_code,
                details=resp.text or None,
            )
