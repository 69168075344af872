"""Outbound sends — GoHighLevel send requests delivered via Evolution API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ghl_relay.models import AuditEvent, AuditEventType, AuditLevel, SendRequest, SendResult
from ghl_relay.webhook.evolution import build_send_command
from ghl_relay.webhook.models import UpstreamError

if TYPE_CHECKING:
    from ghl_relay.audit.logger import AuditLogger
    from ghl_relay.webhook.evolution import EvolutionClient

logger = logging.getLogger(__name__)


class OutboundSendService:
    """Sends a validated ``SendRequest`` through the Evolution API."""

    def __init__(
        self,
        evolution: EvolutionClient,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._evolution = evolution
        self._audit = audit_logger

    async def send(self, request: SendRequest) -> SendResult:
        """Dispatch a text or media send.

        Raises ``UpstreamError`` when the gateway call fails; the caller
        turns it into an error response.
        """
        command = build_send_command(request)
        logger.info("Formatted number: %s", command.number)
        try:
            data = await self._evolution.send(command)
        except UpstreamError as exc:
            logger.error("Error sending WhatsApp message: %s (details: %s)", exc, exc.details)
            self._log("failure", AuditLevel.ERROR, {
                "number": command.number,
                "media": command.is_media,
                "error": str(exc),
                "upstream_status": exc.status_code,
            })
            raise

        result = SendResult.from_gateway(data)
        logger.info("Evolution API accepted message %s", result.message_id)
        self._log("success", AuditLevel.INFO, {
            "number": command.number,
            "media": command.is_media,
            "message_id": result.message_id,
        })
        return result

    def reject(self, reason: str) -> None:
        """Record a send request refused before any gateway call."""
        logger.info("Rejected send request: %s", reason)
        self._log("rejected", AuditLevel.WARNING, {"reason": reason})

    def _log(self, result: str, level: AuditLevel, details: dict[str, object]) -> None:
        if self._audit:
            self._audit.log(AuditEvent(
                event_type=AuditEventType.OUTBOUND_SEND,
                action="send",
                result=result,
                level=level,
                details=details,
            ))
