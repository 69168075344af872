"""Inbound relay pipeline — Evolution API webhook batches to GoHighLevel.

Pipeline stages per message record:
1. Parse (unrecognized records are skipped)
2. Resolve media for image/document messages
3. Build the normalized payload
4. Forward to the GHL webhook
5. Audit log

Media and forward failures are logged and never abort the batch.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from functools import partial
from typing import TYPE_CHECKING, Any, TypeVar

from ghl_relay.models import AuditEvent, AuditEventType, AuditLevel, NormalizedOutboundPayload
from ghl_relay.webhook.evolution import parse_message_record
from ghl_relay.webhook.models import BatchSummary, CallOutcome, InboundMessageEvent, UpstreamError

if TYPE_CHECKING:
    from ghl_relay.audit.logger import AuditLogger
    from ghl_relay.webhook.evolution import EvolutionClient
    from ghl_relay.webhook.ghl import GHLClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

MESSAGES_EVENT = "messages"


class MalformedWebhookError(ValueError):
    """The webhook body is not the shape Evolution API sends."""


def pending_messages(payload: Any) -> list[Any]:
    """Message records to process, or an empty list when there are none.

    Raises ``MalformedWebhookError`` when the body is not a JSON object or
    its ``messages`` field is not a list.
    """
    if not isinstance(payload, dict):
        raise MalformedWebhookError("Webhook body must be a JSON object")
    messages = payload.get("messages")
    if payload.get("webhookEvent") != MESSAGES_EVENT or not messages:
        return []
    if not isinstance(messages, list):
        raise MalformedWebhookError("Webhook field 'messages' must be a list")
    return messages


class InboundRelayPipeline:
    """Turns Evolution API message batches into GHL webhook calls."""

    def __init__(
        self,
        evolution: EvolutionClient,
        ghl: GHLClient,
        whatsapp_number: str,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._evolution = evolution
        self._ghl = ghl
        self._whatsapp_number = whatsapp_number
        self._audit = audit_logger

    async def process(self, messages: list[Any]) -> BatchSummary:
        """Relay each record in order; returns per-batch counters."""
        summary = BatchSummary(received=len(messages))
        for record in messages:
            event = parse_message_record(record)
            if not event.recognized:
                logger.debug("Skipping unsupported message record")
                summary.skipped += 1
                continue

            media: list[str] = []
            if event.has_media:
                fetched = await self.attempt(
                    "media fetch", partial(self._evolution.fetch_media_url, event.media_id),
                )
                if fetched.ok and fetched.value:
                    media.append(fetched.value)
                elif not fetched.ok:
                    summary.media_failures += 1
                    self._log(AuditEventType.MEDIA_FETCH, "failure", AuditLevel.WARNING, {
                        "sender": event.sender,
                        "media_id": event.media_id,
                        "error": fetched.error,
                    })

            payload = self.build_payload(event, media)
            summary.payloads.append(payload.to_wire())
            logger.info("Sending to GoHighLevel: %s", payload.model_dump_json(by_alias=True))

            forwarded = await self.attempt("GHL forward", partial(self._ghl.forward, payload))
            if forwarded.ok:
                summary.forwarded += 1
                logger.info("Successfully forwarded to GoHighLevel")
                self._log(AuditEventType.MESSAGE_FORWARD, "success", AuditLevel.INFO, {
                    "sender": event.sender,
                    "kind": event.kind.value,
                    "media_count": len(media),
                })
            else:
                summary.failed += 1
                self._log(AuditEventType.MESSAGE_FORWARD, "failure", AuditLevel.WARNING, {
                    "sender": event.sender,
                    "error": forwarded.error,
                })

        self._log(AuditEventType.INBOUND_BATCH, "success", AuditLevel.INFO, {
            "received": summary.received,
            "skipped": summary.skipped,
            "forwarded": summary.forwarded,
            "failed": summary.failed,
        })
        return summary

    def build_payload(
        self, event: InboundMessageEvent, media: list[str],
    ) -> NormalizedOutboundPayload:
        return NormalizedOutboundPayload(
            sender=event.sender,
            to=self._whatsapp_number,
            body=event.body,
            media=media,
            timestamp=event.iso_timestamp,
        )

    @staticmethod
    async def attempt(label: str, call: Callable[[], Awaitable[T]]) -> CallOutcome[T]:
        """Run an upstream call, logging and capturing its failure."""
        try:
            return CallOutcome(ok=True, value=await call())
        except UpstreamError as exc:
            logger.warning("Error during %s: %s (details: %s)", label, exc, exc.details)
            return CallOutcome(ok=False, error=str(exc))

    def _log(
        self,
        event_type: AuditEventType,
        result: str,
        level: AuditLevel,
        details: dict[str, object],
    ) -> None:
        if self._audit:
            self._audit.log(AuditEvent(
                event_type=event_type,
                action="relay_inbound",
                result=result,
                level=level,
                details=details,
            ))
