"""Shared Pydantic data models for the WhatsApp-GHL relay."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# --- Enums ---


class AuditEventType(str, Enum):
    INBOUND_BATCH = "inbound_batch"
    MESSAGE_FORWARD = "message_forward"
    MEDIA_FETCH = "media_fetch"
    OUTBOUND_SEND = "outbound_send"
    CRM_EVENT = "crm_event"


class AuditLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


# --- Relay Models ---


class NormalizedOutboundPayload(BaseModel):
    """Inbound WhatsApp message in the shape the GHL webhook expects."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    sender: str = Field(alias="from")
    to: str
    body: str = ""
    media: list[str] = Field(default_factory=list)
    timestamp: str

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class SendRequestError(ValueError):
    """Raised when a send request is missing its destination or content."""


class SendRequest(BaseModel):
    """Outbound send request issued by GoHighLevel."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )

    to: str | None = None
    phone: str | None = None
    message: str | None = None
    media_url: str | None = Field(default=None, alias="mediaUrl")
    type: str | None = None

    @property
    def destination(self) -> str:
        return self.to or self.phone or ""

    @classmethod
    def from_body(cls, body: dict[str, Any]) -> SendRequest:
        """Validate a raw request body.

        Either ``to`` or ``phone`` must be set, and at least one of
        ``message`` / ``mediaUrl``. Empty values count as missing.
        """
        if not (body.get("to") or body.get("phone")):
            raise SendRequestError("Missing required field: to/phone")
        if not body.get("message") and not body.get("mediaUrl"):
            raise SendRequestError(
                "Missing required fields: either message or mediaUrl must be provided"
            )
        return cls.model_validate(body)


class SendResult(BaseModel):
    """Response envelope returned to GHL after a successful send."""

    status: str = "success"
    message_id: str
    messageId: str  # noqa: N815
    id: str
    type: str = "whatsapp"
    data: Any = None

    @classmethod
    def from_gateway(cls, data: Any) -> SendResult:
        message_id = "unknown"
        if isinstance(data, dict):
            key = data.get("key")
            if isinstance(key, dict) and key.get("id"):
                message_id = str(key["id"])
        return cls(message_id=message_id, messageId=message_id, id=message_id, data=data)


# --- Audit Models ---


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class AuditEvent(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    event_type: AuditEventType
    source_ip: str | None = None
    action: str
    result: str  # "success" | "failure" | "skipped"
    level: AuditLevel = AuditLevel.INFO
    details: dict[str, object] | None = None
