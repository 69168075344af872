"""Data models for the webhook translation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class MessageKind(str, Enum):
    """Content variants of an Evolution API message record."""

    CONVERSATION = "conversation"
    EXTENDED_TEXT = "extended_text"
    IMAGE = "image"
    DOCUMENT = "document"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class InboundMessageEvent:
    """One parsed message record from an Evolution API webhook."""

    kind: MessageKind
    sender: str = ""
    body: str = ""
    media_id: str | None = None
    timestamp: int = 0

    @property
    def recognized(self) -> bool:
        return self.kind is not MessageKind.UNRECOGNIZED

    @property
    def has_media(self) -> bool:
        return self.media_id is not None

    @property
    def iso_timestamp(self) -> str:
        """Timestamp as ISO-8601 UTC with millisecond precision and a Z suffix."""
        moment = datetime.fromtimestamp(self.timestamp, UTC)
        return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


UNRECOGNIZED = InboundMessageEvent(kind=MessageKind.UNRECOGNIZED)


@dataclass(frozen=True)
class GatewaySendCommand:
    """Evolution API send call: either a text or a media message."""

    number: str
    text: str | None = None
    media_url: str | None = None
    caption: str = ""
    mediatype: str = "document"

    @property
    def is_media(self) -> bool:
        return self.media_url is not None

    def to_payload(self, delay_ms: int) -> dict[str, Any]:
        if self.is_media:
            return {
                "number": self.number,
                "mediatype": self.mediatype,
                "media": self.media_url,
                "mediaUrl": self.media_url,
                "caption": self.caption,
                "delay": delay_ms,
                "options": {"delay": delay_ms, "presence": "composing"},
            }
        return {"number": self.number, "text": self.text, "delay": delay_ms}


class UpstreamError(Exception):
    """A call to Evolution API or GoHighLevel failed.

    ``details`` carries the upstream error body when one was returned.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details


@dataclass
class CallOutcome(Generic[T]):
    """Result of an upstream call whose failure must not propagate."""

    ok: bool
    value: T | None = None
    error: str | None = None


@dataclass
class BatchSummary:
    """Counters for one inbound webhook batch."""

    received: int = 0
    skipped: int = 0
    forwarded: int = 0
    failed: int = 0
    media_failures: int = 0
    payloads: list[dict[str, Any]] = field(default_factory=list)
