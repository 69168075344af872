"""Evolution API side of the relay.

Parses message records delivered by the Evolution API webhook, normalizes
phone numbers into WhatsApp routing addresses, and calls the Evolution API
for media resolution and message sending.
"""

from __future__ import annotations

import logging
import mimetypes
import re
import time
from typing import Any

import httpx

from ghl_relay.models import SendRequest
from ghl_relay.webhook.models import (
    UNRECOGNIZED,
    GatewaySendCommand,
    InboundMessageEvent,
    MessageKind,
    UpstreamError,
)

logger = logging.getLogger(__name__)

JID_SUFFIX = "@s.whatsapp.net"
_NON_DIGITS = re.compile(r"\D")
_MEDIA_TYPES = ("image", "video", "audio", "document")

# 9999-12-31T23:59:59Z, the last second datetime can represent
MAX_TIMESTAMP = 253_402_300_799


def sender_from_jid(remote_jid: str) -> str:
    """Return the part of a routing address before ``@``."""
    return remote_jid.split("@", 1)[0]


def normalize_phone(raw: str) -> str:
    """Strip one leading ``+`` and then every non-digit character."""
    if raw.startswith("+"):
        raw = raw[1:]
    return _NON_DIGITS.sub("", raw)


def to_jid(raw: str) -> str:
    return f"{normalize_phone(raw)}{JID_SUFFIX}"


def infer_mediatype(media_url: str, hint: str | None = None) -> str:
    """Evolution media type for a URL: image, video, audio or document."""
    if hint and hint.lower() in _MEDIA_TYPES:
        return hint.lower()
    mime, _ = mimetypes.guess_type(media_url.split("?", 1)[0])
    if mime:
        major = mime.split("/", 1)[0]
        if major in ("image", "video", "audio"):
            return major
    return "document"


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _parse_timestamp(raw: Any) -> int:
    # Evolution sends either an int or a numeric string
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid messageTimestamp %r, using receipt time", raw)
        return int(time.time())
    if not 0 <= value <= MAX_TIMESTAMP:
        logger.warning("Out of range messageTimestamp %r, using receipt time", raw)
        return int(time.time())
    return value


def parse_message_record(record: Any) -> InboundMessageEvent:
    """Decode one Evolution API message record.

    Never raises: records without a sender or without text, image or
    document content come back as ``MessageKind.UNRECOGNIZED``.
    """
    if not isinstance(record, dict):
        return UNRECOGNIZED
    content = record.get("message")
    key = record.get("key")
    if not isinstance(content, dict) or not isinstance(key, dict):
        return UNRECOGNIZED
    remote_jid = key.get("remoteJid")
    if not isinstance(remote_jid, str) or not remote_jid:
        return UNRECOGNIZED

    extended = content.get("extendedTextMessage")
    image = content.get("imageMessage")
    document = content.get("documentMessage")

    if content.get("conversation"):
        kind = MessageKind.CONVERSATION
    elif extended:
        kind = MessageKind.EXTENDED_TEXT
    elif image:
        kind = MessageKind.IMAGE
    elif document:
        kind = MessageKind.DOCUMENT
    else:
        return UNRECOGNIZED

    extended = extended if isinstance(extended, dict) else {}
    image = image if isinstance(image, dict) else None
    document = document if isinstance(document, dict) else None

    body = (
        _text(content.get("conversation"))
        or _text(extended.get("text"))
        or _text((image or {}).get("caption"))
        or _text((document or {}).get("caption"))
    )

    media_id: str | None = None
    media = image or document
    if media is not None:
        media_id = str(media.get("id") or key.get("id") or "") or None

    return InboundMessageEvent(
        kind=kind,
        sender=sender_from_jid(remote_jid),
        body=body,
        media_id=media_id,
        timestamp=_parse_timestamp(record.get("messageTimestamp")),
    )


def build_send_command(request: SendRequest) -> GatewaySendCommand:
    """Translate a GHL send request into an Evolution API send command."""
    number = to_jid(request.destination)
    if request.media_url:
        return GatewaySendCommand(
            number=number,
            media_url=request.media_url,
            caption=request.message or "",
            mediatype=infer_mediatype(request.media_url, request.type),
        )
    return GatewaySendCommand(number=number, text=request.message)


def _error_body(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text or None


class EvolutionClient:
    """Thin async client for the Evolution API endpoints the relay uses."""

    def __init__(
        self,
        base_url: str,
        instance: str,
        api_key: str,
        timeout: float | None = None,
        send_delay_ms: int = 1200,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._instance = instance
        self._api_key = api_key
        self._timeout = timeout
        self._send_delay_ms = send_delay_ms

    def media_endpoint(self, media_id: str) -> str:
        return f"{self._base_url}/{self._instance}/message/getMedia/{media_id}"

    def send_endpoint(self, command: GatewaySendCommand) -> str:
        action = "sendMedia" if command.is_media else "sendText"
        return f"{self._base_url}/message/{action}/{self._instance}"

    @property
    def _headers(self) -> dict[str, str]:
        return {"apikey": self._api_key, "Content-Type": "application/json"}

    async def fetch_media_url(self, media_id: str) -> str | None:
        """Resolve a media id to a downloadable URL.

        Returns None when the gateway answers without a URL; raises
        ``UpstreamError`` on network errors or non-2xx responses.
        """
        data = await self._call("GET", self.media_endpoint(media_id))
        if isinstance(data, dict) and data.get("url"):
            return str(data["url"])
        return None

    async def send(self, command: GatewaySendCommand) -> Any:
        """Issue a text or media send and return the gateway's JSON body."""
        url = self.send_endpoint(command)
        payload = command.to_payload(self._send_delay_ms)
        logger.info("Sending %s message to %s", "media" if command.is_media else "text", url)
        return await self._call("POST", url, payload)

    async def _call(
        self, method: str, url: str, payload: dict[str, Any] | None = None,
    ) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                if method == "GET":
                    resp = await client.get(url, headers=self._headers)
                else:
                    resp = await client.post(url, json=payload, headers=self._headers)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise UpstreamError(f"Evolution API request failed: {exc}") from exc

        if resp.status_code >= 400:
            raise UpstreamError(
                f"Request failed with status code {resp.status_code}",
                status_code=resp.status_code,
                details=_error_body(resp),
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise UpstreamError(
                "Malformed response from Evolution API",
                status_code=resp.status_code,
                details=resp.text,
            ) from exc
