"""Shared test fixtures for the WhatsApp-GHL relay."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from ghl_relay.audit.logger import AuditLogger
from ghl_relay.config import RelaySettings


@pytest.fixture
def settings() -> RelaySettings:
    return make_settings()


@pytest.fixture
def mock_audit_logger() -> MagicMock:
    return MagicMock(spec=AuditLogger)


# --- Factory functions for test data ---


def make_settings(**kwargs: Any) -> RelaySettings:
    """Factory for RelaySettings with every upstream configured."""
    defaults: dict[str, Any] = {
        "evolution_api_url": "http://evolution:8080",
        "evolution_api_instance": "main",
        "evolution_api_key": "evo-key",
        "ghl_webhook_url": "http://ghl.test/hooks/inbound",
        "ghl_api_key": "ghl-key",
        "whatsapp_number": "5511900000000",
    }
    defaults.update(kwargs)
    return RelaySettings(**defaults)


def make_record(
    remote_jid: str = "5511999998888@s.whatsapp.net",
    timestamp: Any = 1700000000,
    **content: Any,
) -> dict[str, Any]:
    """Factory for an Evolution API message record.

    Keyword arguments become the record's ``message`` content, e.g.
    ``make_record(conversation="hi")``.
    """
    if not content:
        content = {"conversation": "hello"}
    return {
        "key": {"remoteJid": remote_jid, "fromMe": False, "id": "MSG1"},
        "message": content,
        "messageTimestamp": timestamp,
    }


def make_webhook_payload(
    *records: dict[str, Any], event: str = "messages",
) -> dict[str, Any]:
    return {"webhookEvent": event, "messages": list(records)}


def mock_http_response(
    status_code: int = 200, json_body: Any = None, text: str = "",
) -> MagicMock:
    """httpx.Response stand-in; ``json_body=None`` makes ``.json()`` fail."""
    resp = MagicMock(status_code=status_code, text=text)
    if json_body is None:
        resp.json.side_effect = ValueError("not json")
    else:
        resp.json.return_value = json_body
    return resp


def mock_async_client(**methods: Any) -> AsyncMock:
    """AsyncMock usable as ``async with httpx.AsyncClient() as client``."""
    client = AsyncMock()
    for name, value in methods.items():
        setattr(client, name, value)
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    return client
