"""Tests for outbound sends and send request validation."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from ghl_relay.models import AuditEventType, SendRequest, SendRequestError, SendResult
from ghl_relay.webhook.models import UpstreamError
from ghl_relay.webhook.outbound import OutboundSendService


class TestSendRequestValidation:
    def test_to_accepted(self) -> None:
        req = SendRequest.from_body({"to": "+15551234567", "message": "hi"})
        assert req.destination == "+15551234567"

    def test_phone_accepted(self) -> None:
        req = SendRequest.from_body({"phone": "5511999998888", "message": "hi"})
        assert req.destination == "5511999998888"

    def test_to_wins_over_phone(self) -> None:
        req = SendRequest.from_body({"to": "1", "phone": "2", "message": "hi"})
        assert req.destination == "1"

    def test_numeric_destination_coerced(self) -> None:
        req = SendRequest.from_body({"to": 15551234567, "message": "hi"})
        assert req.destination == "15551234567"

    @pytest.mark.parametrize("body", [{"message": "hi"}, {"to": "", "message": "hi"}])
    def test_missing_destination(self, body: dict[str, Any]) -> None:
        with pytest.raises(SendRequestError, match="Missing required field: to/phone"):
            SendRequest.from_body(body)

    @pytest.mark.parametrize("body", [{"to": "1"}, {"to": "1", "message": "", "mediaUrl": ""}])
    def test_missing_content(self, body: dict[str, Any]) -> None:
        with pytest.raises(SendRequestError, match="either message or mediaUrl"):
            SendRequest.from_body(body)

    def test_media_only_is_valid(self) -> None:
        req = SendRequest.from_body({"to": "1", "mediaUrl": "https://x/y.png", "type": "image"})
        assert req.media_url == "https://x/y.png"
        assert req.message is None

    def test_wrong_field_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SendRequest.from_body({"to": "1", "message": {"nested": True}})


class TestSendResult:
    def test_message_id_from_gateway_key(self) -> None:
        result = SendResult.from_gateway({"key": {"id": "BAE5"}, "status": "PENDING"})
        assert result.message_id == result.messageId == result.id == "BAE5"
        assert result.status == "success"
        assert result.type == "whatsapp"
        assert result.data == {"key": {"id": "BAE5"}, "status": "PENDING"}

    @pytest.mark.parametrize("data", [{}, {"key": {}}, None, ["x"]])
    def test_missing_id_is_unknown(self, data: Any) -> None:
        assert SendResult.from_gateway(data).message_id == "unknown"


class TestOutboundSendService:
    @pytest.mark.asyncio
    async def test_text_send(self) -> None:
        evolution = MagicMock(send=AsyncMock(return_value={"key": {"id": "ID1"}}))
        service = OutboundSendService(evolution)

        result = await service.send(SendRequest(to="+1 (555) 123-4567", message="hello"))

        command = evolution.send.call_args[0][0]
        assert command.number == "15551234567@s.whatsapp.net"
        assert command.text == "hello"
        assert not command.is_media
        assert result.message_id == "ID1"

    @pytest.mark.asyncio
    async def test_media_send_uses_media_command(self) -> None:
        evolution = MagicMock(send=AsyncMock(return_value={}))
        service = OutboundSendService(evolution)

        result = await service.send(
            SendRequest(to="1", mediaUrl="https://x/y.jpg", message="caption"),
        )

        command = evolution.send.call_args[0][0]
        assert command.is_media
        assert command.caption == "caption"
        assert result.message_id == "unknown"

    @pytest.mark.asyncio
    async def test_upstream_failure_propagates_and_is_audited(
        self, mock_audit_logger: MagicMock,
    ) -> None:
        error = UpstreamError("Request failed with status code 400", 400, {"error": "bad"})
        evolution = MagicMock(send=AsyncMock(side_effect=error))
        service = OutboundSendService(evolution, audit_logger=mock_audit_logger)

        with pytest.raises(UpstreamError):
            await service.send(SendRequest(to="1", message="hi"))

        event = mock_audit_logger.log.call_args[0][0]
        assert event.event_type == AuditEventType.OUTBOUND_SEND
        assert event.result == "failure"
        assert event.details["upstream_status"] == 400

    def test_reject_is_audited(self, mock_audit_logger: MagicMock) -> None:
        service = OutboundSendService(MagicMock(), audit_logger=mock_audit_logger)
        service.reject("Missing required field: to/phone")
        event = mock_audit_logger.log.call_args[0][0]
        assert event.result == "rejected"
