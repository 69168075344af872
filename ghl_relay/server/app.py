"""FastAPI application for the WhatsApp-GHL relay."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from ghl_relay.audit.logger import AuditLogger
from ghl_relay.config import RelaySettings
from ghl_relay.logging_config import configure_logging
from ghl_relay.models import AuditEvent, AuditEventType, AuditLevel, SendRequest, SendRequestError
from ghl_relay.server.middleware import OpenCORSMiddleware, RequestLogMiddleware
from ghl_relay.server.oauth_routes import create_oauth_router
from ghl_relay.webhook.evolution import EvolutionClient
from ghl_relay.webhook.ghl import GHLClient, classify_event, extract_event_type
from ghl_relay.webhook.models import UpstreamError
from ghl_relay.webhook.outbound import OutboundSendService
from ghl_relay.webhook.relay import InboundRelayPipeline, pending_messages

logger = logging.getLogger(__name__)

HEALTH_TEXT = "WhatsApp-GHL Middleware is running!"
PROBE_PATH = "/test"


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    settings = RelaySettings.from_env()
    configure_logging(settings.log_level, settings.log_format)
    missing = settings.missing()
    if missing:
        logger.warning("Missing configuration: %s", ", ".join(missing))
    audit_logger = (
        AuditLogger.from_env(settings.audit_log_path) if settings.audit_log_path else None
    )
    return create_app(settings, audit_logger=audit_logger)


def _error(message: str, status_code: int, **extra: object) -> JSONResponse:
    return JSONResponse({"status": "error", "message": message, **extra}, status_code=status_code)


def create_app(
    settings: RelaySettings,
    audit_logger: AuditLogger | None = None,
    evolution: EvolutionClient | None = None,
    ghl: GHLClient | None = None,
) -> FastAPI:
    """Create the relay FastAPI app.

    ``evolution`` and ``ghl`` default to clients built from ``settings``.
    """
    app = FastAPI(docs_url=None, redoc_url=None)

    if evolution is None:
        evolution = EvolutionClient(
            base_url=settings.evolution_api_url,
            instance=settings.evolution_api_instance,
            api_key=settings.evolution_api_key,
            timeout=settings.outbound_timeout,
            send_delay_ms=settings.send_delay_ms,
        )
    if ghl is None:
        ghl = GHLClient(
            webhook_url=settings.ghl_webhook_url,
            api_key=settings.ghl_api_key,
            timeout=settings.outbound_timeout,
        )
    pipeline = InboundRelayPipeline(
        evolution, ghl, settings.whatsapp_number, audit_logger=audit_logger,
    )
    sender = OutboundSendService(evolution, audit_logger=audit_logger)

    @app.get("/")
    async def health() -> PlainTextResponse:
        return PlainTextResponse(HEALTH_TEXT)

    @app.api_route(
        PROBE_PATH, methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    )
    async def probe(request: Request) -> Response:
        logger.info("%s /test request received", request.method)
        headers = {
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type, Authorization",
        }
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=headers)
        return JSONResponse({
            "success": True,
            "message": f"API connection successful ({request.method})",
            "timestamp": datetime.now(UTC).isoformat(),
        }, headers=headers)

    @app.post("/webhook/whatsapp")
    async def whatsapp_webhook(request: Request) -> JSONResponse:
        try:
            payload = await request.json()
            logger.info("Received webhook from Evolution API: %s", payload)
            messages = pending_messages(payload)
            if not messages:
                return JSONResponse({"status": "No messages to process"})
            summary = await pipeline.process(messages)
        except Exception as exc:
            logger.exception("Error processing WhatsApp message")
            return _error(str(exc), 500)

        logger.info(
            "Batch done: %d received, %d skipped, %d forwarded, %d failed",
            summary.received, summary.skipped, summary.forwarded, summary.failed,
        )
        return JSONResponse({"status": "success"})

    @app.post("/send")
    async def send(request: Request) -> JSONResponse:
        try:
            body = await request.json()
            logger.info("Received send request from GoHighLevel: %s", body)
            if not isinstance(body, dict):
                raise ValueError("Send request body must be a JSON object")
        except ValueError as exc:
            logger.exception("Error reading send request")
            return _error(str(exc), 500)

        try:
            send_request = SendRequest.from_body(body)
        except SendRequestError as exc:
            sender.reject(str(exc))
            return _error(str(exc), 400)
        except ValidationError as exc:
            sender.reject("invalid field types")
            return _error(f"Invalid send request: {exc.error_count()} invalid field(s)", 400)

        try:
            result = await sender.send(send_request)
        except UpstreamError as exc:
            return _error(str(exc), 500, details=exc.details)
        return JSONResponse(result.model_dump())

    @app.post("/webhook/ghl")
    async def ghl_webhook(request: Request) -> JSONResponse:
        try:
            body = await request.json()
        except ValueError as exc:
            logger.exception("Error processing GHL webhook")
            return _error(str(exc), 500)

        logger.info("Received webhook from GoHighLevel: %s", body)
        event_type = extract_event_type(body)
        category = classify_event(event_type)
        if category == "contact":
            logger.info("Contact event received: %s", event_type)
        else:
            logger.info("Unhandled event type: %s", event_type)
        if audit_logger:
            audit_logger.log(AuditEvent(
                event_type=AuditEventType.CRM_EVENT,
                source_ip=request.client.host if request.client else None,
                action=event_type,
                result=category,
                level=AuditLevel.INFO,
            ))
        return JSONResponse({"status": "success"})

    app.include_router(create_oauth_router())

    # Added last so request logging wraps CORS handling
    app.add_middleware(OpenCORSMiddleware, preflight_paths=frozenset({PROBE_PATH}))
    app.add_middleware(RequestLogMiddleware)

    return app
