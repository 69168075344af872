"""Process configuration read once from the environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# Settings without which the relay cannot reach either upstream.
_UPSTREAM_FIELDS = {
    "evolution_api_url": "EVOLUTION_API_URL",
    "evolution_api_instance": "EVOLUTION_API_INSTANCE",
    "evolution_api_key": "EVOLUTION_API_KEY",
    "ghl_webhook_url": "GHL_WEBHOOK_URL",
    "ghl_api_key": "GHL_API_KEY",
    "whatsapp_number": "WHATSAPP_NUMBER",
}


class RelaySettings(BaseModel):
    """Immutable relay configuration."""

    model_config = ConfigDict(frozen=True)

    evolution_api_url: str = ""
    evolution_api_instance: str = ""
    evolution_api_key: str = ""
    ghl_webhook_url: str = ""
    ghl_api_key: str = ""
    whatsapp_number: str = ""

    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["text", "json"] = "text"
    audit_log_path: str | None = None
    outbound_timeout: float | None = Field(default=None, gt=0)
    send_delay_ms: int = Field(default=1200, ge=0)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> RelaySettings:
        """Build settings from environment variables.

        Unset variables keep their defaults. Raises ``ValidationError`` for
        malformed values such as a non-numeric ``PORT``.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {
            field: env[var] for field, var in _UPSTREAM_FIELDS.items() if var in env
        }
        optional = {
            "host": "HOST",
            "port": "PORT",
            "audit_log_path": "AUDIT_LOG_PATH",
            "outbound_timeout": "OUTBOUND_TIMEOUT_SECONDS",
            "send_delay_ms": "EVOLUTION_SEND_DELAY_MS",
        }
        for field, var in optional.items():
            if env.get(var):
                values[field] = env[var]
        if env.get("LOG_LEVEL"):
            values["log_level"] = env["LOG_LEVEL"].upper()
        if env.get("LOG_FORMAT"):
            values["log_format"] = env["LOG_FORMAT"].lower()
        return cls.model_validate(values)

    def missing(self) -> list[str]:
        """Names of upstream environment variables left empty."""
        return [var for field, var in _UPSTREAM_FIELDS.items() if not getattr(self, field)]
