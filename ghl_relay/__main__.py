"""Run the relay with uvicorn: ``python -m ghl_relay``."""

from __future__ import annotations

import uvicorn

from ghl_relay.config import RelaySettings


def main() -> None:
    settings = RelaySettings.from_env()
    uvicorn.run(
        "ghl_relay.server.app:create_app_from_env",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
