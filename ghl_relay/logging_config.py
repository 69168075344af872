"""Root logger setup for the relay process."""

from __future__ import annotations

import logging

from pythonjsonlogger.json import JsonFormatter

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_JSON_FIELDS = ("asctime", "levelname", "name", "message")


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Install a single stream handler on the root logger.

    ``fmt="json"`` emits one JSON object per record. Calling this again
    replaces the previous handler instead of stacking another one.
    """
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JsonFormatter(
            " ".join(f"%({field})s" for field in _JSON_FIELDS),
            rename_fields={"levelname": "level", "name": "logger"},
        ))
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))

    root = logging.getLogger()
    root.setLevel(level.upper())
    root.handlers = [handler]
