"""Audit logger — append-only JSON Lines record of relay outcomes, with rotation."""

from __future__ import annotations

import fcntl
import json
import logging
import os
from pathlib import Path

from ghl_relay.models import AuditEvent

logger = logging.getLogger(__name__)


class AuditLogger:
    """Append-only structured audit logger with size-based rotation."""

    def __init__(
        self,
        log_path: str,
        max_bytes: int = 10_485_760,
        backup_count: int = 5,
    ) -> None:
        self.log_path = Path(log_path)
        self._max_bytes = max_bytes
        self._backup_count = backup_count

    @classmethod
    def from_env(cls, log_path: str) -> AuditLogger:
        """Create AuditLogger with rotation settings from environment variables."""
        max_bytes = int(os.environ.get("AUDIT_LOG_MAX_BYTES", "10485760"))
        backup_count = int(os.environ.get("AUDIT_LOG_BACKUP_COUNT", "5"))
        return cls(log_path=log_path, max_bytes=max_bytes, backup_count=backup_count)

    def _maybe_rotate(self) -> None:
        if not self.log_path.exists():
            return
        if self.log_path.stat().st_size < self._max_bytes:
            return

        oldest = self._backup(self._backup_count)
        if oldest.exists():
            oldest.unlink()

        for i in range(self._backup_count - 1, 0, -1):
            src = self._backup(i)
            if src.exists():
                src.rename(self._backup(i + 1))

        self.log_path.rename(self._backup(1))

    def _backup(self, index: int) -> Path:
        return self.log_path.parent / f"{self.log_path.name}.{index}"

    def log(self, event: AuditEvent) -> None:
        """Append one event. Write failures are logged, never raised."""
        line = json.dumps(
            json.loads(event.model_dump_json()), separators=(",", ":"),
        )
        try:
            self._append(line)
        except OSError:
            logger.exception("Failed to write audit event to %s", self.log_path)

    def _append(self, line: str) -> None:
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

        # Rotation and append happen under the same lock
        lock_file = self.log_path.parent / f".{self.log_path.name}.lock"
        with open(lock_file, "w") as lf:
            fcntl.flock(lf, fcntl.LOCK_EX)
            try:
                self._maybe_rotate()
                with open(self.log_path, "a") as f:
                    f.write(line + "\n")
            finally:
                fcntl.flock(lf, fcntl.LOCK_UN)
