"""Operational utilities for Chorely."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Optional


class HealthMonitor:
    """Track datastore health for the status endpoint."""

    def __init__(self) -> None:
        self.database_online = True
        self.last_error: Optional[str] = None
        self.last_error_at: Optional[datetime] = None

    def record_failure(self, message: str) -> None:
        self.database_online = False
        self.last_error = message
        self.last_error_at = datetime.utcnow()

    def record_success(self) -> None:
        self.database_online = True

    def status(self) -> dict:
        return {
            "database": "ok" if self.database_online else "down",
            "last_error": self.last_error,
            "last_error_at": self.last_error_at.isoformat() if self.last_error_at else None,
        }


class StructuredLogger:
    """Write JSON lines log entries for admin inspection."""

    def __init__(self, *, path: Path | None = None, max_entries: int = 500) -> None:
        self.path = path
        self.max_entries = max_entries
        self._entries: list[dict] = []

    def log(self, event_type: str, *, level: str = "info", **fields: object) -> dict:
        entry = {"timestamp": datetime.utcnow().isoformat(), "level": level, "event": event_type, **fields}
        self._entries.append(entry)
        if len(self._entries) > self.max_entries:
            del self._entries[: len(self._entries) - self.max_entries]
        if self.path:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(entry, default=str) + "\n")
        return entry

    def error(self, event_type: str, error: BaseException, **fields: object) -> dict:
        return self.log(
            event_type,
            level="error",
            error=str(error),
            error_type=type(error).__name__,
            **fields,
        )

    def tail(self, limit: int = 50) -> tuple[dict, ...]:
        return tuple(self._entries[-limit:])


__all__ = ["HealthMonitor", "StructuredLogger"]
