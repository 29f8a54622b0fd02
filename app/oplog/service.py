# FILE: app/oplog/service.py
"""
Operational log.

The user-facing diagnostic trail (the "terminal" of the planner UI):
connectivity banners, generation progress, version actions. Entries are
append-only and never edited. Each entry is also written to the Python
logger so server logs carry the same trail.

One process-wide instance (get_operation_log()); tests build their own.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from itertools import count
from typing import List, Optional

from app.oplog.schemas import LogEntry, LogLevel

logger = logging.getLogger(__name__)

_LEVEL_MAP = {
    "info": logging.INFO,
    "success": logging.INFO,
    "system": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

DEFAULT_MAX_ENTRIES = 1000


class OperationLog:
    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        self._entries: List[LogEntry] = []
        self._ids = count(1)
        self.max_entries = max_entries

    def add_log(self, message: str, level: LogLevel = "info", phase: Optional[str] = None) -> LogEntry:
        entry = LogEntry(
            id=f"l-{next(self._ids)}",
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            message=message,
            phase=phase,
        )
        self._entries.append(entry)
        # Oldest entries fall off; the remaining ones are never touched
        if len(self._entries) > self.max_entries:
            del self._entries[: len(self._entries) - self.max_entries]

        tag = f"[{phase}] " if phase else ""
        logger.log(_LEVEL_MAP.get(level, logging.INFO), "%s%s", tag, message)
        return entry

    def list_logs(self, limit: Optional[int] = None) -> List[LogEntry]:
        """Oldest first. `limit` keeps the most recent N."""
        if limit is not None and limit >= 0:
            return list(self._entries[-limit:]) if limit else []
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


_operation_log: Optional[OperationLog] = None


def get_operation_log() -> OperationLog:
    global _operation_log
    if _operation_log is None:
        _operation_log = OperationLog()
        _operation_log.add_log("System initialized.", level="system")
    return _operation_log


def add_log(message: str, level: LogLevel = "info", phase: Optional[str] = None) -> LogEntry:
    return get_operation_log().add_log(message, level=level, phase=phase)


def list_logs(limit: Optional[int] = None) -> List[LogEntry]:
    return get_operation_log().list_logs(limit)
