# FILE: app/oplog/schemas.py
from typing import Literal, Optional
from pydantic import BaseModel

LogLevel = Literal["info", "warn", "error", "success", "system"]


class LogEntry(BaseModel):
    id: str
    timestamp: str  # ISO-8601 UTC
    level: LogLevel
    message: str
    phase: Optional[str] = None
