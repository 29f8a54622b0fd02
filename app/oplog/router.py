# FILE: app/oplog/router.py
from typing import List, Optional
from fastapi import APIRouter, Query

from app.oplog.schemas import LogEntry
from app.oplog.service import list_logs

router = APIRouter(prefix="/logs", tags=["logs"])


@router.get("", response_model=List[LogEntry])
def read_logs(limit: Optional[int] = Query(None, ge=0, le=1000)):
    return list_logs(limit)
