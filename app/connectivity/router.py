# FILE: app/connectivity/router.py
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.connectivity.monitor import ConnectivityMonitor
from app.connectivity.service import get_monitor
from app.oplog.service import add_log
from app.providers.schemas import ConnectivityReport

router = APIRouter(prefix="/connectivity", tags=["connectivity"])


class ConnectivityStatusOut(BaseModel):
    status: str
    report: Optional[ConnectivityReport] = None
    last_check_at: Optional[float] = None
    next_allowed_at: float
    polling: bool
    probe_count: int = 0


def _status_out(monitor: ConnectivityMonitor) -> ConnectivityStatusOut:
    return ConnectivityStatusOut(
        status=monitor.status.value,
        report=monitor.last_report,
        last_check_at=monitor.last_check_at,
        next_allowed_at=monitor.next_allowed_at,
        polling=monitor.running,
        probe_count=monitor.probe_count,
    )


@router.get("", response_model=ConnectivityStatusOut)
def connectivity_status(monitor: ConnectivityMonitor = Depends(get_monitor)):
    return _status_out(monitor)


@router.post("/check", response_model=ConnectivityStatusOut)
async def check_connectivity(
    force: bool = Query(False),
    monitor: ConnectivityMonitor = Depends(get_monitor),
):
    add_log("Testing AI Orchestrator connectivity...", level="system", phase="Network")
    await monitor.check(force=force)
    return _status_out(monitor)
