# FILE: app/connectivity/service.py
"""
Process-wide connectivity monitor wiring.

get_monitor() builds the monitor on first use: it probes whichever model
is currently primary and writes every fresh report to the operation log.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.connectivity.monitor import ConnectivityMonitor
from app.db import SessionLocal
from app.oplog.service import add_log
from app.providers.config_store import get_active_model
from app.providers.gateway import ProviderGateway, get_gateway
from app.providers.schemas import ConnectivityReport

logger = logging.getLogger(__name__)


def format_report(report: ConnectivityReport) -> str:
    if report.success:
        return "\n".join([
            "╔══════════════════════════════════════════╗",
            "║  API CONNECTION VERIFIED: ONLINE         ║",
            "╚══════════════════════════════════════════╝",
            f"CHANNEL : {report.channel}",
            f"MODEL   : {report.model_id}",
            f"LATENCY : {report.latency}ms",
            f"STATUS  : {report.message}",
        ])
    return f"CRITICAL: Connection failed to {report.channel}.\nREASON: {report.message}"


def log_report(report: ConnectivityReport, forced: bool = False) -> None:
    if report.success:
        add_log(format_report(report), level="success", phase="Verified")
    else:
        add_log(format_report(report), level="error", phase="Failed")


def make_active_model_probe(
    gateway: ProviderGateway,
    session_factory: Callable[[], Session] = SessionLocal,
):
    """Probe coroutine for the monitor: re-reads the primary model on every call."""
    async def probe() -> ConnectivityReport:
        db = session_factory()
        try:
            config, model = get_active_model(db)
        finally:
            db.close()
        return await gateway.probe(config, model)

    return probe


_monitor: Optional[ConnectivityMonitor] = None


def get_monitor() -> ConnectivityMonitor:
    global _monitor
    if _monitor is None:
        _monitor = ConnectivityMonitor(
            make_active_model_probe(get_gateway()),
            on_report=log_report,
        )
    return _monitor
