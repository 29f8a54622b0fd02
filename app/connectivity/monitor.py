# FILE: app/connectivity/monitor.py
"""
Connectivity monitor.

Wraps a probe coroutine with a cooldown / backoff policy and exposes a
tri-state health status:

    CHECKING -> ONLINE | OFFLINE      (any state re-enters CHECKING on a probe)

Policy:
- a non-forced check before `next_allowed_at` returns the cached report
  with a refreshed timestamp, without network I/O
- a forced check always probes and resets the clock
- a successful probe arms the normal cooldown
- a rate-limited failure arms the (longer) penalty delay
- any other failure arms nothing, so the next check probes again

Overlapping probes (timer + user force) are not coalesced: whichever
resolves last owns the cached report and status.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Optional

from config.network import MIN_CHECK_INTERVAL, PENALTY_DELAY, POLL_INTERVAL
from app.providers.schemas import ConnectivityReport

logger = logging.getLogger(__name__)

ProbeFn = Callable[[], Awaitable[ConnectivityReport]]
ReportListener = Callable[[ConnectivityReport, bool], None]


class ConnectivityStatus(str, Enum):
    CHECKING = "CHECKING"
    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"


class ConnectivityMonitor:
    """Owns the probe cache, the cooldown clock and the background poll task."""

    def __init__(
        self,
        probe: ProbeFn,
        clock: Callable[[], float] = time.time,
        cooldown: float = MIN_CHECK_INTERVAL,
        penalty_delay: float = PENALTY_DELAY,
        poll_interval: float = POLL_INTERVAL,
        on_report: Optional[ReportListener] = None,
    ):
        self._probe = probe
        self._clock = clock
        self.cooldown = cooldown
        self.penalty_delay = penalty_delay
        self.poll_interval = poll_interval
        self._on_report = on_report

        self.status = ConnectivityStatus.CHECKING
        self.last_report: Optional[ConnectivityReport] = None
        self.last_check_at: Optional[float] = None
        self.next_allowed_at: float = 0.0
        self.probe_count = 0

        self._task: Optional[asyncio.Task] = None

    # ============ CHECKS ============

    async def check(self, force: bool = False) -> ConnectivityReport:
        now = self._clock()
        if not force and self.last_report is not None and now < self.next_allowed_at:
            return self.last_report.model_copy(update={"timestamp": int(now * 1000)})

        self.status = ConnectivityStatus.CHECKING
        self.probe_count += 1
        report = await self._probe()

        finished = self._clock()
        self.last_report = report
        self.last_check_at = finished

        if report.success:
            self.status = ConnectivityStatus.ONLINE
            self.next_allowed_at = finished + self.cooldown
        elif report.failure_kind == "rate_limit":
            self.status = ConnectivityStatus.OFFLINE
            self.next_allowed_at = finished + self.penalty_delay
            logger.warning(
                "[connectivity] Rate limited, next probe not before +%.0fs", self.penalty_delay
            )
        else:
            self.status = ConnectivityStatus.OFFLINE
            self.next_allowed_at = finished

        if self._on_report is not None:
            try:
                self._on_report(report, force)
            except Exception:
                logger.exception("[connectivity] Report listener failed")

        return report

    # ============ BACKGROUND POLLING ============

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Launch the poll loop on the running event loop (idempotent)."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._poll_loop())
        logger.info("[connectivity] Polling every %.0fs", self.poll_interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _poll_loop(self) -> None:
        while True:
            try:
                await self.check(force=False)
            except Exception:
                # probe functions report failures; anything raised here is a bug
                logger.exception("[connectivity] Background check failed")
            await asyncio.sleep(self.poll_interval)
