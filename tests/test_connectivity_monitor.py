# FILE: tests/test_connectivity_monitor.py
"""
Tests for app/connectivity/monitor.py
Cooldown, rate-limit penalty and background polling with a fake clock.
"""

import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from app.connectivity.monitor import ConnectivityMonitor, ConnectivityStatus
from app.connectivity.service import format_report, make_active_model_probe
from app.providers.schemas import ConnectivityReport


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def _ok(**kw):
    data = dict(success=True, message="Connect OK", latency=42, model_id="gpt-4o", channel="openai", timestamp=1)
    data.update(kw)
    return ConnectivityReport(**data)


def _fail(kind="network", message="Network Error: refused"):
    return ConnectivityReport(success=False, message=message, channel="openai", timestamp=1, failure_kind=kind)


def _monitor(probe, clock, **kw):
    kw.setdefault("cooldown", 20)
    kw.setdefault("penalty_delay", 60)
    kw.setdefault("poll_interval", 120)
    return ConnectivityMonitor(probe, clock=clock, **kw)


class TestStatus:

    @pytest.mark.asyncio
    async def test_initial_status_is_checking(self):
        m = _monitor(AsyncMock(return_value=_ok()), FakeClock())
        assert m.status == ConnectivityStatus.CHECKING
        assert m.last_report is None

    @pytest.mark.asyncio
    async def test_success_goes_online(self):
        m = _monitor(AsyncMock(return_value=_ok()), FakeClock())
        report = await m.check()
        assert report.success
        assert m.status == ConnectivityStatus.ONLINE

    @pytest.mark.asyncio
    async def test_failure_goes_offline(self):
        m = _monitor(AsyncMock(return_value=_fail()), FakeClock())
        await m.check()
        assert m.status == ConnectivityStatus.OFFLINE

    @pytest.mark.asyncio
    async def test_status_is_checking_while_probe_in_flight(self):
        gate = asyncio.Event()
        seen = []

        async def probe():
            seen.append(m.status)
            await gate.wait()
            return _ok()

        m = _monitor(probe, FakeClock())
        task = asyncio.create_task(m.check(force=True))
        await asyncio.sleep(0)
        gate.set()
        await task
        assert seen == [ConnectivityStatus.CHECKING]
        assert m.status == ConnectivityStatus.ONLINE


class TestCooldown:

    @pytest.mark.asyncio
    async def test_non_forced_within_window_uses_cache(self):
        clock = FakeClock()
        probe = AsyncMock(return_value=_ok())
        m = _monitor(probe, clock)

        first = await m.check()
        clock.advance(5)
        second = await m.check()

        assert probe.await_count == 1
        assert second.model_dump(exclude={"timestamp"}) == first.model_dump(exclude={"timestamp"})
        assert second.timestamp == int(clock.now * 1000)

    @pytest.mark.asyncio
    async def test_cached_report_is_a_copy(self):
        clock = FakeClock()
        m = _monitor(AsyncMock(return_value=_ok()), clock)
        first = await m.check()
        clock.advance(1)
        second = await m.check()
        assert second is not m.last_report
        assert m.last_report.timestamp == first.timestamp

    @pytest.mark.asyncio
    async def test_probe_after_window(self):
        clock = FakeClock()
        probe = AsyncMock(return_value=_ok())
        m = _monitor(probe, clock)

        await m.check()
        clock.advance(20)
        await m.check()
        assert probe.await_count == 2

    @pytest.mark.asyncio
    async def test_forced_always_probes(self):
        clock = FakeClock()
        probe = AsyncMock(return_value=_ok())
        m = _monitor(probe, clock)

        await m.check()
        clock.advance(1)
        await m.check(force=True)
        assert probe.await_count == 2
        assert m.next_allowed_at == clock.now + 20

    @pytest.mark.asyncio
    async def test_ordinary_failure_does_not_arm_cooldown(self):
        clock = FakeClock()
        probe = AsyncMock(return_value=_fail())
        m = _monitor(probe, clock)

        await m.check()
        clock.advance(1)
        await m.check()
        assert probe.await_count == 2

    @pytest.mark.asyncio
    async def test_timeout_does_not_trigger_penalty(self):
        clock = FakeClock()
        m = _monitor(AsyncMock(return_value=_fail(kind="timeout")), clock)
        await m.check()
        assert m.next_allowed_at == clock.now


class TestRateLimitPenalty:

    @pytest.mark.asyncio
    async def test_rate_limit_arms_penalty(self):
        clock = FakeClock()
        probe = AsyncMock(return_value=_fail(kind="rate_limit", message="Rate limit reached"))
        m = _monitor(probe, clock)

        await m.check()
        assert m.next_allowed_at == clock.now + 60

        clock.advance(30)
        cached = await m.check()
        assert probe.await_count == 1
        assert cached.failure_kind == "rate_limit"

        clock.advance(30)
        await m.check()
        assert probe.await_count == 2

    @pytest.mark.asyncio
    async def test_penalty_later_than_normal_failure_and_success(self):
        clock = FakeClock()
        limited = _monitor(AsyncMock(return_value=_fail(kind="rate_limit")), clock)
        normal = _monitor(AsyncMock(return_value=_fail()), clock)
        ok = _monitor(AsyncMock(return_value=_ok()), clock)

        await limited.check()
        await normal.check()
        await ok.check()
        assert limited.next_allowed_at > ok.next_allowed_at > normal.next_allowed_at

    @pytest.mark.asyncio
    async def test_forced_check_bypasses_penalty(self):
        clock = FakeClock()
        probe = AsyncMock(side_effect=[_fail(kind="rate_limit"), _ok()])
        m = _monitor(probe, clock)

        await m.check()
        clock.advance(1)
        report = await m.check(force=True)
        assert report.success
        assert m.next_allowed_at == clock.now + 20


class TestOverlap:

    @pytest.mark.asyncio
    async def test_last_resolved_probe_wins(self):
        clock = FakeClock()
        slow_gate = asyncio.Event()
        reports = iter([("slow", _fail()), ("fast", _ok())])

        async def probe():
            name, report = next(reports)
            if name == "slow":
                await slow_gate.wait()
            return report

        m = _monitor(probe, clock)
        slow = asyncio.create_task(m.check(force=True))
        await asyncio.sleep(0)
        await m.check(force=True)
        assert m.status == ConnectivityStatus.ONLINE

        slow_gate.set()
        await slow
        assert m.status == ConnectivityStatus.OFFLINE
        assert m.last_report.success is False


class TestListenerAndPolling:

    @pytest.mark.asyncio
    async def test_listener_called_on_real_probes_only(self):
        clock = FakeClock()
        listener = Mock()
        m = _monitor(AsyncMock(return_value=_ok()), clock, on_report=listener)

        await m.check()
        await m.check()
        assert listener.call_count == 1

    @pytest.mark.asyncio
    async def test_listener_errors_are_contained(self):
        m = _monitor(AsyncMock(return_value=_ok()), FakeClock(), on_report=Mock(side_effect=RuntimeError("x")))
        report = await m.check()
        assert report.success

    @pytest.mark.asyncio
    async def test_start_runs_immediate_check_and_stop_cancels(self):
        probe = AsyncMock(return_value=_ok())
        m = _monitor(probe, FakeClock(), poll_interval=3600)

        m.start()
        m.start()
        assert m.running
        await asyncio.sleep(0.01)
        assert probe.await_count == 1

        await m.stop()
        assert not m.running


class TestServiceHelpers:

    def test_format_success_banner(self):
        text = format_report(_ok())
        assert "API CONNECTION VERIFIED: ONLINE" in text
        assert "CHANNEL : openai" in text
        assert "MODEL   : gpt-4o" in text
        assert "LATENCY : 42ms" in text
        assert "STATUS  : Connect OK" in text

    def test_format_failure(self):
        assert format_report(_fail()) == "CRITICAL: Connection failed to openai.\nREASON: Network Error: refused"

    @pytest.mark.asyncio
    async def test_active_model_probe_uses_primary(self, session_factory):
        gateway = Mock()
        gateway.probe = AsyncMock(return_value=_ok())
        probe = make_active_model_probe(gateway, session_factory)

        await probe()

        config, model = gateway.probe.await_args.args
        assert config.id == "google-internal"
        assert model.is_primary
