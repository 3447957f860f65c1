"""Tests for the HealthChecker.

Covers:
- Initial snapshot before any sweep
- A hung probe is reported unreachable within its timeout and cancelled
- Probes run concurrently
- Status aggregation and critical failures
- A slow sweep never overwrites a newer snapshot
- Periodic task start/stop
"""

from __future__ import annotations

import asyncio
import time

import pytest

from app.services.health import HealthChecker, OverallStatus, ProbeStatus

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _static(result: bool):
    async def probe() -> bool:
        return result
    return probe


def _raising(exc: Exception):
    async def probe() -> bool:
        raise exc
    return probe


class _HungProbe:
    def __init__(self) -> None:
        self.cancelled = False

    async def __call__(self) -> bool:
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return True


# ---------------------------------------------------------------------------
# Sweeps
# ---------------------------------------------------------------------------


class TestPerformChecks:
    def test_initial_snapshot_is_unreachable(self) -> None:
        checker = HealthChecker()
        assert checker.snapshot.status is OverallStatus.UNREACHABLE
        assert checker.snapshot.checks == {}

    @pytest.mark.asyncio
    async def test_no_probes_is_healthy(self) -> None:
        checker = HealthChecker()
        snapshot = await checker.perform_checks()
        assert snapshot.status is OverallStatus.HEALTHY

    @pytest.mark.asyncio
    async def test_all_healthy(self) -> None:
        checker = HealthChecker()
        checker.register_check("database", _static(True), critical=True)
        checker.register_check("cache", _static(True))

        snapshot = await checker.perform_checks()

        assert snapshot.status is OverallStatus.HEALTHY
        assert snapshot.checks["database"].status is ProbeStatus.HEALTHY
        assert snapshot.checks["database"].critical is True
        assert checker.snapshot is snapshot
        assert checker.get_probe("cache").status is ProbeStatus.HEALTHY

    @pytest.mark.asyncio
    async def test_hung_probe_times_out_and_is_cancelled(self) -> None:
        checker = HealthChecker(probe_timeout=0.1)
        hung = _HungProbe()
        checker.register_check("email", hung)
        checker.register_check("cache", _static(True))

        start = time.perf_counter()
        snapshot = await checker.perform_checks()
        elapsed = time.perf_counter() - start

        assert elapsed < 1.0
        assert hung.cancelled is True
        assert snapshot.checks["email"].status is ProbeStatus.UNREACHABLE
        assert "timed out" in snapshot.checks["email"].error
        assert snapshot.status is OverallStatus.DEGRADED

    @pytest.mark.asyncio
    async def test_per_probe_timeout_overrides_default(self) -> None:
        checker = HealthChecker(probe_timeout=10.0)
        checker.register_check("email", _HungProbe(), timeout=0.05)

        snapshot = await checker.perform_checks()

        assert snapshot.checks["email"].status is ProbeStatus.UNREACHABLE

    @pytest.mark.asyncio
    async def test_probes_run_concurrently(self) -> None:
        async def slow() -> bool:
            await asyncio.sleep(0.2)
            return True

        checker = HealthChecker()
        for name in ("a", "b", "c", "d"):
            checker.register_check(name, slow)

        start = time.perf_counter()
        await checker.perform_checks()

        assert time.perf_counter() - start < 0.6

    @pytest.mark.asyncio
    async def test_raising_probe_is_unreachable(self) -> None:
        checker = HealthChecker()
        checker.register_check("storage", _raising(ConnectionError("refused")))

        snapshot = await checker.perform_checks()

        assert snapshot.checks["storage"].status is ProbeStatus.UNREACHABLE
        assert snapshot.checks["storage"].error == "ConnectionError: refused"

    @pytest.mark.asyncio
    async def test_critical_failure(self) -> None:
        checker = HealthChecker()
        checker.register_check("database", _static(False), critical=True)
        checker.register_check("cache", _static(True))

        snapshot = await checker.perform_checks()

        assert snapshot.status is OverallStatus.DEGRADED
        assert snapshot.has_critical_failure is True

    @pytest.mark.asyncio
    async def test_snapshot_is_read_only(self) -> None:
        checker = HealthChecker()
        checker.register_check("cache", _static(True))
        snapshot = await checker.perform_checks()
        with pytest.raises(TypeError):
            snapshot.checks["cache"] = None  # type: ignore[index]

    @pytest.mark.asyncio
    async def test_stale_sweep_does_not_overwrite(self) -> None:
        calls = 0

        async def flaky() -> bool:
            nonlocal calls
            calls += 1
            if calls == 1:
                await asyncio.sleep(0.2)
                return False
            return True

        checker = HealthChecker()
        checker.register_check("cache", flaky)

        slow_sweep = asyncio.create_task(checker.perform_checks())
        await asyncio.sleep(0)
        fresh = await checker.perform_checks()
        stale = await slow_sweep

        assert fresh.status is OverallStatus.HEALTHY
        assert stale.status is OverallStatus.DEGRADED
        assert checker.snapshot is fresh

    @pytest.mark.asyncio
    async def test_repeated_sweeps_agree(self) -> None:
        checker = HealthChecker()
        checker.register_check("database", _static(True), critical=True)
        checker.register_check("email", _static(False))

        first = await checker.perform_checks()
        second = await checker.perform_checks()

        assert first.status is second.status is OverallStatus.DEGRADED
        assert {n: r.status for n, r in first.checks.items()} == {n: r.status for n, r in second.checks.items()}

    def test_register_replaces(self) -> None:
        checker = HealthChecker()
        checker.register_check("cache", _static(True))
        checker.register_check("cache", _static(False), critical=True)
        assert checker.probe_names == ["cache"]
        assert checker.get_probe("cache").critical is True


# ---------------------------------------------------------------------------
# Periodic task
# ---------------------------------------------------------------------------


class TestPeriodicChecks:
    @pytest.mark.asyncio
    async def test_start_and_stop(self) -> None:
        checker = HealthChecker(interval=0.05)
        checker.register_check("cache", _static(True))

        task = checker.start_periodic_checks()
        assert checker.is_running
        assert checker.start_periodic_checks() is task

        await asyncio.sleep(0.15)
        assert checker.snapshot.status is OverallStatus.HEALTHY

        await checker.stop()
        assert not checker.is_running
        assert task.cancelled()

    @pytest.mark.asyncio
    async def test_deferred_first_sweep(self) -> None:
        checker = HealthChecker()
        checker.register_check("cache", _static(True))

        checker.start_periodic_checks(interval=3600, run_immediately=False)
        await asyncio.sleep(0.05)

        assert checker.snapshot.status is OverallStatus.UNREACHABLE
        await checker.stop()

    @pytest.mark.asyncio
    async def test_stop_without_start(self) -> None:
        checker = HealthChecker()
        await checker.stop()
        assert not checker.is_running
