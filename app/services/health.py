"""
Health checking service.

Keeps a table of named probes, sweeps them concurrently (each under its
own timeout) and publishes the outcome as an immutable HealthSnapshot.
Readers always get the latest complete snapshot; a sweep that cannot
complete leaves the previous snapshot in place.
"""
from __future__ import annotations

import asyncio
import itertools
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Awaitable, Callable, Mapping

from app.config import get_logger
from app.exceptions import HealthCheckError

logger = get_logger("services.health")

ProbeFn = Callable[[], Awaitable[bool]]


class ProbeStatus(str, Enum):
    PENDING = "pending"
    HEALTHY = "healthy"
    UNREACHABLE = "unreachable"


class OverallStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNREACHABLE = "unreachable"


@dataclass(frozen=True)
class ProbeResult:
    name: str
    status: ProbeStatus
    duration_ms: float | None = None
    error: str | None = None
    critical: bool = False
    checked_at: datetime | None = None


@dataclass
class HealthProbe:
    """A registered probe and the result of its last sweep."""
    name: str
    probe: ProbeFn
    critical: bool = False
    timeout: float | None = None
    last_result: ProbeResult | None = None

    @property
    def status(self) -> ProbeStatus:
        return self.last_result.status if self.last_result else ProbeStatus.PENDING


@dataclass(frozen=True)
class HealthSnapshot:
    status: OverallStatus
    checks: Mapping[str, ProbeResult] = field(default_factory=lambda: MappingProxyType({}))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def has_critical_failure(self) -> bool:
        return any(
            result.critical and result.status is ProbeStatus.UNREACHABLE
            for result in self.checks.values()
        )


class HealthChecker:
    """
    Registry of health probes plus the periodic sweep task.

    Probe registration and snapshot replacement are guarded by a lock so
    readers on any thread see either the old or the new snapshot, never a
    partial one.
    """

    def __init__(self, *, probe_timeout: float = 5.0, interval: float = 60.0) -> None:
        self._probe_timeout = probe_timeout
        self._interval = interval
        self._probes: dict[str, HealthProbe] = {}
        self._lock = threading.Lock()
        self._snapshot = HealthSnapshot(status=OverallStatus.UNREACHABLE)
        self._sweep_counter = itertools.count(1)
        self._applied_sweep = 0
        self._last_sweep_error: str | None = None
        self._task: asyncio.Task | None = None

    # =========================================================================
    # Registration
    # =========================================================================

    def register_check(
        self,
        name: str,
        probe: ProbeFn,
        *,
        critical: bool = False,
        timeout: float | None = None,
    ) -> None:
        """Register a probe. Registering an existing name replaces it."""
        with self._lock:
            replaced = name in self._probes
            self._probes[name] = HealthProbe(name=name, probe=probe, critical=critical, timeout=timeout)
        logger.info(
            "Health probe %s | name=%s | critical=%s",
            "replaced" if replaced else "registered", name, critical,
        )

    @property
    def probe_names(self) -> list[str]:
        with self._lock:
            return list(self._probes)

    def get_probe(self, name: str) -> HealthProbe | None:
        with self._lock:
            return self._probes.get(name)

    # =========================================================================
    # Sweeps
    # =========================================================================

    @property
    def snapshot(self) -> HealthSnapshot:
        """The latest complete snapshot."""
        return self._snapshot

    def get_status(self) -> HealthSnapshot:
        return self._snapshot

    @property
    def last_sweep_error(self) -> str | None:
        return self._last_sweep_error

    async def perform_checks(self) -> HealthSnapshot:
        """
        Run every registered probe concurrently and publish the result.

        Each probe gets its own timeout; a probe that times out or raises is
        reported as unreachable. The sweep takes roughly as long as the
        slowest probe (bounded by its timeout), not the sum of all probes.
        """
        with self._lock:
            sweep_id = next(self._sweep_counter)
            probes = list(self._probes.values())

        try:
            results = await asyncio.gather(*(self._run_probe(probe) for probe in probes))
        except Exception as e:
            self._last_sweep_error = f"{type(e).__name__}: {e}"
            logger.error("Health sweep failed, keeping previous snapshot: %s", e, exc_info=True)
            raise HealthCheckError(details=self._last_sweep_error) from e

        snapshot = HealthSnapshot(
            status=self._aggregate(results),
            checks=MappingProxyType({result.name: result for result in results}),
        )

        with self._lock:
            # A slow sweep finishing after a newer one must not overwrite it
            if sweep_id > self._applied_sweep:
                self._applied_sweep = sweep_id
                self._snapshot = snapshot
                self._last_sweep_error = None
                for probe, result in zip(probes, results):
                    if self._probes.get(probe.name) is probe:
                        probe.last_result = result
        return snapshot

    async def _run_probe(self, probe: HealthProbe) -> ProbeResult:
        timeout = probe.timeout or self._probe_timeout
        start = time.perf_counter()
        error: str | None = None
        try:
            healthy = bool(await asyncio.wait_for(probe.probe(), timeout=timeout))
            if not healthy:
                error = "probe reported unhealthy"
        except asyncio.TimeoutError:
            healthy = False
            error = f"timed out after {timeout:.1f}s"
        except Exception as e:
            healthy = False
            error = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__

        duration_ms = (time.perf_counter() - start) * 1000
        if not healthy:
            logger.warning(
                "Health probe failed | name=%s | duration_ms=%.1f | error=%s",
                probe.name, duration_ms, error,
            )
        return ProbeResult(
            name=probe.name,
            status=ProbeStatus.HEALTHY if healthy else ProbeStatus.UNREACHABLE,
            duration_ms=round(duration_ms, 2),
            error=error,
            critical=probe.critical,
            checked_at=datetime.now(timezone.utc),
        )

    @staticmethod
    def _aggregate(results: list[ProbeResult]) -> OverallStatus:
        if all(result.status is ProbeStatus.HEALTHY for result in results):
            return OverallStatus.HEALTHY
        return OverallStatus.DEGRADED

    # =========================================================================
    # Periodic sweeps
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start_periodic_checks(self, interval: float | None = None, *, run_immediately: bool = True) -> asyncio.Task:
        """
        Start sweeping on a background task.

        Must be called from a running event loop. Calling it again while the
        task is alive returns the existing task.
        """
        if self.is_running:
            return self._task
        if interval is not None:
            self._interval = interval
        self._task = asyncio.create_task(
            self._run_periodic(run_immediately),
            name="health-checker",
        )
        logger.info("Periodic health checks started (interval: %.1fs)", self._interval)
        return self._task

    async def _run_periodic(self, run_immediately: bool) -> None:
        if not run_immediately:
            await asyncio.sleep(self._interval)
        while True:
            try:
                snapshot = await self.perform_checks()
                logger.debug(
                    "Health sweep completed | status=%s | probes=%d",
                    snapshot.status.value, len(snapshot.checks),
                )
            except HealthCheckError as e:
                logger.warning("Health sweep skipped, retrying next tick: %s", e.details)
            await asyncio.sleep(self._interval)

    async def stop(self) -> None:
        """Cancel the periodic task and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Periodic health checks stopped")
