from __future__ import annotations
"""Resource snapshots and CPU reconciliation.

A snapshot records whatever CPU reading the active SystemInfoProvider could
produce, together with process memory and a monotonic timestamp. Two
snapshots are reconciled into one CPU percentage by trying, in order:

1. direct OS percentages on both sides (mean of the two);
2. cumulative CPU counters on both sides (busy share of the counter delta);
3. process CPU-time totals on both sides (normalised by elapsed time and cores);
4. the 1-minute load average normalised by core count;
5. zero.

Probe failures never reach the caller; they only push reconciliation down a
tier.
"""

import logging
import os
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union, TYPE_CHECKING

from .errors import ResourceProbeUnavailable

if TYPE_CHECKING:
    from .interfaces import SystemInfoProvider

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirectPercent:
    percent: float


@dataclass(frozen=True)
class CpuCounters:
    user: float
    nice: float
    system: float
    idle: float
    iowait: float

    @property
    def total(self) -> float:
        return self.user + self.nice + self.system + self.idle + self.iowait


@dataclass(frozen=True)
class ProcessCpuTime:
    user_seconds: float
    system_seconds: float

    @property
    def total(self) -> float:
        return self.user_seconds + self.system_seconds


CpuRaw = Union[DirectPercent, CpuCounters, ProcessCpuTime, None]


@dataclass(frozen=True)
class ResourceSnapshot:
    """`timestamp` is monotonic (for elapsed-time maths); `wall_time` is epoch seconds."""
    timestamp: float
    memory_bytes: int
    peak_memory_bytes: int
    cpu_raw: CpuRaw = None
    wall_time: float = 0.0


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


def reconcile(
    a: ResourceSnapshot,
    b: ResourceSnapshot,
    elapsed_seconds: float,
    core_count: int,
    load_average: Optional[Callable[[], float]] = None,
) -> float:
    """Combine two snapshots into a CPU utilisation percentage in [0, 100]."""
    cores = max(1, int(core_count))
    ra, rb = a.cpu_raw, b.cpu_raw

    if isinstance(ra, DirectPercent) and isinstance(rb, DirectPercent):
        return _clamp((ra.percent + rb.percent) / 2.0)

    if isinstance(ra, CpuCounters) and isinstance(rb, CpuCounters):
        diff_idle = rb.idle - ra.idle
        diff_total = rb.total - ra.total
        if diff_total > 0:
            return _clamp(100.0 * (1.0 - diff_idle / diff_total))
        log.debug("cpu counters did not advance; falling back")

    if isinstance(ra, ProcessCpuTime) and isinstance(rb, ProcessCpuTime) and elapsed_seconds > 0:
        cpu_time = rb.total - ra.total
        return _clamp((cpu_time / elapsed_seconds) * 100.0 / cores)

    if load_average is not None:
        try:
            return _clamp(load_average() * 100.0 / cores)
        except ResourceProbeUnavailable as exc:
            log.debug("load average unavailable: %s", exc)

    return 0.0


_CORE_COUNT_CACHE: int | None = None


def resolve_core_count(provider: "SystemInfoProvider") -> int:
    """Core count for this process, queried once and cached; never below 1."""
    global _CORE_COUNT_CACHE
    if _CORE_COUNT_CACHE is None:
        try:
            count = provider.core_count()
        except ResourceProbeUnavailable as exc:
            log.debug("core count probe failed (%s); using os.cpu_count()", exc)
            count = os.cpu_count() or 1
        _CORE_COUNT_CACHE = max(1, int(count))
    return _CORE_COUNT_CACHE


class ResourceSampler:
    """Takes snapshots through an injected SystemInfoProvider."""

    def __init__(
        self,
        provider: "SystemInfoProvider | None" = None,
        clock: Callable[[], float] = time.perf_counter,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        if provider is None:
            from .sysinfo import select_system_info

            provider = select_system_info()
        self.provider = provider
        self._clock = clock
        self._wall_clock = wall_clock

    @property
    def core_count(self) -> int:
        return resolve_core_count(self.provider)

    def sample(self) -> ResourceSnapshot:
        try:
            cpu_raw: CpuRaw = self.provider.cpu_snapshot()
        except ResourceProbeUnavailable as exc:
            log.debug("%s cpu probe unavailable: %s", self.provider.name, exc)
            cpu_raw = None
        try:
            memory, peak = self.provider.memory()
        except ResourceProbeUnavailable as exc:
            log.debug("%s memory probe unavailable: %s", self.provider.name, exc)
            memory, peak = 0, 0
        return ResourceSnapshot(
            timestamp=self._clock(),
            memory_bytes=int(memory),
            peak_memory_bytes=int(max(peak, memory)),
            cpu_raw=cpu_raw,
            wall_time=self._wall_clock(),
        )

    def reconcile(
        self,
        a: ResourceSnapshot,
        b: ResourceSnapshot,
        elapsed_seconds: float | None = None,
    ) -> float:
        if elapsed_seconds is None:
            elapsed_seconds = b.timestamp - a.timestamp
        return reconcile(
            a,
            b,
            elapsed_seconds,
            self.core_count,
            load_average=self.provider.load_average,
        )
