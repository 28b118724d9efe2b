from __future__ import annotations
"""Benchmark run engine.

`run()` measures one ParameterSet over a password corpus: per password it
hashes `iterations` times, verifies `iterations` times against the produced
digests, and brackets the hash phase with resource snapshots. Per-password
figures are averaged (unweighted) into one RunResult.

`sweep()` runs a whole SweepMatrix and keeps going past a failing
configuration so results already gathered are still exported.
"""

import contextlib
import json
import logging
import math
import threading
import time
import weakref
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from .errors import HashBenchError, InvalidArgument
from .interfaces import Hasher
from .params import ParameterSet, SweepMatrix
from .sampler import ResourceSampler
from .stats import SeriesSummary, summarize

log = logging.getLogger(__name__)

RESULT_FIELDS = (
    "algorithm",
    "configuration",
    "parameters",
    "avg_hash_time_ms",
    "avg_verify_time_ms",
    "avg_cpu_usage_percent",
    "avg_memory_usage_kb",
    "avg_hash_length",
    "throughput_hash_per_sec",
    "throughput_verify_per_sec",
)


@dataclass(frozen=True)
class TimingSample:
    operation: str  # 'hash' or 'verify'
    duration_seconds: float


@dataclass(frozen=True)
class PasswordStats:
    index: int
    hash_time_ms: float
    verify_time_ms: float
    cpu_percent: float
    memory_usage_kb: float
    hash_length: float
    hash_series: SeriesSummary
    verify_series: SeriesSummary


@dataclass(frozen=True)
class RunResult:
    algorithm: str
    configuration: str
    parameters: Dict[str, Any]
    avg_hash_time_ms: float
    avg_verify_time_ms: float
    avg_cpu_percent: float
    avg_memory_usage_kb: float
    avg_hash_length: float
    throughput_hash_per_sec: float
    throughput_verify_per_sec: float
    per_password: Tuple[PasswordStats, ...] = field(default=(), repr=False)

    def to_row(self) -> Dict[str, Any]:
        """Export row with stable field names (see RESULT_FIELDS)."""
        return {
            "algorithm": self.algorithm,
            "configuration": self.configuration,
            "parameters": json.dumps(self.parameters, sort_keys=True),
            "avg_hash_time_ms": round(self.avg_hash_time_ms, 2),
            "avg_verify_time_ms": round(self.avg_verify_time_ms, 2),
            "avg_cpu_usage_percent": round(self.avg_cpu_percent, 2),
            "avg_memory_usage_kb": round(self.avg_memory_usage_kb, 2),
            "avg_hash_length": int(round(self.avg_hash_length)),
            "throughput_hash_per_sec": round(self.throughput_hash_per_sec, 2),
            "throughput_verify_per_sec": round(self.throughput_verify_per_sec, 2),
        }


_LOCKS_GUARD = threading.Lock()
# Keyed by id() so hashers need not be hashable.
_HASHER_LOCKS: Dict[int, threading.RLock] = {}


def _lock_for(hasher: Hasher) -> threading.RLock:
    key = id(hasher)
    with _LOCKS_GUARD:
        lock = _HASHER_LOCKS.get(key)
        if lock is None:
            lock = threading.RLock()
            _HASHER_LOCKS[key] = lock
            try:
                weakref.finalize(hasher, _HASHER_LOCKS.pop, key, None)
            except TypeError:
                # __slots__ without __weakref__: the entry lives as long as the process.
                log.debug("%r is not weak-referenceable; its lock is never released", hasher)
        return lock


@contextlib.contextmanager
def configured(hasher: Hasher, parameter_set: ParameterSet) -> Iterator[Hasher]:
    """Apply `parameter_set` for the duration of the block, then restore.

    Holds a per-hasher lock so two runs never interleave on one instance.
    """
    if parameter_set.algorithm != hasher.name:
        raise InvalidArgument(
            f"Parameter set {parameter_set.algorithm}/{parameter_set.label} does not match hasher '{hasher.name}'"
        )
    with _lock_for(hasher):
        previous = hasher.configuration
        hasher.configure(parameter_set)
        try:
            yield hasher
        finally:
            hasher.configure(previous)


def _throughput(avg_seconds: float) -> float:
    return 1.0 / avg_seconds if avg_seconds > 0 else math.inf


def _measure_password(
    index: int,
    hasher: Hasher,
    password: str,
    iterations: int,
    sampler: ResourceSampler,
    clock: Callable[[], float],
) -> PasswordStats:
    samples: List[TimingSample] = []
    digests: List[str] = []

    before = sampler.sample()
    phase_start = clock()
    for _ in range(iterations):
        t0 = clock()
        digests.append(hasher.hash(password))
        samples.append(TimingSample("hash", clock() - t0))
    phase_end = clock()
    after = sampler.sample()
    hash_elapsed = phase_end - phase_start

    verify_start = clock()
    for i in range(iterations):
        t0 = clock()
        hasher.verify(password, digests[i % len(digests)])
        samples.append(TimingSample("verify", clock() - t0))
    verify_elapsed = clock() - verify_start

    hash_ms = [s.duration_seconds * 1000.0 for s in samples if s.operation == "hash"]
    verify_ms = [s.duration_seconds * 1000.0 for s in samples if s.operation == "verify"]
    return PasswordStats(
        index=index,
        hash_time_ms=hash_elapsed / iterations * 1000.0,
        verify_time_ms=verify_elapsed / iterations * 1000.0,
        cpu_percent=sampler.reconcile(before, after, hash_elapsed),
        memory_usage_kb=(after.memory_bytes - before.memory_bytes) / iterations / 1024.0,
        hash_length=sum(len(d) for d in digests) / len(digests),
        hash_series=summarize(hash_ms),
        verify_series=summarize(verify_ms),
    )


def run(
    hasher: Hasher,
    parameter_set: ParameterSet,
    passwords: Sequence[str],
    iterations: int,
    *,
    sampler: Optional[ResourceSampler] = None,
    clock: Callable[[], float] = time.perf_counter,
    progress_cb: Optional[Callable[[PasswordStats, int], None]] = None,
) -> RunResult:
    """Benchmark `parameter_set` on `hasher` and return the aggregated result.

    Raises InvalidArgument for an empty corpus or `iterations < 1` before any
    hashing happens. Errors from the hasher propagate unchanged; the hasher's
    previous configuration is restored either way.
    """
    if not passwords:
        raise InvalidArgument("password corpus must not be empty")
    if isinstance(iterations, bool) or not isinstance(iterations, int) or iterations < 1:
        raise InvalidArgument(f"iterations must be an integer >= 1, got {iterations!r}")
    sampler = sampler or ResourceSampler()

    log.info(
        "running %s/%s: %d passwords x %d iterations",
        parameter_set.algorithm, parameter_set.label, len(passwords), iterations,
    )
    rows: List[PasswordStats] = []
    with configured(hasher, parameter_set):
        effective = hasher.configuration.as_dict()
        for index, password in enumerate(passwords):
            stats = _measure_password(index, hasher, password, iterations, sampler, clock)
            rows.append(stats)
            if progress_cb is not None:
                progress_cb(stats, len(passwords))

    avg_hash_ms = summarize(r.hash_time_ms for r in rows).mean
    avg_verify_ms = summarize(r.verify_time_ms for r in rows).mean
    return RunResult(
        algorithm=parameter_set.algorithm,
        configuration=parameter_set.label,
        parameters=effective,
        avg_hash_time_ms=avg_hash_ms,
        avg_verify_time_ms=avg_verify_ms,
        avg_cpu_percent=summarize(r.cpu_percent for r in rows).mean,
        avg_memory_usage_kb=sum(r.memory_usage_kb for r in rows) / len(rows),
        avg_hash_length=summarize(r.hash_length for r in rows).mean,
        throughput_hash_per_sec=_throughput(avg_hash_ms / 1000.0),
        throughput_verify_per_sec=_throughput(avg_verify_ms / 1000.0),
        per_password=tuple(rows),
    )


@dataclass(frozen=True)
class SweepFailure:
    parameter_set: ParameterSet
    error: str


@dataclass
class SweepResult:
    results: List[RunResult] = field(default_factory=list)
    failures: List[SweepFailure] = field(default_factory=list)

    def rows(self) -> List[Dict[str, Any]]:
        return [r.to_row() for r in self.results]


def sweep(
    matrix: SweepMatrix,
    hasher_for: Callable[[str], Hasher],
    passwords: Sequence[str],
    iterations: int,
    *,
    sampler: Optional[ResourceSampler] = None,
    clock: Callable[[], float] = time.perf_counter,
    on_start: Optional[Callable[[ParameterSet], None]] = None,
    on_result: Optional[Callable[[RunResult], None]] = None,
    progress_cb: Optional[Callable[[PasswordStats, int], None]] = None,
) -> SweepResult:
    """Run every parameter set in `matrix` (defaults first, then variations).

    Any HashBenchError raised while one configuration runs (a HasherFailure,
    or a parameter set the adapter rejects) aborts only that configuration;
    it is recorded with the offending parameter set and the sweep continues.
    """
    if not passwords:
        raise InvalidArgument("password corpus must not be empty")
    if isinstance(iterations, bool) or not isinstance(iterations, int) or iterations < 1:
        raise InvalidArgument(f"iterations must be an integer >= 1, got {iterations!r}")
    sampler = sampler or ResourceSampler()
    outcome = SweepResult()
    for parameter_set in matrix:
        if on_start is not None:
            on_start(parameter_set)
        try:
            hasher = hasher_for(parameter_set.algorithm)
            result = run(
                hasher,
                parameter_set,
                passwords,
                iterations,
                sampler=sampler,
                clock=clock,
                progress_cb=progress_cb,
            )
        except HashBenchError as exc:
            log.warning("%s/%s failed: %s", parameter_set.algorithm, parameter_set.label, exc)
            outcome.failures.append(SweepFailure(parameter_set=parameter_set, error=str(exc)))
            continue
        outcome.results.append(result)
        if on_result is not None:
            on_result(result)
    return outcome
