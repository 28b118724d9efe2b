from __future__ import annotations
"""Shared benchmarking utilities for CLI runners.

Includes adapter bootstrap, hasher/sampler instance caches, and the three
workload orchestrators (parameter sweep, authentication simulation, resource
monitor) together with their export helpers.
"""

import logging
import pathlib
import random
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from hashbench import corpus, registry
from hashbench.config import load_settings
from hashbench.engine import RESULT_FIELDS, PasswordStats, RunResult, SweepResult, sweep
from hashbench.export import export_rows, timestamped_name
from hashbench.params import ParameterSet, SweepMatrix, load_matrix
from hashbench.sampler import ResourceSampler
from hashbench.simulation import (
    RESOURCE_FIELDS,
    TIMING_FIELDS,
    AuthenticationSimulation,
    ResourceMonitor,
    ResourceMonitorReport,
    SimulationReport,
)
from hashbench.sysinfo import select_system_info

log = logging.getLogger(__name__)

_ADAPTER_MODULES = ("hashbench_hashers",)
_ADAPTER_INSTANCE_CACHE: Dict[str, Any] = {}
_SAMPLER_CACHE: ResourceSampler | None = None


def _load_adapters() -> None:
    import importlib, importlib.util
    for mod in _ADAPTER_MODULES:
        if importlib.util.find_spec(mod) is None:
            log.warning("adapter package %s not installed; its hashers are unavailable", mod)
            continue
        try:
            importlib.import_module(mod)
        except ImportError as exc:
            log.error("adapter import error in %s: %s", mod, exc)

_load_adapters()


def _get_adapter_instance(name: str):
    adapter = _ADAPTER_INSTANCE_CACHE.get(name)
    if adapter is not None:
        return adapter
    cls = registry.get(name)
    adapter = cls()
    _ADAPTER_INSTANCE_CACHE[name] = adapter
    return adapter


def reset_adapter_cache(name: Optional[str] = None) -> None:
    """Drop cached hasher instances (and the sampler) so overrides take effect."""
    global _SAMPLER_CACHE
    if name is None:
        _ADAPTER_INSTANCE_CACHE.clear()
        _SAMPLER_CACHE = None
        return
    _ADAPTER_INSTANCE_CACHE.pop(name, None)


def get_sampler() -> ResourceSampler:
    global _SAMPLER_CACHE
    if _SAMPLER_CACHE is None:
        _SAMPLER_CACHE = ResourceSampler(select_system_info(load_settings().sysinfo))
    return _SAMPLER_CACHE


def resolve_matrix(matrix_path: Optional[str], algorithms: Optional[Sequence[str]] = None) -> SweepMatrix:
    matrix = load_matrix(matrix_path or load_settings().matrix_path)
    if algorithms:
        matrix = matrix.only(list(algorithms))
    for algorithm in matrix.algorithms:
        # Fail before any measurement if a matrix entry has no registered hasher.
        registry.get(algorithm)
    return matrix


def run_benchmark(
    iterations: int,
    password_count: int,
    *,
    matrix: SweepMatrix,
    rng: Optional[random.Random] = None,
    on_start: Optional[Callable[[ParameterSet], None]] = None,
    on_result: Optional[Callable[[RunResult], None]] = None,
    progress: Optional[Callable[[PasswordStats, int], None]] = None,
) -> Tuple[SweepResult, List[str]]:
    """Run the parameter sweep over a freshly generated corpus."""
    passwords = corpus.generate(password_count, rng)
    outcome = sweep(
        matrix,
        _get_adapter_instance,
        passwords,
        iterations,
        sampler=get_sampler(),
        on_start=on_start,
        on_result=on_result,
        progress_cb=progress,
    )
    return outcome, passwords


def run_auth_simulation(
    algorithm: str,
    users: int,
    attempts: int,
    concurrency: int,
    *,
    parallel: bool = False,
    rng: Optional[random.Random] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> SimulationReport:
    hasher = _get_adapter_instance(algorithm)
    kwargs: Dict[str, Any] = {"rng": rng}
    if sleep is not None:
        kwargs["sleep"] = sleep
    simulation = AuthenticationSimulation(hasher, **kwargs)
    return simulation.run(users, attempts, concurrency, parallel=parallel)


def run_resource_test(
    algorithm: str,
    duration: float,
    users: int,
    *,
    interval: float = 1.0,
    on_hash: Optional[Callable[[int], None]] = None,
    rng: Optional[random.Random] = None,
) -> ResourceMonitorReport:
    hasher = _get_adapter_instance(algorithm)
    monitor = ResourceMonitor(hasher, get_sampler(), rng=rng, interval=interval)
    return monitor.run(duration, users, on_hash=on_hash)


def export_results(results: Sequence[RunResult], fmt: str) -> pathlib.Path:
    rows = [r.to_row() for r in results]
    return export_rows(rows, timestamped_name("hash_benchmark_results", fmt), fmt, RESULT_FIELDS)


def export_timings(report: SimulationReport) -> pathlib.Path:
    name = timestamped_name(f"auth_simulation_{report.algorithm}", "csv")
    return export_rows(report.timing_rows(), name, "csv", TIMING_FIELDS)


def export_resource_usage(report: ResourceMonitorReport) -> pathlib.Path:
    name = timestamped_name(f"hash_resource_usage_{report.algorithm}", "csv")
    return export_rows(report.resource_rows(), name, "csv", RESOURCE_FIELDS)


def summary_lines(result: RunResult) -> List[str]:
    return [
        "  Summary:",
        f"  - Average hash time: {result.avg_hash_time_ms:.2f} ms",
        f"  - Average verify time: {result.avg_verify_time_ms:.2f} ms",
        f"  - Average CPU usage: {result.avg_cpu_percent:.2f} %",
        f"  - Memory usage per hash: {result.avg_memory_usage_kb:.2f} KB",
        f"  - Average hash length: {result.avg_hash_length:.0f} characters",
    ]


def row_preview(rows: Sequence[Mapping[str, Any]]) -> List[str]:
    return [
        f"{row['algorithm']:<10} {row['configuration']:<12} "
        f"hash {row['avg_hash_time_ms']:>10} ms  verify {row['avg_verify_time_ms']:>10} ms"
        for row in rows
    ]
