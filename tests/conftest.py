from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

import pytest

ROOT = Path(__file__).resolve().parents[1]
for rel in (
    Path("libs/core/src"),
    Path("libs/adapters/hashers/src"),
    Path("apps/cli/src"),
):
    candidate = str(ROOT / rel)
    if candidate not in sys.path:
        sys.path.insert(0, candidate)

import hashbench.sampler as sampler_mod  # noqa: E402
from hashbench.errors import HasherFailure, InvalidArgument, ResourceProbeUnavailable  # noqa: E402
from hashbench.params import ParameterSet  # noqa: E402
from hashbench.sampler import CpuRaw, ResourceSampler  # noqa: E402


class FakeClock:
    """Manually advanced clock; hashers below move it forward per call."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class DummyHasher:
    """Deterministic hasher: digest embeds the password, cost is simulated on a FakeClock."""

    def __init__(
        self,
        name: str = "bcrypt",
        clock: FakeClock | None = None,
        hash_cost: float = 0.001,
        verify_cost: float = 0.0005,
        params: dict | None = None,
    ) -> None:
        self.name = name
        self.clock = clock
        self.hash_cost = hash_cost
        self.verify_cost = verify_cost
        self._config = ParameterSet.build(name, "default", params if params is not None else {"rounds": 10})
        self.configure_calls: List[ParameterSet] = []
        self.hash_calls = 0
        self.verify_calls: List[Tuple[str, str]] = []

    @property
    def configuration(self) -> ParameterSet:
        return self._config

    def configure(self, parameter_set: ParameterSet) -> None:
        self.configure_calls.append(parameter_set)
        self._config = parameter_set

    def hash(self, password: str) -> str:
        self.hash_calls += 1
        if self.clock is not None:
            self.clock.advance(self.hash_cost)
        return f"dummy${self.hash_calls}${password}"

    def verify(self, password: str, digest: str) -> bool:
        self.verify_calls.append((password, digest))
        if self.clock is not None:
            self.clock.advance(self.verify_cost)
        return digest.split("$", 2)[2] == password


class FailingHasher(DummyHasher):
    """Raises HasherFailure whenever the active configuration matches `fail_label`."""

    def __init__(self, fail_label: str, **kwargs) -> None:
        super().__init__(**kwargs)
        self.fail_label = fail_label

    def hash(self, password: str) -> str:
        if self._config.label == self.fail_label:
            raise HasherFailure(self.name, "memory allocation error")
        return super().hash(password)


class RejectingHasher(DummyHasher):
    """Refuses to be configured with the parameter set labelled `reject_label`."""

    def __init__(self, reject_label: str, **kwargs) -> None:
        super().__init__(**kwargs)
        self.reject_label = reject_label

    def configure(self, parameter_set: ParameterSet) -> None:
        if parameter_set.label == self.reject_label:
            raise InvalidArgument(f"{self.name}: memory must be >= 8 * threads (2048), got 1024")
        super().configure(parameter_set)


class StaticSystemInfo:
    """Scripted SystemInfoProvider; `None` entries in `cpu` raise ResourceProbeUnavailable."""
    name = "static"

    def __init__(
        self,
        cpu: Sequence[CpuRaw] = (),
        memory: Iterable[Tuple[int, int]] = (),
        cores: int | None = 4,
        load: float | None = None,
    ) -> None:
        self._cpu = list(cpu)
        self._memory = list(memory)
        self._cores = cores
        self._load = load
        self.load_calls = 0

    def cpu_snapshot(self) -> CpuRaw:
        if not self._cpu:
            raise ResourceProbeUnavailable("no scripted cpu reading")
        value = self._cpu.pop(0) if len(self._cpu) > 1 else self._cpu[0]
        if value is None:
            raise ResourceProbeUnavailable("scripted failure")
        return value

    def memory(self) -> Tuple[int, int]:
        if not self._memory:
            return (1024 * 1024, 2 * 1024 * 1024)
        return self._memory.pop(0) if len(self._memory) > 1 else self._memory[0]

    def core_count(self) -> int:
        if self._cores is None:
            raise ResourceProbeUnavailable("no core count")
        return self._cores

    def load_average(self) -> float:
        self.load_calls += 1
        if self._load is None:
            raise ResourceProbeUnavailable("no load average")
        return self._load


@pytest.fixture(autouse=True)
def _reset_core_count_cache():
    sampler_mod._CORE_COUNT_CACHE = None
    yield
    sampler_mod._CORE_COUNT_CACHE = None


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    for var in ("HASHBENCH_MATRIX", "HASHBENCH_SYSINFO", "HASHBENCH_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("HASHBENCH_RESULTS_DIR", str(tmp_path / "results"))


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def static_sampler() -> ResourceSampler:
    return ResourceSampler(StaticSystemInfo(), clock=FakeClock())
