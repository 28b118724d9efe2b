from __future__ import annotations
"""Load simulation: synthetic login traffic and duration-bounded hashing load.

Both drivers walk the same states, IDLE -> REGISTERING -> SIMULATING ->
REPORTING -> DONE, and always finish in DONE, even when the hasher fails.

`AuthenticationSimulation` is attempt-bounded. It registers a user corpus,
then runs login attempts in batches of `concurrency` with a 10 ms pause
between batches. By default a batch runs sequentially and the batch size only
shapes pacing. `parallel=True` runs each batch on a thread pool, which
changes the timing profile.

`ResourceMonitor` is duration-bounded. It hashes continuously until a
deadline while a background thread records resource samples at a fixed
interval. The deadline is checked between operations, so a run may overshoot
by one hash.
"""

import enum
import logging
import queue
import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from . import corpus
from .errors import InvalidArgument
from .interfaces import Hasher, UserStore
from .sampler import ResourceSampler, ResourceSnapshot
from .stats import SeriesSummary, summarize

log = logging.getLogger(__name__)

CORRECT_PASSWORD_PROBABILITY = 0.8
BATCH_PAUSE_SECONDS = 0.010
DEFAULT_SAMPLING_INTERVAL = 1.0
VERIFY_ONE_IN = 5
YIELD_EVERY = 100
YIELD_SECONDS = 0.001

TIMING_FIELDS = ("attempt", "time_ms")
RESOURCE_FIELDS = ("timestamp", "memory_mb", "peak_memory_mb", "memory_diff_mb", "cpu_load")

_MB = 1024.0 * 1024.0


class SimulationState(enum.Enum):
    IDLE = "idle"
    REGISTERING = "registering"
    SIMULATING = "simulating"
    REPORTING = "reporting"
    DONE = "done"


@dataclass(frozen=True)
class LoginAttemptOutcome:
    succeeded: bool
    elapsed_ms: float


class InMemoryUserStore:
    """Thread-safe dict keyed by email; the default UserStore."""

    def __init__(self) -> None:
        self._records: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def insert(self, record: Dict[str, Any]) -> None:
        key = record.get("email")
        if not key:
            raise InvalidArgument("user record needs an 'email' key")
        with self._lock:
            if key in self._records:
                raise InvalidArgument(f"duplicate user record '{key}'")
            self._records[key] = dict(record)

    def find_by_key(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._records.get(key)
            return dict(record) if record is not None else None

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


@dataclass
class SimulationReport:
    algorithm: str
    users: int
    registration_seconds: float
    outcomes: List[LoginAttemptOutcome] = field(default_factory=list)

    @property
    def attempts(self) -> int:
        return len(self.outcomes)

    @property
    def success_count(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)

    @property
    def failure_count(self) -> int:
        return self.attempts - self.success_count

    @property
    def success_rate(self) -> float:
        """Successful attempts as a percentage (0 when nothing was attempted)."""
        if not self.outcomes:
            return 0.0
        return self.success_count / self.attempts * 100.0

    @property
    def avg_registration_ms(self) -> float:
        return self.registration_seconds / self.users * 1000.0 if self.users else 0.0

    def timing_summary(self) -> SeriesSummary:
        return summarize(o.elapsed_ms for o in self.outcomes)

    def timing_rows(self) -> List[Dict[str, Any]]:
        return [
            {"attempt": index + 1, "time_ms": round(o.elapsed_ms, 2)}
            for index, o in enumerate(self.outcomes)
        ]


class _StateMachine:
    def __init__(self) -> None:
        self.state = SimulationState.IDLE
        self.history: List[SimulationState] = [self.state]

    def _enter(self, state: SimulationState) -> None:
        log.debug("%s: %s -> %s", type(self).__name__, self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def _reset(self) -> None:
        self.state = SimulationState.IDLE
        self.history = [self.state]


class AuthenticationSimulation(_StateMachine):
    """Register users, then replay a mix of correct and wrong logins."""

    def __init__(
        self,
        hasher: Hasher,
        store: Optional[UserStore] = None,
        *,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.perf_counter,
        pause: float = BATCH_PAUSE_SECONDS,
    ) -> None:
        super().__init__()
        self.hasher = hasher
        self.store: UserStore = store if store is not None else InMemoryUserStore()
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._clock = clock
        self._pause = pause
        self._identities: List[Dict[str, str]] = []

    def _register(self, count: int) -> float:
        self.store.clear()
        self._identities = corpus.generate_users(count, self._rng)
        start = self._clock()
        for identity in self._identities:
            self.store.insert({
                "email": identity["email"],
                "password": self.hasher.hash(identity["password"]),
            })
        return self._clock() - start

    def _plan_attempt(self) -> Tuple[str, str]:
        identity = self._rng.choice(self._identities)
        if self._rng.random() < CORRECT_PASSWORD_PROBABILITY:
            return identity["email"], identity["password"]
        return identity["email"], f"WrongPassword{self._rng.randint(1000, 9999)}"

    def _attempt(self, email: str, password: str) -> Optional[LoginAttemptOutcome]:
        start = self._clock()
        record = self.store.find_by_key(email)
        if record is None:
            log.debug("no stored record for %s; attempt skipped", email)
            return None
        ok = self.hasher.verify(password, record["password"])
        return LoginAttemptOutcome(succeeded=bool(ok), elapsed_ms=(self._clock() - start) * 1000.0)

    def _simulate(self, attempts: int, concurrency: int, parallel: bool) -> List[LoginAttemptOutcome]:
        outcomes: List[LoginAttemptOutcome] = []
        executor = ThreadPoolExecutor(max_workers=concurrency) if parallel else None
        try:
            done = 0
            while done < attempts:
                batch = min(concurrency, attempts - done)
                # Draw the whole batch up front so the RNG is only touched here.
                plans = [self._plan_attempt() for _ in range(batch)]
                if executor is not None:
                    results = list(executor.map(lambda plan: self._attempt(*plan), plans))
                else:
                    results = [self._attempt(email, password) for email, password in plans]
                outcomes.extend(r for r in results if r is not None)
                done += batch
                if done < attempts:
                    self._sleep(self._pause)
        finally:
            if executor is not None:
                executor.shutdown(wait=True)
        return outcomes

    def run(
        self,
        users: int,
        attempts: int,
        concurrency: int = 5,
        *,
        parallel: bool = False,
    ) -> SimulationReport:
        for label, value in (("users", users), ("attempts", attempts), ("concurrency", concurrency)):
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise InvalidArgument(f"{label} must be an integer >= 1, got {value!r}")
        self._reset()
        try:
            self._enter(SimulationState.REGISTERING)
            registration = self._register(users)
            log.info("registered %d users in %.2fs", users, registration)

            self._enter(SimulationState.SIMULATING)
            outcomes = self._simulate(attempts, concurrency, parallel)

            self._enter(SimulationState.REPORTING)
            return SimulationReport(
                algorithm=self.hasher.name,
                users=users,
                registration_seconds=registration,
                outcomes=outcomes,
            )
        finally:
            self.store.clear()
            self._enter(SimulationState.DONE)


@dataclass(frozen=True)
class ResourceSample:
    timestamp: float
    memory_mb: float
    peak_memory_mb: float
    memory_diff_mb: float
    cpu_load: float

    def to_row(self) -> Dict[str, Any]:
        return {
            "timestamp": round(self.timestamp, 2),
            "memory_mb": round(self.memory_mb, 2),
            "peak_memory_mb": round(self.peak_memory_mb, 2),
            "memory_diff_mb": round(self.memory_diff_mb, 2),
            "cpu_load": round(self.cpu_load, 2),
        }


class PeriodicSampler:
    """Background thread pushing ResourceSamples onto a queue at a fixed interval.

    `stop()` sets the stop flag, joins the thread and drains the queue. The
    first sample is taken as soon as the thread starts.
    """

    def __init__(self, sampler: ResourceSampler, baseline: ResourceSnapshot, interval: float) -> None:
        if interval <= 0:
            raise InvalidArgument(f"sampling interval must be > 0, got {interval!r}")
        self._sampler = sampler
        self._baseline = baseline
        self._interval = interval
        self._queue: "queue.Queue[ResourceSample]" = queue.Queue()
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._loop, name="hashbench-resmon", daemon=True)

    def _record(self, previous: ResourceSnapshot) -> ResourceSnapshot:
        current = self._sampler.sample()
        self._queue.put(ResourceSample(
            timestamp=current.timestamp - self._baseline.timestamp,
            memory_mb=current.memory_bytes / _MB,
            peak_memory_mb=current.peak_memory_bytes / _MB,
            memory_diff_mb=(current.memory_bytes - self._baseline.memory_bytes) / _MB,
            cpu_load=self._sampler.reconcile(previous, current),
        ))
        return current

    def _loop(self) -> None:
        previous = self._baseline
        while True:
            previous = self._record(previous)
            if self._stop.wait(self._interval):
                break

    def start(self) -> "PeriodicSampler":
        self._thread.start()
        return self

    def stop(self) -> List[ResourceSample]:
        self._stop.set()
        if self._thread.is_alive():
            self._thread.join()
        return self.drain()

    def drain(self) -> List[ResourceSample]:
        samples: List[ResourceSample] = []
        while True:
            try:
                samples.append(self._queue.get_nowait())
            except queue.Empty:
                return samples


@dataclass
class ResourceMonitorReport:
    algorithm: str
    duration: float
    elapsed_seconds: float
    hash_count: int
    samples: List[ResourceSample] = field(default_factory=list)
    outcomes: List[LoginAttemptOutcome] = field(default_factory=list)

    @property
    def hashes_per_second(self) -> float:
        return self.hash_count / self.elapsed_seconds if self.elapsed_seconds > 0 else 0.0

    @property
    def verify_count(self) -> int:
        return len(self.outcomes)

    def resource_rows(self) -> List[Dict[str, Any]]:
        return [s.to_row() for s in self.samples]

    def timing_rows(self) -> List[Dict[str, Any]]:
        return [
            {"attempt": index + 1, "time_ms": round(o.elapsed_ms, 2)}
            for index, o in enumerate(self.outcomes)
        ]


class ResourceMonitor(_StateMachine):
    """Hash continuously for a fixed wall-clock duration under resource sampling."""

    def __init__(
        self,
        hasher: Hasher,
        sampler: Optional[ResourceSampler] = None,
        *,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.perf_counter,
        interval: float = DEFAULT_SAMPLING_INTERVAL,
    ) -> None:
        super().__init__()
        if interval <= 0:
            raise InvalidArgument(f"sampling interval must be > 0, got {interval!r}")
        self.hasher = hasher
        self.sampler = sampler or ResourceSampler()
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._clock = clock
        self.interval = interval

    def run(
        self,
        duration: float,
        users: int,
        *,
        on_hash: Optional[Callable[[int], None]] = None,
    ) -> ResourceMonitorReport:
        if duration <= 0:
            raise InvalidArgument(f"duration must be > 0 seconds, got {duration!r}")
        if isinstance(users, bool) or not isinstance(users, int) or users < 1:
            raise InvalidArgument(f"users must be an integer >= 1, got {users!r}")
        self._reset()
        baseline = self.sampler.sample()
        hash_count = 0
        outcomes: List[LoginAttemptOutcome] = []
        elapsed = 0.0
        samples: List[ResourceSample] = []
        monitor = PeriodicSampler(self.sampler, baseline, self.interval)
        try:
            self._enter(SimulationState.REGISTERING)
            passwords = corpus.generate_load_passwords(users, self._rng)

            self._enter(SimulationState.SIMULATING)
            monitor.start()
            start = self._clock()
            deadline = start + duration
            while self._clock() < deadline:
                password = passwords[hash_count % len(passwords)]
                digest = self.hasher.hash(password)
                if self._rng.randint(1, VERIFY_ONE_IN) == 1:
                    t0 = self._clock()
                    ok = self.hasher.verify(password, digest)
                    outcomes.append(LoginAttemptOutcome(bool(ok), (self._clock() - t0) * 1000.0))
                hash_count += 1
                if on_hash is not None:
                    on_hash(hash_count)
                if hash_count % YIELD_EVERY == 0:
                    self._sleep(YIELD_SECONDS)
            elapsed = self._clock() - start
            samples = monitor.stop()

            self._enter(SimulationState.REPORTING)
            log.info("%s: %d hashes in %.2fs", self.hasher.name, hash_count, elapsed)
            return ResourceMonitorReport(
                algorithm=self.hasher.name,
                duration=duration,
                elapsed_seconds=elapsed,
                hash_count=hash_count,
                samples=samples,
                outcomes=outcomes,
            )
        finally:
            monitor.stop()
            self._enter(SimulationState.DONE)
