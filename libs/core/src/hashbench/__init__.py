
from .interfaces import Hasher, UserStore, SystemInfoProvider
from .registry import registry
from .errors import (
    HashBenchError,
    InvalidArgument,
    EmptySeries,
    ResourceProbeUnavailable,
    HasherFailure,
)
from .params import ParameterSet, SweepMatrix, load_matrix
from .stats import SeriesSummary, summarize
from .sampler import ResourceSampler, ResourceSnapshot, reconcile
from .engine import RunResult, SweepResult, run, sweep
from .simulation import (
    AuthenticationSimulation,
    InMemoryUserStore,
    LoginAttemptOutcome,
    ResourceMonitor,
    SimulationState,
)

__all__ = [
    "Hasher",
    "UserStore",
    "SystemInfoProvider",
    "registry",
    "HashBenchError",
    "InvalidArgument",
    "EmptySeries",
    "ResourceProbeUnavailable",
    "HasherFailure",
    "ParameterSet",
    "SweepMatrix",
    "load_matrix",
    "SeriesSummary",
    "summarize",
    "ResourceSampler",
    "ResourceSnapshot",
    "reconcile",
    "RunResult",
    "SweepResult",
    "run",
    "sweep",
    "AuthenticationSimulation",
    "InMemoryUserStore",
    "LoginAttemptOutcome",
    "ResourceMonitor",
    "SimulationState",
]
