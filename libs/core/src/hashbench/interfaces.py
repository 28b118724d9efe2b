
from __future__ import annotations
from typing import Any, Dict, Optional, Protocol, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from .params import ParameterSet
    from .sampler import CpuRaw

"""Capability interfaces consumed by the engine.

Adapters implement these Protocols and register themselves into the global
registry. The engine and CLI interact only with these interfaces, never with
hashing libraries or OS tools directly.
"""

class Hasher(Protocol):
    """Password hashing contract.

    A hasher always carries an active ParameterSet; `configure` swaps it and
    `configuration` reports it so callers can restore it afterwards.
    """
    name: str
    @property
    def configuration(self) -> "ParameterSet": ...
    def configure(self, parameter_set: "ParameterSet") -> None: ...
    def hash(self, password: str) -> str: ...
    def verify(self, password: str, digest: str) -> bool: ...

class UserStore(Protocol):
    """Key-value store for simulated user credentials."""
    def insert(self, record: Dict[str, Any]) -> None: ...
    def find_by_key(self, key: str) -> Optional[Dict[str, Any]]: ...
    def clear(self) -> None: ...

class SystemInfoProvider(Protocol):
    """Platform telemetry source; every method may raise ResourceProbeUnavailable."""
    name: str
    def cpu_snapshot(self) -> "CpuRaw": ...
    def core_count(self) -> int: ...
    def load_average(self) -> float: ...
    def memory(self) -> Tuple[int, int]: ...
