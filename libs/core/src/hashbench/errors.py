from __future__ import annotations

"""Error taxonomy shared by the engine, adapters and CLI."""


class HashBenchError(Exception):
    """Base class for every error raised by hashbench."""


class InvalidArgument(HashBenchError, ValueError):
    """Precondition violation detected before any measurement starts."""


class EmptySeries(HashBenchError, ValueError):
    """Aggregation was attempted on an empty sample series."""


class ResourceProbeUnavailable(HashBenchError):
    """A platform probe could not answer; callers fall back to the next tier."""


class HasherFailure(HashBenchError):
    """The hashing backend failed (e.g. memory cost exceeds what is available)."""

    def __init__(self, algorithm: str, message: str) -> None:
        super().__init__(f"{algorithm}: {message}")
        self.algorithm = algorithm
