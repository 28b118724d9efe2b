from __future__ import annotations
"""Parameter sets and the benchmark sweep matrix.

A ParameterSet names one algorithm configuration. The sweep matrix lists, per
algorithm, a `default` set plus `variations`; the built-in matrix can be
replaced by a YAML file with the same shape:

    algorithms:
      bcrypt:
        default: {rounds: 10}
        variations:
          - {rounds: 8}
          - {rounds: 12}
"""
from dataclasses import dataclass, field
import json
import os
import pathlib
from typing import Any, Dict, Iterator, List, Mapping, Tuple

import yaml

from .errors import InvalidArgument


@dataclass(frozen=True)
class ParameterSet:
    algorithm: str
    label: str
    items: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)

    @classmethod
    def build(cls, algorithm: str, label: str, params: Mapping[str, Any] | None = None) -> "ParameterSet":
        params = dict(params or {})
        validate_parameters(algorithm, params)
        return cls(algorithm=algorithm, label=label, items=tuple(sorted(params.items())))

    @property
    def key(self) -> Tuple[str, str]:
        return (self.algorithm, self.label)

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.items)

    def get(self, name: str, default: Any = None) -> Any:
        return self.as_dict().get(name, default)

    def describe(self) -> str:
        """Label used in console output: 'default' or the JSON of the overrides."""
        if self.label == "default":
            return "default"
        return json.dumps(self.as_dict(), sort_keys=True)

    def to_json(self) -> str:
        return json.dumps(self.as_dict(), sort_keys=True)


# Allowed keys and lower bounds per algorithm.
_SCHEMAS: Dict[str, Dict[str, int]] = {
    "bcrypt": {"rounds": 4},
    "argon2id": {"memory": 8, "time": 1, "threads": 1},
    "argon2i": {"memory": 8, "time": 1, "threads": 1},
}
_BCRYPT_MAX_ROUNDS = 31

# Values an adapter uses for any key a parameter set leaves out.
ALGORITHM_DEFAULTS: Dict[str, Dict[str, int]] = {
    "bcrypt": {"rounds": 10},
    "argon2id": {"memory": 1024, "time": 2, "threads": 2},
    "argon2i": {"memory": 1024, "time": 2, "threads": 2},
}


def validate_parameters(algorithm: str, params: Mapping[str, Any]) -> None:
    schema = _SCHEMAS.get(algorithm)
    if schema is None:
        raise InvalidArgument(
            f"Unsupported algorithm '{algorithm}'. Please use one of: {', '.join(_SCHEMAS)}."
        )
    for key, value in params.items():
        if key not in schema:
            raise InvalidArgument(f"{algorithm}: unknown parameter '{key}'")
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidArgument(f"{algorithm}: parameter '{key}' must be an integer, got {value!r}")
        if value < schema[key]:
            raise InvalidArgument(f"{algorithm}: parameter '{key}' must be >= {schema[key]}, got {value}")
    if algorithm == "bcrypt" and params.get("rounds", 4) > _BCRYPT_MAX_ROUNDS:
        raise InvalidArgument(f"bcrypt: rounds must be <= {_BCRYPT_MAX_ROUNDS}")
    if algorithm.startswith("argon2"):
        # argon2 requires at least 8 KiB of memory per lane, defaults included.
        effective = {**ALGORITHM_DEFAULTS[algorithm], **params}
        memory = effective["memory"]
        threads = effective["threads"]
        if memory < 8 * threads:
            raise InvalidArgument(f"{algorithm}: memory must be >= 8 * threads ({8 * threads}), got {memory}")


DEFAULT_MATRIX: Dict[str, Dict[str, Any]] = {
    "bcrypt": {
        "default": {"rounds": 10},
        "variations": [
            {"rounds": 8},
            {"rounds": 12},
        ],
    },
    "argon2id": {
        "default": {"memory": 1024, "time": 2, "threads": 2},
        "variations": [
            {"memory": 1024, "time": 4, "threads": 2},
            {"memory": 2048, "time": 2, "threads": 2},
        ],
    },
}


@dataclass(frozen=True)
class SweepMatrix:
    """Ordered parameter sets: every default first, then every variation."""
    defaults: Tuple[ParameterSet, ...]
    variations: Tuple[ParameterSet, ...]

    def __iter__(self) -> Iterator[ParameterSet]:
        yield from self.defaults
        yield from self.variations

    def __len__(self) -> int:
        return len(self.defaults) + len(self.variations)

    @property
    def algorithms(self) -> List[str]:
        return [ps.algorithm for ps in self.defaults]

    def default_for(self, algorithm: str) -> ParameterSet:
        for ps in self.defaults:
            if ps.algorithm == algorithm:
                return ps
        raise InvalidArgument(f"No default parameters for algorithm '{algorithm}'")

    def only(self, algorithms: List[str]) -> "SweepMatrix":
        wanted = set(algorithms)
        unknown = wanted - set(self.algorithms)
        if unknown:
            raise InvalidArgument(f"Algorithms not in matrix: {', '.join(sorted(unknown))}")
        return SweepMatrix(
            defaults=tuple(ps for ps in self.defaults if ps.algorithm in wanted),
            variations=tuple(ps for ps in self.variations if ps.algorithm in wanted),
        )


def build_matrix(raw: Mapping[str, Any]) -> SweepMatrix:
    if not isinstance(raw, Mapping) or not raw:
        raise InvalidArgument("Sweep matrix must map algorithm names to parameter blocks")
    defaults: List[ParameterSet] = []
    variations: List[ParameterSet] = []
    for algorithm, block in raw.items():
        if not isinstance(block, Mapping):
            raise InvalidArgument(f"{algorithm}: matrix entry must be a mapping")
        default = block.get("default") or {}
        if not isinstance(default, Mapping):
            raise InvalidArgument(f"{algorithm}: 'default' must be a mapping")
        defaults.append(ParameterSet.build(algorithm, "default", default))
        entries = block.get("variations") or []
        if not isinstance(entries, list):
            raise InvalidArgument(f"{algorithm}: 'variations' must be a list")
        for index, overrides in enumerate(entries):
            if not isinstance(overrides, Mapping):
                raise InvalidArgument(f"{algorithm}: variation {index + 1} must be a mapping")
            # Variations override the default, so untouched keys keep default values.
            merged = {**default, **overrides}
            variations.append(ParameterSet.build(algorithm, f"variation_{index + 1}", merged))
    return SweepMatrix(defaults=tuple(defaults), variations=tuple(variations))


def load_matrix(path: str | os.PathLike[str] | None = None) -> SweepMatrix:
    """Load the sweep matrix from YAML, or return the built-in matrix when `path` is empty."""
    if not path:
        return build_matrix(DEFAULT_MATRIX)
    matrix_path = pathlib.Path(path)
    if not matrix_path.exists():
        raise InvalidArgument(f"Matrix file not found: {matrix_path}")
    try:
        raw = yaml.safe_load(matrix_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise InvalidArgument(f"Matrix file {matrix_path} is not valid YAML: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise InvalidArgument(f"Matrix file {matrix_path} must contain a mapping")
    return build_matrix(raw.get("algorithms", raw))
