from __future__ import annotations
from typing import Any, Dict, Mapping

from hashbench.errors import InvalidArgument
from hashbench.params import ParameterSet


class ConfigurableHasher:
    """Shared configuration bookkeeping for hasher adapters.

    Subclasses declare `name` and `defaults`, and rebuild their backend in
    `_apply()`. Parameters missing from a ParameterSet keep the adapter
    defaults, so `configuration` always reports the full effective set.
    """
    name = "base"
    defaults: Mapping[str, Any] = {}

    def __init__(self, parameter_set: ParameterSet | None = None) -> None:
        self._config = ParameterSet.build(self.name, "default", self.defaults)
        self.configure(parameter_set or self._config)

    @property
    def configuration(self) -> ParameterSet:
        return self._config

    def configure(self, parameter_set: ParameterSet) -> None:
        if parameter_set.algorithm != self.name:
            raise InvalidArgument(f"{self.name} hasher cannot take {parameter_set.algorithm} parameters")
        merged: Dict[str, Any] = {**self.defaults, **parameter_set.as_dict()}
        config = ParameterSet.build(self.name, parameter_set.label, merged)
        self._apply(config)
        self._config = config

    def _apply(self, config: ParameterSet) -> None:
        raise NotImplementedError
