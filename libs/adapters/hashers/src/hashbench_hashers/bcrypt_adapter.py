from __future__ import annotations
from hashbench import registry
from hashbench.errors import HasherFailure
from hashbench.params import ALGORITHM_DEFAULTS, ParameterSet

import bcrypt

from ._base import ConfigurableHasher


@registry.register("bcrypt")
class BcryptHasher(ConfigurableHasher):
    """bcrypt via the `bcrypt` package; `rounds` is the log2 cost factor."""
    name = "bcrypt"
    defaults = ALGORITHM_DEFAULTS["bcrypt"]

    def _apply(self, config: ParameterSet) -> None:
        self._rounds = int(config.get("rounds"))

    def hash(self, password: str) -> str:
        try:
            digest = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self._rounds))
        except ValueError as exc:
            # bcrypt rejects passwords over 72 bytes and out-of-range costs
            raise HasherFailure(self.name, str(exc)) from exc
        return digest.decode("ascii")

    def verify(self, password: str, digest: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), digest.encode("ascii"))
        except ValueError as exc:
            raise HasherFailure(self.name, f"cannot verify against digest: {exc}") from exc
