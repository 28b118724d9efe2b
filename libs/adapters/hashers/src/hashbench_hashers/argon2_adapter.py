from __future__ import annotations
from hashbench import registry
from hashbench.errors import HasherFailure
from hashbench.params import ALGORITHM_DEFAULTS, ParameterSet

from argon2 import PasswordHasher, Type
from argon2.exceptions import HashingError, InvalidHashError, VerificationError, VerifyMismatchError

from ._base import ConfigurableHasher


class _Argon2Hasher(ConfigurableHasher):
    """argon2 via argon2-cffi.

    Parameters: `memory` (KiB), `time` (passes) and `threads` (lanes).
    A memory cost the host cannot allocate surfaces as HasherFailure.
    """
    argon2_type = Type.ID
    defaults = ALGORITHM_DEFAULTS["argon2id"]

    def _apply(self, config: ParameterSet) -> None:
        self._ph = PasswordHasher(
            time_cost=int(config.get("time")),
            memory_cost=int(config.get("memory")),
            parallelism=int(config.get("threads")),
            type=self.argon2_type,
        )

    def hash(self, password: str) -> str:
        try:
            return self._ph.hash(password)
        except HashingError as exc:
            raise HasherFailure(self.name, str(exc)) from exc

    def verify(self, password: str, digest: str) -> bool:
        try:
            return self._ph.verify(digest, password)
        except VerifyMismatchError:
            return False
        except (InvalidHashError, VerificationError) as exc:
            raise HasherFailure(self.name, f"cannot verify against digest: {exc}") from exc


@registry.register("argon2id")
class Argon2idHasher(_Argon2Hasher):
    name = "argon2id"
    argon2_type = Type.ID


@registry.register("argon2i")
class Argon2iHasher(_Argon2Hasher):
    name = "argon2i"
    argon2_type = Type.I
    defaults = ALGORITHM_DEFAULTS["argon2i"]
