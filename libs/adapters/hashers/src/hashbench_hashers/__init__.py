"""Adapter package for password-hashing backends.

Importing submodules triggers registration of the bcrypt and argon2 hashers.
"""

# Trigger registration side-effects
from . import bcrypt_adapter as _bcrypt_adapter  # noqa: F401
from . import argon2_adapter as _argon2_adapter  # noqa: F401

__all__: list[str] = []
