from __future__ import annotations
"""Environment-driven settings.

Every knob has a default; `HASHBENCH_*` variables override it. Values are
read at call time so tests can monkeypatch the environment.
"""
import os
import pathlib
from dataclasses import dataclass

from .errors import InvalidArgument

SYSINFO_CHOICES = ("auto", "psutil", "procfs", "macos", "windows")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Settings:
    results_dir: pathlib.Path
    sysinfo: str
    matrix_path: str | None
    log_level: str


def _choice(env_var: str, default: str, choices: tuple[str, ...], *, upper: bool = False) -> str:
    raw = os.getenv(env_var)
    if not raw:
        return default
    value = raw.strip().upper() if upper else raw.strip().lower()
    if value not in choices:
        raise InvalidArgument(f"{env_var} must be one of {', '.join(choices)}, got {raw!r}")
    return value


def load_settings() -> Settings:
    return Settings(
        results_dir=pathlib.Path(os.getenv("HASHBENCH_RESULTS_DIR") or "results"),
        sysinfo=_choice("HASHBENCH_SYSINFO", "auto", SYSINFO_CHOICES),
        matrix_path=os.getenv("HASHBENCH_MATRIX") or None,
        log_level=_choice("HASHBENCH_LOG_LEVEL", "WARNING", LOG_LEVELS, upper=True),
    )
