from __future__ import annotations
"""Platform telemetry providers.

Each provider answers the same four questions (CPU reading, core count, load
average, process memory) in its own way. `select_system_info()` picks one at
startup; nothing else in the package branches on the operating system.

Every probe raises ResourceProbeUnavailable on failure instead of leaking
OSError or subprocess errors.
"""

import logging
import os
import pathlib
import platform
import subprocess
import sys
from typing import Callable, List, Sequence, Tuple

import psutil

from .errors import InvalidArgument, ResourceProbeUnavailable
from .sampler import CpuCounters, CpuRaw, DirectPercent, ProcessCpuTime

log = logging.getLogger(__name__)

ToolRunner = Callable[[Sequence[str]], str]


def _run_tool(cmd: Sequence[str]) -> str:
    try:
        return subprocess.check_output(
            list(cmd),
            stderr=subprocess.DEVNULL,
            text=True,
            timeout=5,
        ).strip()
    except (OSError, subprocess.SubprocessError) as exc:
        raise ResourceProbeUnavailable(f"{cmd[0]} failed: {exc}") from exc


def _parse_float(text: str, what: str) -> float:
    try:
        return float(text.strip().replace(",", "."))
    except ValueError as exc:
        raise ResourceProbeUnavailable(f"unparseable {what}: {text!r}") from exc


class _PsutilBase:
    """Memory, core count and load average through psutil."""
    name = "base"

    def __init__(self, pid: int | None = None) -> None:
        try:
            self._proc = psutil.Process(pid or os.getpid())
        except psutil.Error as exc:
            raise ResourceProbeUnavailable(f"cannot inspect process {pid or os.getpid()}: {exc}") from exc

    def memory(self) -> Tuple[int, int]:
        try:
            info = self._proc.memory_info()
        except psutil.Error as exc:
            raise ResourceProbeUnavailable(f"memory_info failed: {exc}") from exc
        rss = int(info.rss)
        peak = getattr(info, "peak_wset", None)
        if peak is None and sys.platform != "win32":
            import resource

            maxrss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
            # ru_maxrss is bytes on macOS, KiB elsewhere.
            peak = maxrss if sys.platform == "darwin" else maxrss * 1024
        return rss, max(rss, int(peak or 0))

    def core_count(self) -> int:
        count = psutil.cpu_count(logical=True)
        if not count:
            raise ResourceProbeUnavailable("psutil could not determine the core count")
        return int(count)

    def load_average(self) -> float:
        try:
            return float(psutil.getloadavg()[0])
        except (AttributeError, OSError) as exc:
            raise ResourceProbeUnavailable(f"load average unavailable: {exc}") from exc


class PsutilSystemInfo(_PsutilBase):
    """Process CPU time via psutil; reconciled per core."""
    name = "psutil"

    def cpu_snapshot(self) -> CpuRaw:
        try:
            times = self._proc.cpu_times()
        except psutil.Error as exc:
            raise ResourceProbeUnavailable(f"cpu_times failed: {exc}") from exc
        return ProcessCpuTime(user_seconds=float(times.user), system_seconds=float(times.system))


class ProcfsSystemInfo(_PsutilBase):
    """Linux: cumulative counters from /proc/stat, load from /proc/loadavg."""
    name = "procfs"

    def __init__(self, root: str | os.PathLike[str] = "/proc", pid: int | None = None) -> None:
        super().__init__(pid)
        self.root = pathlib.Path(root)

    def _read(self, name: str) -> str:
        try:
            return (self.root / name).read_text(encoding="utf-8", errors="ignore")
        except OSError as exc:
            raise ResourceProbeUnavailable(f"cannot read {self.root / name}: {exc}") from exc

    def cpu_snapshot(self) -> CpuRaw:
        for line in self._read("stat").splitlines():
            parts = line.split()
            if parts and parts[0] == "cpu":
                if len(parts) < 6:
                    raise ResourceProbeUnavailable(f"short cpu line in /proc/stat: {line!r}")
                user, nice, system, idle, iowait = (_parse_float(p, "cpu counter") for p in parts[1:6])
                return CpuCounters(user=user, nice=nice, system=system, idle=idle, iowait=iowait)
        raise ResourceProbeUnavailable("no aggregate cpu line in /proc/stat")

    def core_count(self) -> int:
        try:
            lines = self._read("stat").splitlines()
        except ResourceProbeUnavailable:
            lines = []
        count = sum(1 for line in lines if line.startswith("cpu") and line[3:4].isdigit())
        if count:
            return count
        return int(_parse_float(_run_tool(["nproc"]), "nproc output"))

    def load_average(self) -> float:
        fields = self._read("loadavg").split()
        if not fields:
            raise ResourceProbeUnavailable("empty /proc/loadavg")
        return _parse_float(fields[0], "load average")


class MacToolSystemInfo(_PsutilBase):
    """macOS: `ps` reports the process CPU percentage directly; `sysctl` the rest."""
    name = "macos"

    def __init__(self, runner: ToolRunner = _run_tool, pid: int | None = None) -> None:
        super().__init__(pid)
        self._runner = runner
        self._pid = pid or os.getpid()

    def cpu_snapshot(self) -> CpuRaw:
        out = self._runner(["ps", "-o", "%cpu=", "-p", str(self._pid)])
        return DirectPercent(_parse_float(out, "ps %cpu"))

    def core_count(self) -> int:
        return int(_parse_float(self._runner(["sysctl", "-n", "hw.ncpu"]), "hw.ncpu"))

    def load_average(self) -> float:
        # e.g. "{ 1.52 1.61 1.70 }"
        fields = self._runner(["sysctl", "-n", "vm.loadavg"]).strip("{} \n").split()
        if not fields:
            raise ResourceProbeUnavailable("empty vm.loadavg")
        return _parse_float(fields[0], "vm.loadavg")


class WindowsToolSystemInfo(_PsutilBase):
    """Windows: processor LoadPercentage via PowerShell CIM, then WMIC."""
    name = "windows"

    def __init__(self, runner: ToolRunner = _run_tool, pid: int | None = None) -> None:
        super().__init__(pid)
        self._runner = runner

    def cpu_snapshot(self) -> CpuRaw:
        try:
            out = self._runner([
                "powershell",
                "-NoProfile",
                "-Command",
                "(Get-CimInstance Win32_Processor | Measure-Object -Property LoadPercentage -Average).Average",
            ])
            if out:
                return DirectPercent(_parse_float(out, "LoadPercentage"))
        except ResourceProbeUnavailable as exc:
            log.debug("powershell probe failed: %s", exc)
        out = self._runner(["wmic", "cpu", "get", "LoadPercentage"])
        # Header line 'LoadPercentage' followed by one value per socket
        values: List[float] = [
            _parse_float(line, "LoadPercentage")
            for line in out.splitlines()[1:]
            if line.strip()
        ]
        if not values:
            raise ResourceProbeUnavailable("wmic returned no LoadPercentage values")
        return DirectPercent(sum(values) / len(values))

    def core_count(self) -> int:
        env_val = os.environ.get("NUMBER_OF_PROCESSORS")
        if env_val and env_val.isdigit():
            return int(env_val)
        return super().core_count()

    def load_average(self) -> float:
        raise ResourceProbeUnavailable("Windows has no load average")


class NullSystemInfo:
    """Last resort when no provider can start; every probe is unavailable."""
    name = "null"

    def cpu_snapshot(self) -> CpuRaw:
        raise ResourceProbeUnavailable("no system info provider")

    def core_count(self) -> int:
        raise ResourceProbeUnavailable("no system info provider")

    def load_average(self) -> float:
        raise ResourceProbeUnavailable("no system info provider")

    def memory(self) -> Tuple[int, int]:
        raise ResourceProbeUnavailable("no system info provider")


_PROVIDERS = {
    "psutil": PsutilSystemInfo,
    "procfs": ProcfsSystemInfo,
    "macos": MacToolSystemInfo,
    "windows": WindowsToolSystemInfo,
}


def select_system_info(name: str | None = None):
    """Build the provider named `name` (or HASHBENCH_SYSINFO); 'auto' picks by OS.

    A provider that cannot start falls back to psutil, then to NullSystemInfo.
    """
    if name is None:
        from .config import load_settings

        name = load_settings().sysinfo
    name = name.lower()
    if name == "auto":
        system = platform.system()
        if system == "Linux" and pathlib.Path("/proc/stat").exists():
            name = "procfs"
        elif system == "Darwin":
            name = "macos"
        elif system == "Windows":
            name = "windows"
        else:
            name = "psutil"
    try:
        provider_cls = _PROVIDERS[name]
    except KeyError:
        raise InvalidArgument(
            f"Unknown system info provider '{name}' (choose from auto, {', '.join(_PROVIDERS)})"
        ) from None
    for cls in dict.fromkeys((provider_cls, PsutilSystemInfo)):
        try:
            provider = cls()
        except ResourceProbeUnavailable as exc:
            log.warning("%s system info provider unavailable: %s", cls.name, exc)
            continue
        log.debug("using %s system info provider", provider.name)
        return provider
    return NullSystemInfo()
