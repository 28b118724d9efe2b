from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Sequence

import psutil
import pytest

from hashbench import sysinfo
from hashbench.errors import InvalidArgument, ResourceProbeUnavailable
from hashbench.sampler import CpuCounters, DirectPercent, ProcessCpuTime, ResourceSampler
from hashbench.sysinfo import (
    MacToolSystemInfo,
    NullSystemInfo,
    ProcfsSystemInfo,
    PsutilSystemInfo,
    WindowsToolSystemInfo,
    select_system_info,
)

from conftest import FakeClock


class ScriptedRunner:
    """Canned output keyed by command prefix; unknown commands fail like a missing tool."""

    def __init__(self, outputs: Dict[str, str]) -> None:
        self.outputs = outputs
        self.calls: List[List[str]] = []

    def __call__(self, cmd: Sequence[str]) -> str:
        self.calls.append(list(cmd))
        joined = " ".join(cmd)
        for prefix, out in self.outputs.items():
            if joined.startswith(prefix):
                return out
        raise ResourceProbeUnavailable(f"{cmd[0]} not available")


def _proc(tmp_path: Path, stat: str | None = None, loadavg: str | None = None) -> Path:
    if stat is not None:
        (tmp_path / "stat").write_text(stat, encoding="utf-8")
    if loadavg is not None:
        (tmp_path / "loadavg").write_text(loadavg, encoding="utf-8")
    return tmp_path


def test_procfs_reads_aggregate_counters_and_cores(tmp_path: Path) -> None:
    root = _proc(
        tmp_path,
        stat=(
            "cpu  100 5 50 800 20 0 3 0 0 0\n"
            "cpu0 50 2 25 400 10 0 1 0 0 0\n"
            "cpu1 50 3 25 400 10 0 2 0 0 0\n"
            "intr 12345\n"
        ),
        loadavg="0.75 0.50 0.25 1/123 4567\n",
    )
    provider = ProcfsSystemInfo(root=root)
    assert provider.cpu_snapshot() == CpuCounters(user=100, nice=5, system=50, idle=800, iowait=20)
    assert provider.core_count() == 2
    assert provider.load_average() == pytest.approx(0.75)


def test_procfs_missing_files_are_unavailable(tmp_path: Path) -> None:
    provider = ProcfsSystemInfo(root=tmp_path)
    with pytest.raises(ResourceProbeUnavailable):
        provider.cpu_snapshot()
    with pytest.raises(ResourceProbeUnavailable):
        provider.load_average()


def test_procfs_rejects_short_cpu_line(tmp_path: Path) -> None:
    provider = ProcfsSystemInfo(root=_proc(tmp_path, stat="cpu 1 2 3\n"))
    with pytest.raises(ResourceProbeUnavailable):
        provider.cpu_snapshot()


def test_mac_tools_parse_ps_and_sysctl() -> None:
    runner = ScriptedRunner({
        "ps -o": " 12.5\n",
        "sysctl -n hw.ncpu": "8",
        "sysctl -n vm.loadavg": "{ 1.52 1.61 1.70 }",
    })
    provider = MacToolSystemInfo(runner=runner)
    assert provider.cpu_snapshot() == DirectPercent(12.5)
    assert provider.core_count() == 8
    assert provider.load_average() == pytest.approx(1.52)


def test_mac_tool_failure_is_unavailable() -> None:
    provider = MacToolSystemInfo(runner=ScriptedRunner({}))
    with pytest.raises(ResourceProbeUnavailable):
        provider.cpu_snapshot()


def test_windows_prefers_powershell() -> None:
    runner = ScriptedRunner({"powershell -NoProfile": "37"})
    provider = WindowsToolSystemInfo(runner=runner)
    assert provider.cpu_snapshot() == DirectPercent(37.0)
    assert [c[0] for c in runner.calls] == ["powershell"]


def test_windows_falls_back_to_wmic_and_averages_sockets() -> None:
    runner = ScriptedRunner({"wmic cpu": "LoadPercentage\n20\n40\n\n"})
    provider = WindowsToolSystemInfo(runner=runner)
    assert provider.cpu_snapshot() == DirectPercent(30.0)
    assert [c[0] for c in runner.calls] == ["powershell", "wmic"]


def test_windows_core_count_and_load(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NUMBER_OF_PROCESSORS", "6")
    provider = WindowsToolSystemInfo(runner=ScriptedRunner({}))
    assert provider.core_count() == 6
    with pytest.raises(ResourceProbeUnavailable):
        provider.load_average()


def test_psutil_provider_reports_process_time_and_memory() -> None:
    provider = PsutilSystemInfo()
    cpu = provider.cpu_snapshot()
    assert isinstance(cpu, ProcessCpuTime)
    assert cpu.total >= 0.0
    rss, peak = provider.memory()
    assert rss > 0
    assert peak >= rss
    assert provider.core_count() >= 1


@pytest.mark.parametrize("name, cls", [("psutil", PsutilSystemInfo), ("procfs", ProcfsSystemInfo)])
def test_select_by_name(name: str, cls: type) -> None:
    assert isinstance(select_system_info(name), cls)


def test_select_auto_follows_platform(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(sysinfo.platform, "system", lambda: "Plan9")
    assert isinstance(select_system_info("auto"), PsutilSystemInfo)


def test_select_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HASHBENCH_SYSINFO", "psutil")
    assert isinstance(select_system_info(), PsutilSystemInfo)


def test_select_unknown_provider() -> None:
    with pytest.raises(InvalidArgument):
        select_system_info("solaris")


def test_run_tool_wraps_missing_binary() -> None:
    with pytest.raises(ResourceProbeUnavailable):
        sysinfo._run_tool(["definitely-not-a-real-binary-hashbench"])


def _process_gone(monkeypatch: pytest.MonkeyPatch) -> None:
    def _raise(pid=None):
        raise psutil.NoSuchProcess(pid or 1)

    monkeypatch.setattr(sysinfo.psutil, "Process", _raise)


def test_provider_without_process_handle_is_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    _process_gone(monkeypatch)
    with pytest.raises(ResourceProbeUnavailable, match="cannot inspect process"):
        PsutilSystemInfo()


def test_select_falls_back_to_null_provider(monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture) -> None:
    _process_gone(monkeypatch)
    with caplog.at_level(logging.WARNING, logger="hashbench.sysinfo"):
        provider = select_system_info("procfs")
    assert isinstance(provider, NullSystemInfo)
    assert "procfs system info provider unavailable" in caplog.text
    assert "psutil system info provider unavailable" in caplog.text


def test_null_provider_samples_as_unavailable() -> None:
    snap = ResourceSampler(NullSystemInfo(), clock=FakeClock()).sample()
    assert snap.cpu_raw is None
    assert (snap.memory_bytes, snap.peak_memory_bytes) == (0, 0)
    with pytest.raises(ResourceProbeUnavailable):
        NullSystemInfo().load_average()
