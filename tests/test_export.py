from __future__ import annotations

import csv
import datetime as dt
import json
from pathlib import Path

import pytest

from hashbench.config import load_settings
from hashbench.engine import RESULT_FIELDS, RunResult
from hashbench.errors import InvalidArgument
from hashbench.export import export_rows, render, resolve_path, timestamped_name


def _result(label: str = "default", hash_ms: float = 1.23456) -> RunResult:
    return RunResult(
        algorithm="bcrypt",
        configuration=label,
        parameters={"rounds": 10},
        avg_hash_time_ms=hash_ms,
        avg_verify_time_ms=2.0,
        avg_cpu_percent=12.3456,
        avg_memory_usage_kb=-0.5,
        avg_hash_length=60.0,
        throughput_hash_per_sec=810.0,
        throughput_verify_per_sec=500.0,
    )


def test_csv_export_keeps_field_order(tmp_path: Path) -> None:
    rows = [_result().to_row(), _result("variation_1", 2.0).to_row()]
    path = export_rows(rows, "out.csv", "csv", RESULT_FIELDS)
    assert path == tmp_path / "results" / "out.csv"
    with path.open(newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        assert tuple(reader.fieldnames) == RESULT_FIELDS
        parsed = list(reader)
    assert parsed[0]["avg_hash_time_ms"] == "1.23"
    assert parsed[0]["parameters"] == '{"rounds": 10}'
    # negative memory deltas are reported as measured
    assert parsed[0]["avg_memory_usage_kb"] == "-0.5"
    assert parsed[1]["configuration"] == "variation_1"


def test_json_export_round_values(tmp_path: Path) -> None:
    path = export_rows([_result().to_row()], tmp_path / "abs.json", "json")
    data = json.loads(path.read_text(encoding="utf-8"))
    assert list(data[0]) == list(RESULT_FIELDS)
    assert data[0]["avg_cpu_usage_percent"] == 12.35
    assert data[0]["avg_hash_length"] == 60


def test_unknown_format_rejected() -> None:
    with pytest.raises(InvalidArgument):
        export_rows([{"a": 1}], "x.xml", "xml")
    with pytest.raises(InvalidArgument):
        render([{"a": 1}], "yaml")


def test_empty_rows_need_field_names() -> None:
    assert render([], "csv", ("attempt", "time_ms")).strip() == "attempt,time_ms"
    with pytest.raises(InvalidArgument):
        render([], "csv")


def test_timestamped_name_format() -> None:
    when = dt.datetime(2024, 3, 9, 7, 5, 1)
    assert timestamped_name("hash_benchmark_results", "csv", when) == "hash_benchmark_results_2024-03-09_07-05-01.csv"


def test_resolve_path_normalises_backslashes(tmp_path: Path) -> None:
    assert resolve_path("sub\\file.csv") == tmp_path / "results" / "sub" / "file.csv"


def test_settings_defaults_and_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("HASHBENCH_RESULTS_DIR")
    settings = load_settings()
    assert settings.results_dir == Path("results")
    assert settings.sysinfo == "auto"
    assert settings.matrix_path is None
    assert settings.log_level == "WARNING"

    monkeypatch.setenv("HASHBENCH_SYSINFO", "PsUtil")
    monkeypatch.setenv("HASHBENCH_LOG_LEVEL", "debug")
    monkeypatch.setenv("HASHBENCH_MATRIX", "m.yaml")
    settings = load_settings()
    assert (settings.sysinfo, settings.log_level, settings.matrix_path) == ("psutil", "DEBUG", "m.yaml")


@pytest.mark.parametrize("var, value", [("HASHBENCH_SYSINFO", "beos"), ("HASHBENCH_LOG_LEVEL", "chatty")])
def test_settings_reject_unknown_choices(monkeypatch: pytest.MonkeyPatch, var: str, value: str) -> None:
    monkeypatch.setenv(var, value)
    with pytest.raises(InvalidArgument):
        load_settings()
