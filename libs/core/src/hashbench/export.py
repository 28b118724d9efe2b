from __future__ import annotations
"""Serialize result rows to CSV or JSON.

Rows are ordered field -> value mappings (RunResult.to_row(), timing rows,
resource rows). The column order is taken from `fields` when given, otherwise
from the first row.
"""

import csv
import datetime as _dt
import io
import json
import logging
import pathlib
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, TextIO

from .config import load_settings
from .errors import InvalidArgument

log = logging.getLogger(__name__)

EXPORT_FORMATS = ("csv", "json")


def _columns(rows: Sequence[Mapping[str, Any]], fields: Optional[Sequence[str]]) -> List[str]:
    if fields:
        return list(fields)
    if not rows:
        raise InvalidArgument("no rows to export and no field names given")
    return list(rows[0].keys())


def write_csv(rows: Sequence[Mapping[str, Any]], stream: TextIO, fields: Optional[Sequence[str]] = None) -> None:
    writer = csv.DictWriter(stream, fieldnames=_columns(rows, fields), extrasaction="raise")
    writer.writeheader()
    for row in rows:
        writer.writerow(row)


def write_json(rows: Sequence[Mapping[str, Any]], stream: TextIO) -> None:
    json.dump([dict(r) for r in rows], stream, indent=2)


def render(rows: Sequence[Mapping[str, Any]], fmt: str, fields: Optional[Sequence[str]] = None) -> str:
    buf = io.StringIO()
    if fmt == "csv":
        write_csv(rows, buf, fields)
    elif fmt == "json":
        write_json(rows, buf)
    else:
        raise InvalidArgument(f"Unsupported export format '{fmt}' (use csv or json)")
    return buf.getvalue()


def timestamped_name(prefix: str, fmt: str, now: Optional[_dt.datetime] = None) -> str:
    stamp = (now or _dt.datetime.now()).strftime("%Y-%m-%d_%H-%M-%S")
    return f"{prefix}_{stamp}.{fmt}"


def resolve_path(export_path: str | pathlib.Path) -> pathlib.Path:
    """Relative paths land under the configured results directory."""
    raw = str(export_path)
    # Normalize Windows-style separators on POSIX if users pass e.g. "results\file.csv"
    if "\\" in raw and ":" not in raw:
        raw = raw.replace("\\", "/")
    path = pathlib.Path(raw)
    if not path.is_absolute():
        path = load_settings().results_dir / path
    return path


def export_rows(
    rows: Iterable[Mapping[str, Any]],
    export_path: str | pathlib.Path,
    fmt: str = "csv",
    fields: Optional[Sequence[str]] = None,
) -> pathlib.Path:
    if fmt not in EXPORT_FORMATS:
        raise InvalidArgument(f"Unsupported export format '{fmt}' (use csv or json)")
    materialized: List[Dict[str, Any]] = [dict(r) for r in rows]
    content = render(materialized, fmt, fields)
    path = resolve_path(export_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as f:
        f.write(content)
    log.info("exported %d rows to %s", len(materialized), path)
    return path
