from __future__ import annotations

"""Summary statistics over raw sample series.

The standard deviation is the population form: divide by n, no Bessel
correction. Exported stddev columns must keep this divisor.
"""

import statistics
from dataclasses import dataclass
from typing import Iterable

from .errors import EmptySeries


@dataclass(frozen=True)
class SeriesSummary:
    count: int
    mean: float
    min: float
    max: float
    stddev: float


def summarize(series: Iterable[float]) -> SeriesSummary:
    values = [float(x) for x in series]
    if not values:
        raise EmptySeries("cannot summarize an empty series")
    low = min(values)
    high = max(values)
    # Float rounding must not push the mean outside [min, max].
    mean = min(max(statistics.mean(values), low), high)
    return SeriesSummary(
        count=len(values),
        mean=mean,
        min=low,
        max=high,
        stddev=statistics.pstdev(values),
    )
