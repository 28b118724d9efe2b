from __future__ import annotations

import math
import random

import pytest

from hashbench.errors import EmptySeries
from hashbench.stats import summarize


def test_single_value_series() -> None:
    s = summarize([5.0])
    assert (s.mean, s.min, s.max, s.stddev) == (5.0, 5.0, 5.0, 0.0)
    assert s.count == 1


def test_empty_series_raises() -> None:
    with pytest.raises(EmptySeries):
        summarize([])
    # EmptySeries is also a ValueError so generic callers can catch it
    with pytest.raises(ValueError):
        summarize(iter(()))


def test_population_stddev_divisor() -> None:
    s = summarize([2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0])
    assert s.mean == 5.0
    # population stddev is exactly 2.0 here; the sample form would be ~2.138
    assert math.isclose(s.stddev, 2.0)


@pytest.mark.parametrize("seed", range(20))
def test_mean_between_min_and_max(seed: int) -> None:
    rng = random.Random(seed)
    series = [rng.uniform(-1e6, 1e6) for _ in range(rng.randint(1, 50))]
    s = summarize(series)
    assert s.min <= s.mean <= s.max
    assert s.stddev >= 0.0


def test_constant_series_has_zero_spread() -> None:
    s = summarize([0.1] * 7)
    assert s.min <= s.mean <= s.max
    assert s.stddev == pytest.approx(0.0, abs=1e-12)
