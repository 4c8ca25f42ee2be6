from __future__ import annotations

import math

import pytest

from telemetry_bench.testing.statistics import compute_statistics, t_value


def test_empty_sample_is_absent() -> None:
    assert compute_statistics([]) is None


def test_single_sample_has_zero_spread() -> None:
    stats = compute_statistics([12.5])
    assert stats is not None
    assert stats.count == 1
    assert stats.mean == stats.median == stats.min == stats.max == 12.5
    assert stats.stddev == 0.0
    assert stats.ci_lower == stats.ci_upper == 12.5


def test_small_sample_uses_t_two() -> None:
    durations = [10.0, 12.0, 14.0, 16.0]
    stats = compute_statistics(durations)
    assert stats is not None
    assert stats.mean == pytest.approx(13.0)
    assert stats.median == pytest.approx(13.0)
    # sample stddev, n - 1 denominator
    assert stats.stddev == pytest.approx(math.sqrt(20 / 3))
    margin = 2.0 * stats.stddev / 2.0
    assert stats.ci_lower == pytest.approx(13.0 - margin)
    assert stats.ci_upper == pytest.approx(13.0 + margin)


def test_large_sample_uses_normal_quantile() -> None:
    durations = [float(i % 7) for i in range(31)]
    stats = compute_statistics(durations)
    assert stats is not None
    margin = 1.96 * stats.stddev / math.sqrt(31)
    assert stats.ci_upper - stats.mean == pytest.approx(margin)


@pytest.mark.parametrize(("n", "expected"), [(1, 2.0), (30, 2.0), (31, 1.96), (500, 1.96)])
def test_t_value_threshold(n: int, expected: float) -> None:
    assert t_value(n) == expected


def test_lower_bound_is_not_clamped() -> None:
    stats = compute_statistics([0.1, 10.0])
    assert stats is not None
    assert stats.ci_lower < 0


def test_to_dict_rounds_floats() -> None:
    stats = compute_statistics([1.23456, 2.34567])
    assert stats is not None
    payload = stats.to_dict(decimals=2)
    assert payload["count"] == 2
    assert payload["mean"] == round(stats.mean, 2)
