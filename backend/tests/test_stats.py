"""
Tests for grade_analytics/stats.py — calculate_statistics, calculate_percentile.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from grade_analytics.models import StatisticsSummary
from grade_analytics.stats import calculate_percentile, calculate_statistics, percentile_of_sorted


class TestCalculateStatistics:
    """Tests for calculate_statistics."""

    def test_basic_sample(self):
        s = calculate_statistics([5, 6, 7, 8, 9])
        assert s.count == 5
        assert s.sum == 35
        assert s.mean == pytest.approx(7.0)
        assert s.median == pytest.approx(7.0)
        assert s.variance == pytest.approx(2.5)
        assert s.std_deviation == pytest.approx(1.5811388, rel=1e-6)
        assert s.percentile_50 == pytest.approx(7.0)
        assert s.min == 5 and s.max == 9 and s.range == 4

    def test_empty_is_zero_summary(self):
        assert calculate_statistics([]) == StatisticsSummary()

    def test_single_value(self):
        s = calculate_statistics([7.5])
        assert s.variance == 0.0
        assert s.std_deviation == 0.0
        assert s.percentile_25 == 7.5
        assert s.percentile_90 == 7.5

    def test_median_even_count(self):
        assert calculate_statistics([1, 2, 3, 4]).median == pytest.approx(2.5)

    def test_mode_ties_sorted(self):
        assert calculate_statistics([8, 6, 6, 8, 7]).mode == (6.0, 8.0)

    def test_mode_empty_without_repeats(self):
        assert calculate_statistics([1, 2, 3]).mode == ()

    def test_percentiles_interpolate(self):
        s = calculate_statistics([1, 2, 3, 4])
        # index 0.75 → 1 + 0.75 * (2 - 1)
        assert s.percentile_25 == pytest.approx(1.75)
        assert s.percentile_75 == pytest.approx(3.25)
        assert s.percentile_90 == pytest.approx(3.7)
        assert s.iqr == pytest.approx(1.5)

    def test_percentiles_monotonic(self):
        s = calculate_statistics([3.2, 9.1, 4.4, 6.6, 7.0, 5.5, 8.8, 1.0])
        assert s.percentile_25 <= s.percentile_50 <= s.percentile_75 <= s.percentile_90

    def test_skewness_sign(self):
        assert calculate_statistics([1, 1, 1, 2, 10]).skewness > 0
        assert calculate_statistics([1, 9, 10, 10, 10]).skewness < 0

    def test_skewness_needs_three_values(self):
        assert calculate_statistics([4, 8]).skewness == 0.0

    def test_kurtosis_needs_four_values(self):
        assert calculate_statistics([4, 6, 8]).kurtosis == 0.0

    def test_known_moments(self):
        s = calculate_statistics([2, 4, 4, 4, 5, 5, 7, 9])
        assert s.skewness == pytest.approx(0.8184875533567997, rel=1e-9)
        assert s.kurtosis == pytest.approx(0.940625, rel=1e-9)

    def test_constant_sample_has_no_moments(self):
        s = calculate_statistics([7.1, 7.1, 7.1, 7.1, 7.1])
        assert s.skewness == 0.0
        assert s.kurtosis == 0.0
        assert s.mode == (7.1,)


class TestCalculatePercentile:
    """Tests for calculate_percentile."""

    def test_median(self):
        assert calculate_percentile([9, 5, 7], 50) == pytest.approx(7.0)

    def test_clamped(self):
        assert calculate_percentile([1, 2, 3], 150) == 3.0
        assert calculate_percentile([1, 2, 3], -10) == 1.0

    def test_empty(self):
        assert calculate_percentile([], 50) == 0.0

    def test_sorted_helper_empty(self):
        assert percentile_of_sorted([], 50) == 0.0
