"""
Tests for the closed-form statistics toolkit
"""
import math

import pytest

from backend.utils import statistics


class TestLinearRegression:

    def test_recovers_exact_line(self):
        x = [0, 1, 2, 3, 4, 5]
        y = [2 * v + 3 for v in x]
        fit = statistics.linear_regression(x, y)
        assert fit["slope"] == pytest.approx(2)
        assert fit["intercept"] == pytest.approx(3)
        assert fit["r2"] == pytest.approx(1)

    def test_constant_x_gives_nan(self):
        fit = statistics.linear_regression([1, 1, 1], [1, 2, 3])
        assert math.isnan(fit["slope"])


class TestMultipleRegression:

    def test_recovers_plane(self):
        x = [[1, 0], [0, 1], [1, 1], [2, 1], [1, 3], [3, 2]]
        y = [4 + 2 * a - b for a, b in x]
        fit = statistics.multiple_regression(x, y)
        intercept, b1, b2 = fit["coefficients"]
        assert intercept == pytest.approx(4)
        assert b1 == pytest.approx(2)
        assert b2 == pytest.approx(-1)
        assert fit["r2"] == pytest.approx(1)

    def test_prediction_uses_intercept_first(self):
        assert statistics.predict_with_coefficients([1, 2, 3], [10, 1, 1]) == 15


class TestSeries:

    def test_moving_average_passes_through_warmup(self):
        assert statistics.moving_average([1, 2, 3, 4], 3) == [1, 2, 2, 3]

    def test_exponential_smoothing(self):
        result = statistics.exponential_smoothing([10, 20], alpha=0.5)
        assert result == [10, 15]

    def test_exponential_smoothing_empty(self):
        assert statistics.exponential_smoothing([]) == []

    def test_seasonal_decompose_shapes(self):
        data = [1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12, 13, 14]
        parts = statistics.seasonal_decompose(data, 7)
        assert len(parts["trend"]) == 14
        assert len(parts["seasonal"]) == 7
        assert len(parts["residual"]) == 14


class TestCorrelation:

    def test_symmetric_and_bounded(self):
        x = [1, 3, 2, 5, 4]
        y = [2, 1, 4, 3, 6]
        r = statistics.correlation(x, y)
        assert r == pytest.approx(statistics.correlation(y, x))
        assert -1 <= r <= 1

    def test_perfect_negative(self):
        assert statistics.correlation([1, 2, 3], [3, 2, 1]) == pytest.approx(-1)

    def test_zero_variance_is_zero(self):
        assert statistics.correlation([1, 1, 1], [1, 2, 3]) == 0


class TestSummary:

    def test_single_value(self):
        stats = statistics.summary([7])
        assert stats["mean"] == stats["median"] == stats["min"] == stats["max"] == 7
        assert stats["std"] == 0

    def test_population_std_and_index_quartiles(self):
        stats = statistics.summary([4, 1, 3, 2])
        assert stats["mean"] == 2.5
        assert stats["std"] == pytest.approx(math.sqrt(1.25))
        # direct index into the sorted data, no interpolation
        assert stats["median"] == 3
        assert stats["q1"] == 2
        assert stats["q3"] == 4

    def test_empty(self):
        stats = statistics.summary([])
        assert math.isnan(stats["mean"])
        assert stats["min"] == math.inf
        assert stats["max"] == -math.inf


class TestOutliersAndIntervals:

    def test_detect_outliers(self):
        result = statistics.detect_outliers([10, 11, 12, 11, 10, 12, 95])
        assert result["outliers"] == [95]
        assert result["indices"] == [6]

    def test_prediction_interval_bounds(self):
        residuals = list(range(-10, 10))
        interval = statistics.prediction_interval(residuals, confidence=0.5)
        assert interval["lower"] == -5
        assert interval["upper"] == 5

    def test_prediction_interval_empty(self):
        assert statistics.prediction_interval([]) == {"lower": None, "upper": None}
