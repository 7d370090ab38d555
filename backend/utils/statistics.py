"""
Closed-form statistics used by the forecasting, planning and routing services.

Everything is computed in numpy float64 with floating point errors silenced,
so degenerate input (zero variance, singular normal equations, empty series)
yields NaN/Infinity instead of raising. Callers treat those values as
"no signal"; the API layer serialises them as null.

Two deliberate approximations are kept throughout:
  * standard deviation is the population one (divide by n)
  * quartiles and median are read by direct index into the sorted data
"""
import math
from typing import Sequence

import numpy as np

_ERRSTATE = {"divide": "ignore", "invalid": "ignore", "over": "ignore"}


def _vector(values: Sequence[float]) -> np.ndarray:
    return np.asarray(values, dtype=np.float64)


def linear_regression(x: Sequence[float], y: Sequence[float]) -> dict:
    """Ordinary least squares fit of y on x.

    Returns {"slope", "intercept", "r2"}. Zero variance in x gives NaN.
    """
    xs, ys = _vector(x), _vector(y)
    n = np.float64(len(xs))
    with np.errstate(**_ERRSTATE):
        sum_x, sum_y = xs.sum(), ys.sum()
        sum_xy = (xs * ys).sum()
        sum_xx = (xs * xs).sum()

        slope = (n * sum_xy - sum_x * sum_y) / (n * sum_xx - sum_x * sum_x)
        intercept = (sum_y - slope * sum_x) / n

        y_mean = sum_y / n
        ss_res = ((ys - (slope * xs + intercept)) ** 2).sum()
        ss_tot = ((ys - y_mean) ** 2).sum()
        r2 = np.float64(1) - ss_res / ss_tot

    return {"slope": float(slope), "intercept": float(intercept), "r2": float(r2)}


def _solve_linear_system(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Gaussian elimination with partial pivoting, then back substitution.

    Singular systems are not detected.
    """
    n = a.shape[0]
    augmented = np.column_stack([a, b]).astype(np.float64)

    with np.errstate(**_ERRSTATE):
        for i in range(n):
            pivot = i
            for k in range(i + 1, n):
                if abs(augmented[k, i]) > abs(augmented[pivot, i]):
                    pivot = k
            if pivot != i:
                augmented[[i, pivot]] = augmented[[pivot, i]]

            for k in range(i + 1, n):
                factor = augmented[k, i] / augmented[i, i]
                augmented[k, i:] -= factor * augmented[i, i:]

        solution = np.zeros(n, dtype=np.float64)
        for i in range(n - 1, -1, -1):
            acc = augmented[i, n]
            for j in range(i + 1, n):
                acc -= augmented[i, j] * solution[j]
            solution[i] = acc / augmented[i, i]

    return solution


def predict_with_coefficients(features: Sequence[float], coefficients: Sequence[float]) -> float:
    """Dot product of an intercept-prefixed feature row with the coefficients"""
    with np.errstate(**_ERRSTATE):
        return float(np.dot(_vector(features), _vector(coefficients)))


def multiple_regression(x: Sequence[Sequence[float]], y: Sequence[float]) -> dict:
    """Multiple linear regression through the normal equations (XᵀX)β = Xᵀy.

    An intercept column of ones is prepended to ``x``, so the returned
    coefficient list starts with the intercept.
    """
    rows = np.asarray(x, dtype=np.float64)
    ys = _vector(y)
    design = np.column_stack([np.ones(rows.shape[0]), rows])

    with np.errstate(**_ERRSTATE):
        xtx = design.T @ design
        xty = design.T @ ys
        coefficients = _solve_linear_system(xtx, xty)

        predicted = design @ coefficients
        ss_res = ((ys - predicted) ** 2).sum()
        ss_tot = ((ys - ys.mean()) ** 2).sum()
        r2 = np.float64(1) - ss_res / ss_tot

    return {"coefficients": coefficients.tolist(), "r2": float(r2)}


def moving_average(data: Sequence[float], window: int) -> list[float]:
    """Trailing mean; the first ``window - 1`` points are passed through"""
    values = [float(v) for v in data]
    result = []
    for i, value in enumerate(values):
        if i < window - 1:
            result.append(value)
        else:
            result.append(math.fsum(values[i - window + 1:i + 1]) / window)
    return result


def exponential_smoothing(data: Sequence[float], alpha: float = 0.3) -> list[float]:
    if not data:
        return []
    result = [float(data[0])]
    for value in data[1:]:
        result.append(alpha * value + (1 - alpha) * result[-1])
    return result


def seasonal_decompose(data: Sequence[float], period: int) -> dict:
    """Split a series into moving-average trend, per-position seasonal mean and residual"""
    values = _vector(data)
    trend = _vector(moving_average(data, period))
    n = len(values)

    seasonal = np.zeros(min(n, period), dtype=np.float64)
    for i in range(n):
        seasonal[i % period] += values[i] - trend[i]

    with np.errstate(**_ERRSTATE):
        seasonal = seasonal / np.float64(n // period)
        residual = [
            values[i] - (0.0 if np.isnan(trend[i]) else trend[i]) - seasonal[i % period]
            for i in range(n)
        ]

    return {
        "trend": trend.tolist(),
        "seasonal": seasonal.tolist(),
        "residual": [float(r) for r in residual],
    }


def correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson correlation; 0 when either series has no variance"""
    xs, ys = _vector(x), _vector(y)
    n = np.float64(len(xs))
    with np.errstate(**_ERRSTATE):
        sum_x, sum_y = xs.sum(), ys.sum()
        numerator = n * (xs * ys).sum() - sum_x * sum_y
        denominator = np.sqrt(
            (n * (xs * xs).sum() - sum_x * sum_x) * (n * (ys * ys).sum() - sum_y * sum_y)
        )
        if denominator == 0:
            return 0.0
        return float(numerator / denominator)


def summary(data: Sequence[float]) -> dict:
    """Mean, population std, min/max and index-based median and quartiles"""
    values = _vector(data)
    n = len(values)
    if n == 0:
        return {
            "mean": math.nan, "median": math.nan, "std": math.nan,
            "min": math.inf, "max": -math.inf, "q1": math.nan, "q3": math.nan,
        }

    ordered = np.sort(values)
    mean = values.mean()
    std = np.sqrt(((values - mean) ** 2).sum() / n)

    return {
        "mean": float(mean),
        "median": float(ordered[n // 2]),
        "std": float(std),
        "min": float(values.min()),
        "max": float(values.max()),
        "q1": float(ordered[math.floor(n * 0.25)]),
        "q3": float(ordered[math.floor(n * 0.75)]),
    }


def detect_outliers(data: Sequence[float]) -> dict:
    """IQR rule with the 1.5 multiplier. Returns {"outliers", "indices"}."""
    stats = summary(data)
    iqr = stats["q3"] - stats["q1"]
    lower = stats["q1"] - 1.5 * iqr
    upper = stats["q3"] + 1.5 * iqr

    outliers, indices = [], []
    for index, value in enumerate(data):
        if value < lower or value > upper:
            outliers.append(value)
            indices.append(index)
    return {"outliers": outliers, "indices": indices}


def prediction_interval(residuals: Sequence[float], confidence: float = 0.95) -> dict:
    """Empirical interval read from the sorted residuals.

    Bounds falling outside the data come back as None.
    """
    ordered = sorted(float(r) for r in residuals)
    alpha = 1 - confidence
    lower_index = math.floor(alpha / 2 * len(ordered))
    upper_index = math.floor((1 - alpha / 2) * len(ordered))

    def _at(index: int):
        return ordered[index] if 0 <= index < len(ordered) else None

    return {"lower": _at(lower_index), "upper": _at(upper_index)}
