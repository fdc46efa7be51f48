"""Statistics primitives shared by every analytics engine.

All helpers accept plain sequences of numbers and never raise for empty or
degenerate input: they fall back to a neutral ``0.0`` instead of producing
``NaN`` or dividing by zero.
"""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from statistics import fmean, pstdev


Number = float | int


@dataclass(frozen=True)
class LinearFit:
    slope: float
    intercept: float
    r_squared: float

    def predict(self, x: float) -> float:
        return self.slope * x + self.intercept


def mean(values: Sequence[Number]) -> float:
    if not values:
        return 0.0
    return fmean(values)


def std_dev(values: Sequence[Number], mean_value: float | None = None) -> float:
    """Population standard deviation (divides by N, not N - 1)."""
    if not values:
        return 0.0
    mu = mean(values) if mean_value is None else mean_value
    return pstdev([float(value) for value in values], mu=float(mu))


def z_score(value: Number, mean_value: float, std: float) -> float:
    if std == 0:
        return 0.0
    return (value - mean_value) / std


def coefficient_of_variation(values: Sequence[Number]) -> float:
    """stdDev / mean * 100; 0 when the mean is not positive."""
    mu = mean(values)
    if mu <= 0:
        return 0.0
    return std_dev(values, mu) / mu * 100


def _least_squares(values: Sequence[Number]) -> tuple[float, float] | None:
    n = len(values)
    x_sum = float(sum(range(n)))
    y_sum = float(sum(values))
    xx_sum = float(sum(index * index for index in range(n)))
    xy_sum = float(sum(index * float(value) for index, value in enumerate(values)))
    denom = n * xx_sum - x_sum * x_sum
    if denom == 0:
        return None
    slope = (n * xy_sum - x_sum * y_sum) / denom
    intercept = (y_sum - slope * x_sum) / n
    return slope, intercept


def linear_trend(values: Sequence[Number]) -> float:
    """OLS slope over index positions ``0..n-1``."""
    if len(values) < 2:
        return 0.0
    solved = _least_squares(values)
    if solved is None:
        return 0.0
    return solved[0]


def linear_regression(values: Sequence[Number]) -> LinearFit:
    """Fit ``y = slope * index + intercept`` and report R² of the fit.

    A flat series is explained perfectly by its own mean, so R² is 1 when the
    total variance is zero.
    """
    n = len(values)
    if n == 0:
        return LinearFit(slope=0.0, intercept=0.0, r_squared=0.0)
    if n == 1:
        return LinearFit(slope=0.0, intercept=float(values[0]), r_squared=1.0)
    solved = _least_squares(values)
    if solved is None:
        return LinearFit(slope=0.0, intercept=mean(values), r_squared=0.0)
    slope, intercept = solved
    y_mean = mean(values)
    ss_tot = sum((float(value) - y_mean) ** 2 for value in values)
    ss_res = sum(
        (float(value) - (slope * index + intercept)) ** 2 for index, value in enumerate(values)
    )
    if ss_tot == 0:
        r_squared = 1.0
    else:
        r_squared = max(0.0, 1 - ss_res / ss_tot)
    return LinearFit(slope=slope, intercept=intercept, r_squared=r_squared)
