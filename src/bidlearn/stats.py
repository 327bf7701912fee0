"""Numeric primitives shared by the seasonal and contractor engines.

Every function accepts plain sequences and returns plain floats/lists.  Empty
or degenerate input yields a neutral value (``0.0`` or the input itself)
rather than raising or producing NaN.
"""

from __future__ import annotations

from typing import List, Sequence

import numpy as np
import pandas as pd


def _as_array(values: Sequence[float]) -> np.ndarray:
    return np.asarray(list(values), dtype=float)


def mean(values: Sequence[float]) -> float:
    arr = _as_array(values)
    if arr.size == 0:
        return 0.0
    return float(arr.mean())


def standard_deviation(values: Sequence[float]) -> float:
    """Population standard deviation (``ddof=0``)."""

    arr = _as_array(values)
    if arr.size == 0:
        return 0.0
    return float(arr.std(ddof=0))


def _centered_pair(x: Sequence[float], y: Sequence[float]) -> tuple[np.ndarray, np.ndarray] | None:
    xs = _as_array(x)
    ys = _as_array(y)
    if xs.size == 0 or xs.size != ys.size:
        return None
    return xs - xs.mean(), ys - ys.mean()


def correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson correlation; ``0.0`` when lengths differ or a series is constant."""

    pair = _centered_pair(x, y)
    if pair is None:
        return 0.0
    dx, dy = pair
    denominator = float(np.sqrt(np.sum(dx * dx) * np.sum(dy * dy)))
    if denominator == 0:
        return 0.0
    return float(np.sum(dx * dy) / denominator)


def linear_regression_slope(x: Sequence[float], y: Sequence[float]) -> float:
    """Ordinary least-squares slope of ``y`` on ``x``."""

    pair = _centered_pair(x, y)
    if pair is None:
        return 0.0
    dx, dy = pair
    denominator = float(np.sum(dx * dx))
    if denominator == 0:
        return 0.0
    return float(np.sum(dx * dy) / denominator)


def moving_average(values: Sequence[float], window: int) -> List[float]:
    """Trailing moving average; shorter inputs come back unchanged."""

    items = [float(v) for v in values]
    if window < 1 or len(items) < window:
        return items
    kernel = np.ones(window, dtype=float) / window
    return [float(v) for v in np.convolve(items, kernel, mode="valid")]


def rolling_win_rate(outcomes: Sequence[bool], window: int) -> List[float]:
    """Win rate over the trailing ``window`` outcomes at each position.

    The first ``window - 1`` points average whatever history exists so the
    series has one value per outcome.
    """

    if len(outcomes) == 0:
        return []
    series = pd.Series([1.0 if won else 0.0 for won in outcomes], dtype=float)
    return [float(v) for v in series.rolling(max(1, int(window)), min_periods=1).mean()]


def clamp(value: float, lower: float, upper: float) -> float:
    return float(max(lower, min(upper, value)))


__all__ = [
    "clamp",
    "correlation",
    "linear_regression_slope",
    "mean",
    "moving_average",
    "rolling_win_rate",
    "standard_deviation",
]
