"""
Utility functions for series handling and small numeric helpers.

Contains input coercion, ordinary least squares line fitting and
history-length assessment shared by the forecasting modules.
"""

import numpy as np
import pandas as pd


def to_float_array(series):
    """
    Coerce a numeric sequence into a 1-D float array.

    Args:
        series: list, tuple, numpy array or pandas Series. A Series index is
            ignored; position is time.

    Returns:
        numpy.ndarray of float64 (a fresh copy, the input is never modified)
    """
    if isinstance(series, pd.Series):
        values = series.to_numpy(dtype=float, copy=True)
    elif series is None:
        values = np.array([], dtype=float)
    else:
        values = np.array(series, dtype=float, copy=True)
    return values.ravel()


def to_float_list(values):
    """Convert an array-like into a list of plain Python floats."""
    return [float(v) for v in np.asarray(values, dtype=float).ravel()]


def linear_fit(values):
    """
    Ordinary least squares line of value against index.

    Returns:
        tuple: (slope, intercept) where the line is ``intercept + slope * i``.
        Fewer than two points give a zero slope.
    """
    y = np.asarray(values, dtype=float)
    n = y.size
    if n == 0:
        return 0.0, 0.0
    if n < 2:
        return 0.0, float(y[0])

    x = np.arange(n, dtype=float)
    x_mean = x.mean()
    y_mean = y.mean()
    # Centered form keeps a constant series at an exact zero slope
    slope = float(np.sum((x - x_mean) * (y - y_mean)) / np.sum((x - x_mean) ** 2))
    intercept = float(y_mean - slope * x_mean)
    return slope, intercept


def population_variance(values):
    """Population variance (ddof=0); 0.0 for an empty input."""
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return 0.0
    return float(np.var(arr))


def growth_rates(values):
    """Period-over-period growth rates, skipping steps from a non-positive base."""
    arr = np.asarray(values, dtype=float)
    if arr.size < 2:
        return np.array([], dtype=float)
    prev = arr[:-1]
    curr = arr[1:]
    mask = prev > 0
    return curr[mask] / prev[mask] - 1


def assess_history_length(n_periods):
    """Assess how much history is available for forecasting monthly data."""
    if n_periods < 12:
        return "insufficient"
    elif n_periods < 24:
        return "limited"
    elif n_periods < 36:
        return "good"
    else:
        return "excellent"
