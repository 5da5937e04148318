"""
Trend and seasonality decomposition.

Changepoint detection by comparing regression slopes of adjacent windows,
a continuous piecewise-linear trend through those changepoints, and a
Fourier-series seasonal component.
"""

from dataclasses import dataclass

import numpy as np

from .utils import linear_fit, to_float_array, to_float_list

MIN_CHANGEPOINT_HISTORY = 10

# Relative slope change that marks a changepoint
SLOPE_CHANGE_THRESHOLD = 0.1


@dataclass(frozen=True)
class Decomposition:
    """In-sample components of a series, aligned with the history."""
    trend: list
    seasonal: list
    residuals: list
    changepoints: list


def detect_changepoints(series, n_changepoints: int = 25):
    """
    Detect changepoints by comparing linear trends before and after each candidate.

    Candidates are spaced one window apart, where the window is
    ``n // (n_changepoints + 1)``. A candidate becomes a changepoint when the
    slope of the following window differs from the slope of the preceding
    window by more than 10% of the preceding slope.

    Args:
        series: numeric series
        n_changepoints: maximum number of changepoints to return

    Returns:
        list of int indices in increasing order
    """
    values = to_float_array(series)
    n = values.size
    if n < MIN_CHANGEPOINT_HISTORY or n_changepoints <= 0:
        return []

    window = n // (n_changepoints + 1)
    if window < 2:
        # A single point has no slope; nothing can be compared
        return []

    changepoints = []
    for i in range(window, n - window, window):
        if len(changepoints) >= n_changepoints:
            break
        slope_before, _ = linear_fit(values[max(0, i - window):i])
        slope_after, _ = linear_fit(values[i:i + window])
        if abs(slope_after - slope_before) > SLOPE_CHANGE_THRESHOLD * abs(slope_before):
            changepoints.append(i)

    return changepoints


def fit_piecewise_trend(series, changepoints=None):
    """
    Fit a continuous piecewise-linear trend.

    Without changepoints this is the global OLS line. With changepoints the
    series is split at ``[0, *changepoints, n - 1]``, each segment gets its own
    OLS slope, and every segment after the first starts from the last fitted
    value of the previous one so the trend has no jumps.

    Returns:
        list of trend values, same length as ``series``
    """
    values = to_float_array(series)
    n = values.size
    if n == 0:
        return []

    interior = sorted({int(cp) for cp in (changepoints or []) if 0 < cp < n - 1})
    if not interior:
        slope, intercept = linear_fit(values)
        return to_float_list(intercept + slope * np.arange(n))

    bounds = [0] + interior + [n - 1]
    trend = np.empty(n, dtype=float)
    for s, (start, end) in enumerate(zip(bounds[:-1], bounds[1:])):
        slope, intercept = linear_fit(values[start:end + 1])
        anchor = intercept if s == 0 else trend[start]
        trend[start:end + 1] = anchor + slope * np.arange(end - start + 1)

    return to_float_list(trend)


def fourier_coefficients(series, period: int = 12, harmonics: int = 3):
    """
    Sine/cosine coefficients of the first ``harmonics`` Fourier terms.

    Returns:
        list of (sin_coeff, cos_coeff) tuples, one per harmonic
    """
    values = to_float_array(series)
    n = values.size
    if n == 0:
        return [(0.0, 0.0)] * harmonics

    index = np.arange(n, dtype=float)
    coefficients = []
    for h in range(1, harmonics + 1):
        angle = 2 * np.pi * h * index / period
        sin_coeff = 2 * float(np.sum(values * np.sin(angle))) / n
        cos_coeff = 2 * float(np.sum(values * np.cos(angle))) / n
        coefficients.append((sin_coeff, cos_coeff))
    return coefficients


def calculate_seasonality(series, period: int = 12, harmonics: int = 3):
    """
    Calculate the in-sample seasonal component using a Fourier series.

    Returns:
        list of seasonal values, same length as ``series``
    """
    values = to_float_array(series)
    n = values.size
    seasonal = np.zeros(n, dtype=float)
    if n == 0:
        return []

    index = np.arange(n, dtype=float)
    for h, (sin_coeff, cos_coeff) in enumerate(fourier_coefficients(values, period, harmonics), start=1):
        angle = 2 * np.pi * h * index / period
        seasonal += sin_coeff * np.sin(angle) + cos_coeff * np.cos(angle)

    return to_float_list(seasonal)


def decompose(series, config):
    """
    Split a series into trend, seasonal and residual components.

    Additive mode models ``y = trend + seasonal + residual`` with seasonality
    estimated on the detrended series. Multiplicative mode models
    ``y = trend * (1 + seasonal) + residual`` with seasonality estimated on the
    relative deviation from trend.

    Args:
        series: numeric series
        config: ProphetConfig

    Returns:
        Decomposition
    """
    values = to_float_array(series)
    n = values.size

    changepoints = detect_changepoints(values, config.n_changepoints)
    trend = np.asarray(fit_piecewise_trend(values, changepoints), dtype=float)
    multiplicative = config.seasonality_mode == "multiplicative"

    if multiplicative:
        safe = np.abs(trend) > 1e-12
        deviation = np.zeros(n, dtype=float)
        deviation[safe] = values[safe] / trend[safe] - 1
    else:
        deviation = values - trend

    if config.yearly_seasonality:
        seasonal = np.asarray(
            calculate_seasonality(deviation, config.seasonal_period, config.fourier_harmonics),
            dtype=float,
        )
    else:
        seasonal = np.zeros(n, dtype=float)

    if multiplicative:
        residuals = values - trend * (1 + seasonal)
    else:
        residuals = values - trend - seasonal

    return Decomposition(
        trend=to_float_list(trend),
        seasonal=to_float_list(seasonal),
        residuals=to_float_list(residuals),
        changepoints=changepoints,
    )
