import numpy as np
import pytest

from forecast_engine.config import ProphetConfig
from forecast_engine.decomposition import (
    calculate_seasonality,
    decompose,
    detect_changepoints,
    fit_piecewise_trend,
    fourier_coefficients,
)


def _rise_then_fall():
    # slope +1 up to index 10, then slope -2
    return [float(i) for i in range(11)] + [10.0 - 2 * k for k in range(1, 10)]


def test_changepoints_need_ten_points():
    assert detect_changepoints(list(range(9)), n_changepoints=2) == []


def test_changepoints_need_windows_of_two():
    # window = 12 // 26 == 0
    assert detect_changepoints(list(range(12)), n_changepoints=25) == []


def test_changepoint_found_where_slope_turns():
    values = [float(i) for i in range(10)] + [8.0 - i for i in range(10)]
    assert detect_changepoints(values, n_changepoints=3) == [10]


def test_no_changepoints_on_straight_line():
    assert detect_changepoints([2.0 * i for i in range(30)], n_changepoints=4) == []


def test_piecewise_trend_without_changepoints_is_ols_line(linear_series):
    assert fit_piecewise_trend(linear_series) == pytest.approx(linear_series)


def test_piecewise_trend_is_continuous_across_segments():
    values = _rise_then_fall()
    trend = fit_piecewise_trend(values, [10])
    assert len(trend) == len(values)
    assert trend == pytest.approx(values)


def test_piecewise_trend_ignores_boundary_changepoints(linear_series):
    assert fit_piecewise_trend(linear_series, [0, 9, 42]) == pytest.approx(linear_series)


def test_fourier_recovers_pure_sine():
    index = np.arange(24)
    values = np.sin(2 * np.pi * index / 12)
    coefficients = fourier_coefficients(values, period=12, harmonics=3)

    assert coefficients[0] == pytest.approx((1.0, 0.0), abs=1e-9)
    assert coefficients[1] == pytest.approx((0.0, 0.0), abs=1e-9)
    assert calculate_seasonality(values, 12, 3) == pytest.approx(list(values), abs=1e-9)


def test_decompose_additive_identity(seasonal_series):
    result = decompose(seasonal_series, ProphetConfig())
    rebuilt = np.add(np.add(result.trend, result.seasonal), result.residuals)
    assert list(rebuilt) == pytest.approx(seasonal_series)


def test_decompose_multiplicative_identity(seasonal_series):
    result = decompose(seasonal_series, ProphetConfig(seasonality_mode="multiplicative"))
    rebuilt = np.asarray(result.trend) * (1 + np.asarray(result.seasonal)) + np.asarray(result.residuals)
    assert list(rebuilt) == pytest.approx(seasonal_series)


def test_decompose_without_yearly_seasonality(seasonal_series):
    result = decompose(seasonal_series, ProphetConfig(yearly_seasonality=False))
    assert result.seasonal == [0.0] * len(seasonal_series)
