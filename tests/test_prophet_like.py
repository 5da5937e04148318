import numpy as np
import pytest

from forecast_engine.config import PARAM_GRID, ProphetConfig
from forecast_engine.metrics import mase
from forecast_engine.prophet_like import (
    create_prophet_forecast_function,
    optimize_prophet_parameters,
    prophet_forecast,
)


def test_constant_series(constant_series):
    result = prophet_forecast(constant_series, 3)
    assert result.forecast == pytest.approx([10.0, 10.0, 10.0])
    assert result.confidence == pytest.approx(1.0)
    assert result.changepoints == []


def test_linear_series(linear_series):
    result = prophet_forecast(linear_series, 2)
    assert result.forecast == pytest.approx([11.0, 12.0], abs=1e-6)
    assert mase(linear_series, result.trend) == pytest.approx(0.0, abs=1e-9)


def test_short_history_falls_back_to_last_value():
    result = prophet_forecast([5, 6, 7], 2)
    assert result.forecast == [7.0, 7.0]
    assert result.lower_bound == pytest.approx([5.6, 5.6])
    assert result.upper_bound == pytest.approx([8.4, 8.4])
    assert result.confidence == 0.3
    assert result.changepoints == []


def test_empty_history():
    result = prophet_forecast([], 2)
    assert result.forecast == [0.0, 0.0]
    assert result.trend == []


def test_zero_horizon(seasonal_series):
    result = prophet_forecast(seasonal_series, 0)
    assert result.forecast == []
    assert len(result.trend) == len(seasonal_series)


def test_negative_horizon_rejected(linear_series):
    with pytest.raises(ValueError):
        prophet_forecast(linear_series, -1)


def test_bounds_and_components(seasonal_series):
    result = prophet_forecast(seasonal_series, 6)
    n = len(seasonal_series)

    assert len(result.forecast) == 6
    assert all(lo <= f <= hi for lo, f, hi in zip(result.lower_bound, result.forecast, result.upper_bound))
    assert len(result.trend) == len(result.seasonal) == len(result.residuals) == n
    assert 0.0 <= result.confidence <= 1.0
    assert set(result.components) == {"trend", "yearly", "residual"}


def test_last_seasonal_cycle_is_repeated_in_phase(seasonal_series):
    result = prophet_forecast(seasonal_series, 13)
    assert result.forecast_seasonal[:12] == pytest.approx(result.seasonal[-12:])
    assert result.forecast_seasonal[12] == pytest.approx(result.seasonal[-12])


def test_mapping_options_and_unknown_option(seasonal_series):
    result = prophet_forecast(seasonal_series, 2, {"seasonalityMode": "multiplicative"})
    assert len(result.forecast) == 2

    with pytest.raises(ValueError):
        prophet_forecast(seasonal_series, 2, {"growth": "logistic"})


def test_to_frame(seasonal_series):
    frame = prophet_forecast(seasonal_series, 3).to_frame()
    assert list(frame.columns) == ["step", "forecast", "lower_bound", "upper_bound", "trend", "seasonal"]
    assert list(frame["step"]) == [1, 2, 3]


def test_forecast_function_matches_direct_call(seasonal_series):
    forecast_fn = create_prophet_forecast_function({"n_changepoints": 5})
    direct = prophet_forecast(seasonal_series, 3, ProphetConfig(n_changepoints=5))
    assert forecast_fn(seasonal_series, 3) == direct.forecast


def test_optimize_returns_base_on_short_history():
    base = ProphetConfig(n_changepoints=7)
    messages = []
    assert optimize_prophet_parameters([1, 2, 3, 4, 5, 6, 7, 8], 3, base, messages) is base
    assert "Parameter search skipped" in messages[0]


def test_optimize_picks_a_grid_point(seasonal_series):
    series = list(seasonal_series) + list(np.asarray(seasonal_series) + 48)
    best = optimize_prophet_parameters(series, validation_periods=3)
    assert best.changepoint_prior_scale in PARAM_GRID["changepoint_prior_scale"]
    assert best.seasonality_prior_scale in PARAM_GRID["seasonality_prior_scale"]
    assert best.n_changepoints in PARAM_GRID["n_changepoints"]
