"""
Prophet-like decomposition forecaster.

Forecasts a monthly series by extrapolating a changepoint-aware piecewise
trend and repeating the last observed seasonal cycle, with residual-based
95% prediction intervals. Includes a grid search over the forecaster options
scored on a held-out tail.
"""

import itertools
import logging
from dataclasses import dataclass, field, replace

import numpy as np
import pandas as pd

from .config import PARAM_GRID, resolve_prophet_config
from .decomposition import decompose
from .utils import population_variance, to_float_array

logger = logging.getLogger(__name__)

MIN_DECOMPOSITION_HISTORY = 4
FALLBACK_CONFIDENCE = 0.3
FALLBACK_BAND = 0.2
INTERVAL_Z = 1.96
_VARIANCE_EPS = 1e-12


@dataclass(frozen=True)
class ForecastResult:
    """Point forecast, 95% bounds and the in-sample decomposition behind them."""
    forecast: list
    lower_bound: list
    upper_bound: list
    trend: list
    seasonal: list
    residuals: list
    changepoints: list
    confidence: float
    forecast_trend: list = field(default_factory=list)
    forecast_seasonal: list = field(default_factory=list)

    @property
    def components(self):
        return {
            "trend": self.trend,
            "yearly": self.seasonal,
            "residual": self.residuals,
        }

    def to_frame(self):
        """One row per forecast step."""
        frame = pd.DataFrame({
            "step": np.arange(1, len(self.forecast) + 1),
            "forecast": self.forecast,
            "lower_bound": self.lower_bound,
            "upper_bound": self.upper_bound,
        })
        if len(self.forecast_trend) == len(self.forecast):
            frame["trend"] = self.forecast_trend
            frame["seasonal"] = self.forecast_seasonal
        return frame


def _fallback_forecast(values, periods):
    """Flat forecast for histories too short to decompose."""
    n = values.size
    last_value = float(values[-1]) if n else 0.0
    return ForecastResult(
        forecast=[last_value] * periods,
        lower_bound=[last_value * (1 - FALLBACK_BAND)] * periods,
        upper_bound=[last_value * (1 + FALLBACK_BAND)] * periods,
        trend=[last_value] * n,
        seasonal=[0.0] * n,
        residuals=[0.0] * n,
        changepoints=[],
        confidence=FALLBACK_CONFIDENCE,
        forecast_trend=[last_value] * periods,
        forecast_seasonal=[0.0] * periods,
    )


def _explained_variance(values, residuals):
    """Fraction of the data variance the decomposition explains, clamped to [0, 1]."""
    residual_var = float(np.mean(np.square(residuals))) if len(residuals) else 0.0
    data_var = population_variance(values)
    if data_var <= _VARIANCE_EPS:
        return 1.0 if residual_var <= _VARIANCE_EPS else 0.0
    return float(max(0.0, min(1.0, 1 - residual_var / data_var)))


def prophet_forecast(series, periods: int = 1, config=None):
    """
    Forecast ``periods`` steps ahead with the decomposition model.

    Args:
        series: numeric history, one value per period
        periods: forecast horizon (0 gives an empty forecast)
        config: ProphetConfig, mapping of option overrides, or None

    Returns:
        ForecastResult

    Raises:
        ValueError: if ``periods`` is negative or an option is invalid
    """
    if periods < 0:
        raise ValueError(f"periods must be >= 0, got {periods}")
    conf = resolve_prophet_config(config)
    values = to_float_array(series)
    n = values.size

    if n < MIN_DECOMPOSITION_HISTORY:
        return _fallback_forecast(values, periods)

    # Step 1-4: changepoints, trend, seasonality, residuals
    decomposition = decompose(values, conf)
    trend = decomposition.trend
    seasonal = decomposition.seasonal
    period = conf.seasonal_period

    # Step 5: extrapolate trend and repeat the last full seasonal cycle
    last_trend = trend[-1]
    slope = trend[-1] - trend[-2]
    last_cycle = seasonal[-period:] if n >= period else None

    forecast = []
    forecast_trend = []
    forecast_seasonal = []
    for p in range(periods):
        future_trend = last_trend + slope * (p + 1)
        # last_cycle[k] sits at index n - period + k, the same phase as n + k
        future_seasonal = last_cycle[p % period] if last_cycle is not None else 0.0
        if conf.seasonality_mode == "additive":
            value = future_trend + future_seasonal
        else:
            value = future_trend * (1 + future_seasonal)
        forecast_trend.append(float(future_trend))
        forecast_seasonal.append(float(future_seasonal))
        forecast.append(float(value))

    # Step 6: prediction intervals from the residual spread
    residual_std = float(np.sqrt(np.mean(np.square(decomposition.residuals))))
    lower_bound = [f - INTERVAL_Z * residual_std for f in forecast]
    upper_bound = [f + INTERVAL_Z * residual_std for f in forecast]

    # Step 7: confidence = variance explained
    confidence = _explained_variance(values, decomposition.residuals)

    return ForecastResult(
        forecast=forecast,
        lower_bound=lower_bound,
        upper_bound=upper_bound,
        trend=trend,
        seasonal=seasonal,
        residuals=decomposition.residuals,
        changepoints=decomposition.changepoints,
        confidence=confidence,
        forecast_trend=forecast_trend,
        forecast_seasonal=forecast_seasonal,
    )


def create_prophet_forecast_function(config=None):
    """
    Create a forecast function for use with validation methods.

    Returns:
        Function ``(train_data, periods) -> list`` of point forecasts
    """
    conf = resolve_prophet_config(config)

    def forecast_prophet(train_data, periods):
        return prophet_forecast(train_data, periods, conf).forecast

    return forecast_prophet


def optimize_prophet_parameters(series, validation_periods: int = 3, base_config=None,
                                diagnostic_messages=None):
    """
    Grid-search the forecaster options on a held-out tail.

    Every combination of ``PARAM_GRID`` is fitted on all but the last
    ``validation_periods`` points and scored by mean absolute error on those
    points. Candidates that fail are skipped.

    Args:
        series: numeric history
        validation_periods: size of the held-out tail
        base_config: config the grid values are applied to (defaults apply if None)
        diagnostic_messages: optional list for status lines

    Returns:
        ProphetConfig with the lowest validation error, or ``base_config`` when
        the history is shorter than ``validation_periods + 6`` or no candidate
        could be scored
    """
    base = resolve_prophet_config(base_config)
    values = to_float_array(series)

    if validation_periods <= 0 or values.size < validation_periods + 6:
        if diagnostic_messages is not None:
            diagnostic_messages.append(
                f"Parameter search skipped: need {max(validation_periods, 0) + 6} periods, have {values.size}"
            )
        return base

    train = values[:-validation_periods]
    test = values[-validation_periods:]

    best_config = base
    best_error = np.inf
    evaluated = 0

    for cps, sps, n_cp in itertools.product(
        PARAM_GRID["changepoint_prior_scale"],
        PARAM_GRID["seasonality_prior_scale"],
        PARAM_GRID["n_changepoints"],
    ):
        candidate = replace(
            base,
            changepoint_prior_scale=cps,
            seasonality_prior_scale=sps,
            n_changepoints=n_cp,
        )
        try:
            result = prophet_forecast(train, validation_periods, candidate)
        except Exception as e:
            logger.debug("Candidate %s failed: %s", candidate, e)
            continue

        predicted = np.asarray(result.forecast, dtype=float)
        predicted = np.where(np.isfinite(predicted), predicted, test)
        error = float(np.mean(np.abs(test - predicted)))
        evaluated += 1

        if error < best_error:
            best_error = error
            best_config = candidate

    if evaluated:
        logger.info(
            "Parameter search: %d candidates, best MAE %.4g with n_changepoints=%d",
            evaluated, best_error, best_config.n_changepoints,
        )
        if diagnostic_messages is not None:
            diagnostic_messages.append(
                f"Parameter search: {evaluated} candidates evaluated, best holdout MAE {best_error:.2f}"
            )
    return best_config
