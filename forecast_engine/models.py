"""
Forecasting models available to the ensemble.

Each ``create_*_forecast_function`` returns a closure
``(train_data, periods) -> list`` so the same model can be backtested and
used for the final forecast. ``prophet_forecaster`` and ``secondary_forecasters``
register them with the history they need and how well they suit each growth
regime.
"""

import warnings
from dataclasses import dataclass, field
from typing import Callable

import numpy as np
from sklearn.linear_model import LinearRegression
from statsmodels.tools.sm_exceptions import ConvergenceWarning
from statsmodels.tsa.holtwinters import ExponentialSmoothing

from .prophet_like import create_prophet_forecast_function
from .utils import growth_rates, linear_fit, to_float_array, to_float_list

PROPHET = "Prophet"
HOLT_WINTERS = "Holt-Winters"
LINEAR_REGRESSION = "Linear Regression"
MONTE_CARLO = "Monte Carlo"
SEASONAL = "Seasonal"


@dataclass(frozen=True)
class ForecasterSpec:
    """
    A forecaster registered with the ensemble.

    ``regime_affinity`` is how well the model suits growth regimes in
    general; ``regime_bonus`` multiplies its ensemble score under specific
    regimes.
    """
    name: str
    forecast_fn: Callable
    min_history: int
    regime_affinity: float
    regime_bonus: dict = field(default_factory=dict)

    def bonus_for(self, regime):
        return self.regime_bonus.get(regime, 1.0)


def _last_value_forecast(values, periods):
    last_value = float(values[-1]) if values.size else 0.0
    return [last_value] * periods


def create_holt_forecast_function(alpha: float = 0.3):
    """
    Create a Holt (additive trend, no seasonality) forecast function.

    Level and trend are smoothed with the same fixed ``alpha``, starting from
    the first value and the first difference and updated from the second
    value on.
    """
    def forecast_holt(train_data, periods):
        values = to_float_array(train_data)
        if values.size < 3:
            return _last_value_forecast(values, periods)
        if periods == 0:
            return []

        with warnings.catch_warnings():
            warnings.simplefilter("ignore", ConvergenceWarning)
            model = ExponentialSmoothing(
                values[1:],
                trend="add",
                seasonal=None,
                initialization_method="known",
                initial_level=values[0],
                initial_trend=values[1] - values[0],
            ).fit(smoothing_level=alpha, smoothing_trend=alpha, optimized=False)
        return to_float_list(model.forecast(periods))

    return forecast_holt


def create_linear_trend_forecast_function():
    """Create a linear regression on the time index forecast function."""
    def forecast_linear(train_data, periods):
        values = to_float_array(train_data)
        if values.size < 3:
            return _last_value_forecast(values, periods)
        if periods == 0:
            return []

        x = np.arange(values.size).reshape(-1, 1)
        model = LinearRegression()
        model.fit(x, values)
        future_x = np.arange(values.size, values.size + periods).reshape(-1, 1)
        return to_float_list(model.predict(future_x))

    return forecast_linear


def create_monte_carlo_forecast_function(simulations: int = 1000, seed: int = 42):
    """
    Create a Monte Carlo growth-path forecast function.

    Period growth rates are drawn from a normal distribution fitted to the
    historical growth rates and compounded from the last value; the forecast
    is the mean path. The generator is reseeded on every call.
    """
    def forecast_monte_carlo(train_data, periods):
        values = to_float_array(train_data)
        if values.size < 3:
            return _last_value_forecast(values, periods)
        rates = growth_rates(values)
        if rates.size == 0:
            return _last_value_forecast(values, periods)
        if periods == 0:
            return []

        rng = np.random.default_rng(seed)
        draws = rng.normal(rates.mean(), rates.std(), size=(simulations, periods))
        paths = values[-1] * np.cumprod(1 + draws, axis=1)
        return to_float_list(paths.mean(axis=0))

    return forecast_monte_carlo


def create_seasonal_means_forecast_function(seasonal_period: int = 12):
    """
    Create a seasonal decomposition forecast function.

    The seasonal component is the mean of each phase; the trend is a linear
    fit of the deseasonalized series.
    """
    def forecast_seasonal(train_data, periods):
        values = to_float_array(train_data)
        if values.size < 6:
            return _last_value_forecast(values, periods)

        period = min(seasonal_period, values.size)
        phases = np.arange(values.size) % period
        seasonal = np.array([values[phases == i].mean() for i in range(period)])
        deseasonalized = values - seasonal[phases]
        slope, intercept = linear_fit(deseasonalized)

        forecast = []
        for p in range(periods):
            index = values.size + p
            forecast.append(intercept + slope * index + seasonal[index % period])
        return to_float_list(forecast)

    return forecast_seasonal


def prophet_forecaster(config):
    """The decomposition forecaster the ensemble always runs."""
    return ForecasterSpec(
        name=PROPHET,
        forecast_fn=create_prophet_forecast_function(config.prophet),
        min_history=0,
        regime_affinity=0.85,
        regime_bonus={"exponential": 1.2, "volatile": 1.25},
    )


def secondary_forecasters(config):
    """
    Forecasters blended with Prophet when the history supports them.

    Args:
        config: EnsembleConfig

    Returns:
        list of ForecasterSpec
    """
    return [
        ForecasterSpec(
            name=HOLT_WINTERS,
            forecast_fn=create_holt_forecast_function(config.holt_alpha),
            min_history=3,
            regime_affinity=0.8,
            regime_bonus={"declining": 1.2},
        ),
        ForecasterSpec(
            name=LINEAR_REGRESSION,
            forecast_fn=create_linear_trend_forecast_function(),
            min_history=3,
            regime_affinity=0.9,
            regime_bonus={"exponential": 1.3, "declining": 1.2},
        ),
        ForecasterSpec(
            name=MONTE_CARLO,
            forecast_fn=create_monte_carlo_forecast_function(
                config.monte_carlo_simulations, config.random_seed
            ),
            min_history=3,
            regime_affinity=0.9,
            regime_bonus={"exponential": 1.3, "volatile": 1.4},
        ),
        ForecasterSpec(
            name=SEASONAL,
            forecast_fn=create_seasonal_means_forecast_function(config.seasonal_period),
            min_history=6,
            regime_affinity=0.6,
        ),
    ]
