# Forecasting engine package

"""
Time-series forecasting components for monthly business series.

This package contains organized modules for:
- Forecaster and ensemble configuration (config)
- Series coercion and small numeric helpers (utils)
- Accuracy metrics and confidence classification (metrics)
- IQR outlier detection and winsorization (outliers)
- Changepoints, piecewise trend and Fourier seasonality (decomposition)
- Prophet-like decomposition forecasting (prophet_like)
- Walk-forward backtesting (validation)
- Growth regime detection and adaptive guardrails (regime)
- Alternative forecasters for the ensemble (models)
- Regime-aware weighted ensemble (ensemble)
"""

from .config import EnsembleConfig, ProphetConfig
from .ensemble import EnsembleResult, calculate_dynamic_weights, combine_forecasts
from .metrics import (
    AccuracyMetrics,
    calculate_advanced_metrics,
    classify_accuracy,
    mae,
    mase,
    smape,
    weighted_mape,
    worst_case_metrics,
)
from .outliers import OutlierReport, detect_and_treat_outliers
from .prophet_like import ForecastResult, optimize_prophet_parameters, prophet_forecast
from .regime import RegimeLabel, detect_regime
from .validation import rolling_backtest, walk_forward_backtest

__version__ = "0.1.0"

__all__ = [
    "AccuracyMetrics",
    "EnsembleConfig",
    "EnsembleResult",
    "ForecastResult",
    "OutlierReport",
    "ProphetConfig",
    "RegimeLabel",
    "calculate_advanced_metrics",
    "calculate_dynamic_weights",
    "classify_accuracy",
    "combine_forecasts",
    "detect_and_treat_outliers",
    "detect_regime",
    "mae",
    "mase",
    "optimize_prophet_parameters",
    "prophet_forecast",
    "rolling_backtest",
    "smape",
    "walk_forward_backtest",
    "weighted_mape",
    "worst_case_metrics",
]
