"""
Walk-forward validation for forecasting functions.

A forecast function is any callable ``(train_data, periods) -> sequence``.
The backtest grows the training window one period at a time, forecasts the
following ``test_size`` periods from each cut, and scores all collected
actual/forecast pairs together.
"""

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from .metrics import calculate_advanced_metrics, worst_case_metrics
from .utils import to_float_array

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BacktestResult:
    """Pairs collected by a walk-forward backtest and the metrics over them."""
    metrics: object
    actual: list
    predicted: list
    cut_points: list
    folds: int

    @property
    def errors(self):
        return [a - p for a, p in zip(self.actual, self.predicted)]

    @property
    def rmse(self):
        """Root mean squared error of the pairs (0.0 when nothing was collected)."""
        if not self.actual:
            return 0.0
        return float(np.sqrt(np.mean(np.square(self.errors))))

    def to_frame(self):
        """One row per collected pair with the cut it came from."""
        return pd.DataFrame({
            "cut": self.cut_points,
            "actual": self.actual,
            "predicted": self.predicted,
            "abs_error": np.abs(np.asarray(self.errors, dtype=float)),
        })


def walk_forward_backtest(series, forecast_fn, min_train_size: int = 6, test_size: int = 1,
                          data_quality="medium", seasonal_period: int = 12,
                          diagnostic_messages=None):
    """
    Expanding-window backtest of a forecast function.

    For each cut ``i`` from ``min_train_size`` to ``len(series) - test_size``
    the function is trained on ``series[:i]`` and its forecast compared with
    ``series[i:i + test_size]``. Metrics are computed once over all pairs,
    not averaged per cut.

    Args:
        series: numeric history
        forecast_fn: Callable(train_data, periods) -> sequence of forecasts
        min_train_size: first training window length
        test_size: forecast steps compared at each cut
        data_quality: passed to the accuracy classification
        seasonal_period: seasonal lag for MASE
        diagnostic_messages: optional list for status lines

    Returns:
        BacktestResult; its metrics are the worst-case sentinels when no cut
        produced a usable forecast
    """
    values = to_float_array(series)
    min_train = max(1, int(min_train_size))
    horizon = max(1, int(test_size))

    actual_pairs = []
    predicted_pairs = []
    cut_points = []
    folds = 0
    failures = 0

    for cut in range(min_train, values.size - horizon + 1):
        train_data = values[:cut]
        actual_data = values[cut:cut + horizon]
        try:
            forecast = to_float_array(forecast_fn(train_data, horizon))
        except Exception as e:
            failures += 1
            logger.debug("Walk-forward cut %d failed: %s", cut, e)
            continue

        used = 0
        for actual_value, predicted_value in zip(actual_data, forecast):
            if not np.isfinite(predicted_value):
                continue
            actual_pairs.append(float(actual_value))
            predicted_pairs.append(float(predicted_value))
            cut_points.append(cut)
            used += 1
        if used:
            folds += 1

    if failures and diagnostic_messages is not None:
        diagnostic_messages.append(f"Walk-forward validation: {failures} cut(s) failed and were skipped")

    if not actual_pairs:
        if diagnostic_messages is not None:
            diagnostic_messages.append(
                f"Walk-forward validation: need {min_train + horizon} periods with usable forecasts, "
                f"have {values.size}"
            )
        return BacktestResult(
            metrics=worst_case_metrics(),
            actual=[],
            predicted=[],
            cut_points=[],
            folds=0,
        )

    metrics = calculate_advanced_metrics(
        actual_pairs,
        predicted_pairs,
        data_quality=data_quality,
        seasonal_period=seasonal_period,
    )
    if diagnostic_messages is not None:
        diagnostic_messages.append(
            f"Walk-forward validation: {folds} folds, SMAPE {metrics.smape:.1f}%, "
            f"MASE {metrics.mase:.2f} ({metrics.confidence})"
        )

    return BacktestResult(
        metrics=metrics,
        actual=actual_pairs,
        predicted=predicted_pairs,
        cut_points=cut_points,
        folds=folds,
    )


def rolling_backtest(series, forecast_fn, min_train_size: int = 6, test_size: int = 1,
                     data_quality="medium", seasonal_period: int = 12, diagnostic_messages=None):
    """Walk-forward backtest returning only its AccuracyMetrics."""
    return walk_forward_backtest(
        series,
        forecast_fn,
        min_train_size=min_train_size,
        test_size=test_size,
        data_quality=data_quality,
        seasonal_period=seasonal_period,
        diagnostic_messages=diagnostic_messages,
    ).metrics


@dataclass(frozen=True)
class TemporalValidation:
    accuracy: float
    mape: float
    consistency: float
    periods: list


def temporal_validation(series, ensemble_fn, validation_periods: int = 3):
    """
    One-step walk-forward check of a single-value forecaster over the last periods.

    Args:
        series: numeric history
        ensemble_fn: Callable(train_data) -> float next-period forecast
        validation_periods: number of trailing periods to predict

    Returns:
        TemporalValidation with mean accuracy (1 - APE, floored at 0), MAPE,
        consistency (1 - std of the accuracies) and one record per period
    """
    values = to_float_array(series)
    default = TemporalValidation(accuracy=0.5, mape=0.3, consistency=0.5, periods=[])
    if validation_periods <= 0 or values.size < validation_periods + 3:
        return default

    records = []
    for i in range(validation_periods):
        train_end = values.size - validation_periods + i
        train_data = values[:train_end]
        actual = float(values[train_end])
        try:
            prediction = float(ensemble_fn(train_data))
        except Exception as e:
            logger.debug("Temporal validation period %d failed: %s", i + 1, e)
            continue
        if not np.isfinite(prediction):
            continue
        accuracy = 1 - abs(prediction - actual) / actual if actual > 0 else 0.0
        records.append({
            "period": i + 1,
            "accuracy": max(0.0, accuracy),
            "prediction": prediction,
            "actual": actual,
        })

    if not records:
        return default

    accuracies = np.array([r["accuracy"] for r in records])
    ape = [
        abs(r["prediction"] - r["actual"]) / r["actual"] if r["actual"] > 0 else 0.0
        for r in records
    ]
    return TemporalValidation(
        accuracy=float(accuracies.mean()),
        mape=float(np.mean(ape)),
        consistency=float(max(0.0, 1 - accuracies.std())),
        periods=records,
    )
