import math

import pytest

from forecast_engine.metrics import AccuracyMetrics
from forecast_engine.validation import (
    BacktestResult,
    rolling_backtest,
    temporal_validation,
    walk_forward_backtest,
)


def linear_extrapolation(train_data, periods):
    step = train_data[-1] - train_data[-2]
    return [train_data[-1] + step * (k + 1) for k in range(periods)]


def test_short_history_gives_worst_case():
    messages = []
    result = walk_forward_backtest([1, 2, 3], linear_extrapolation, diagnostic_messages=messages)
    assert result.folds == 0
    assert (result.metrics.smape, result.metrics.mase, result.metrics.mae) == (100.0, 10.0, 1000.0)
    assert result.metrics.confidence == "Baja"
    assert "need 7 periods" in messages[-1]


def test_perfect_forecaster_scores_zero_error():
    series = list(range(1, 13))
    result = walk_forward_backtest(series, linear_extrapolation)
    assert result.folds == 6
    assert result.cut_points == [6, 7, 8, 9, 10, 11]
    assert result.actual == result.predicted
    assert result.metrics.smape == pytest.approx(0.0)
    assert result.metrics.mase == pytest.approx(0.0)
    assert result.metrics.confidence == "Media"
    assert result.rmse == 0.0


def test_multi_step_cuts():
    result = walk_forward_backtest(list(range(1, 13)), linear_extrapolation, test_size=2)
    assert result.folds == 5
    assert len(result.actual) == 10


def test_failing_cuts_are_skipped():
    def flaky(train_data, periods):
        if len(train_data) == 7:
            raise RuntimeError("fit failed")
        return linear_extrapolation(train_data, periods)

    messages = []
    result = walk_forward_backtest(list(range(1, 13)), flaky, diagnostic_messages=messages)
    assert result.folds == 5
    assert 7 not in result.cut_points
    assert "1 cut(s) failed" in messages[0]


def test_non_finite_predictions_are_dropped():
    result = walk_forward_backtest(list(range(1, 13)), lambda train, periods: [math.nan] * periods)
    assert result.folds == 0
    assert result.metrics.smape == 100.0


def test_rolling_backtest_returns_metrics():
    metrics = rolling_backtest(list(range(1, 13)), linear_extrapolation, data_quality="high")
    assert isinstance(metrics, AccuracyMetrics)
    assert metrics.confidence == "Alta"


def test_backtest_result_errors_and_frame():
    result = BacktestResult(metrics=None, actual=[1.0, 2.0], predicted=[2.0, 4.0], cut_points=[6, 7], folds=2)
    assert result.errors == [-1.0, -2.0]
    assert result.rmse == pytest.approx(math.sqrt(2.5))
    assert list(result.to_frame()["abs_error"]) == [1.0, 2.0]


def test_temporal_validation():
    validation = temporal_validation([100.0] * 10, lambda train: 100.0)
    assert validation.accuracy == pytest.approx(1.0)
    assert validation.mape == pytest.approx(0.0)
    assert validation.consistency == pytest.approx(1.0)
    assert [p["period"] for p in validation.periods] == [1, 2, 3]


def test_temporal_validation_defaults_on_short_history():
    validation = temporal_validation([1.0, 2.0], lambda train: 2.0)
    assert (validation.accuracy, validation.mape, validation.consistency) == (0.5, 0.3, 0.5)
    assert validation.periods == []
