"""
Regime-aware ensemble of forecasters.

Runs the Prophet-like forecaster plus every secondary forecaster the history
supports, scores each one with a walk-forward backtest, and blends their
forecasts with softmax weights built from accuracy, regime affinity and
confidence. Bounds are the union of the individual intervals and the
cross-model dispersion interval. When only Prophet is viable the ensemble
returns its forecast unchanged with weight 1.
"""

import logging
from dataclasses import dataclass, field, replace

import numpy as np
import pandas as pd

from .config import EnsembleConfig
from .metrics import determine_data_quality
from .models import PROPHET, prophet_forecaster, secondary_forecasters
from .outliers import detect_and_treat_outliers
from .prophet_like import INTERVAL_Z, ForecastResult, optimize_prophet_parameters, prophet_forecast
from .regime import calculate_adaptive_guardrails, detect_regime
from .utils import assess_history_length, to_float_array, to_float_list
from .validation import walk_forward_backtest

logger = logging.getLogger(__name__)

# Backtest confidence label -> model confidence
CONFIDENCE_SCORES = {"Alta": 0.9, "Media": 0.7, "Baja": 0.5}
QUALITY_MULTIPLIERS = {"high": 1.2, "medium": 1.0, "low": 0.8}

PERFORMANCE_WEIGHT = 0.4
AFFINITY_WEIGHT = 0.3
CONFIDENCE_WEIGHT = 0.3

GUARDRAIL_CONFIDENCE_PENALTY = 0.8


@dataclass(frozen=True)
class ModelScore:
    """One forecaster's output and how it was scored."""
    name: str
    forecast: list
    lower_bound: list
    upper_bound: list
    accuracy: object
    folds: int
    performance_score: float
    confidence: float
    regime_affinity: float
    regime_bonus: float
    combined_score: float


@dataclass(frozen=True)
class EnsembleResult:
    """Blended forecast with the regime and per-model evidence behind it."""
    forecast: list
    lower_bound: list
    upper_bound: list
    confidence: float
    weights: dict
    regime: object
    models: dict
    trend: list
    seasonal: list
    residuals: list
    changepoints: list
    data_quality: str
    guardrails: list = field(default_factory=list)
    regime_adjusted: bool = False
    justification: str = ""

    @property
    def dominant_model(self):
        if not self.weights:
            return None
        return max(self.weights, key=self.weights.get)

    def as_forecast_result(self):
        """The blended forecast as a ForecastResult (Prophet supplies the decomposition)."""
        return ForecastResult(
            forecast=list(self.forecast),
            lower_bound=list(self.lower_bound),
            upper_bound=list(self.upper_bound),
            trend=list(self.trend),
            seasonal=list(self.seasonal),
            residuals=list(self.residuals),
            changepoints=list(self.changepoints),
            confidence=self.confidence,
        )

    def to_frame(self):
        """One row per forecast step with every model's forecast alongside the blend."""
        frame = pd.DataFrame({
            "step": np.arange(1, len(self.forecast) + 1),
            "forecast": self.forecast,
            "lower_bound": self.lower_bound,
            "upper_bound": self.upper_bound,
        })
        for name, score in self.models.items():
            frame[name] = score.forecast
        return frame

    def model_table(self):
        """Per-model weights and backtest accuracy, heaviest weight first."""
        rows = []
        for name, score in self.models.items():
            rows.append({
                "model": name,
                "weight": self.weights.get(name, 0.0),
                "combined_score": score.combined_score,
                "smape": score.accuracy.smape,
                "mase": score.accuracy.mase,
                "mae": score.accuracy.mae,
                "weighted_mape": score.accuracy.weighted_mape,
                "confidence": score.accuracy.confidence,
                "quality": score.accuracy.quality,
                "folds": score.folds,
            })
        table = pd.DataFrame(rows)
        if table.empty:
            return table
        return table.sort_values("weight", ascending=False).reset_index(drop=True)


def score_model(name, forecast, lower_bound, upper_bound, backtest, confidence,
                regime_affinity, regime_bonus, data_quality):
    """
    Combine accuracy, regime affinity and confidence into one ensemble score.

    score = (0.4 * performance * quality multiplier + 0.3 * affinity
             + 0.3 * confidence) * regime bonus
    with performance = max(0, 1 - SMAPE / 100).

    Returns:
        ModelScore
    """
    accuracy = backtest.metrics
    performance = max(0.0, 1 - accuracy.smape / 100)
    combined = (
        performance * QUALITY_MULTIPLIERS[data_quality] * PERFORMANCE_WEIGHT
        + regime_affinity * AFFINITY_WEIGHT
        + confidence * CONFIDENCE_WEIGHT
    ) * regime_bonus

    return ModelScore(
        name=name,
        forecast=to_float_list(forecast),
        lower_bound=to_float_list(lower_bound),
        upper_bound=to_float_list(upper_bound),
        accuracy=accuracy,
        folds=backtest.folds,
        performance_score=float(performance),
        confidence=float(confidence),
        regime_affinity=float(regime_affinity),
        regime_bonus=float(regime_bonus),
        combined_score=float(combined),
    )


def calculate_dynamic_weights(model_scores):
    """
    Softmax of the combined scores.

    Args:
        model_scores: list of ModelScore

    Returns:
        dict model name -> weight; weights are non-negative and sum to 1,
        a single model gets weight 1.0
    """
    if not model_scores:
        return {}
    if len(model_scores) == 1:
        return {model_scores[0].name: 1.0}

    scores = np.array([m.combined_score for m in model_scores], dtype=float)
    exp_scores = np.exp(scores - scores.max())
    weights = exp_scores / exp_scores.sum()
    return {m.name: float(w) for m, w in zip(model_scores, weights)}


def _prepare_history(values, config, diagnostic_messages):
    """Apply the configured outlier treatment and resolve the data quality."""
    history = values
    data_quality = config.data_quality

    if config.outlier_treatment is not None or data_quality == "auto":
        report = detect_and_treat_outliers(values, config.iqr_multiplier)
        if report.outliers:
            diagnostic_messages.append(
                f"Outliers detected: {len(report.outliers)} at positions {report.outlier_indices}"
            )
        if config.outlier_treatment == "winsorize":
            history = to_float_array(report.winsorized_data)
        elif config.outlier_treatment == "median":
            history = to_float_array(report.cleaned_data)
        if data_quality == "auto":
            data_quality = determine_data_quality(report, values)

    return history, data_quality


def _secondary_interval(forecast, backtest):
    """Backtest RMSE band widening with the square root of the step."""
    sigma = backtest.rmse
    widths = INTERVAL_Z * sigma * np.sqrt(np.arange(1, forecast.size + 1))
    return forecast - widths, forecast + widths


def _apply_guardrails(forecast, history, regime, diagnostic_messages):
    """Clamp each step into the regime's adaptive limits."""
    guardrails = []
    adjusted = False
    clamped = forecast.copy()
    current_value = float(history[-1])
    for p in range(forecast.size):
        limits = calculate_adaptive_guardrails(history, current_value, regime, time_horizon=p + 1)
        guardrails.append(limits)
        if clamped[p] > limits.upper_limit:
            clamped[p] = limits.upper_limit
            adjusted = True
        elif clamped[p] < limits.lower_limit:
            clamped[p] = limits.lower_limit
            adjusted = True

    if adjusted:
        diagnostic_messages.append(
            f"Guardrails adjusted the forecast for the {regime.regime} regime"
        )
    return clamped, guardrails, adjusted


def combine_forecasts(series, horizon: int = 1, config=None, forecasters=None,
                      diagnostic_messages=None):
    """
    Forecast with a regime-aware weighted ensemble.

    Args:
        series: numeric history, one value per period
        horizon: number of periods to forecast
        config: EnsembleConfig, mapping of its options, or None for defaults
        forecasters: secondary ForecasterSpec list (defaults to
            ``secondary_forecasters(config)``); Prophet always runs
        diagnostic_messages: optional list for status lines

    Returns:
        EnsembleResult

    Raises:
        ValueError: if ``horizon`` is negative or the config is invalid
    """
    if horizon < 0:
        raise ValueError(f"horizon must be >= 0, got {horizon}")
    if config is None:
        conf = EnsembleConfig()
    elif isinstance(config, EnsembleConfig):
        conf = config
    else:
        conf = EnsembleConfig.from_mapping(config)
    messages = diagnostic_messages if diagnostic_messages is not None else []

    values = to_float_array(series)
    history, data_quality = _prepare_history(values, conf, messages)
    messages.append(f"History: {values.size} periods ({assess_history_length(values.size)})")

    # 1. Regime analysis
    regime = detect_regime(history)
    messages.append(f"Regime: {regime.regime} (confidence {regime.confidence:.2f})")

    # 2. Prophet, optionally self-tuned
    if conf.optimize_prophet:
        tuned = optimize_prophet_parameters(
            history, conf.validation_periods, conf.prophet, diagnostic_messages=messages
        )
        conf = replace(conf, prophet=tuned)
    prophet_result = prophet_forecast(history, horizon, conf.prophet)
    primary = prophet_forecaster(conf)

    def backtest(spec):
        return walk_forward_backtest(
            history,
            spec.forecast_fn,
            min_train_size=conf.min_train_size,
            test_size=conf.test_size,
            data_quality=data_quality,
            seasonal_period=conf.seasonal_period,
        )

    def bonus(spec):
        return 1.0 if regime.is_indeterminate else spec.bonus_for(regime.regime)

    scores = [
        score_model(
            PROPHET,
            prophet_result.forecast,
            prophet_result.lower_bound,
            prophet_result.upper_bound,
            backtest(primary),
            prophet_result.confidence,
            primary.regime_affinity,
            bonus(primary),
            data_quality,
        )
    ]

    # 3. Secondary forecasters the history supports
    specs = forecasters if forecasters is not None else secondary_forecasters(conf)
    required = conf.min_train_size + conf.test_size
    for spec in specs:
        if history.size < max(spec.min_history, required):
            messages.append(f"{spec.name} skipped: needs {max(spec.min_history, required)} periods")
            continue
        result = backtest(spec)
        if result.folds == 0:
            messages.append(f"{spec.name} skipped: no usable backtest")
            continue
        try:
            forecast = to_float_array(spec.forecast_fn(history, horizon))
        except Exception as e:
            logger.debug("%s forecast failed: %s", spec.name, e)
            messages.append(f"{spec.name} skipped: forecast failed ({str(e)[:50]})")
            continue
        if forecast.size != horizon or not np.all(np.isfinite(forecast)):
            messages.append(f"{spec.name} skipped: invalid forecast")
            continue
        lower, upper = _secondary_interval(forecast, result)
        scores.append(score_model(
            spec.name,
            forecast,
            lower,
            upper,
            result,
            CONFIDENCE_SCORES[result.metrics.confidence],
            spec.regime_affinity,
            bonus(spec),
            data_quality,
        ))

    weights = calculate_dynamic_weights(scores)
    models = {score.name: score for score in scores}

    if len(scores) == 1:
        # Degrade to Prophet on its own
        forecast = np.asarray(prophet_result.forecast, dtype=float)
        lower = np.asarray(prophet_result.lower_bound, dtype=float)
        upper = np.asarray(prophet_result.upper_bound, dtype=float)
        confidence = prophet_result.confidence
        guardrails = []
        regime_adjusted = False
        messages.append("Only Prophet is viable; using it directly")
    else:
        # 4. Weighted forecast and conservative bounds
        matrix = np.array([s.forecast for s in scores], dtype=float).reshape(len(scores), horizon)
        weight_vector = np.array([weights[s.name] for s in scores])
        forecast = weight_vector @ matrix
        spread = matrix.std(axis=0)
        lower = np.minimum(
            np.array([s.lower_bound for s in scores], dtype=float).reshape(len(scores), horizon).min(axis=0),
            forecast - INTERVAL_Z * spread,
        )
        upper = np.maximum(
            np.array([s.upper_bound for s in scores], dtype=float).reshape(len(scores), horizon).max(axis=0),
            forecast + INTERVAL_Z * spread,
        )
        confidence = float(sum(weights[s.name] * s.confidence for s in scores))

        # 5. Adaptive guardrails
        guardrails = []
        regime_adjusted = False
        if conf.apply_guardrails and history.size:
            forecast, guardrails, regime_adjusted = _apply_guardrails(forecast, history, regime, messages)
            if regime_adjusted:
                confidence *= GUARDRAIL_CONFIDENCE_PENALTY
        lower = np.minimum(lower, forecast)
        upper = np.maximum(upper, forecast)

    # 6. External adjustment (holidays and similar)
    adjustment_note = ""
    if conf.external_adjustment is not None:
        factor, reason = conf.external_adjustment
        if factor != 1.0:
            forecast = forecast * factor
            lower, upper = np.minimum(lower * factor, upper * factor), np.maximum(lower * factor, upper * factor)
            adjustment_note = f"External adjustment ({reason}): factor {factor:.3f}."
            messages.append(adjustment_note)

    confidence = float(max(0.0, min(1.0, confidence)))
    dominant = max(weights, key=weights.get)
    justification = " ".join(part for part in [
        f"Regime: {regime.regime} (confidence {regime.confidence:.2f}).",
        f"Dominant model: {dominant} (weight {weights[dominant] * 100:.1f}%).",
        f"Ensemble of {len(scores)} model(s): {', '.join(models)}.",
        "Forecast clamped by regime guardrails." if regime_adjusted else "",
        adjustment_note,
    ] if part)

    return EnsembleResult(
        forecast=to_float_list(forecast),
        lower_bound=to_float_list(lower),
        upper_bound=to_float_list(upper),
        confidence=confidence,
        weights=weights,
        regime=regime,
        models=models,
        trend=prophet_result.trend,
        seasonal=prophet_result.seasonal,
        residuals=prophet_result.residuals,
        changepoints=prophet_result.changepoints,
        data_quality=data_quality,
        guardrails=guardrails,
        regime_adjusted=regime_adjusted,
        justification=justification,
    )
