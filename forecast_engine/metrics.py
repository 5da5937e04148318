"""
Metrics and evaluation functions for forecasting models.

Contains implementations of SMAPE, MASE, MAE and recency-weighted MAPE plus
the confidence/quality classification built on them. Every metric returns a
fixed worst-case sentinel instead of raising or producing NaN when the input
is empty, mismatched or non-finite, so callers can rank models uniformly.
"""

from dataclasses import asdict, dataclass

import numpy as np
from sklearn.metrics import mean_absolute_error

from .config import DATA_QUALITY_LEVELS
from .utils import to_float_array

SMAPE_SENTINEL = 100.0
MASE_SENTINEL = 10.0
MAE_SENTINEL = 1000.0
WEIGHTED_MAPE_SENTINEL = 100.0

# Actual values at or below this magnitude are skipped by weighted_mape
MIN_ACTUAL_MAGNITUDE = 0.01


@dataclass(frozen=True)
class AccuracyMetrics:
    """Accuracy of a forecast against actuals."""
    smape: float
    mase: float
    mae: float
    weighted_mape: float
    confidence: str
    quality: str

    def to_dict(self):
        return asdict(self)


def _paired(actual, forecast):
    """Return aligned float arrays, or None when they cannot be compared."""
    a = to_float_array(actual)
    f = to_float_array(forecast)
    if a.size == 0 or a.size != f.size:
        return None
    if not (np.all(np.isfinite(a)) and np.all(np.isfinite(f))):
        return None
    return a, f


def smape(actual, forecast):
    """
    Calculate Symmetric Mean Absolute Percentage Error (SMAPE).

    Args:
        actual: Array of actual values
        forecast: Array of forecasted values

    Returns:
        SMAPE in percent (0 to 200, lower is better). 100 when no point has
        a non-zero denominator or the input is invalid.
    """
    pair = _paired(actual, forecast)
    if pair is None:
        return SMAPE_SENTINEL
    a, f = pair

    scale = np.abs(a) + np.abs(f)
    mask = scale > 0
    if not mask.any():
        return SMAPE_SENTINEL

    ratios = np.abs(a[mask] - f[mask]) / (scale[mask] / 2)
    return float(np.mean(ratios) * 100)


def mase(actual, forecast, seasonal_period: int = 12):
    """
    Compute Mean Absolute Scaled Error (MASE).

    MASE = MAE(forecast) / mean_{i>=m} |actual[i] - actual[i-m]|

    When the series is too short to produce any seasonal-naive difference,
    or those differences are all zero, the plain MAE is returned instead.

    Returns:
        float MASE value (10 on invalid input). Below 1.0 beats seasonal naive.
    """
    pair = _paired(actual, forecast)
    if pair is None:
        return MASE_SENTINEL
    a, f = pair

    mae_forecast = float(np.mean(np.abs(a - f)))
    m = int(max(1, seasonal_period))
    if a.size <= m:
        return mae_forecast

    naive_errors = np.abs(a[m:] - a[:-m])
    scale = float(naive_errors.mean())
    if not np.isfinite(scale) or scale <= 0:
        return mae_forecast
    return mae_forecast / scale


def mae(actual, forecast):
    """Mean absolute error; 1000 on invalid input."""
    pair = _paired(actual, forecast)
    if pair is None:
        return MAE_SENTINEL
    a, f = pair
    return float(mean_absolute_error(a, f))


def weighted_mape(actual, forecast, decay: float = 0.9):
    """
    Recency-weighted MAPE.

    Point ``i`` of ``n`` gets weight ``decay ** (n - 1 - i)`` so the most
    recent observation counts fully. Actuals with ``|a| <= 0.01`` are skipped.

    Returns:
        Weighted MAPE in percent; 100 on invalid or fully skipped input.
    """
    pair = _paired(actual, forecast)
    if pair is None:
        return WEIGHTED_MAPE_SENTINEL
    a, f = pair

    n = a.size
    weights = np.power(float(decay), np.arange(n - 1, -1, -1, dtype=float))
    mask = np.abs(a) > MIN_ACTUAL_MAGNITUDE
    if not mask.any():
        return WEIGHTED_MAPE_SENTINEL

    w = weights[mask]
    total_weight = float(np.sum(w))
    if total_weight <= 0:
        return WEIGHTED_MAPE_SENTINEL
    errors = np.abs(a[mask] - f[mask]) / np.abs(a[mask])
    return float(np.sum(w * errors) / total_weight * 100)


def classify_accuracy(smape_value, mase_value, data_quality="medium"):
    """
    Map error levels to a confidence label and a quality grade.

    Args:
        smape_value: SMAPE in percent
        mase_value: MASE ratio
        data_quality: "high", "medium" or "low"

    Returns:
        tuple: (confidence, quality) with confidence in Alta/Media/Baja and
        quality in high/medium/low
    """
    if smape_value < 15 and mase_value < 1.0 and data_quality == "high":
        confidence = "Alta"
    elif smape_value < 25 and mase_value < 1.5 and data_quality != "low":
        confidence = "Media"
    else:
        confidence = "Baja"

    if smape_value < 20 and mase_value < 1.2:
        quality = "high"
    elif smape_value < 40 and mase_value < 2.0:
        quality = "medium"
    else:
        quality = "low"

    return confidence, quality


def calculate_advanced_metrics(actual, forecast, data_quality="medium",
                               seasonal_period: int = 12, decay: float = 0.9):
    """
    Calculate all accuracy metrics (SMAPE, MASE, MAE, weighted MAPE) and classify them.

    Args:
        actual: Actual values
        forecast: Forecasted values aligned with ``actual``
        data_quality: quality of the underlying history ("high", "medium", "low")
        seasonal_period: seasonal lag used by MASE
        decay: recency decay used by weighted MAPE

    Returns:
        AccuracyMetrics
    """
    if data_quality not in DATA_QUALITY_LEVELS:
        raise ValueError(f"data_quality must be one of {DATA_QUALITY_LEVELS}")

    smape_val = smape(actual, forecast)
    mase_val = mase(actual, forecast, seasonal_period=seasonal_period)
    mae_val = mae(actual, forecast)
    wmape_val = weighted_mape(actual, forecast, decay=decay)
    confidence, quality = classify_accuracy(smape_val, mase_val, data_quality)

    return AccuracyMetrics(
        smape=smape_val,
        mase=mase_val,
        mae=mae_val,
        weighted_mape=wmape_val,
        confidence=confidence,
        quality=quality,
    )


def worst_case_metrics():
    """The metrics reported when nothing could be evaluated."""
    return AccuracyMetrics(
        smape=SMAPE_SENTINEL,
        mase=MASE_SENTINEL,
        mae=MAE_SENTINEL,
        weighted_mape=WEIGHTED_MAPE_SENTINEL,
        confidence="Baja",
        quality="low",
    )


def determine_data_quality(outlier_report, data):
    """
    Grade a history from its outlier ratio and coefficient of variation.

    Args:
        outlier_report: OutlierReport for ``data``
        data: the series the report was computed on

    Returns:
        "high", "medium" or "low"
    """
    values = to_float_array(data)
    if values.size == 0:
        return "low"

    outlier_ratio = len(outlier_report.outliers) / values.size
    mean = float(np.mean(values))
    if mean <= 0:
        return "low"
    coefficient_of_variation = float(np.std(values)) / mean

    if outlier_ratio < 0.1 and coefficient_of_variation < 0.3:
        return "high"
    elif outlier_ratio < 0.2 and coefficient_of_variation < 0.6:
        return "medium"
    else:
        return "low"


def generate_recommendations(metrics, validation_metrics, outlier_report=None):
    """
    Turn accuracy results into follow-up suggestions for the planner.

    Args:
        metrics: AccuracyMetrics of the latest forecast
        validation_metrics: AccuracyMetrics from walk-forward validation
        outlier_report: optional OutlierReport of the history

    Returns:
        list of recommendation strings (never empty)
    """
    recommendations = []

    if metrics.smape > 25:
        recommendations.append("Consider adding external drivers (marketing, seasonality) to the model")

    if metrics.mase > 1.5:
        recommendations.append("The current model does not clearly beat a naive seasonal forecast")

    if outlier_report is not None and len(outlier_report.outliers) > 2:
        recommendations.append("Investigate the causes of the detected outliers")

    if validation_metrics.confidence == "Baja":
        recommendations.append("Recalibrate the model more frequently")

    if not recommendations:
        recommendations.append("Model is performing within acceptable parameters")

    return recommendations
