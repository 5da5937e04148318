"""
Growth regime detection.

Classifies a series as normal growth, exponential growth, declining or
volatile from an exponential fit, recent trend and volatility evidence
combined through fixed priors. Also derives regime-adaptive guardrails that
bound how far a forecast may move from the history.

References:
- Ljung & Box "On a measure of lack of fit in time series models" (1978)
"""

import logging
import math
from dataclasses import dataclass, field

import numpy as np
from statsmodels.stats.diagnostic import acorr_ljungbox
from statsmodels.tsa.stattools import acf

from .utils import growth_rates, linear_fit, to_float_array

logger = logging.getLogger(__name__)

REGIMES = ("normal", "exponential", "declining", "volatile")
INDETERMINATE = "indeterminate"

MIN_REGIME_HISTORY = 4
INDETERMINATE_CONFIDENCE = 0.3

# Below this confidence the label is reported with a caution
CONFIDENT_THRESHOLD = 0.7

REGIME_PRIORS = {
    "normal": 0.6,
    "exponential": 0.15,
    "declining": 0.15,
    "volatile": 0.1,
}


@dataclass(frozen=True)
class ExponentialFit:
    """Log-linear fit ``y = a * exp(growth_rate * t)`` over the positive values."""
    growth_rate: float = 0.0
    r_squared: float = 0.0
    stability: float = 0.0
    overall_score: float = 0.0


@dataclass(frozen=True)
class LjungBoxResult:
    statistic: float = 0.0
    p_value: float = 1.0
    is_white_noise: bool = True


@dataclass(frozen=True)
class RegimeLabel:
    """Growth regime of a series with the evidence behind it."""
    regime: str
    confidence: float
    score: float = 0.0
    changepoints: list = field(default_factory=list)
    probabilities: dict = field(default_factory=lambda: {"normal": 1.0, "exponential": 0.0,
                                                         "declining": 0.0, "volatile": 0.0})
    exponential: ExponentialFit = field(default_factory=ExponentialFit)
    ljung_box: LjungBoxResult = field(default_factory=LjungBoxResult)
    changepoint_strength: float = 0.0
    trend_stability: float = 0.0
    volatility: float = 0.0
    seasonality_strength: float = 0.0

    @property
    def is_indeterminate(self):
        return self.regime == INDETERMINATE

    @property
    def is_confident(self):
        return not self.is_indeterminate and self.confidence >= CONFIDENT_THRESHOLD


@dataclass(frozen=True)
class AdaptiveGuardrails:
    upper_limit: float
    lower_limit: float
    confidence_interval: tuple
    k_factor: float
    regime_multiplier: float


@dataclass(frozen=True)
class RegimeAnalysis:
    regime: RegimeLabel
    guardrails: AdaptiveGuardrails
    recommendations: list
    justification: str


def detect_mean_shifts(series, penalty: float = 1.5):
    """
    Find split points where the mean before and after differs significantly.

    Each split ``2 <= i < n - 2`` is tested with a t-statistic of the mean
    difference against the pooled standard deviation; it is kept when the
    statistic exceeds ``penalty`` and the difference exceeds 10% of the larger
    absolute mean.
    """
    values = to_float_array(series)
    n = values.size
    if n < 6:
        return []

    changepoints = []
    for i in range(2, n - 2):
        left = values[:i]
        right = values[i:]
        left_mean = left.mean()
        right_mean = right.mean()
        difference = abs(left_mean - right_mean)

        pooled_std = math.sqrt((left.var() + right.var()) / 2)
        if pooled_std > 0:
            t_statistic = difference / (pooled_std * math.sqrt(2 / min(left.size, right.size)))
        else:
            t_statistic = math.inf if difference > 0 else 0.0

        if t_statistic > penalty and difference > 0.1 * max(abs(left_mean), abs(right_mean)):
            changepoints.append(i)

    return changepoints


def exponential_growth_score(series):
    """
    Score how well the series follows exponential growth.

    Returns:
        ExponentialFit; all zeros when fewer than 4 positive values exist
    """
    values = to_float_array(series)
    positive = values[values > 0]
    if positive.size < 4:
        return ExponentialFit()

    log_values = np.log(positive)
    growth_rate, intercept = linear_fit(log_values)

    fitted = intercept + growth_rate * np.arange(log_values.size)
    ss_res = float(np.sum((log_values - fitted) ** 2))
    ss_tot = float(np.sum((log_values - log_values.mean()) ** 2))
    r_squared = max(0.0, 1 - ss_res / ss_tot) if ss_tot > 0 else 0.0

    # Stability: dispersion of period growth rates relative to their mean
    rates = growth_rates(positive)
    stability = 0.0
    if rates.size:
        rate_mean = float(rates.mean())
        if rate_mean != 0:
            stability = max(0.0, 1 - float(rates.std()) / abs(rate_mean))

    overall = r_squared * 0.4 + stability * 0.4 + min(1.0, abs(growth_rate) / 0.2) * 0.2
    return ExponentialFit(
        growth_rate=float(growth_rate),
        r_squared=float(r_squared),
        stability=float(stability),
        overall_score=float(overall),
    )


def ljung_box_test(residuals, lag: int = 5):
    """
    Ljung-Box test for autocorrelation in residuals.

    Returns:
        LjungBoxResult; white noise by default when the sample is shorter than
        ``lag + 2`` or has no variance
    """
    values = to_float_array(residuals)
    if values.size < lag + 2 or float(np.var(values)) <= 1e-12:
        return LjungBoxResult()

    try:
        table = acorr_ljungbox(values, lags=[lag])
        statistic = float(table["lb_stat"].iloc[-1])
        p_value = float(table["lb_pvalue"].iloc[-1])
    except (ValueError, np.linalg.LinAlgError) as e:
        logger.debug("Ljung-Box test failed: %s", e)
        return LjungBoxResult()

    if not (np.isfinite(statistic) and np.isfinite(p_value)):
        return LjungBoxResult()
    return LjungBoxResult(statistic=statistic, p_value=p_value, is_white_noise=p_value > 0.05)


def _recent_trend(values):
    """Relative change over the last two periods."""
    if values.size < 3 or values[-3] == 0:
        return 0.0
    return float(values[-1] / values[-3] - 1)


def _recent_volatility(values):
    """RMS of the last three period growth rates."""
    if values.size < 4:
        return 0.0
    tail = values[-4:]
    squares = [
        (tail[i] / tail[i - 1] - 1) ** 2
        for i in range(1, tail.size)
        if tail[i - 1] != 0
    ]
    return float(math.sqrt(sum(squares) / 3))


def bayesian_probabilities(series, exponential_fit):
    """
    Posterior probability of each regime from fixed priors and simple likelihoods.

    Returns:
        dict regime -> probability, summing to 1
    """
    values = to_float_array(series)
    recent_trend = _recent_trend(values)
    volatility = _recent_volatility(values)

    if recent_trend < -0.05:
        declining_likelihood = max(0.1, min(1.0, -recent_trend * 10))
    else:
        declining_likelihood = 0.2

    likelihoods = {
        "normal": max(0.0, max(0.1, 1 - abs(recent_trend - 0.05) * 5) * (1 - volatility * 2)),
        "exponential": exponential_fit.overall_score * (2 if recent_trend > 0.1 else 0.5),
        "declining": declining_likelihood,
        "volatile": min(1.0, volatility * 3),
    }

    raw = {regime: REGIME_PRIORS[regime] * likelihoods[regime] for regime in REGIMES}
    total = sum(raw.values())
    if total <= 0 or not np.isfinite(total):
        return {"normal": 1.0, "exponential": 0.0, "declining": 0.0, "volatile": 0.0}
    return {regime: float(p / total) for regime, p in raw.items()}


def detect_seasonality_strength(series, seasonal_period=12):
    """
    Detect the strength of seasonality in the time series.
    Returns a score between 0 (no seasonality) and 1 (strong seasonality).
    """
    values = to_float_array(series)
    if values.size < seasonal_period * 2 or float(np.var(values)) <= 1e-12:
        return 0.0

    try:
        autocorr = acf(values, nlags=seasonal_period, fft=False)
    except (ValueError, np.linalg.LinAlgError) as e:
        logger.debug("Autocorrelation failed: %s", e)
        return 0.0
    seasonal_autocorr = abs(float(autocorr[seasonal_period]))
    if not np.isfinite(seasonal_autocorr):
        return 0.0

    # Also check for consistent seasonal patterns
    if values.size >= seasonal_period * 3:
        seasonal_means = [values[i::seasonal_period].mean() for i in range(seasonal_period)]
        mean_of_means = float(np.mean(seasonal_means))
        seasonal_cv = float(np.std(seasonal_means)) / mean_of_means if mean_of_means > 0 else 0.0
        score = (seasonal_autocorr + min(seasonal_cv, 1.0)) / 2
    else:
        score = seasonal_autocorr

    return min(float(score), 1.0)


def indeterminate_regime(changepoints=None):
    """Low-confidence label for histories too short to classify."""
    return RegimeLabel(
        regime=INDETERMINATE,
        confidence=INDETERMINATE_CONFIDENCE,
        changepoints=list(changepoints or []),
        trend_stability=0.5,
    )


def detect_regime(series):
    """
    Classify the growth regime of a series.

    Never raises: non-finite values are dropped and histories shorter than
    4 points get an ``indeterminate`` label with low confidence.

    Returns:
        RegimeLabel
    """
    values = to_float_array(series)
    values = values[np.isfinite(values)]
    if values.size < MIN_REGIME_HISTORY:
        return indeterminate_regime()

    changepoints = detect_mean_shifts(values)
    fit = exponential_growth_score(values)

    # Residuals of the last year against its end-to-end line
    recent = values[-min(12, values.size):]
    baseline = recent[0] + (recent[-1] - recent[0]) * np.arange(recent.size) / (recent.size - 1)
    ljung_box = ljung_box_test(recent - baseline)

    probabilities = bayesian_probabilities(values, fit)
    # Ties resolve in REGIMES order
    regime = max(REGIMES, key=lambda r: probabilities[r])
    max_probability = probabilities[regime]
    confidence = min(1.0, max_probability * (1 + fit.r_squared) * (1 + fit.stability) / 2)

    return RegimeLabel(
        regime=regime,
        confidence=float(confidence),
        score=fit.overall_score if regime == "exponential" else max_probability,
        changepoints=changepoints,
        probabilities=probabilities,
        exponential=fit,
        ljung_box=ljung_box,
        changepoint_strength=len(changepoints) / max(1.0, values.size / 4),
        trend_stability=fit.stability,
        volatility=_recent_volatility(values),
        seasonality_strength=detect_seasonality_strength(values),
    )


def calculate_adaptive_guardrails(history, current_value, regime, time_horizon: int = 1):
    """
    Limits a forecast should stay within, widened or tightened by regime.

    Args:
        history: numeric history
        current_value: latest value the confidence interval is centred on
        regime: RegimeLabel
        time_horizon: steps ahead; limits widen with its square root

    Returns:
        AdaptiveGuardrails
    """
    values = to_float_array(history)
    values = values[np.isfinite(values)]
    mean = float(values.mean()) if values.size else float(current_value)
    std = float(values.std()) if values.size else 0.0

    if regime.regime == "exponential":
        k_factor = 2.58 + regime.confidence * 0.5
        regime_multiplier = 1.5 + regime.exponential.growth_rate * 2
    elif regime.regime == "volatile":
        k_factor = 2.24
        regime_multiplier = 1.2
    elif regime.regime == "declining":
        k_factor = 1.96
        regime_multiplier = 0.8
    else:
        k_factor = 1.96
        regime_multiplier = 1.0

    spread = k_factor * std * math.sqrt(max(1, time_horizon))
    # A negative multiplier would swap the limits
    lower_limit, upper_limit = sorted((
        (mean - spread) * regime_multiplier,
        (mean + spread) * regime_multiplier,
    ))
    interval_low = current_value - spread

    # Only non-negative histories are floored at zero
    non_negative = float(values.min()) >= 0 if values.size else current_value >= 0
    if non_negative:
        lower_limit = max(0.0, lower_limit)
        interval_low = max(0.0, interval_low)

    confidence_interval = (
        float(interval_low),
        current_value + spread * regime_multiplier,
    )

    return AdaptiveGuardrails(
        upper_limit=float(upper_limit),
        lower_limit=float(lower_limit),
        confidence_interval=confidence_interval,
        k_factor=float(k_factor),
        regime_multiplier=float(regime_multiplier),
    )


def analyze_regime(history, current_value, time_horizon: int = 1):
    """
    Detect the regime, derive guardrails and explain both.

    Returns:
        RegimeAnalysis
    """
    regime = detect_regime(history)
    guardrails = calculate_adaptive_guardrails(history, current_value, regime, time_horizon)
    recommendations = []

    if regime.regime == "exponential":
        fit = regime.exponential
        recommendations.append(
            f"Exponential growth detected (rate={fit.growth_rate:.3f}, R2={fit.r_squared:.3f})"
        )
        recommendations.append(f"Limits widened automatically (k={guardrails.k_factor:.2f})")
        justification = (
            f"Exponential regime: growth rate {fit.growth_rate:.3f}, fit R2 {fit.r_squared:.3f}, "
            f"stability {fit.stability:.3f}. Adaptive limits with k={guardrails.k_factor:.2f}."
        )
    elif regime.regime == "volatile":
        recommendations.append("Volatile data detected - use wider confidence intervals")
        recommendations.append("Consider external factors or seasonality")
        justification = (
            f"Volatile regime: high variability (volatility {regime.volatility:.3f}). "
            "Conservative limits applied."
        )
    elif regime.regime == "declining":
        recommendations.append("Declining trend detected - asymmetric limits applied")
        recommendations.append("Review the causes of the decline")
        justification = (
            f"Declining regime: posterior probability {regime.probabilities['declining']:.3f}. "
            "Upside limits tightened."
        )
    elif regime.regime == INDETERMINATE:
        recommendations.append("Not enough history to classify the growth regime - standard limits applied")
        justification = "Indeterminate regime: history too short for regime analysis."
    else:
        recommendations.append("Normal growth - standard limits applied")
        justification = "Normal regime: growth within historical parameters (mean +/- 1.96 sd)."

    if regime.confidence < CONFIDENT_THRESHOLD:
        recommendations.append("Regime confidence below 70% - use with caution")

    return RegimeAnalysis(
        regime=regime,
        guardrails=guardrails,
        recommendations=recommendations,
        justification=justification,
    )
