import math

import numpy as np
import pytest

from forecast_engine.regime import (
    RegimeLabel,
    analyze_regime,
    bayesian_probabilities,
    calculate_adaptive_guardrails,
    detect_mean_shifts,
    detect_regime,
    detect_seasonality_strength,
    exponential_growth_score,
    ljung_box_test,
)


@pytest.mark.parametrize("series", [
    [],
    [1.0, 2.0, 3.0],
    [1.0, math.nan, 2.0, 3.0],
    [math.nan] * 10,
])
def test_short_or_missing_history_is_indeterminate(series):
    label = detect_regime(series)
    assert label.is_indeterminate
    assert label.confidence == 0.3
    assert not label.is_confident


def test_declining_series():
    label = detect_regime([100, 90, 80, 70, 60, 50, 40, 30])
    assert label.regime == "declining"


def test_exponential_series():
    label = detect_regime([100 * 1.2 ** i for i in range(12)])
    assert label.regime == "exponential"
    assert label.exponential.growth_rate == pytest.approx(math.log(1.2))
    assert label.exponential.r_squared == pytest.approx(1.0)
    assert label.is_confident


def test_steady_growth_is_normal():
    label = detect_regime([100 * 1.02 ** i for i in range(24)])
    assert label.regime == "normal"


def test_swinging_series_is_volatile():
    label = detect_regime([100, 150, 80, 160, 70, 170, 60, 180])
    assert label.regime == "volatile"


def test_probabilities_sum_to_one():
    values = [100, 150, 80, 160, 70, 170, 60, 180]
    probabilities = bayesian_probabilities(values, exponential_growth_score(values))
    assert sum(probabilities.values()) == pytest.approx(1.0)
    assert all(p >= 0 for p in probabilities.values())


def test_mean_shift_detected_at_step():
    assert 6 in detect_mean_shifts([10.0] * 6 + [20.0] * 6)
    assert detect_mean_shifts([10.0] * 5) == []


def test_exponential_score_needs_four_positive_values():
    fit = exponential_growth_score([-1, 0, 2, 3, 4])
    assert fit.overall_score == 0.0


def test_ljung_box():
    assert ljung_box_test([1.0, 2.0, 3.0]).is_white_noise

    wave = np.sin(2 * np.pi * np.arange(40) / 8)
    result = ljung_box_test(wave)
    assert result.p_value < 0.05
    assert not result.is_white_noise


def test_seasonality_strength():
    assert detect_seasonality_strength([1.0] * 30) == 0.0
    index = np.arange(36)
    strength = detect_seasonality_strength(100 + 20 * np.sin(2 * np.pi * index / 12))
    assert 0.3 < strength <= 1.0


def test_guardrails_by_regime():
    history = [8.0, 10.0, 12.0]
    std = np.std(history)

    normal = calculate_adaptive_guardrails(history, 12.0, RegimeLabel("normal", 0.8))
    assert normal.upper_limit == pytest.approx(10 + 1.96 * std)
    assert normal.lower_limit == pytest.approx(10 - 1.96 * std)

    later = calculate_adaptive_guardrails(history, 12.0, RegimeLabel("normal", 0.8), time_horizon=4)
    assert later.upper_limit == pytest.approx(10 + 2 * 1.96 * std)

    declining = calculate_adaptive_guardrails(history, 12.0, RegimeLabel("declining", 0.8))
    assert declining.upper_limit == pytest.approx((10 + 1.96 * std) * 0.8)


def test_guardrail_lower_limit_is_floored_at_zero():
    guardrails = calculate_adaptive_guardrails([0.0, 100.0], 100.0, RegimeLabel("volatile", 0.8))
    assert guardrails.lower_limit == 0.0


def test_analyze_regime():
    analysis = analyze_regime([100 * 1.2 ** i for i in range(12)], 743.0)
    assert analysis.regime.regime == "exponential"
    assert analysis.recommendations
    assert analysis.justification.startswith("Exponential regime")

    short = analyze_regime([1.0, 2.0], 2.0)
    assert short.regime.is_indeterminate
    assert "Indeterminate" in short.justification


def test_guardrails_for_negative_history_are_not_floored():
    history = [-12.0, -10.0, -8.0]
    std = np.std(history)
    guardrails = calculate_adaptive_guardrails(history, -8.0, RegimeLabel("declining", 0.8))

    assert guardrails.lower_limit == pytest.approx((-10 - 1.96 * std) * 0.8)
    assert guardrails.upper_limit == pytest.approx((-10 + 1.96 * std) * 0.8)
    assert guardrails.confidence_interval[0] == pytest.approx(-8 - 1.96 * std)
