import dataclasses

import pytest

from forecast_engine.config import EnsembleConfig, ProphetConfig, resolve_prophet_config
from forecast_engine.utils import assess_history_length, growth_rates, linear_fit, to_float_array


def test_prophet_defaults():
    config = ProphetConfig()
    assert config.seasonality_mode == "additive"
    assert config.n_changepoints == 35
    assert config.seasonal_period == 12
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.n_changepoints = 5


def test_prophet_from_mapping_accepts_camel_case():
    config = ProphetConfig.from_mapping({"seasonalityMode": "multiplicative", "nChangepoints": 10})
    assert config.seasonality_mode == "multiplicative"
    assert config.n_changepoints == 10
    assert config.yearly_seasonality is True


@pytest.mark.parametrize("overrides", [
    {"growth": "logistic"},
    {"seasonality_mode": "exponential"},
    {"n_changepoints": -1},
])
def test_prophet_invalid_options(overrides):
    with pytest.raises(ValueError):
        ProphetConfig.from_mapping(overrides)


def test_resolve_prophet_config():
    config = ProphetConfig(n_changepoints=3)
    assert resolve_prophet_config(config) is config
    assert resolve_prophet_config(None) == ProphetConfig()
    assert resolve_prophet_config({"intervals": [0.9]}).intervals == (0.9,)


def test_ensemble_config():
    config = EnsembleConfig.from_mapping({"data_quality": "auto", "prophet": {"nChangepoints": 4}})
    assert config.data_quality == "auto"
    assert config.prophet.n_changepoints == 4

    with pytest.raises(ValueError):
        EnsembleConfig(outlier_treatment="clip")
    with pytest.raises(ValueError):
        EnsembleConfig.from_mapping({"horizon": 3})


def test_to_float_array_copies_input():
    source = [1, 2, 3]
    values = to_float_array(source)
    values[0] = 99.0
    assert source == [1, 2, 3]
    assert to_float_array(None).size == 0


def test_linear_fit():
    assert linear_fit([3.0, 5.0, 7.0]) == pytest.approx((2.0, 3.0))
    assert linear_fit([4.0]) == (0.0, 4.0)
    assert linear_fit([]) == (0.0, 0.0)


def test_growth_rates_skip_non_positive_bases():
    assert list(growth_rates([0.0, 2.0, 3.0])) == pytest.approx([0.5])


@pytest.mark.parametrize("n, expected", [
    (6, "insufficient"),
    (12, "limited"),
    (30, "good"),
    (48, "excellent"),
])
def test_assess_history_length(n, expected):
    assert assess_history_length(n) == expected
