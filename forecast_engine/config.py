"""
Configuration for the decomposition forecaster and the ensemble.

Defaults are tuned for monthly business data (12-period yearly cycle).
Both records are frozen; use ``from_mapping`` or ``dataclasses.replace``
to derive a variant.
"""

from dataclasses import dataclass, field, fields, replace

SEASONALITY_MODES = ("additive", "multiplicative")
DATA_QUALITY_LEVELS = ("high", "medium", "low")
OUTLIER_TREATMENTS = (None, "winsorize", "median")

# Accepted camelCase spellings of the forecaster options
_OPTION_ALIASES = {
    "seasonalityMode": "seasonality_mode",
    "changePointPriorScale": "changepoint_prior_scale",
    "seasonalityPriorScale": "seasonality_prior_scale",
    "nChangepoints": "n_changepoints",
    "yearlySeasonality": "yearly_seasonality",
    "weeklySeasonality": "weekly_seasonality",
    "dailySeasonality": "daily_seasonality",
    "seasonalPeriod": "seasonal_period",
    "fourierHarmonics": "fourier_harmonics",
}

# Grid explored by optimize_prophet_parameters, in nesting order
PARAM_GRID = {
    "changepoint_prior_scale": (0.001, 0.01, 0.05, 0.1, 0.5),
    "seasonality_prior_scale": (0.01, 0.1, 1.0, 10.0),
    "n_changepoints": (5, 10, 15, 25),
}


@dataclass(frozen=True)
class ProphetConfig:
    """
    Options for :func:`forecast_engine.prophet_like.prophet_forecast`.

    ``weekly_seasonality``, ``daily_seasonality`` and ``intervals`` are
    accepted for compatibility but do not change the output: intervals are
    always 95%. The prior scales are varied by the grid search and carried
    on the result config; the trend fit does not regularize with them.
    """
    seasonality_mode: str = "additive"
    changepoint_prior_scale: float = 0.15
    seasonality_prior_scale: float = 20.0
    n_changepoints: int = 35
    yearly_seasonality: bool = True
    weekly_seasonality: bool = False
    daily_seasonality: bool = False
    intervals: tuple = (0.8, 0.95)
    seasonal_period: int = 12
    fourier_harmonics: int = 3

    def __post_init__(self):
        if self.seasonality_mode not in SEASONALITY_MODES:
            raise ValueError(
                f"seasonality_mode must be one of {SEASONALITY_MODES}, got {self.seasonality_mode!r}"
            )
        if self.n_changepoints < 0:
            raise ValueError("n_changepoints must be >= 0")
        if self.seasonal_period < 1:
            raise ValueError("seasonal_period must be >= 1")
        if self.fourier_harmonics < 0:
            raise ValueError("fourier_harmonics must be >= 0")
        # Lists are accepted from callers but stored as a tuple
        object.__setattr__(self, "intervals", tuple(self.intervals))

    @classmethod
    def from_mapping(cls, overrides=None, base=None):
        """
        Build a config from a partial mapping of options.

        Args:
            overrides: mapping of option name -> value. camelCase names such as
                ``seasonalityMode`` and ``changePointPriorScale`` are accepted.
            base: config the overrides apply to (defaults to ``ProphetConfig()``)

        Returns:
            ProphetConfig

        Raises:
            ValueError: on an unknown option name
        """
        base = base if base is not None else cls()
        if not overrides:
            return base
        known = {f.name for f in fields(cls)}
        changes = {}
        for key, value in dict(overrides).items():
            name = _OPTION_ALIASES.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown forecast option: {key!r}")
            changes[name] = value
        return replace(base, **changes)


DEFAULT_PROPHET_CONFIG = ProphetConfig()


def resolve_prophet_config(config):
    """Accept ``None``, a ``ProphetConfig`` or a mapping of overrides."""
    if config is None:
        return DEFAULT_PROPHET_CONFIG
    if isinstance(config, ProphetConfig):
        return config
    return ProphetConfig.from_mapping(config)


@dataclass(frozen=True)
class EnsembleConfig:
    """
    Options for :func:`forecast_engine.ensemble.combine_forecasts`.

    ``data_quality`` may be ``"auto"`` to derive it from the outlier report
    of the history. ``external_adjustment`` is an optional ``(factor, reason)``
    pair applied to the final forecast (holiday effects and similar).
    """
    data_quality: str = "medium"
    min_train_size: int = 6
    test_size: int = 1
    seasonal_period: int = 12
    apply_guardrails: bool = True
    outlier_treatment: object = None
    iqr_multiplier: float = 2.5
    optimize_prophet: bool = False
    validation_periods: int = 3
    monte_carlo_simulations: int = 1000
    random_seed: int = 42
    holt_alpha: float = 0.3
    external_adjustment: object = None
    prophet: ProphetConfig = field(default_factory=ProphetConfig)

    def __post_init__(self):
        if self.data_quality not in DATA_QUALITY_LEVELS + ("auto",):
            raise ValueError(f"data_quality must be one of {DATA_QUALITY_LEVELS} or 'auto'")
        if self.outlier_treatment not in OUTLIER_TREATMENTS:
            raise ValueError(f"outlier_treatment must be one of {OUTLIER_TREATMENTS}")
        if self.min_train_size < 1 or self.test_size < 1:
            raise ValueError("min_train_size and test_size must be >= 1")
        if not isinstance(self.prophet, ProphetConfig):
            object.__setattr__(self, "prophet", resolve_prophet_config(self.prophet))

    @classmethod
    def from_mapping(cls, overrides=None):
        """Build an ensemble config from a partial mapping; unknown keys raise ``ValueError``."""
        if not overrides:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(f"Unknown ensemble option(s): {', '.join(unknown)}")
        return cls(**dict(overrides))
