"""
Outlier detection and treatment for monthly series.

Flags points outside an IQR fence, replaces them with the median for a
cleaned copy, and separately caps every point to the 5th/95th percentile
(winsorization). Percentiles are taken by sorted index, not interpolated.
"""

import logging
import math
from dataclasses import dataclass

import numpy as np

from .utils import to_float_array, to_float_list

logger = logging.getLogger(__name__)

MIN_OUTLIER_HISTORY = 4


@dataclass(frozen=True)
class OutlierReport:
    """Outliers found in a series plus two treated copies of it."""
    outliers: list
    outlier_indices: list
    cleaned_data: list
    winsorized_data: list

    @property
    def outlier_ratio(self):
        if not self.cleaned_data:
            return 0.0
        return len(self.outliers) / len(self.cleaned_data)


def _percentile_at(sorted_values, fraction):
    """Value at index floor(n * fraction) of an already sorted array."""
    index = int(math.floor(sorted_values.size * fraction))
    index = min(index, sorted_values.size - 1)
    return float(sorted_values[index])


def detect_and_treat_outliers(data, iqr_multiplier: float = 2.5):
    """
    Detect IQR outliers and produce median-substituted and winsorized copies.

    Args:
        data: numeric series
        iqr_multiplier: fence width in interquartile ranges

    Returns:
        OutlierReport. Series shorter than 4 points are returned unchanged
        with no outliers.
    """
    values = to_float_array(data)
    original = to_float_list(values)

    if values.size < MIN_OUTLIER_HISTORY:
        return OutlierReport(
            outliers=[],
            outlier_indices=[],
            cleaned_data=list(original),
            winsorized_data=list(original),
        )

    sorted_values = np.sort(values, kind="stable")
    q1 = _percentile_at(sorted_values, 0.25)
    q3 = _percentile_at(sorted_values, 0.75)
    iqr = q3 - q1
    lower_fence = q1 - iqr_multiplier * iqr
    upper_fence = q3 + iqr_multiplier * iqr
    median = float(np.median(values))

    outlier_mask = (values < lower_fence) | (values > upper_fence)
    outlier_indices = [int(i) for i in np.flatnonzero(outlier_mask)]
    cleaned = np.where(outlier_mask, median, values)

    p5 = _percentile_at(sorted_values, 0.05)
    p95 = _percentile_at(sorted_values, 0.95)
    winsorized = np.clip(values, p5, p95)

    if outlier_indices:
        logger.debug(
            "Detected %d outlier(s) outside [%.4g, %.4g] at %s",
            len(outlier_indices), lower_fence, upper_fence, outlier_indices,
        )

    return OutlierReport(
        outliers=[original[i] for i in outlier_indices],
        outlier_indices=outlier_indices,
        cleaned_data=to_float_list(cleaned),
        winsorized_data=to_float_list(winsorized),
    )
