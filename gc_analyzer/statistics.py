"""Descriptive statistics, mean estimation and outlier detection for pause times."""

import math
from collections.abc import Callable, Sequence
from typing import Optional, TypeVar

import numpy as np
from scipy import stats as sp_stats

from gc_common.errors import InvalidArgumentError
from gc_common.models import MeanRange

T = TypeVar("T")


class Statistics:
    """
    Statistical methods used by the log analyzer.

    Significance levels are two-sided: a level L maps to the critical value
    at the 1 - L/2 quantile, so a smaller level always gives a larger
    critical value. Mean estimation uses Student's t distribution with
    n - 1 degrees of freedom; outlier detection uses the standard normal.
    """

    @staticmethod
    def total_sum(values: Sequence[float]) -> float:
        """Sum of values, 0 for an empty sequence."""
        if len(values) == 0:
            return 0.0
        return float(np.sum(values))

    @staticmethod
    def sample_mean(values: Sequence[float]) -> float:
        """Arithmetic mean, 0 for an empty sequence."""
        if len(values) == 0:
            return 0.0
        return float(np.mean(values))

    @staticmethod
    def sample_std_dev(values: Sequence[float], mean: Optional[float] = None) -> float:
        """
        Unbiased sample standard deviation.

        s = sqrt(sum((x - mean)^2) / (n - 1))

        Defined as 0 when there are fewer than two values.
        """
        n = len(values)
        if n < 2:
            return 0.0
        if mean is None:
            mean = Statistics.sample_mean(values)
        deviations = np.asarray(values, dtype=float) - mean
        return float(math.sqrt(float(np.sum(deviations**2)) / (n - 1)))

    @staticmethod
    def sample_median(values: Sequence[float]) -> float:
        """Middle value, or mean of the two central values for even n."""
        if len(values) == 0:
            return 0.0
        return float(np.median(values))

    @staticmethod
    def get_min(items: Sequence[T], key: Callable[[T], float]) -> Optional[T]:
        """First item with the smallest key, None if empty."""
        if len(items) == 0:
            return None
        return min(items, key=key)

    @staticmethod
    def get_max(items: Sequence[T], key: Callable[[T], float]) -> Optional[T]:
        """First item with the largest key, None if empty."""
        if len(items) == 0:
            return None
        return max(items, key=key)

    @staticmethod
    def check_level(level: float) -> None:
        """Raise InvalidArgumentError unless 0 < level < 1."""
        if not 0.0 < level < 1.0:
            raise InvalidArgumentError(
                f"Significance level must be in (0, 1), got {level}"
            )

    @staticmethod
    def t_critical_value(level: float, df: int) -> float:
        """Two-sided Student t critical value t(1 - level/2, df)."""
        Statistics.check_level(level)
        return float(sp_stats.t.ppf(1 - level / 2, df))

    @staticmethod
    def z_critical_value(level: float) -> float:
        """Two-sided standard normal critical value z(1 - level/2)."""
        Statistics.check_level(level)
        return float(sp_stats.norm.ppf(1 - level / 2))

    @staticmethod
    def estimate_mean(mean: float, std_dev: float, n: int, level: float) -> MeanRange:
        """
        Confidence interval for the true mean.

        CI = mean +/- t_(level/2, n-1) * s / sqrt(n)

        Args:
            mean: Sample mean
            std_dev: Sample standard deviation
            n: Sample size
            level: Significance level, e.g. 0.05 for a 95% interval

        Returns:
            The interval. It collapses to [mean, mean] when n <= 1 or s == 0.
        """
        Statistics.check_level(level)
        if n < 2 or std_dev == 0:
            return MeanRange(lower=mean, upper=mean)

        margin = Statistics.t_critical_value(level, n - 1) * std_dev / math.sqrt(n)
        return MeanRange(lower=mean - margin, upper=mean + margin)

    @staticmethod
    def get_outliers(
        items: Sequence[T],
        mean: float,
        std_dev: float,
        level: float,
        key: Callable[[T], float],
    ) -> list[T]:
        """
        Items whose value deviates from the mean by more than z * s.

        The comparison is strict, so nothing is an outlier when s == 0.
        Input order is preserved.
        """
        Statistics.check_level(level)
        if std_dev == 0:
            return []

        threshold = Statistics.z_critical_value(level) * std_dev
        return [item for item in items if abs(key(item) - mean) > threshold]
