"""
Per-category analysis of GC events.

The analyzer is a pure function of its input events: it performs no I/O
and keeps no state between calls, so independent tickets can be analyzed
in parallel threads.
"""

from collections import Counter
from collections.abc import Iterable, Sequence

from gc_common.models import (
    PAUSE_LOG_TYPES,
    GcAnalyzedData,
    GcConcurrentStat,
    GcEstimatedPauseTime,
    GcEvent,
    GcPauseOutliers,
    GcPauseStat,
    LogType,
)

from .statistics import Statistics

DEFAULT_MEAN_LEVELS = (0.01, 0.05, 0.10)
DEFAULT_OUTLIER_LEVELS = (0.01, 0.10, 0.25)


def _pause_time(event: GcEvent) -> float:
    return event.pause_time


class LogAnalyzer:
    """Analyzes a list of GC events."""

    def __init__(self, events: Iterable[GcEvent]):
        self.events = list(events)

    def analyze_data(
        self,
        mean_levels: Sequence[float] = DEFAULT_MEAN_LEVELS,
        outlier_levels: Sequence[float] = DEFAULT_OUTLIER_LEVELS,
    ) -> GcAnalyzedData:
        """
        Analyze the events.

        Produces one GcPauseStat per pausing category (FULL_GC, MINOR_GC,
        CMS_INIT_MARK, CMS_FINAL_REMARK, in that order, even when a category
        has no events) and one GcConcurrentStat per distinct type detail of
        CMS concurrent events.

        Args:
            mean_levels: Significance levels for the mean confidence intervals
            outlier_levels: Significance levels for outlier detection

        Raises:
            InvalidArgumentError: If a level is outside (0, 1)
        """
        for level in (*mean_levels, *outlier_levels):
            Statistics.check_level(level)

        return GcAnalyzedData(
            pauses=[
                self.analyze_pause_time(log_type, mean_levels, outlier_levels)
                for log_type in PAUSE_LOG_TYPES
            ],
            concurrences=self.analyze_concurrent(),
        )

    def analyze_pause_time(
        self,
        log_type: LogType,
        mean_levels: Sequence[float],
        outlier_levels: Sequence[float],
    ) -> GcPauseStat:
        data = [e for e in self.events if e.log_type == log_type]
        pause_times = [e.pause_time for e in data]
        n = len(data)

        sample_mean = Statistics.sample_mean(pause_times)
        sample_std_dev = Statistics.sample_std_dev(pause_times, sample_mean)

        means = [
            GcEstimatedPauseTime(
                level=level,
                mean=Statistics.estimate_mean(sample_mean, sample_std_dev, n, level),
            )
            for level in mean_levels
        ]
        outliers = [
            GcPauseOutliers(
                level=level,
                events=Statistics.get_outliers(
                    data, sample_mean, sample_std_dev, level, _pause_time
                ),
            )
            for level in outlier_levels
        ]

        return GcPauseStat(
            type=log_type,
            count=n,
            total_pause_time=Statistics.total_sum(pause_times),
            sample_mean=sample_mean,
            sample_std_dev=sample_std_dev,
            sample_median=Statistics.sample_median(pause_times),
            min_event=Statistics.get_min(data, _pause_time),
            max_event=Statistics.get_max(data, _pause_time),
            means=means,
            outliers=outliers,
        )

    def analyze_concurrent(self) -> list[GcConcurrentStat]:
        """Count CMS concurrent events per type detail, in order of first appearance."""
        counts = Counter(
            e.type_detail for e in self.events if e.log_type == LogType.CMS_CONCURRENT
        )
        return [
            GcConcurrentStat(type_detail=detail, count=count)
            for detail, count in counts.items()
        ]


def analyze(
    events: Iterable[GcEvent],
    mean_levels: Sequence[float] = DEFAULT_MEAN_LEVELS,
    outlier_levels: Sequence[float] = DEFAULT_OUTLIER_LEVELS,
) -> GcAnalyzedData:
    """Shortcut for LogAnalyzer(events).analyze_data(mean_levels, outlier_levels)."""
    return LogAnalyzer(events).analyze_data(mean_levels, outlier_levels)
