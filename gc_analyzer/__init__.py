"""
GC Analyzer module.

This module contains the statistics engine and the log parser interface.
It performs no I/O beyond what a parser implementation needs and depends
only on gc_common.
"""

from .analyzer import DEFAULT_MEAN_LEVELS, DEFAULT_OUTLIER_LEVELS, LogAnalyzer, analyze
from .parser import GcLogParser, JsonLinesLogParser
from .statistics import Statistics

__all__ = [
    "DEFAULT_MEAN_LEVELS",
    "DEFAULT_OUTLIER_LEVELS",
    "GcLogParser",
    "JsonLinesLogParser",
    "LogAnalyzer",
    "Statistics",
    "analyze",
]
