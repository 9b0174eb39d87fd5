"""
GC Common module.

This module contains the shared domain models, the error hierarchy, the
key-value store interface and the ticket registry used across the GC
analysis components (server, controller, persistence, analyzer).

The common module has no dependencies on other gc_* modules, making it
a pure domain layer that can be imported by any component.
"""

from .errors import (
    AnalysisFailedError,
    GcAnalysisError,
    IngestionError,
    InvalidArgumentError,
    LogParseError,
    StatusDecodeError,
    StoreUnavailableError,
)
from .models import GcAnalyzedData, GcEvent, JobStatus, LogType, ResourceKind
from .store import KeyValueStore
from .ticketer import Ticketer, make_key

__all__ = [
    "AnalysisFailedError",
    "GcAnalysisError",
    "GcAnalyzedData",
    "GcEvent",
    "IngestionError",
    "InvalidArgumentError",
    "JobStatus",
    "KeyValueStore",
    "LogParseError",
    "LogType",
    "ResourceKind",
    "StatusDecodeError",
    "StoreUnavailableError",
    "Ticketer",
    "make_key",
]
