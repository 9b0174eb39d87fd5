"""
Exception hierarchy shared by every GC analysis component.

Callers can catch GcAnalysisError to handle any failure raised by this
system, or one of the subclasses to react to a specific failure category.
"""


class GcAnalysisError(Exception):
    """Base class for all errors raised by the GC analysis service."""


class InvalidArgumentError(GcAnalysisError, ValueError):
    """
    An argument is outside its valid domain.

    Raised for non-positive tickets, unknown resource kinds and significance
    levels outside (0, 1). Never retried.
    """


class StatusDecodeError(InvalidArgumentError):
    """A stored status token does not name a known JobStatus."""


class StoreUnavailableError(GcAnalysisError):
    """The backing key-value store could not complete an operation."""


class IngestionError(GcAnalysisError):
    """An upload stream is malformed or refers to an unusable ticket."""


class AnalysisFailedError(GcAnalysisError):
    """The parser or the statistics engine could not produce a result."""


class LogParseError(AnalysisFailedError):
    """A log record could not be decoded into a GcEvent."""
