"""
GC Controller module.

This module contains the analysis controller, the background worker that
parses uploaded logs, runs the statistics engine and records the outcome
of each ticket.
"""

from .controller import AnalysisController

__all__ = ["AnalysisController"]
