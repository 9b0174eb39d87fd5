"""
GC Server module.

This module contains the ingestion coordinator, the query service and the
FastAPI application exposing them over HTTP.
"""

from .ingestion import IngestionCoordinator
from .query import QueryService

__all__ = ["IngestionCoordinator", "QueryService"]
