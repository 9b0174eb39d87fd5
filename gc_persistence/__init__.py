"""
GC Persistence module.

This module contains the storage implementations: the SQLite key-value
store backing the ticket registry, and the file storage holding the raw
log, metadata and result artifacts of each ticket.

The persistence layer depends on gc_common for domain models and
interfaces, and can be used by both gc_server and gc_controller.
"""

from .artifact_storage import ArtifactStorage
from .sqlite_store import SQLiteKeyValueStore

__all__ = ["ArtifactStorage", "SQLiteKeyValueStore"]
