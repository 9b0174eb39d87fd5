"""
Server configuration.

Settings come from environment variables; the gc-server entrypoint lets
command-line flags override them.

Environment variables:
    GC_STORE_PATH: SQLite key-value store file (default: gc_tickets.db)
    GC_STORAGE_DIR: Artifact directory (default: gc_artifacts)
    GC_MAX_CONCURRENT_JOBS: Tickets analyzed in parallel (default: 4)
    GC_STORE_RETRIES: Attempts for retried store operations (default: 3)
"""

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_STORE_PATH = "gc_tickets.db"
DEFAULT_STORAGE_DIR = "gc_artifacts"
DEFAULT_MAX_CONCURRENT_JOBS = 4
DEFAULT_STORE_RETRIES = 3


def get_store_path() -> str:
    """
    Get the key-value store path from environment or use default.

    Environment variables:
    - GC_STORE_PATH: Custom store path (useful for testing)
    """
    return os.environ.get("GC_STORE_PATH", DEFAULT_STORE_PATH)


def get_storage_dir() -> str:
    """
    Get the artifact directory from environment or use default.

    Environment variables:
    - GC_STORAGE_DIR: Custom artifact directory (useful for testing)
    """
    return os.environ.get("GC_STORAGE_DIR", DEFAULT_STORAGE_DIR)


def _get_positive_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw}, using default {default}")
        return default
    if value <= 0:
        logger.warning(f"Invalid {name}={value}, using default {default}")
        return default
    return value


def get_max_concurrent_jobs() -> int:
    """Get the number of tickets analyzed in parallel."""
    return _get_positive_int("GC_MAX_CONCURRENT_JOBS", DEFAULT_MAX_CONCURRENT_JOBS)


def get_store_retries() -> int:
    """Get the number of attempts for retried store operations."""
    return _get_positive_int("GC_STORE_RETRIES", DEFAULT_STORE_RETRIES)


@dataclass
class ServerSettings:
    """Everything needed to assemble the server components."""

    store_path: str = DEFAULT_STORE_PATH
    storage_dir: str = DEFAULT_STORAGE_DIR
    max_concurrent_jobs: int = DEFAULT_MAX_CONCURRENT_JOBS
    store_retries: int = DEFAULT_STORE_RETRIES
    retry_delay: float = 0.2

    @classmethod
    def from_env(cls) -> "ServerSettings":
        return cls(
            store_path=get_store_path(),
            storage_dir=get_storage_dir(),
            max_concurrent_jobs=get_max_concurrent_jobs(),
            store_retries=get_store_retries(),
        )
