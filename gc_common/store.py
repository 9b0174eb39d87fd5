"""
Abstract key-value store interface.

This module defines the contract that any backing store must follow,
allowing easy swapping between SQLite, Redis, etc. The ticket registry is
the only consumer.
"""

from abc import ABC, abstractmethod


class KeyValueStore(ABC):
    """
    Abstract base class for string key-value storage.

    Implementations must make every single-key operation atomic and safe
    under concurrent use, including from other processes sharing the same
    backend. No cross-key transactions are required.

    Every operation raises StoreUnavailableError when the backend cannot be
    reached or fails; implementations never retry.
    """

    @abstractmethod
    async def incr(self, key: str) -> int:
        """
        Atomically increment an integer counter and return the new value.

        A missing key counts as 0, so the first call returns 1.

        Args:
            key: Counter key
        """
        pass

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """
        Retrieve the value stored at key.

        Returns:
            The stored string, or None if the key has never been set
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store value at key, overwriting any previous value."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key. Deleting a missing key is not an error."""
        pass

    @abstractmethod
    async def initialize(self) -> None:
        """
        Prepare the backend (create tables, etc.).

        Called once at application startup.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """
        Release connections held by the store.

        Called at application shutdown.
        """
        pass
