"""
Retry policy for store operations.

The ticket registry never retries; the orchestration layer decides which
operations are safe to repeat. Ticket issuance and single-key reads are.
Multi-key deletes are not retried.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from gc_common.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_retries(
    operation: Callable[[], Awaitable[T]],
    attempts: int = 3,
    delay: float = 0.2,
    description: str = "store operation",
) -> T:
    """
    Run operation, retrying on StoreUnavailableError.

    Args:
        operation: Zero-argument coroutine function to run
        attempts: Total number of attempts, at least 1
        delay: Seconds to wait between attempts
        description: Name used in log messages

    Returns:
        The operation's result

    Raises:
        StoreUnavailableError: If every attempt failed (the last error)
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except StoreUnavailableError as e:
            if attempt == attempts:
                logger.error(f"{description} failed after {attempts} attempts: {e}")
                raise
            logger.warning(
                f"{description} failed (attempt {attempt}/{attempts}): {e}, "
                f"retrying in {delay}s"
            )
            await asyncio.sleep(delay)
    raise AssertionError("unreachable")
