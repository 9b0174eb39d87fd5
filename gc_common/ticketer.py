"""
Ticket registry for GC log analysis jobs.

When a GC log file is submitted, the server issues an identification number
called a "ticket". Every later interaction with that submission (uploading
the log contents, polling the analysis result) refers to it.

Per ticket the registry tracks four resources, each in its own store key:

- status:  current JobStatus of the analysis
- logfile: name of the raw log artifact
- meta:    name of the metadata artifact
- result:  name of the analysis result artifact

Each key is read and written atomically, but the registry offers no
transaction across the four keys of a ticket. In particular
delete_resource() removes them one by one, and a concurrent reader may
observe a partially deleted ticket.
"""

import logging

from .errors import InvalidArgumentError
from .models import JobStatus, ResourceKind
from .store import KeyValueStore

logger = logging.getLogger(__name__)

COUNTER_KEY = "counter"
KEY_NAMESPACE = "ticket"
KEY_DELIMITER = ":"


def make_key(ticket: int, resource: ResourceKind | str) -> str:
    """
    Create the store key for one resource of a ticket.

    The key has the format ticket:TICKET_NUMBER:RESOURCE_NAME. For example
    the result artifact name of ticket 2 lives at "ticket:2:result".

    Args:
        ticket: Ticket number, must be > 0
        resource: A ResourceKind, or the string value of one

    Returns:
        Key string for the store

    Raises:
        InvalidArgumentError: If the ticket is not a positive integer or the
            resource is not one of the four known kinds
    """
    if isinstance(ticket, bool) or not isinstance(ticket, int):
        raise InvalidArgumentError(f"Invalid ticket {ticket!r}: must be an integer")
    if ticket <= 0:
        raise InvalidArgumentError(f"Invalid ticket {ticket}: must be > 0")

    try:
        kind = ResourceKind(resource)
    except ValueError:
        raise InvalidArgumentError(f"Invalid resource name: {resource!r}") from None

    return KEY_DELIMITER.join((KEY_NAMESPACE, str(ticket), kind.value))


class Ticketer:
    """
    Issues tickets and manages the per-ticket resource names.

    The store is owned by the caller that constructs the Ticketer, and is
    released by close(). Store failures propagate as StoreUnavailableError;
    the Ticketer never retries.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store
        self._closed = False

    async def issue_ticket(self) -> int:
        """
        Issue a new ticket.

        Relies on the store's atomic increment, so concurrent callers in
        any process always receive distinct, increasing numbers.
        """
        ticket = await self.store.incr(COUNTER_KEY)
        logger.debug(f"Issued ticket {ticket}")
        return ticket

    async def get_status(self, ticket: int) -> JobStatus | None:
        """
        Get the analysis status of a ticket.

        Returns:
            The stored JobStatus, or None if no status was ever set

        Raises:
            StatusDecodeError: If the stored token is not a known status
        """
        token = await self.store.get(make_key(ticket, ResourceKind.STATUS))
        if token is None:
            return None
        return JobStatus.decode(token)

    async def set_status(self, ticket: int, status: JobStatus) -> None:
        """Set the analysis status of a ticket."""
        await self.store.set(make_key(ticket, ResourceKind.STATUS), status.encode())
        logger.debug(f"Ticket {ticket} status set to {status.value}")

    async def get_log_file(self, ticket: int) -> str | None:
        """Get the name of the raw log artifact."""
        return await self.store.get(make_key(ticket, ResourceKind.LOGFILE))

    async def set_log_file(self, ticket: int, logfile: str) -> None:
        """Set the name of the raw log artifact."""
        await self.store.set(make_key(ticket, ResourceKind.LOGFILE), logfile)

    async def get_meta(self, ticket: int) -> str | None:
        """Get the name of the metadata artifact."""
        return await self.store.get(make_key(ticket, ResourceKind.META))

    async def set_meta(self, ticket: int, meta: str) -> None:
        """Set the name of the metadata artifact."""
        await self.store.set(make_key(ticket, ResourceKind.META), meta)

    async def get_result(self, ticket: int) -> str | None:
        """Get the name of the analysis result artifact."""
        return await self.store.get(make_key(ticket, ResourceKind.RESULT))

    async def set_result(self, ticket: int, result: str) -> None:
        """Set the name of the analysis result artifact."""
        await self.store.set(make_key(ticket, ResourceKind.RESULT), result)

    async def delete_resource(self, ticket: int) -> None:
        """
        Delete every resource key of the ticket.

        The four deletes are independent; this is not atomic.
        """
        for kind in (
            ResourceKind.STATUS,
            ResourceKind.RESULT,
            ResourceKind.LOGFILE,
            ResourceKind.META,
        ):
            await self.store.delete(make_key(ticket, kind))
        logger.info(f"Deleted resources of ticket {ticket}")

    async def close(self) -> None:
        """Close the underlying store."""
        if self._closed:
            return
        self._closed = True
        await self.store.close()
