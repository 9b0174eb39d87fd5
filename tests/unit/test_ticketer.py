"""
Unit tests for the ticket registry.

Runs the Ticketer against a real SQLite key-value store in a temporary
file, plus a mocked store for failure propagation.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from gc_common.errors import InvalidArgumentError, StatusDecodeError, StoreUnavailableError
from gc_common.models import JobStatus, ResourceKind
from gc_common.ticketer import Ticketer, make_key
from gc_persistence.sqlite_store import SQLiteKeyValueStore


class TestMakeKey:
    """Test suite for key construction."""

    def test_key_format(self):
        assert make_key(2, ResourceKind.RESULT) == "ticket:2:result"
        assert make_key(15, ResourceKind.STATUS) == "ticket:15:status"

    def test_accepts_resource_name_strings(self):
        assert make_key(5, "logfile") == make_key(5, ResourceKind.LOGFILE)

    def test_deterministic(self):
        assert make_key(5, ResourceKind.STATUS) == make_key(5, ResourceKind.STATUS)

    def test_distinct_per_ticket_and_kind(self):
        keys = {make_key(t, k) for t in (1, 2, 12) for k in ResourceKind}
        assert len(keys) == 12

    @pytest.mark.parametrize(
        "ticket,resource",
        [
            (0, ResourceKind.STATUS),
            (-1, ResourceKind.RESULT),
            (5, "bogus"),
            (5, "STATUS"),
            (True, ResourceKind.META),
            ("5", ResourceKind.META),
        ],
    )
    def test_invalid_arguments(self, ticket, resource):
        with pytest.raises(InvalidArgumentError):
            make_key(ticket, resource)


@pytest.mark.asyncio
async def test_issue_ticket_starts_at_one_and_increases(ticketer):
    first = await ticketer.issue_ticket()
    second = await ticketer.issue_ticket()
    third = await ticketer.issue_ticket()

    assert first == 1
    assert first < second < third


@pytest.mark.asyncio
async def test_concurrent_tickets_are_distinct(ticketer):
    """Tickets issued by concurrent callers never collide."""
    tickets = await asyncio.gather(*(ticketer.issue_ticket() for _ in range(50)))

    assert len(set(tickets)) == 50
    assert sorted(tickets) == list(range(1, 51))


@pytest.mark.asyncio
async def test_tickets_distinct_across_connections(tmp_path):
    """Two stores sharing one database file act like two processes."""
    path = str(tmp_path / "shared.db")
    store_a = SQLiteKeyValueStore(path)
    store_b = SQLiteKeyValueStore(path)
    await store_a.initialize()
    await store_b.initialize()
    try:
        ticketer_a = Ticketer(store_a)
        ticketer_b = Ticketer(store_b)

        async def issue(ticketer: Ticketer, count: int) -> list[int]:
            issued = []
            for _ in range(count):
                issued.append(await ticketer.issue_ticket())
            return issued

        from_a, from_b = await asyncio.gather(
            issue(ticketer_a, 20), issue(ticketer_b, 20)
        )

        assert len(set(from_a) | set(from_b)) == 40
        # Strictly increasing in issuance order for each caller
        assert from_a == sorted(from_a)
        assert from_b == sorted(from_b)
    finally:
        await store_a.close()
        await store_b.close()


@pytest.mark.asyncio
async def test_get_status_of_untouched_ticket_is_none(ticketer):
    ticket = await ticketer.issue_ticket()

    assert await ticketer.get_status(ticket) is None


@pytest.mark.asyncio
async def test_status_last_write_wins(ticketer):
    ticket = await ticketer.issue_ticket()

    await ticketer.set_status(ticket, JobStatus.ANALYZING)
    assert await ticketer.get_status(ticket) is JobStatus.ANALYZING

    await ticketer.set_status(ticket, JobStatus.COMPLETED)
    assert await ticketer.get_status(ticket) is JobStatus.COMPLETED


@pytest.mark.asyncio
async def test_status_stored_as_token(ticketer, store):
    await ticketer.set_status(4, JobStatus.NOT_READY)

    assert await store.get("ticket:4:status") == "NOT_READY"


@pytest.mark.asyncio
async def test_corrupt_status_fails_to_decode(ticketer, store):
    await store.set("ticket:9:status", "FINISHED")

    with pytest.raises(StatusDecodeError):
        await ticketer.get_status(9)


@pytest.mark.asyncio
async def test_resource_names(ticketer):
    ticket = await ticketer.issue_ticket()

    assert await ticketer.get_log_file(ticket) is None
    assert await ticketer.get_meta(ticket) is None
    assert await ticketer.get_result(ticket) is None

    await ticketer.set_log_file(ticket, "1.log")
    await ticketer.set_meta(ticket, "1.meta.json")
    await ticketer.set_result(ticket, "1.result.json")

    assert await ticketer.get_log_file(ticket) == "1.log"
    assert await ticketer.get_meta(ticket) == "1.meta.json"
    assert await ticketer.get_result(ticket) == "1.result.json"

    await ticketer.set_result(ticket, "other.json")
    assert await ticketer.get_result(ticket) == "other.json"


@pytest.mark.asyncio
async def test_resources_are_namespaced_by_ticket(ticketer):
    await ticketer.set_status(1, JobStatus.ERROR)
    await ticketer.set_status(2, JobStatus.COMPLETED)

    assert await ticketer.get_status(1) is JobStatus.ERROR
    assert await ticketer.get_status(2) is JobStatus.COMPLETED
    assert await ticketer.get_status(3) is None


@pytest.mark.asyncio
async def test_delete_resource_clears_everything(ticketer):
    ticket = await ticketer.issue_ticket()
    await ticketer.set_status(ticket, JobStatus.COMPLETED)
    await ticketer.set_log_file(ticket, "a.log")
    await ticketer.set_meta(ticket, "a.meta.json")
    await ticketer.set_result(ticket, "a.result.json")

    await ticketer.delete_resource(ticket)

    assert await ticketer.get_status(ticket) is None
    assert await ticketer.get_log_file(ticket) is None
    assert await ticketer.get_meta(ticket) is None
    assert await ticketer.get_result(ticket) is None


@pytest.mark.asyncio
async def test_delete_resource_of_unknown_ticket(ticketer):
    """Deleting a ticket that has no resources is harmless."""
    await ticketer.delete_resource(77)

    assert await ticketer.get_status(77) is None


@pytest.mark.asyncio
async def test_invalid_ticket_rejected_before_store_access():
    store = AsyncMock()
    ticketer = Ticketer(store)

    with pytest.raises(InvalidArgumentError):
        await ticketer.get_status(0)
    with pytest.raises(InvalidArgumentError):
        await ticketer.set_result(-3, "x")

    store.get.assert_not_called()
    store.set.assert_not_called()


@pytest.mark.asyncio
async def test_store_failures_propagate_without_retry():
    store = AsyncMock()
    store.incr.side_effect = StoreUnavailableError("connection refused")
    ticketer = Ticketer(store)

    with pytest.raises(StoreUnavailableError):
        await ticketer.issue_ticket()

    store.incr.assert_called_once_with("counter")


@pytest.mark.asyncio
async def test_close_releases_store_once():
    store = AsyncMock()
    ticketer = Ticketer(store)

    await ticketer.close()
    await ticketer.close()

    store.close.assert_called_once()
