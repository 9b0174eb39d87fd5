"""
Unit tests for AnalysisController.

Uses a real ticket registry and artifact storage on temporary files so
the status transitions can be observed exactly as the query side sees them.
"""

import asyncio
import threading
from unittest.mock import Mock

import pytest

from conftest import events_to_log, make_event
from gc_common.errors import LogParseError
from gc_common.models import FileMetadata, JobStatus, LogType
from gc_controller.controller import AnalysisController


async def prepare_ticket(ticketer, storage, contents: bytes) -> int:
    """Bring a ticket into the state the ingestion coordinator leaves it in."""
    ticket = await ticketer.issue_ticket()
    await ticketer.set_meta(
        ticket, storage.write_meta(FileMetadata(ticket=ticket, filename="gc.log"))
    )
    name, f = storage.open_log(ticket)
    with f:
        f.write(contents)
    await ticketer.set_log_file(ticket, name)
    await ticketer.set_status(ticket, JobStatus.ANALYZING)
    return ticket


@pytest.fixture
def controller(ticketer, storage):
    return AnalysisController(ticketer, storage, max_concurrent_jobs=2)


@pytest.fixture
def sample_log():
    return events_to_log(
        [
            make_event(LogType.FULL_GC, 1.0),
            make_event(LogType.FULL_GC, 2.0),
            make_event(LogType.FULL_GC, 3.0),
            make_event(LogType.CMS_CONCURRENT, type_detail="CMS-concurrent-mark"),
        ]
    )


@pytest.mark.asyncio
async def test_analysis_completes(controller, ticketer, storage, sample_log):
    ticket = await prepare_ticket(ticketer, storage, sample_log)

    status = await controller.analyze_ticket(ticket)

    assert status is JobStatus.COMPLETED
    assert await ticketer.get_status(ticket) is JobStatus.COMPLETED
    result_name = await ticketer.get_result(ticket)
    data = storage.read_result(result_name)
    assert data.pause_stat(LogType.FULL_GC).sample_mean == 2.0
    assert data.concurrences[0].type_detail == "CMS-concurrent-mark"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "contents,message",
    [
        (b"", "empty"),
        (b"  \n\n", "empty"),
        (b"[GC (Allocation Failure) 1024K->512K]", "line 1"),
        (b'{"log_type": "FULL_GC", "pause_time": -2}', "line 1"),
    ],
)
async def test_failed_analysis_sets_error(
    controller, ticketer, storage, contents, message
):
    ticket = await prepare_ticket(ticketer, storage, contents)

    status = await controller.analyze_ticket(ticket)

    assert status is JobStatus.ERROR
    assert await ticketer.get_status(ticket) is JobStatus.ERROR
    assert await ticketer.get_result(ticket) is None
    meta = storage.read_meta(await ticketer.get_meta(ticket))
    assert message in meta.message


@pytest.mark.asyncio
async def test_log_without_gc_events_is_an_error(ticketer, storage):
    parser = Mock()
    parser.parse.return_value = []
    controller = AnalysisController(ticketer, storage, parser=parser)
    ticket = await prepare_ticket(ticketer, storage, b"some log text")

    assert await controller.analyze_ticket(ticket) is JobStatus.ERROR
    meta = storage.read_meta(await ticketer.get_meta(ticket))
    assert meta.message == "No GC events found in log"


@pytest.mark.asyncio
async def test_custom_parser_used(ticketer, storage):
    parser = Mock()
    parser.parse.return_value = [make_event(LogType.MINOR_GC, 0.25)]
    controller = AnalysisController(ticketer, storage, parser=parser)
    ticket = await prepare_ticket(ticketer, storage, b"raw gc log")

    assert await controller.analyze_ticket(ticket) is JobStatus.COMPLETED
    parser.parse.assert_called_once_with(b"raw gc log")


@pytest.mark.asyncio
async def test_parser_exception_sets_error(ticketer, storage):
    parser = Mock()
    parser.parse.side_effect = LogParseError("unsupported collector")
    controller = AnalysisController(ticketer, storage, parser=parser)
    ticket = await prepare_ticket(ticketer, storage, b"raw gc log")

    assert await controller.analyze_ticket(ticket) is JobStatus.ERROR


@pytest.mark.asyncio
async def test_unexpected_parser_error_sets_error(ticketer, storage):
    parser = Mock()
    parser.parse.side_effect = RuntimeError("parser crashed")
    controller = AnalysisController(ticketer, storage, parser=parser)
    ticket = await prepare_ticket(ticketer, storage, b"raw gc log")

    assert await controller.analyze_ticket(ticket) is JobStatus.ERROR
    assert await ticketer.get_status(ticket) is JobStatus.ERROR
    meta = storage.read_meta(await ticketer.get_meta(ticket))
    assert "parser crashed" in meta.message


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "contents",
    [
        b"[" * 200000 + b"\n",
        b'{"log_type": "FULL_GC", "pause_time": NaN}\n'
        b'{"log_type": "FULL_GC", "pause_time": 1.0}\n',
    ],
)
async def test_hostile_log_sets_error(controller, ticketer, storage, contents):
    ticket = await prepare_ticket(ticketer, storage, contents)

    assert await controller.analyze_ticket(ticket) is JobStatus.ERROR
    assert await ticketer.get_status(ticket) is JobStatus.ERROR
    assert await ticketer.get_result(ticket) is None


@pytest.mark.asyncio
async def test_missing_log_file_sets_error(controller, ticketer, storage):
    ticket = await ticketer.issue_ticket()
    await ticketer.set_status(ticket, JobStatus.ANALYZING)

    assert await controller.analyze_ticket(ticket) is JobStatus.ERROR
    assert await ticketer.get_status(ticket) is JobStatus.ERROR


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status", [None, JobStatus.NOT_READY, JobStatus.COMPLETED, JobStatus.ERROR]
)
async def test_only_analyzing_tickets_processed(controller, ticketer, status):
    ticket = await ticketer.issue_ticket()
    if status is not None:
        await ticketer.set_status(ticket, status)

    assert await controller.analyze_ticket(ticket) is status
    assert await ticketer.get_status(ticket) is status


@pytest.mark.asyncio
async def test_submit_requires_running_controller(controller):
    with pytest.raises(RuntimeError):
        await controller.submit(1)


@pytest.mark.asyncio
async def test_queued_tickets_processed(controller, ticketer, storage, sample_log):
    tickets = [await prepare_ticket(ticketer, storage, sample_log) for _ in range(3)]
    bad = await prepare_ticket(ticketer, storage, b"not json")

    await controller.start()
    try:
        for ticket in [*tickets, bad]:
            await controller.submit(ticket)
        await asyncio.wait_for(controller.join(), timeout=10)
    finally:
        await controller.stop()

    for ticket in tickets:
        assert await ticketer.get_status(ticket) is JobStatus.COMPLETED
    assert await ticketer.get_status(bad) is JobStatus.ERROR


@pytest.mark.asyncio
async def test_controller_start_stop(controller):
    await controller.start()
    assert controller.running
    await controller.start()  # Second start is ignored

    await controller.stop()
    assert not controller.running
    await controller.stop()


@pytest.mark.asyncio
async def test_stop_with_busy_slots_keeps_waiting_ticket_queued(
    ticketer, storage, sample_log
):
    release = threading.Event()

    def slow_parse(data):
        release.wait(5)
        return [make_event(LogType.FULL_GC, 1.0)]

    parser = Mock()
    parser.parse.side_effect = slow_parse
    controller = AnalysisController(
        ticketer, storage, parser=parser, max_concurrent_jobs=1
    )
    running = await prepare_ticket(ticketer, storage, sample_log)
    waiting = await prepare_ticket(ticketer, storage, sample_log)

    await controller.start()
    await controller.submit(running)
    await controller.submit(waiting)
    # The only slot is taken by the first ticket
    await asyncio.sleep(0.2)

    stopping = asyncio.create_task(controller.stop())
    await asyncio.sleep(0)
    release.set()
    await asyncio.wait_for(stopping, timeout=10)

    assert await ticketer.get_status(running) is JobStatus.COMPLETED
    assert await ticketer.get_status(waiting) is JobStatus.ANALYZING
    assert controller._queue.qsize() == 1
