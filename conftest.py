"""Shared pytest fixtures for the GC analysis service tests."""

import json

import pytest
import pytest_asyncio

from gc_common.models import GcEvent, JobStatus, LogType
from gc_common.ticketer import Ticketer
from gc_persistence.artifact_storage import ArtifactStorage
from gc_persistence.sqlite_store import SQLiteKeyValueStore


def pytest_make_parametrize_id(config, val, argname):
    """Use the token as test id; JobStatus.encode() shadows str.encode()."""
    if isinstance(val, JobStatus):
        return val.value
    return None


def make_event(log_type: LogType, pause_time: float = 0.0, **kwargs) -> GcEvent:
    """Build a GcEvent with only the fields a test cares about."""
    return GcEvent(log_type=log_type, pause_time=pause_time, **kwargs)


def events_to_log(events: list[GcEvent]) -> bytes:
    """Encode events in the JSON-lines format read by JsonLinesLogParser."""
    return "".join(json.dumps(e.to_dict()) + "\n" for e in events).encode("utf-8")


@pytest_asyncio.fixture
async def store(tmp_path):
    """Create a key-value store backed by a temporary database file."""
    kv = SQLiteKeyValueStore(str(tmp_path / "tickets.db"))
    await kv.initialize()

    yield kv

    await kv.close()


@pytest_asyncio.fixture
async def ticketer(store):
    """Create a ticket registry on the temporary store."""
    registry = Ticketer(store)

    yield registry

    await registry.close()


@pytest.fixture
def storage(tmp_path):
    """Create artifact storage in a temporary directory."""
    return ArtifactStorage(tmp_path / "artifacts")
