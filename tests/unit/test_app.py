"""
Unit tests for the FastAPI endpoints.

The whole server runs in-process: the lifespan opens a store and an
artifact directory under tmp_path and starts the analysis controller.
"""

import time

import pytest
from fastapi.testclient import TestClient

from conftest import events_to_log, make_event
from gc_common.models import LogType
from gc_server import app as app_module
from gc_server.config import ServerSettings


@pytest.fixture
def client(tmp_path):
    app_module.configure(
        ServerSettings(
            store_path=str(tmp_path / "tickets.db"),
            storage_dir=str(tmp_path / "artifacts"),
            max_concurrent_jobs=2,
            retry_delay=0,
        )
    )
    with TestClient(app_module.app) as test_client:
        yield test_client
    app_module.configure(None)


def wait_until_terminal(client, ticket, timeout=10.0):
    deadline = time.monotonic() + timeout
    while True:
        body = client.get(f"/analysis/{ticket}").json()
        if body["status"] in ("COMPLETED", "ERROR"):
            return body
        assert time.monotonic() < deadline, f"ticket {ticket} stuck in {body['status']}"
        time.sleep(0.05)


def register(client, filename="gc.log") -> int:
    response = client.post("/info-upload", json={"filename": filename})
    assert response.status_code == 200
    assert response.json()["successful"] is True
    return response.json()["id"]


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_upload_and_analyze(client):
    log = events_to_log(
        [
            make_event(LogType.MINOR_GC, 0.02, timestamp=10),
            make_event(LogType.FULL_GC, 1.0, timestamp=20),
            make_event(LogType.FULL_GC, 3.0, timestamp=30),
        ]
    )
    ticket = register(client)
    assert client.get(f"/analysis/{ticket}").json()["status"] == "NOT_READY"

    response = client.post(f"/log-upload/{ticket}", content=log)
    assert response.json() == {"successful": True, "filesize": len(log)}

    body = wait_until_terminal(client, ticket)
    assert body["status"] == "COMPLETED"
    full = next(p for p in body["result_data"]["pauses"] if p["type"] == "FULL_GC")
    assert full["count"] == 2
    assert full["sample_mean"] == 2.0
    assert full["max_event"]["timestamp"] == 30


def test_tickets_are_distinct(client):
    assert [register(client, f"{i}.log") for i in range(3)] == [1, 2, 3]


def test_empty_filename_rejected(client):
    response = client.post("/info-upload", json={"filename": ""})

    assert response.json() == {"successful": False, "id": 0}


def test_missing_filename_is_validation_error(client):
    assert client.post("/info-upload", json={}).status_code == 422


def test_upload_for_unknown_ticket(client):
    response = client.post("/log-upload/99", content=b"data")

    assert response.json() == {"successful": False, "filesize": 0}


def test_second_upload_rejected(client):
    ticket = register(client)
    log = events_to_log([make_event(LogType.FULL_GC, 1.0)])
    client.post(f"/log-upload/{ticket}", content=log)

    response = client.post(f"/log-upload/{ticket}", content=log)

    assert response.json()["successful"] is False
    assert wait_until_terminal(client, ticket)["status"] == "COMPLETED"


def test_empty_log_ends_in_error(client):
    ticket = register(client)

    response = client.post(f"/log-upload/{ticket}", content=b"")
    assert response.json() == {"successful": True, "filesize": 0}

    body = wait_until_terminal(client, ticket)
    assert body["status"] == "ERROR"
    assert body["result_data"] is None
    assert body["message"] == "Analysis failed: Log file is empty"


def test_malformed_log_ends_in_error(client):
    ticket = register(client)
    client.post(f"/log-upload/{ticket}", content=b"[Full GC 1024K->512K, 0.5 secs]\n")

    body = wait_until_terminal(client, ticket)

    assert body["status"] == "ERROR"
    assert "line 1" in body["message"]


def test_unknown_ticket_query(client):
    body = client.get("/analysis/12345").json()

    assert body["status"] == "NOT_READY"
    assert body["result_data"] is None


def test_non_integer_ticket_is_validation_error(client):
    assert client.get("/analysis/abc").status_code == 422
