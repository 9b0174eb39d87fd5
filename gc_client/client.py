import time
from collections.abc import Generator
from pathlib import Path

import requests

from gc_common.models import AnalyzedResult

DEFAULT_SERVER_URL = "http://localhost:8000"
DEFAULT_CHUNK_SIZE = 64 * 1024


def iter_file_chunks(
    path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE
) -> Generator[bytes, None, None]:
    """Yield the contents of a file in chunks of at most chunk_size bytes."""
    with open(path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            yield chunk


def upload_info(filename: str, server_url: str = DEFAULT_SERVER_URL) -> int:
    """
    Register a log file with the server.

    Returns:
        int: The ticket issued for the file

    Raises:
        RuntimeError: If the request fails or the server rejects the file
    """
    try:
        response = requests.post(
            f"{server_url}/info-upload", json={"filename": filename}, timeout=30
        )
        response.raise_for_status()
        result = response.json()
    except requests.exceptions.RequestException as e:
        raise RuntimeError(f"Error registering file with GC analysis server: {e}")

    if not result.get("successful"):
        raise RuntimeError(f"Server rejected file {filename!r}")
    return int(result["id"])


def upload_log(
    ticket: int,
    path: Path,
    server_url: str = DEFAULT_SERVER_URL,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """
    Stream a log file to the server for a registered ticket.

    The file is sent with chunked transfer encoding, never loaded whole.

    Returns:
        int: Number of bytes the server received

    Raises:
        RuntimeError: If the request fails or the server rejects the upload
    """
    try:
        response = requests.post(
            f"{server_url}/log-upload/{ticket}",
            data=iter_file_chunks(path, chunk_size),
            headers={"Content-Type": "application/octet-stream"},
            timeout=300,
        )
        response.raise_for_status()
        result = response.json()
    except requests.exceptions.RequestException as e:
        raise RuntimeError(f"Error uploading log to GC analysis server: {e}")

    if not result.get("successful"):
        raise RuntimeError(f"Server rejected upload for ticket {ticket}")
    return int(result["filesize"])


def submit_log(
    path: Path,
    server_url: str = DEFAULT_SERVER_URL,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> tuple[int, int]:
    """
    Register and upload a log file.

    Returns:
        Tuple of (ticket, bytes uploaded)
    """
    ticket = upload_info(path.name, server_url=server_url)
    filesize = upload_log(ticket, path, server_url=server_url, chunk_size=chunk_size)
    return ticket, filesize


def request_analyzed_data(
    ticket: int, server_url: str = DEFAULT_SERVER_URL
) -> AnalyzedResult:
    """
    Query the analysis status and result of a ticket.

    Raises:
        RuntimeError: If the request fails
    """
    try:
        response = requests.get(f"{server_url}/analysis/{ticket}", timeout=30)
        response.raise_for_status()
        return AnalyzedResult.from_dict(response.json())
    except requests.exceptions.RequestException as e:
        raise RuntimeError(f"Error querying GC analysis server: {e}")


def wait_for_result(
    ticket: int,
    server_url: str = DEFAULT_SERVER_URL,
    poll_interval: float = 1.0,
    timeout: float = 300.0,
) -> AnalyzedResult:
    """
    Poll until the ticket reaches COMPLETED or ERROR.

    Args:
        ticket: Ticket to poll
        server_url: Base URL of the GC analysis server
        poll_interval: Seconds between queries
        timeout: Seconds before giving up

    Returns:
        The terminal AnalyzedResult

    Raises:
        TimeoutError: If the ticket is still pending after timeout seconds
        RuntimeError: If a query fails
    """
    deadline = time.monotonic() + timeout
    while True:
        result = request_analyzed_data(ticket, server_url=server_url)
        if result.status.is_terminal:
            return result
        if time.monotonic() >= deadline:
            raise TimeoutError(
                f"Ticket {ticket} still {result.status.value} after {timeout}s"
            )
        time.sleep(poll_interval)
