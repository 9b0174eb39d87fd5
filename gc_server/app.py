import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel

from gc_common.errors import StoreUnavailableError
from gc_common.models import UploadRequest
from gc_common.ticketer import Ticketer
from gc_controller.controller import AnalysisController
from gc_persistence.artifact_storage import ArtifactStorage
from gc_persistence.sqlite_store import SQLiteKeyValueStore

from .config import ServerSettings
from .ingestion import IngestionCoordinator
from .query import QueryService

logger = logging.getLogger(__name__)

# Overrides ServerSettings.from_env() when set before startup
settings: ServerSettings | None = None

# Global instances (initialized at startup)
ticketer: Ticketer | None = None
coordinator: IngestionCoordinator | None = None
query_service: QueryService | None = None


def configure(new_settings: ServerSettings | None) -> None:
    """Use explicit settings instead of the environment on the next startup."""
    global settings
    settings = new_settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI app.

    Handles startup and shutdown events:
    - Startup: Open the key-value store, build the registry, storage,
      analysis controller, ingestion coordinator and query service
    - Shutdown: Stop the controller and close store connections
    """
    global ticketer, coordinator, query_service

    config = settings or ServerSettings.from_env()
    logger.info(
        f"Starting GC analysis server (store={config.store_path}, "
        f"storage={config.storage_dir})"
    )

    store = SQLiteKeyValueStore(config.store_path)
    await store.initialize()
    ticketer = Ticketer(store)
    storage = ArtifactStorage(config.storage_dir)

    controller = AnalysisController(
        ticketer, storage, max_concurrent_jobs=config.max_concurrent_jobs
    )
    await controller.start()

    coordinator = IngestionCoordinator(
        ticketer,
        storage,
        controller,
        retries=config.store_retries,
        retry_delay=config.retry_delay,
    )
    query_service = QueryService(
        ticketer, storage, retries=config.store_retries, retry_delay=config.retry_delay
    )

    yield

    # Shutdown: finish in-flight analyses, then release the store
    await controller.stop()
    await ticketer.close()
    ticketer = coordinator = query_service = None


app = FastAPI(lifespan=lifespan)


def get_coordinator() -> IngestionCoordinator:
    """
    Get the global ingestion coordinator.

    Raises:
        RuntimeError: If the coordinator is not initialized
    """
    if coordinator is None:
        raise RuntimeError("Ingestion coordinator not initialized")
    return coordinator


def get_query_service() -> QueryService:
    """
    Get the global query service.

    Raises:
        RuntimeError: If the query service is not initialized
    """
    if query_service is None:
        raise RuntimeError("Query service not initialized")
    return query_service


class FileInfo(BaseModel):
    """Meta-information about the file being uploaded."""

    filename: str


async def request_chunks(
    ticket: int, request: Request
) -> AsyncGenerator[UploadRequest, None]:
    """
    Turn the streamed request body into upload chunks for one ticket.

    An empty body still yields one empty chunk, so the upload is validated
    and analyzed like any other.
    """
    sent = False
    async for body in request.stream():
        if body:
            sent = True
            yield UploadRequest(id=ticket, contents=body)
    if not sent:
        yield UploadRequest(id=ticket, contents=b"")


@app.post("/info-upload")
async def info_upload(
    info: FileInfo,
    ingestion: IngestionCoordinator = Depends(get_coordinator),
) -> dict[str, Any]:
    """
    Register a log file and issue its ticket.

    Returns:
        Dictionary with successful flag and id (the ticket, 0 on failure)
    """
    result = await ingestion.info_upload(info.filename)
    return result.to_dict()


@app.post("/log-upload/{ticket}")
async def log_upload(
    ticket: int,
    request: Request,
    ingestion: IngestionCoordinator = Depends(get_coordinator),
) -> dict[str, Any]:
    """
    Stream the contents of a registered log file.

    The raw request body is read chunk by chunk and appended in arrival
    order. Send it with chunked transfer encoding for large logs.

    Returns:
        Dictionary with successful flag and filesize (bytes received)
    """
    result = await ingestion.log_upload(request_chunks(ticket, request))
    return result.to_dict()


@app.get("/analysis/{ticket}")
async def request_analyzed_data(
    ticket: int,
    queries: QueryService = Depends(get_query_service),
) -> dict[str, Any]:
    """
    Get the analysis status of a ticket and, once completed, its result.

    Unknown tickets are reported as NOT_READY rather than 404.

    Raises:
        HTTPException: 503 if the ticket store is unavailable
    """
    try:
        result = await queries.request_analyzed_data(ticket)
    except StoreUnavailableError as e:
        logger.error(f"Query for ticket {ticket} failed: {e}")
        raise HTTPException(status_code=503, detail="Ticket store unavailable")
    return result.to_dict()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """
    Health check endpoint.

    Returns:
        Dictionary with status="ok" if server is running
    """
    return {"status": "ok"}
