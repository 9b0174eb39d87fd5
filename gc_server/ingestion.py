"""
Ingestion of GC log files.

Uploading a log takes two calls:

1. info_upload(filename) issues a ticket and sets its status to NOT_READY.
2. log_upload(chunks) receives the log contents as an ordered stream of
   (ticket, bytes) chunks, stores them, sets the status to ANALYZING and
   hands the ticket to the analysis controller.

The coordinator is the only writer of a ticket's status until the hand-off.
"""

import asyncio
import logging
from collections.abc import AsyncIterable, AsyncIterator

from gc_common.errors import IngestionError, InvalidArgumentError, StoreUnavailableError
from gc_common.models import (
    FileInfoResult,
    FileMetadata,
    JobStatus,
    UploadRequest,
    UploadResult,
)
from gc_common.ticketer import Ticketer
from gc_controller.controller import AnalysisController
from gc_persistence.artifact_storage import ArtifactStorage

from .retry import with_retries

logger = logging.getLogger(__name__)


class IngestionCoordinator:
    """Accepts file info and log uploads, and starts the analysis."""

    def __init__(
        self,
        ticketer: Ticketer,
        storage: ArtifactStorage,
        controller: AnalysisController,
        retries: int = 3,
        retry_delay: float = 0.2,
    ):
        self.ticketer = ticketer
        self.storage = storage
        self.controller = controller
        self.retries = retries
        self.retry_delay = retry_delay
        # Tickets with an upload stream in progress in this process
        self._active_uploads: set[int] = set()

    async def info_upload(self, filename: str) -> FileInfoResult:
        """
        Register a file to be uploaded and issue its ticket.

        Returns:
            FileInfoResult with the new ticket, or successful=False and
            ticket 0 if the filename is empty or the store is unavailable
        """
        if not filename or not filename.strip():
            logger.warning("Rejected file info with empty filename")
            return FileInfoResult(successful=False)

        try:
            ticket = await with_retries(
                self.ticketer.issue_ticket,
                attempts=self.retries,
                delay=self.retry_delay,
                description="issue_ticket",
            )
            meta_name = await asyncio.to_thread(
                self.storage.write_meta, FileMetadata(ticket=ticket, filename=filename)
            )
            await self.ticketer.set_meta(ticket, meta_name)
            await self.ticketer.set_status(ticket, JobStatus.NOT_READY)
        except (StoreUnavailableError, OSError) as e:
            logger.error(f"Could not register file {filename!r}: {e}", exc_info=True)
            return FileInfoResult(successful=False)

        logger.info(f"Issued ticket {ticket} for file {filename!r}")
        return FileInfoResult(successful=True, id=ticket)

    async def log_upload(self, chunks: AsyncIterable[UploadRequest]) -> UploadResult:
        """
        Receive the contents of a previously registered file.

        The first chunk's ticket identifies the upload. Chunks are written in
        arrival order. The upload is rejected without any state change when
        the stream is empty, the ticket is unknown or no longer NOT_READY, a
        chunk names a different ticket, or another upload for the ticket is
        already in progress. A rejected ticket stays NOT_READY, so the
        client may upload again.

        Returns:
            UploadResult with the number of bytes received
        """
        iterator = aiter(chunks)
        first = await anext(iterator, None)
        if first is None:
            logger.warning("Rejected empty upload stream")
            return UploadResult(successful=False)

        ticket = first.id
        if ticket in self._active_uploads:
            logger.warning(f"Rejected upload: ticket {ticket} is already uploading")
            return UploadResult(successful=False)

        self._active_uploads.add(ticket)
        try:
            return await self._ingest(ticket, first, iterator)
        finally:
            self._active_uploads.discard(ticket)

    async def _ingest(
        self, ticket: int, first: UploadRequest, rest: AsyncIterator[UploadRequest]
    ) -> UploadResult:
        try:
            await self._check_uploadable(ticket)
            size = await self._receive(ticket, first, rest)
        except IngestionError as e:
            logger.warning(f"Rejected upload for ticket {ticket}: {e}")
            return UploadResult(successful=False)
        except (StoreUnavailableError, OSError) as e:
            logger.error(f"Could not store log for ticket {ticket}: {e}", exc_info=True)
            return UploadResult(successful=False)

        try:
            await self._start_analysis(ticket, size)
        except (
            StoreUnavailableError,
            OSError,
            ValueError,
            KeyError,
            RuntimeError,
        ) as e:
            # ValueError and KeyError come from a corrupt metadata artifact
            logger.error(f"Could not start analysis of ticket {ticket}: {e}")
            return UploadResult(successful=False, filesize=size)

        return UploadResult(successful=True, filesize=size)

    async def _check_uploadable(self, ticket: int) -> None:
        try:
            status = await with_retries(
                lambda: self.ticketer.get_status(ticket),
                attempts=self.retries,
                delay=self.retry_delay,
                description=f"get_status({ticket})",
            )
        except InvalidArgumentError as e:
            raise IngestionError(f"Invalid ticket {ticket}: {e}") from e

        if status is None:
            raise IngestionError(f"Ticket {ticket} is unknown")
        if status != JobStatus.NOT_READY:
            raise IngestionError(f"Ticket {ticket} is already {status.value}")

    async def _receive(
        self, ticket: int, first: UploadRequest, rest: AsyncIterator[UploadRequest]
    ) -> int:
        """Write the chunks to the raw log artifact and return the total size."""
        name, f = await asyncio.to_thread(self.storage.open_log, ticket)
        size = 0
        try:
            await asyncio.to_thread(f.write, first.contents)
            size += len(first.contents)
            async for chunk in rest:
                if chunk.id != ticket:
                    raise IngestionError(
                        f"Chunk for ticket {chunk.id} in upload stream of ticket {ticket}"
                    )
                await asyncio.to_thread(f.write, chunk.contents)
                size += len(chunk.contents)
        finally:
            await asyncio.to_thread(f.close)

        await self.ticketer.set_log_file(ticket, name)
        logger.info(f"Received {size} bytes for ticket {ticket}")
        return size

    async def _start_analysis(self, ticket: int, size: int) -> None:
        await self._update_meta(ticket, size=size)

        await self.ticketer.set_status(ticket, JobStatus.ANALYZING)
        try:
            await self.controller.submit(ticket)
        except RuntimeError as e:
            # Already ANALYZING, so the failure must be visible to pollers
            try:
                await self._update_meta(ticket, message=f"Analysis could not start: {e}")
            except (OSError, ValueError, KeyError) as meta_error:
                logger.warning(
                    f"Could not record failure message for ticket {ticket}: {meta_error}"
                )
            await self.ticketer.set_status(ticket, JobStatus.ERROR)
            raise

    async def _update_meta(
        self, ticket: int, size: int | None = None, message: str | None = None
    ) -> None:
        meta_name = await self.ticketer.get_meta(ticket)
        if not meta_name:
            return
        meta = await asyncio.to_thread(self.storage.read_meta, meta_name)
        if size is not None:
            meta.size = size
        if message is not None:
            meta.message = message
        await asyncio.to_thread(self.storage.write_meta, meta)
