"""
Analysis result queries.

Clients poll with their ticket until the status is terminal. Queries never
write anything, so they can be repeated at any point of a ticket's life.
"""

import asyncio
import logging

from gc_common.errors import InvalidArgumentError, StatusDecodeError
from gc_common.models import AnalyzedResult, JobStatus
from gc_common.ticketer import Ticketer
from gc_persistence.artifact_storage import ArtifactStorage

from .retry import with_retries

logger = logging.getLogger(__name__)


class QueryService:
    """Reports the status of a ticket and, once completed, its analysis."""

    def __init__(
        self,
        ticketer: Ticketer,
        storage: ArtifactStorage,
        retries: int = 3,
        retry_delay: float = 0.2,
    ):
        self.ticketer = ticketer
        self.storage = storage
        self.retries = retries
        self.retry_delay = retry_delay

    async def request_analyzed_data(self, ticket: int) -> AnalyzedResult:
        """
        Look up the analysis of a ticket.

        A ticket that was never issued cannot be told apart from one whose
        upload has not started, so both are reported as NOT_READY.

        Raises:
            StoreUnavailableError: If the store stays unreachable after retries
        """
        try:
            status = await with_retries(
                lambda: self.ticketer.get_status(ticket),
                attempts=self.retries,
                delay=self.retry_delay,
                description=f"get_status({ticket})",
            )
        except StatusDecodeError as e:
            logger.error(f"Ticket {ticket} has a corrupt status: {e}")
            return AnalyzedResult(
                status=JobStatus.ERROR, message="Stored ticket status is corrupt"
            )
        except InvalidArgumentError:
            status = None

        if status is None:
            return AnalyzedResult(
                status=JobStatus.NOT_READY,
                message=f"Ticket {ticket} is unknown or its log has not been uploaded",
            )
        if status == JobStatus.NOT_READY:
            return AnalyzedResult(
                status=status, message="Waiting for the log file to be uploaded"
            )
        if status == JobStatus.ANALYZING:
            return AnalyzedResult(status=status, message="Analysis in progress")
        if status == JobStatus.ERROR:
            return AnalyzedResult(status=status, message=await self._failure_message(ticket))

        return await self._completed_result(ticket)

    async def _completed_result(self, ticket: int) -> AnalyzedResult:
        result_name = await self.ticketer.get_result(ticket)
        if not result_name:
            logger.error(f"Ticket {ticket} is COMPLETED but has no result artifact")
            return AnalyzedResult(
                status=JobStatus.ERROR, message="Analysis result is missing"
            )

        try:
            data = await asyncio.to_thread(self.storage.read_result, result_name)
        except (OSError, ValueError, KeyError) as e:
            logger.error(f"Cannot read result {result_name} of ticket {ticket}: {e}")
            return AnalyzedResult(
                status=JobStatus.ERROR, message="Analysis result is unreadable"
            )

        return AnalyzedResult(
            status=JobStatus.COMPLETED, result_data=data, message="Analysis completed"
        )

    async def _failure_message(self, ticket: int) -> str:
        default = "Analysis failed"
        meta_name = await self.ticketer.get_meta(ticket)
        if not meta_name:
            return default
        try:
            meta = await asyncio.to_thread(self.storage.read_meta, meta_name)
        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"Cannot read metadata of ticket {ticket}: {e}")
            return default
        return f"{default}: {meta.message}" if meta.message else default
