"""
Analysis controller that turns uploaded logs into analysis results.

Tickets are handed over by the ingestion coordinator once their upload is
complete and their status is ANALYZING. The controller is then the only
writer of the ticket's status until it reaches COMPLETED or ERROR.
"""

import asyncio
import logging
from collections.abc import Sequence

from gc_analyzer.analyzer import DEFAULT_MEAN_LEVELS, DEFAULT_OUTLIER_LEVELS, LogAnalyzer
from gc_analyzer.parser import GcLogParser, JsonLinesLogParser
from gc_common.errors import AnalysisFailedError, GcAnalysisError
from gc_common.models import GcAnalyzedData, JobStatus
from gc_common.ticketer import Ticketer
from gc_persistence.artifact_storage import ArtifactStorage

logger = logging.getLogger(__name__)


class AnalysisController:
    """
    Background worker that analyzes queued tickets.

    This controller runs a loop that:
    1. Takes the next ticket from its queue
    2. Reads the raw log artifact and parses it into events
    3. Runs the statistics engine in a worker thread
    4. Stores the result and sets the terminal status

    Up to max_concurrent_jobs tickets are analyzed in parallel. Tickets still
    queued when the controller stops keep their ANALYZING status.
    """

    def __init__(
        self,
        ticketer: Ticketer,
        storage: ArtifactStorage,
        parser: GcLogParser | None = None,
        max_concurrent_jobs: int = 4,
        mean_levels: Sequence[float] = DEFAULT_MEAN_LEVELS,
        outlier_levels: Sequence[float] = DEFAULT_OUTLIER_LEVELS,
    ):
        """
        Initialize the analysis controller.

        Args:
            ticketer: Ticket registry for status and artifact names
            storage: Artifact storage holding raw logs and results
            parser: Log parser (defaults to JsonLinesLogParser)
            max_concurrent_jobs: Maximum number of tickets analyzed at once
            mean_levels: Significance levels for mean estimation
            outlier_levels: Significance levels for outlier detection
        """
        self.ticketer = ticketer
        self.storage = storage
        self.parser = parser or JsonLinesLogParser()
        self.max_concurrent_jobs = max_concurrent_jobs
        self.mean_levels = tuple(mean_levels)
        self.outlier_levels = tuple(outlier_levels)

        self._queue: asyncio.Queue[int] | None = None
        self._semaphore: asyncio.Semaphore | None = None
        self._active: set[asyncio.Task] = set()
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the controller loop."""
        if self._running:
            logger.warning("Controller already running")
            return

        self._queue = asyncio.Queue()
        self._semaphore = asyncio.Semaphore(self.max_concurrent_jobs)
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(
            f"Analysis controller started (max_concurrent_jobs={self.max_concurrent_jobs})"
        )

    async def stop(self) -> None:
        """Stop the controller and wait for in-flight analyses to finish."""
        if not self._running:
            return

        logger.info("Stopping analysis controller...")
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        if self._active:
            await asyncio.gather(*self._active, return_exceptions=True)

        if self._queue is not None and not self._queue.empty():
            logger.warning(
                f"{self._queue.qsize()} queued tickets left in ANALYZING state"
            )
        logger.info("Analysis controller stopped")

    async def submit(self, ticket: int) -> None:
        """
        Queue a ticket for analysis.

        Raises:
            RuntimeError: If the controller is not running
        """
        if not self._running or self._queue is None:
            raise RuntimeError("Analysis controller is not running")
        await self._queue.put(ticket)
        logger.info(f"Ticket {ticket} queued for analysis")

    async def join(self) -> None:
        """Wait until every queued ticket has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def _run_loop(self) -> None:
        """Main loop: dispatch queued tickets while respecting the concurrency limit."""
        assert self._queue is not None and self._semaphore is not None
        while self._running:
            # A slot is reserved before dequeuing so a ticket is never held
            # outside the queue without a task to process it
            await self._semaphore.acquire()
            try:
                ticket = await self._queue.get()
            except asyncio.CancelledError:
                self._semaphore.release()
                raise
            task = asyncio.create_task(self._process(ticket))
            self._active.add(task)
            task.add_done_callback(self._active.discard)

    async def _process(self, ticket: int) -> None:
        assert self._queue is not None and self._semaphore is not None
        try:
            await self.analyze_ticket(ticket)
        except Exception as e:
            logger.error(f"Error analyzing ticket {ticket}: {e}", exc_info=True)
        finally:
            self._semaphore.release()
            self._queue.task_done()

    async def analyze_ticket(self, ticket: int) -> JobStatus | None:
        """
        Analyze one ticket and record the outcome.

        Only tickets in ANALYZING state are processed; others are left alone.

        Returns:
            The ticket's status after the call
        """
        status = await self.ticketer.get_status(ticket)
        if status != JobStatus.ANALYZING:
            logger.warning(
                f"Ticket {ticket} is {status.value if status else 'unknown'}, "
                "skipping analysis"
            )
            return status

        logfile = await self.ticketer.get_log_file(ticket)
        if not logfile:
            await self._mark_ticket_failed(ticket, "No log file recorded for ticket")
            return JobStatus.ERROR

        try:
            data = await asyncio.to_thread(self.storage.read_log, logfile)
            result = await asyncio.to_thread(self._parse_and_analyze, data)
            result_name = await asyncio.to_thread(
                self.storage.write_result, ticket, result
            )
        except (GcAnalysisError, OSError) as e:
            await self._mark_ticket_failed(ticket, str(e))
            return JobStatus.ERROR
        except Exception as e:
            logger.error(f"Unexpected error analyzing ticket {ticket}: {e}", exc_info=True)
            await self._mark_ticket_failed(ticket, f"Internal analysis error: {e}")
            return JobStatus.ERROR

        await self.ticketer.set_result(ticket, result_name)
        await self.ticketer.set_status(ticket, JobStatus.COMPLETED)
        logger.info(f"Ticket {ticket} analysis completed ({result_name})")
        return JobStatus.COMPLETED

    def _parse_and_analyze(self, data: bytes) -> GcAnalyzedData:
        if not data.strip():
            raise AnalysisFailedError("Log file is empty")

        events = self.parser.parse(data)
        if not events:
            raise AnalysisFailedError("No GC events found in log")

        return LogAnalyzer(events).analyze_data(self.mean_levels, self.outlier_levels)

    async def _mark_ticket_failed(self, ticket: int, reason: str) -> None:
        """
        Mark a ticket as failed with a reason.

        The reason is stored in the metadata artifact, then the status is set
        to ERROR. No result artifact name is recorded.
        """
        logger.error(f"Ticket {ticket} failed: {reason}")

        try:
            meta_name = await self.ticketer.get_meta(ticket)
            if meta_name:
                meta = await asyncio.to_thread(self.storage.read_meta, meta_name)
                meta.message = reason
                await asyncio.to_thread(self.storage.write_meta, meta)
        except (OSError, ValueError, KeyError) as e:
            logger.error(f"Could not record failure message for ticket {ticket}: {e}")

        await self.ticketer.set_status(ticket, JobStatus.ERROR)
        logger.info(f"Ticket {ticket} marked as failed")
